"""Tests for linear predictors and pointwise log-likelihood matrices."""

import pytest
import numpy as np

from glmloo.draws import ObservationTable, PosteriorDraws
from glmloo.errors import InvalidParameterError, ShapeMismatchError
from glmloo.likelihoods import (
    negbinom_log_mass,
    normal_log_density,
    poisson_log_mass,
)
from glmloo.log_likelihood import (
    linear_predictor,
    log_likelihood_matrix,
    pointwise_log_likelihood,
)


# --------------------------------------------------------------------------
# linear_predictor
# --------------------------------------------------------------------------


def test_linear_predictor_values():
    intercept = np.array([0.0, 1.0])
    coefficients = np.array([[1.0, 0.0], [2.0, -1.0]])
    X = np.array([[1.0, 2.0], [3.0, 4.0], [0.0, 0.0]])
    eta = np.asarray(linear_predictor(intercept, coefficients, X))
    expected = np.array([[1.0, 3.0, 0.0], [1.0, 3.0, 1.0]])
    np.testing.assert_allclose(eta, expected)


def test_linear_predictor_covariate_mismatch():
    with pytest.raises(ShapeMismatchError):
        linear_predictor(np.zeros(4), np.zeros((4, 2)), np.zeros((10, 3)))


def test_linear_predictor_draw_mismatch():
    with pytest.raises(ShapeMismatchError):
        linear_predictor(np.zeros(4), np.zeros((5, 2)), np.zeros((10, 2)))


# --------------------------------------------------------------------------
# log_likelihood_matrix
# --------------------------------------------------------------------------


def test_single_cell_matches_kernels():
    """With S = M = 1 each family reduces to a direct kernel call."""
    X = np.array([[0.5]])
    alpha, beta = np.array([0.2]), np.array([[0.6]])
    eta = 0.2 + 0.6 * 0.5

    ll = log_likelihood_matrix([3], X, alpha, beta, "poisson")
    assert ll.shape == (1, 1)
    assert float(ll[0, 0]) == pytest.approx(float(poisson_log_mass(3, np.exp(eta))))

    ll = log_likelihood_matrix([3], X, alpha, beta, "negbinom", dispersion=[2.0])
    assert float(ll[0, 0]) == pytest.approx(
        float(negbinom_log_mass(3, np.exp(eta), 2.0))
    )

    ll = log_likelihood_matrix([1.3], X, alpha, beta, "normal", dispersion=[0.7])
    assert float(ll[0, 0]) == pytest.approx(
        float(normal_log_density(1.3, eta, 0.7))
    )


def test_matrix_entries_match_kernel():
    rng = np.random.default_rng(0)
    S, M, K = 6, 9, 2
    y = rng.poisson(2.0, size=M)
    X = rng.normal(size=(M, K))
    alpha = rng.normal(0.0, 0.1, size=S)
    beta = rng.normal(0.0, 0.1, size=(S, K))
    phi = rng.uniform(1.0, 5.0, size=S)

    ll = np.asarray(log_likelihood_matrix(y, X, alpha, beta, "negbinom", phi))
    assert ll.shape == (S, M)
    s, i = 4, 7
    mu = np.exp(alpha[s] + X[i] @ beta[s])
    assert ll[s, i] == pytest.approx(float(negbinom_log_mass(y[i], mu, phi[s])))


def test_extra_response_row_rejected():
    """M + 1 responses against M covariate rows."""
    with pytest.raises(ShapeMismatchError):
        log_likelihood_matrix(
            np.zeros(6), np.zeros((5, 2)), np.zeros(3), np.zeros((3, 2)), "poisson"
        )


def test_extra_covariate_row_rejected():
    """M + 1 covariate rows against M responses."""
    with pytest.raises(ShapeMismatchError):
        log_likelihood_matrix(
            np.zeros(5), np.zeros((6, 2)), np.zeros(3), np.zeros((3, 2)), "poisson"
        )
    with pytest.raises(ShapeMismatchError):
        ObservationTable(y=np.zeros(5), X=np.zeros((6, 2)))


@pytest.mark.parametrize("family", ["normal", "negbinom"])
def test_missing_dispersion(family):
    with pytest.raises(ShapeMismatchError):
        log_likelihood_matrix(
            np.zeros(5), np.zeros((5, 2)), np.zeros(3), np.zeros((3, 2)), family
        )


def test_dispersion_draw_mismatch():
    with pytest.raises(ShapeMismatchError):
        log_likelihood_matrix(
            np.zeros(5),
            np.zeros((5, 2)),
            np.zeros(3),
            np.zeros((3, 2)),
            "normal",
            dispersion=np.ones(4),
        )


def test_invalid_dispersion_propagates():
    with pytest.raises(InvalidParameterError):
        log_likelihood_matrix(
            np.zeros(5),
            np.zeros((5, 2)),
            np.zeros(3),
            np.zeros((3, 2)),
            "normal",
            dispersion=np.array([1.0, 0.0, 1.0]),
        )


def test_non_count_response_rejected():
    with pytest.raises(InvalidParameterError):
        log_likelihood_matrix(
            np.array([0.5, 1.0]),
            np.zeros((2, 1)),
            np.zeros(3),
            np.zeros((3, 1)),
            "poisson",
        )


# --------------------------------------------------------------------------
# pointwise_log_likelihood
# --------------------------------------------------------------------------


@pytest.mark.parametrize("family", ["normal", "poisson", "negbinom"])
def test_pointwise_shape(family, poisson_table, synthetic_draws):
    ll = pointwise_log_likelihood(synthetic_draws[family], poisson_table, family)
    assert ll.shape == (400, poisson_table.n_obs)
    assert bool(np.all(np.isfinite(np.asarray(ll))))


@pytest.mark.parametrize("batch_size", [1, 7, 64, 400, 1000])
def test_batching_is_invariant(batch_size, poisson_table, synthetic_draws):
    draws = synthetic_draws["negbinom"].subset(slice(0, 50))
    full = np.asarray(pointwise_log_likelihood(draws, poisson_table, "negbinom"))
    batched = np.asarray(
        pointwise_log_likelihood(
            draws, poisson_table, "negbinom", batch_size=batch_size
        )
    )
    np.testing.assert_allclose(batched, full, rtol=1e-12)


def test_invalid_batch_size(poisson_table, synthetic_draws):
    with pytest.raises(ValueError):
        pointwise_log_likelihood(
            synthetic_draws["poisson"], poisson_table, "poisson", batch_size=0
        )


def test_pointwise_covariate_mismatch():
    table = ObservationTable(y=[1, 2], X=np.zeros((2, 3)))
    draws = PosteriorDraws(intercept=np.zeros(4), coefficients=np.zeros((4, 2)))
    with pytest.raises(ShapeMismatchError):
        pointwise_log_likelihood(draws, table, "poisson")


def test_negbinom_approaches_poisson_with_large_dispersion(
    poisson_table, synthetic_draws
):
    poisson = synthetic_draws["poisson"]
    nb = PosteriorDraws(
        intercept=poisson.intercept,
        coefficients=poisson.coefficients,
        dispersion=np.full(poisson.n_draws, 1e7),
    )
    ll_p = np.asarray(pointwise_log_likelihood(poisson, poisson_table, "poisson"))
    ll_nb = np.asarray(pointwise_log_likelihood(nb, poisson_table, "negbinom"))
    np.testing.assert_allclose(ll_nb, ll_p, atol=1e-4)
