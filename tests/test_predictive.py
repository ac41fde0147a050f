"""Tests for posterior-predictive simulation and checks."""

import pytest
import numpy as np
from jax import random

from glmloo.errors import ShapeMismatchError
from glmloo.predictive import (
    DEFAULT_STATISTICS,
    ppc_statistics,
    sample_posterior_predictive,
)


@pytest.fixture(scope="module")
def small_draws(synthetic_draws):
    return {k: v.subset(slice(0, 100)) for k, v in synthetic_draws.items()}


# --------------------------------------------------------------------------
# sample_posterior_predictive
# --------------------------------------------------------------------------


@pytest.mark.parametrize("family", ["poisson", "negbinom"])
def test_count_replicates(family, small_draws, poisson_table):
    y_rep = sample_posterior_predictive(small_draws[family], poisson_table, family)
    assert isinstance(y_rep, np.ndarray)
    assert y_rep.shape == (100, poisson_table.n_obs)
    assert np.all(y_rep >= 0)
    assert np.all(y_rep == np.floor(y_rep))


def test_normal_replicates_are_real(small_draws, poisson_table):
    y_rep = sample_posterior_predictive(
        small_draws["normal"], poisson_table, "normal"
    )
    assert y_rep.shape == (100, poisson_table.n_obs)
    assert np.any(y_rep < 0)


def test_replicates_follow_draws(small_draws, poisson_table):
    """The replicated mean tracks the posterior mean of the rate."""
    y_rep = sample_posterior_predictive(
        small_draws["poisson"], poisson_table, "poisson", rng_key=random.PRNGKey(3)
    )
    assert y_rep.mean() == pytest.approx(poisson_table.y.mean(), rel=0.2)


def test_rng_key_controls_replicates(small_draws, poisson_table):
    a = sample_posterior_predictive(
        small_draws["poisson"], poisson_table, "poisson", rng_key=random.PRNGKey(1)
    )
    b = sample_posterior_predictive(
        small_draws["poisson"], poisson_table, "poisson", rng_key=random.PRNGKey(1)
    )
    np.testing.assert_array_equal(a, b)


def test_covariate_mismatch(small_draws):
    from glmloo.draws import ObservationTable

    table = ObservationTable(y=[1, 2], X=np.zeros((2, 5)))
    with pytest.raises(ShapeMismatchError):
        sample_posterior_predictive(small_draws["poisson"], table, "poisson")


# --------------------------------------------------------------------------
# ppc_statistics
# --------------------------------------------------------------------------


def test_ppc_statistics_columns():
    rng = np.random.default_rng(0)
    y = rng.poisson(3.0, size=50)
    y_rep = rng.poisson(3.0, size=(200, 50))
    df = ppc_statistics(y, y_rep)
    assert list(df["statistic"]) == list(DEFAULT_STATISTICS)
    assert list(df.columns) == [
        "statistic",
        "observed",
        "rep_mean",
        "rep_q05",
        "rep_q95",
        "p_value",
    ]
    assert df["p_value"].between(0.0, 1.0).all()
    assert np.all(df["rep_q05"] <= df["rep_q95"])


def test_ppc_statistics_identical_replicates():
    y = np.array([0, 1, 2, 5])
    df = ppc_statistics(y, np.tile(y, (10, 1)))
    np.testing.assert_allclose(df["observed"], df["rep_mean"])
    assert (df["p_value"] == 1.0).all()
    assert df.set_index("statistic").loc["frac_zero", "observed"] == 0.25


def test_ppc_statistics_detects_overdispersion():
    """Poisson replicates understate the spread of overdispersed data."""
    rng = np.random.default_rng(1)
    y = rng.negative_binomial(1, 1 / (1 + 4.0), size=300)
    y_rep = rng.poisson(y.mean(), size=(500, 300))
    df = ppc_statistics(y, y_rep).set_index("statistic")
    assert df.loc["sd", "p_value"] < 0.05


def test_ppc_statistics_custom():
    df = ppc_statistics(
        np.array([1.0, 2.0]),
        np.array([[1.0, 2.0], [3.0, 4.0]]),
        statistics={"median": np.median},
    )
    assert list(df["statistic"]) == ["median"]
    assert df["p_value"].iloc[0] == 1.0


def test_ppc_statistics_shape_mismatch():
    with pytest.raises(ShapeMismatchError):
        ppc_statistics(np.zeros(5), np.zeros((10, 4)))
