"""Tests for the PosteriorDraws and ObservationTable containers."""

import pytest
import numpy as np
import pandas as pd

from glmloo.draws import ObservationTable, PosteriorDraws
from glmloo.errors import ShapeMismatchError


# --------------------------------------------------------------------------
# PosteriorDraws
# --------------------------------------------------------------------------


def test_posterior_draws_shapes():
    draws = PosteriorDraws(
        intercept=np.zeros(10), coefficients=np.zeros((10, 3))
    )
    assert draws.n_draws == 10
    assert draws.n_coefficients == 3
    assert draws.dispersion is None


def test_posterior_draws_single_covariate_vector():
    draws = PosteriorDraws(intercept=np.zeros(8), coefficients=np.ones(8))
    assert draws.coefficients.shape == (8, 1)


def test_posterior_draws_mismatched_draw_counts():
    with pytest.raises(ShapeMismatchError):
        PosteriorDraws(intercept=np.zeros(10), coefficients=np.zeros((9, 2)))
    with pytest.raises(ShapeMismatchError):
        PosteriorDraws(
            intercept=np.zeros(10),
            coefficients=np.zeros((10, 2)),
            dispersion=np.ones(11),
        )


def test_posterior_draws_wrong_rank():
    with pytest.raises(ShapeMismatchError):
        PosteriorDraws(intercept=np.zeros(4), coefficients=np.zeros((4, 2, 2)))


def test_posterior_draws_frozen():
    draws = PosteriorDraws(intercept=np.zeros(3), coefficients=np.zeros((3, 1)))
    with pytest.raises(AttributeError):
        draws.intercept = np.ones(3)


@pytest.mark.parametrize(
    "family, site", [("normal", "sigma"), ("negbinom", "phi")]
)
def test_from_samples_with_dispersion(family, site):
    samples = {
        "alpha": np.arange(5.0),
        "beta": np.ones((5, 2)),
        site: np.full(5, 2.0),
    }
    draws = PosteriorDraws.from_samples(samples, family)
    np.testing.assert_array_equal(draws.intercept, np.arange(5.0))
    np.testing.assert_array_equal(draws.dispersion, 2.0)
    back = draws.to_samples(family)
    assert set(back) == {"alpha", "beta", site}


def test_from_samples_poisson_ignores_dispersion():
    samples = {"alpha": np.zeros(5), "beta": np.zeros((5, 2)), "phi": np.ones(5)}
    draws = PosteriorDraws.from_samples(samples, "poisson")
    assert draws.dispersion is None
    assert set(draws.to_samples("poisson")) == {"alpha", "beta"}


def test_from_samples_missing_site():
    with pytest.raises(KeyError):
        PosteriorDraws.from_samples(
            {"alpha": np.zeros(5), "beta": np.zeros((5, 2))}, "negbinom"
        )


def test_to_samples_requires_dispersion():
    draws = PosteriorDraws(intercept=np.zeros(3), coefficients=np.zeros((3, 1)))
    with pytest.raises(ShapeMismatchError):
        draws.to_samples("normal")


def test_subset():
    draws = PosteriorDraws(
        intercept=np.arange(10.0),
        coefficients=np.arange(20.0).reshape(10, 2),
        dispersion=np.arange(10.0) + 1,
    )
    sub = draws.subset(slice(2, 5))
    assert sub.n_draws == 3
    np.testing.assert_array_equal(sub.intercept, [2.0, 3.0, 4.0])
    np.testing.assert_array_equal(sub.dispersion, [3.0, 4.0, 5.0])


# --------------------------------------------------------------------------
# ObservationTable
# --------------------------------------------------------------------------


def test_observation_table_defaults():
    table = ObservationTable(y=[1, 2, 3], X=np.zeros((3, 2)))
    assert table.n_obs == 3
    assert table.n_covariates == 2
    assert table.covariate_names == ["x0", "x1"]
    assert table.n_groups is None


def test_observation_table_row_mismatch():
    with pytest.raises(ShapeMismatchError):
        ObservationTable(y=np.zeros(4), X=np.zeros((5, 2)))


def test_observation_table_name_mismatch():
    with pytest.raises(ShapeMismatchError):
        ObservationTable(y=np.zeros(3), X=np.zeros((3, 2)), covariate_names=["a"])


def test_observation_table_group_mismatch():
    with pytest.raises(ShapeMismatchError):
        ObservationTable(y=np.zeros(3), X=np.zeros((3, 1)), groups=[1, 2])


def test_observation_table_groups(poisson_table):
    assert poisson_table.n_obs == 160
    assert poisson_table.n_groups == 40


def test_dataframe_round_trip():
    df = pd.DataFrame(
        {
            "count": [0, 3, 5, 1],
            "zBase": [0.1, -0.2, 0.3, 0.0],
            "Trt": [0, 1, 1, 0],
            "patient": [1, 1, 2, 2],
            "visit": [1, 2, 1, 2],
        }
    )
    table = ObservationTable.from_dataframe(
        df, "count", ["zBase", "Trt"], group="patient", visit="visit"
    )
    assert table.covariate_names == ["zBase", "Trt"]
    assert table.n_groups == 2

    out = table.to_dataframe()
    assert list(out.columns) == ["y", "zBase", "Trt", "group", "visit"]
    np.testing.assert_array_equal(out["y"], df["count"])


def test_from_dataframe_missing_column():
    df = pd.DataFrame({"count": [1, 2], "zBase": [0.0, 1.0]})
    with pytest.raises(ValueError, match="zAge"):
        ObservationTable.from_dataframe(df, "count", ["zBase", "zAge"])
