"""
Shared test fixtures and configuration for glmloo tests.
"""

import os

import numpy as np
import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--device",
        default="cpu",
        choices=["cpu", "gpu"],
        help="Device to run tests on: cpu or gpu",
    )


def pytest_configure(config):
    """Configure JAX device before any imports happen."""
    device = config.getoption("--device")
    if device == "cpu":
        os.environ["JAX_PLATFORM_NAME"] = "cpu"
    elif "JAX_PLATFORM_NAME" in os.environ:
        del os.environ["JAX_PLATFORM_NAME"]


# --------------------------------------------------------------------------
# Synthetic seizure-count data
# --------------------------------------------------------------------------


@pytest.fixture(scope="session")
def true_params():
    """Parameters of the Poisson process generating the synthetic counts."""
    return {"alpha": 0.5, "beta": np.array([0.8, -0.3])}


@pytest.fixture(scope="session")
def poisson_table(true_params):
    """ObservationTable of 40 patients x 4 visits with Poisson counts."""
    from glmloo.draws import ObservationTable

    rng = np.random.default_rng(2024)
    n_patients, n_visits = 40, 4
    M = n_patients * n_visits
    X = rng.normal(0.0, 1.0, size=(M, 2))
    eta = true_params["alpha"] + X @ true_params["beta"]
    y = rng.poisson(np.exp(eta))
    return ObservationTable(
        y=y,
        X=X,
        covariate_names=["zBase", "zAge"],
        groups=np.repeat(np.arange(n_patients), n_visits),
        visits=np.tile(np.arange(1, n_visits + 1), n_patients),
    )


@pytest.fixture(scope="session")
def synthetic_draws(poisson_table, true_params):
    """Posterior-like draws for the three families fitted to ``poisson_table``.

    Count models are centered on the true parameters; the Normal model is
    centered on the least-squares fit with the residual standard deviation.
    """
    from glmloo.draws import PosteriorDraws

    rng = np.random.default_rng(7)
    S = 400
    alpha = true_params["alpha"] + rng.normal(0.0, 0.05, S)
    beta = true_params["beta"] + rng.normal(0.0, 0.04, (S, 2))

    X, y = poisson_table.X, poisson_table.y
    design = np.column_stack([np.ones(len(y)), X])
    coef, *_ = np.linalg.lstsq(design, y, rcond=None)
    resid_sd = np.std(y - design @ coef, ddof=3)

    return {
        "normal": PosteriorDraws(
            intercept=coef[0] + rng.normal(0.0, 0.1, S),
            coefficients=coef[1:] + rng.normal(0.0, 0.1, (S, 2)),
            dispersion=resid_sd * np.exp(rng.normal(0.0, 0.05, S)),
        ),
        "poisson": PosteriorDraws(intercept=alpha, coefficients=beta),
        "negbinom": PosteriorDraws(
            intercept=alpha,
            coefficients=beta,
            dispersion=np.exp(rng.normal(np.log(50.0), 0.2, S)),
        ),
    }
