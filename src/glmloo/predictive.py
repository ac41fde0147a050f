"""
Posterior-predictive simulation and checks.

Replicated responses are drawn by running the model with ``y`` unobserved
under each posterior draw (NumPyro ``Predictive``).  This is kept separate from
log-likelihood scoring in :mod:`glmloo.log_likelihood`; both read the same
draws.
"""

from typing import Callable, Dict, Optional, Union

import numpy as np
import pandas as pd
import jax.numpy as jnp
from jax import random
from numpyro.infer import Predictive

from .config import LikelihoodFamily, PriorConfig
from .draws import ObservationTable, PosteriorDraws
from .errors import ShapeMismatchError
from .models import get_model

# ------------------------------------------------------------------------------
# Posterior predictive samples
# ------------------------------------------------------------------------------


def sample_posterior_predictive(
    draws: PosteriorDraws,
    table: ObservationTable,
    family: Union[str, LikelihoodFamily],
    rng_key: Optional[random.PRNGKey] = None,
    prior: Optional[PriorConfig] = None,
) -> np.ndarray:
    """Draw one replicated dataset per posterior draw.

    Parameters
    ----------
    draws : PosteriorDraws
        Posterior draws of the model.
    table : ObservationTable
        Covariates to predict at (responses are ignored).
    family : LikelihoodFamily or str
        Observation model the draws belong to.
    rng_key : jax.random.PRNGKey, optional
        Defaults to ``PRNGKey(0)``.
    prior : PriorConfig, optional
        Only needed to build the model; it does not affect the result because
        every parameter site is conditioned on ``draws``.

    Returns
    -------
    np.ndarray, shape ``(S, M)``
        Replicated responses ``y_rep``.
    """
    family = LikelihoodFamily(family)
    if draws.n_coefficients != table.n_covariates:
        raise ShapeMismatchError(
            f"draws have K={draws.n_coefficients} coefficients but the table "
            f"has K={table.n_covariates} covariates."
        )
    if rng_key is None:
        rng_key = random.PRNGKey(0)

    samples = {k: jnp.asarray(v) for k, v in draws.to_samples(family).items()}
    predictive = Predictive(
        get_model(family), posterior_samples=samples, return_sites=["y"]
    )
    y_rep = predictive(rng_key, X=jnp.asarray(table.X), y=None, prior=prior)["y"]
    return np.asarray(y_rep)


# ------------------------------------------------------------------------------
# Test statistics
# ------------------------------------------------------------------------------


def _frac_zero(y: np.ndarray, axis=None):
    return np.mean(y == 0, axis=axis)


DEFAULT_STATISTICS: Dict[str, Callable] = {
    "mean": np.mean,
    "sd": np.std,
    "frac_zero": _frac_zero,
    "max": np.max,
}


def ppc_statistics(
    y: np.ndarray,
    y_rep: np.ndarray,
    statistics: Optional[Dict[str, Callable]] = None,
) -> pd.DataFrame:
    """Compare test statistics of observed and replicated data.

    Parameters
    ----------
    y : array-like, shape ``(M,)``
        Observed responses.
    y_rep : array-like, shape ``(S, M)``
        Replicated responses from :func:`sample_posterior_predictive`.
    statistics : dict, optional
        Mapping from name to a function ``f(values, axis=None)``.  Defaults
        to mean, standard deviation, fraction of zeros and maximum.

    Returns
    -------
    pd.DataFrame
        One row per statistic with the observed value, the mean and 5%/95%
        quantiles of its replicated distribution, and the posterior
        predictive p-value ``P(T(y_rep) >= T(y))``.
    """
    y = np.asarray(y, dtype=np.float64).reshape(-1)
    y_rep = np.asarray(y_rep, dtype=np.float64)
    if y_rep.ndim != 2 or y_rep.shape[1] != y.shape[0]:
        raise ShapeMismatchError(
            f"y_rep must have shape (S, {y.shape[0]}); got {y_rep.shape}."
        )
    statistics = statistics or DEFAULT_STATISTICS

    records = []
    for name, fn in statistics.items():
        observed = float(fn(y))
        replicated = np.asarray(fn(y_rep, axis=1))
        records.append(
            {
                "statistic": name,
                "observed": observed,
                "rep_mean": float(np.mean(replicated)),
                "rep_q05": float(np.quantile(replicated, 0.05)),
                "rep_q95": float(np.quantile(replicated, 0.95)),
                "p_value": float(np.mean(replicated >= observed)),
            }
        )
    return pd.DataFrame(records)
