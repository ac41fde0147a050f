"""
Pointwise log-likelihood matrices for the regression models.

For S posterior draws and M observations the matrix has entry ``(s, i)`` equal
to the log density/mass of ``y[i]`` under draw ``s``.  The linear predictor
``alpha[s] + X[i] @ beta[s]`` is formed for the whole grid at once and passed
through the family's inverse link and kernel.
"""

import logging
from typing import Optional

import numpy as np
import jax.numpy as jnp

from .config import LikelihoodFamily
from .draws import ObservationTable, PosteriorDraws
from .errors import ShapeMismatchError
from .likelihoods import inverse_link, log_likelihood_kernel

logger = logging.getLogger(__name__)


def linear_predictor(intercept, coefficients, X) -> jnp.ndarray:
    """
    Compute ``eta[s, i] = intercept[s] + X[i] @ coefficients[s]``.

    Parameters
    ----------
    intercept : array-like, shape ``(S,)``
        Intercept draws.
    coefficients : array-like, shape ``(S, K)``
        Coefficient draws.
    X : array-like, shape ``(M, K)``
        Covariate matrix.

    Returns
    -------
    jnp.ndarray, shape ``(S, M)``

    Raises
    ------
    ShapeMismatchError
        If K differs between ``coefficients`` and ``X`` or S differs between
        ``intercept`` and ``coefficients``.
    """
    intercept = jnp.asarray(intercept, dtype=jnp.float64).reshape(-1)
    coefficients = jnp.atleast_2d(jnp.asarray(coefficients, dtype=jnp.float64))
    X = jnp.asarray(X, dtype=jnp.float64)
    if X.ndim == 1:
        X = X[:, None]

    if coefficients.shape[0] != intercept.shape[0]:
        raise ShapeMismatchError(
            f"intercept has {intercept.shape[0]} draws but coefficients has "
            f"{coefficients.shape[0]}."
        )
    if coefficients.shape[1] != X.shape[1]:
        raise ShapeMismatchError(
            f"coefficients have K={coefficients.shape[1]} columns but X has "
            f"K={X.shape[1]} covariates."
        )
    return intercept[:, None] + coefficients @ X.T


# ------------------------------------------------------------------------------


def log_likelihood_matrix(
    y,
    X,
    intercept,
    coefficients,
    family: LikelihoodFamily,
    dispersion=None,
) -> jnp.ndarray:
    """
    Array-level pointwise log-likelihood.

    Parameters
    ----------
    y : array-like, shape ``(M,)``
        Responses.
    X : array-like, shape ``(M, K)``
        Covariates.
    intercept : array-like, shape ``(S,)``
    coefficients : array-like, shape ``(S, K)``
    family : LikelihoodFamily or str
        Observation model.
    dispersion : array-like, shape ``(S,)``, optional
        Required for the Normal and Negative Binomial families.

    Returns
    -------
    jnp.ndarray, shape ``(S, M)``

    Raises
    ------
    ShapeMismatchError
        On inconsistent dimensions or a missing dispersion.
    InvalidParameterError
        If any cell receives parameters outside the family's support.
    """
    family = LikelihoodFamily(family)
    y = jnp.asarray(y, dtype=jnp.float64).reshape(-1)
    X = jnp.asarray(X, dtype=jnp.float64)
    if X.ndim == 1:
        X = X[:, None]
    if X.shape[0] != y.shape[0]:
        raise ShapeMismatchError(
            f"X has {X.shape[0]} rows but y has {y.shape[0]} responses."
        )

    eta = linear_predictor(intercept, coefficients, X)
    location = inverse_link(family, eta)

    disp = None
    if family.has_dispersion:
        if dispersion is None:
            raise ShapeMismatchError(
                f"The {family.value} family needs dispersion draws."
            )
        disp = jnp.asarray(dispersion, dtype=jnp.float64).reshape(-1)
        if disp.shape[0] != eta.shape[0]:
            raise ShapeMismatchError(
                f"dispersion has {disp.shape[0]} draws but the linear "
                f"predictor has {eta.shape[0]}."
            )
        disp = disp[:, None]

    kernel = log_likelihood_kernel(family)
    return kernel(y[None, :], location, disp)


# ------------------------------------------------------------------------------


def pointwise_log_likelihood(
    draws: PosteriorDraws,
    table: ObservationTable,
    family: LikelihoodFamily,
    batch_size: Optional[int] = None,
) -> jnp.ndarray:
    """
    Compute the ``(S, M)`` log-likelihood matrix of a fitted model.

    Parameters
    ----------
    draws : PosteriorDraws
        Posterior samples of the model.
    table : ObservationTable
        Observations the model is scored on.
    family : LikelihoodFamily or str
        Observation model of the fitted model.
    batch_size : int, optional
        Number of draws evaluated at a time.  ``None`` evaluates all draws in
        one pass; smaller values bound peak memory without changing the
        result.

    Returns
    -------
    jnp.ndarray, shape ``(S, M)``

    Examples
    --------
    >>> ll = pointwise_log_likelihood(draws, table, "poisson")
    >>> ll.shape
    (1000, 236)
    """
    family = LikelihoodFamily(family)
    if draws.n_coefficients != table.n_covariates:
        raise ShapeMismatchError(
            f"draws have K={draws.n_coefficients} coefficients but the table "
            f"has K={table.n_covariates} covariates."
        )

    logger.debug(
        "Scoring %d draws x %d observations under the %s family",
        draws.n_draws,
        table.n_obs,
        family.value,
    )

    if batch_size is None or batch_size >= draws.n_draws:
        return log_likelihood_matrix(
            table.y,
            table.X,
            draws.intercept,
            draws.coefficients,
            family,
            dispersion=draws.dispersion,
        )

    if batch_size < 1:
        raise ValueError(f"batch_size must be positive; got {batch_size}.")

    blocks = []
    for start in range(0, draws.n_draws, batch_size):
        batch = draws.subset(np.s_[start : start + batch_size])
        blocks.append(
            log_likelihood_matrix(
                table.y,
                table.X,
                batch.intercept,
                batch.coefficients,
                family,
                dispersion=batch.dispersion,
            )
        )
    return jnp.concatenate(blocks, axis=0)
