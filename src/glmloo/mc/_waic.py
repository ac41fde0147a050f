"""Widely Applicable Information Criterion (WAIC).

WAIC is an analytical approximation to LOO-CV computed from the same
``(S, n)`` log-likelihood matrix PSIS-LOO consumes.  It has no per-point
reliability diagnostic, so PSIS-LOO is the default ranking criterion; WAIC is
kept as a cheap cross-check.

Definitions
-----------
With ``L[s, i] = log p(y_i | theta^s)``::

    lppd_i     = log (1/S sum_s exp(L[s, i]))
    p_waic_i   = var_s(L[s, i])
    elpd_waic  = sum_i (lppd_i - p_waic_i)
    waic       = -2 * elpd_waic

References
----------
Watanabe (2010), "Asymptotic Equivalence of Bayes Cross Validation and
    Widely Applicable Information Criterion in Singular Learning Theory."
Gelman, Hwang, Vehtari (2014), "Understanding predictive information criteria
    for Bayesian models."
"""

from __future__ import annotations

from functools import partial

import jax.numpy as jnp
from jax import jit
from jax.scipy.special import logsumexp


@partial(jit, static_argnames=["aggregate"])
def compute_waic_stats(log_liks: jnp.ndarray, aggregate: bool = True) -> dict:
    """JIT-compiled WAIC statistics.

    Parameters
    ----------
    log_liks : jnp.ndarray, shape ``(S, n)``
        Log-likelihood matrix.
    aggregate : bool, default=True
        If ``True`` return scalar totals; otherwise per-observation vectors of
        shape ``(n,)``.

    Returns
    -------
    dict
        Keys ``lppd``, ``p_waic``, ``elpd_waic``, ``waic``.
    """
    log_liks = jnp.asarray(log_liks, dtype=jnp.float64)
    n_samples = log_liks.shape[0]

    lppd = logsumexp(log_liks, axis=0) - jnp.log(n_samples)
    p_waic = jnp.var(log_liks, axis=0, ddof=1)
    elpd_waic = lppd - p_waic

    if aggregate:
        lppd = jnp.sum(lppd)
        p_waic = jnp.sum(p_waic)
        elpd_waic = jnp.sum(elpd_waic)

    return {
        "lppd": lppd,
        "p_waic": p_waic,
        "elpd_waic": elpd_waic,
        "waic": -2.0 * elpd_waic,
    }


def waic(log_liks: jnp.ndarray) -> dict:
    """WAIC totals plus pointwise elpd and its standard error.

    Parameters
    ----------
    log_liks : array-like, shape ``(S, n)``
        Log-likelihood matrix.

    Returns
    -------
    dict
        ``lppd``, ``p_waic``, ``elpd_waic``, ``waic`` (floats),
        ``elpd_waic_i`` (shape ``(n,)``) and ``se_elpd_waic``.

    Examples
    --------
    >>> stats = waic(jnp.full((500, 100), -2.0))
    >>> stats["waic"]
    400.0
    """
    pointwise = compute_waic_stats(log_liks, aggregate=False)
    elpd_i = pointwise["elpd_waic"]
    n = elpd_i.shape[0]
    se = jnp.sqrt(n) * jnp.std(elpd_i, ddof=1) if n > 1 else 0.0
    return {
        "lppd": float(jnp.sum(pointwise["lppd"])),
        "p_waic": float(jnp.sum(pointwise["p_waic"])),
        "elpd_waic": float(jnp.sum(elpd_i)),
        "waic": float(-2.0 * jnp.sum(elpd_i)),
        "elpd_waic_i": elpd_i,
        "se_elpd_waic": float(se),
    }


def pseudo_bma_weights(elpd_values: jnp.ndarray) -> jnp.ndarray:
    """Akaike-style pseudo-BMA weights from total elpd values.

    ``w_k ∝ exp(elpd_k - max_k elpd_k)``.

    Parameters
    ----------
    elpd_values : array-like, shape ``(K,)``
        Expected log predictive densities (higher is better).

    Returns
    -------
    jnp.ndarray, shape ``(K,)``
        Weights summing to one.
    """
    elpd_values = jnp.asarray(elpd_values, dtype=jnp.float64)
    raw = jnp.exp(elpd_values - jnp.max(elpd_values))
    return raw / jnp.sum(raw)
