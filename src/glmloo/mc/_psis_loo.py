"""Pareto-Smoothed Importance Sampling Leave-One-Out (PSIS-LOO) cross-validation.

PSIS-LOO approximates exact leave-one-out predictive densities from a single
posterior by re-weighting the draws, and stabilizes the heavy right tail of the
importance ratios with a fitted generalized Pareto distribution (GPD).

Algorithm outline (per observation i)
--------------------------------------
1.  Raw log ratios: ``log r_s = -log p(y_i | theta^s)``, shifted by their max.
2.  Tail length ``M = ceil(min(0.2 * S, 3 * sqrt(S)))``.
3.  Fit a GPD to the excesses of the M largest ratios over the cutoff with
    the Zhang-Stephens estimator and a weakly informative prior on the shape.
4.  Replace the tail with the expected GPD order statistics, truncated at the
    largest raw ratio.  The bulk is left untouched.
5.  Normalize the smoothed log weights.
6.  ``elpd_i = log sum_s w_s p(y_i | theta^s)``.

Diagnostic thresholds for k_hat
-------------------------------
- k < 0.5        : importance weights have finite variance.
- 0.5 <= k < 0.7 : finite mean, estimate still usable.
- k >= 0.7       : unreliable; the contribution of this point is suspect.

References
----------
Vehtari, Gelman, Gabry (2017), "Practical Bayesian model evaluation using
    leave-one-out cross-validation and WAIC." Statistics and Computing.
Vehtari, Simpson, Gelman, Yao, Gabry (2024), "Pareto Smoothed Importance
    Sampling." JMLR.
Zhang, Stephens (2009), "A new and efficient estimation method for the
    generalized Pareto distribution." Technometrics.
"""

from __future__ import annotations

import warnings
from typing import Dict, Tuple

import numpy as np
from scipy.special import logsumexp

from ..errors import InsufficientDrawsError, InvalidParameterError, ShapeMismatchError

# Smallest tail the GPD fit accepts
MIN_TAIL = 5

# Default Pareto k threshold above which a LOO contribution is unreliable
K_THRESHOLD = 0.7


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _n_tail(n_samples: int) -> int:
    """Number of tail draws used for the Pareto fit.

    Parameters
    ----------
    n_samples : int
        Total number of posterior draws S.

    Returns
    -------
    int
        ``ceil(min(0.2 * S, 3 * sqrt(S)))``.
    """
    return int(np.ceil(min(0.2 * n_samples, 3.0 * np.sqrt(n_samples))))


def _gpdfit(x: np.ndarray) -> Tuple[float, float]:
    """Estimate generalized Pareto parameters for sorted tail excesses.

    Empirical Bayes estimate of Zhang & Stephens (2009) with the weakly
    informative prior on the shape used by the ``loo`` R package.

    Parameters
    ----------
    x : np.ndarray, shape ``(M,)``
        Positive excesses over the tail cutoff, sorted ascending.

    Returns
    -------
    k_hat : float
        Shape parameter.
    sigma_hat : float
        Scale parameter.
    """
    prior_bs = 3
    prior_k = 10
    n = len(x)
    m_est = 30 + int(np.sqrt(n))

    b_ary = 1.0 - np.sqrt(m_est / (np.arange(1, m_est + 1, dtype=float) - 0.5))
    b_ary /= prior_bs * x[int(n / 4 + 0.5) - 1]
    b_ary += 1.0 / x[-1]

    # Profile log-likelihood of each candidate b
    k_ary = np.log1p(-b_ary[:, None] * x).mean(axis=1)
    len_scale = n * (np.log(-(b_ary / k_ary)) - k_ary - 1.0)
    weights = 1.0 / np.exp(len_scale - len_scale[:, None]).sum(axis=1)

    # Drop candidates with negligible posterior weight
    keep = weights >= 10 * np.finfo(float).eps
    weights = weights[keep]
    b_ary = b_ary[keep]
    weights /= weights.sum()

    b_post = np.sum(b_ary * weights)
    k_post = np.log1p(-b_post * x).mean()
    sigma = -k_post / b_post
    # Shrink k towards 0.5
    k_post = (n * k_post + prior_k * 0.5) / (n + prior_k)
    return float(k_post), float(sigma)


def _gpinv(probs: np.ndarray, k: float, sigma: float) -> np.ndarray:
    """Quantile function of a GPD with location 0."""
    if np.abs(k) < np.finfo(float).eps:
        return -sigma * np.log1p(-probs)
    return sigma * np.expm1(-k * np.log1p(-probs)) / k


def _pareto_smooth_single(log_ratios: np.ndarray) -> Tuple[np.ndarray, float]:
    """Apply PSIS to the log importance ratios of one observation.

    Parameters
    ----------
    log_ratios : np.ndarray, shape ``(S,)``
        Raw log ratios ``-log p(y_i | theta^s)``.

    Returns
    -------
    log_weights : np.ndarray, shape ``(S,)``
        Smoothed and normalized log weights (log-sum-exp equal to 0).
    k_hat : float
        Pareto shape estimate; ``inf`` if the tail was too short to fit.
    """
    S = len(log_ratios)
    lw = log_ratios - np.max(log_ratios)

    # All draws agree: uniform weights, nothing to smooth
    if np.ptp(lw) == 0.0:
        return np.full(S, -np.log(S)), 0.0

    n_tail = _n_tail(S)
    order = np.argsort(lw)
    cutoff = max(lw[order[-n_tail - 1]], np.log(np.finfo(float).tiny))

    (tail_idx,) = np.nonzero(lw > cutoff)
    if len(tail_idx) < MIN_TAIL:
        # Ties at the cutoff leave too few points to fit a tail
        k_hat = np.inf
    else:
        tail_order = np.argsort(lw[tail_idx])
        exp_cutoff = np.exp(cutoff)
        excess = np.exp(lw[tail_idx]) - exp_cutoff
        k_hat, sigma = _gpdfit(excess[tail_order])
        if np.isfinite(k_hat):
            probs = np.arange(0.5, len(tail_idx)) / len(tail_idx)
            smoothed = np.log(_gpinv(probs, k_hat, sigma) + exp_cutoff)
            lw[tail_idx[tail_order]] = smoothed
            # Never exceed the largest raw ratio
            lw[lw > 0] = 0.0

    return lw - logsumexp(lw), float(k_hat)


def _validate_log_liks(log_liks, dtype) -> np.ndarray:
    log_liks = np.asarray(log_liks, dtype=dtype)
    if log_liks.ndim != 2:
        raise ShapeMismatchError(
            f"log_liks must have shape (S, n); got {log_liks.shape}."
        )
    if not np.all(np.isfinite(log_liks)):
        raise InvalidParameterError(
            "log_liks contains non-finite entries; every draw must assign "
            "a finite log-likelihood to every observation."
        )
    n_tail = _n_tail(log_liks.shape[0])
    if n_tail < MIN_TAIL:
        raise InsufficientDrawsError(
            f"PSIS needs at least {MIN_TAIL} tail draws but S="
            f"{log_liks.shape[0]} gives {n_tail}; provide more than 20 draws."
        )
    return log_liks


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def psis_smooth(log_liks: np.ndarray, dtype: type = np.float64):
    """Pareto-smoothed, normalized log weights for every observation.

    Parameters
    ----------
    log_liks : array-like, shape ``(S, n)``
        Pointwise log-likelihood matrix.
    dtype : numpy dtype, default=np.float64
        Working precision.

    Returns
    -------
    log_weights : np.ndarray, shape ``(S, n)``
        Column ``i`` holds the normalized log weights for leaving out
        observation ``i``.
    k_hat : np.ndarray, shape ``(n,)``
        Pareto shape estimates.
    """
    log_liks = _validate_log_liks(log_liks, dtype)
    S, n = log_liks.shape
    log_weights = np.empty((S, n), dtype=dtype)
    k_hat = np.empty(n, dtype=dtype)
    for i in range(n):
        log_weights[:, i], k_hat[i] = _pareto_smooth_single(-log_liks[:, i])
    return log_weights, k_hat


def compute_psis_loo(
    log_liks: np.ndarray,
    dtype: type = np.float64,
    k_threshold: float = K_THRESHOLD,
    return_weights: bool = False,
) -> Dict[str, np.ndarray]:
    """Compute PSIS-LOO statistics from a posterior log-likelihood matrix.

    Parameters
    ----------
    log_liks : array-like, shape ``(S, n)``
        Log-likelihood matrix: rows are posterior draws, columns are
        observations.  JAX arrays are converted to NumPy.
    dtype : numpy dtype, default=np.float64
        Working precision; the Pareto fit needs double precision.
    k_threshold : float, default=0.7
        Pareto k at or above which an observation is counted as unreliable.
    return_weights : bool, default=False
        If ``True`` include the ``(S, n)`` smoothed log weights in the
        output under ``log_weights``.

    Returns
    -------
    dict
        ``elpd_loo`` : float
            Total expected log predictive density.
        ``se_elpd_loo`` : float
            Standard error, ``sqrt(n) * sd(elpd_loo_i)``.
        ``p_loo`` : float
            Effective number of parameters, ``lppd - elpd_loo``.
        ``looic`` : float
            ``-2 * elpd_loo``.
        ``elpd_loo_i`` : np.ndarray, shape ``(n,)``
            Per-observation LOO log predictive density.
        ``k_hat`` : np.ndarray, shape ``(n,)``
            Per-observation Pareto shape diagnostic.
        ``lppd`` : float
            In-sample log pointwise predictive density.
        ``n_bad`` : int
            Number of observations with ``k_hat >= k_threshold``.
        ``frac_bad`` : float
            ``n_bad / n``.

    Raises
    ------
    InsufficientDrawsError
        If S is too small to form a five-point Pareto tail (S <= 20).
    InvalidParameterError
        If the matrix contains non-finite entries.
    ShapeMismatchError
        If the input is not two-dimensional.

    Warns
    -----
    UserWarning
        If any observation has ``k_hat >= k_threshold``.  The estimate is
        still returned.

    Examples
    --------
    >>> rng = np.random.default_rng(0)
    >>> log_liks = rng.normal(-3.0, 0.5, size=(500, 200))
    >>> result = compute_psis_loo(log_liks)
    >>> result["n_bad"]
    0
    """
    log_liks = _validate_log_liks(log_liks, dtype)
    S, n = log_liks.shape

    log_weights, k_hat = psis_smooth(log_liks, dtype=dtype)

    elpd_loo_i = logsumexp(log_weights + log_liks, axis=0)
    # Constant columns are reported exactly
    constant = np.ptp(log_liks, axis=0) == 0.0
    elpd_loo_i[constant] = log_liks[0, constant]

    lppd_i = logsumexp(log_liks, axis=0) - np.log(S)
    lppd_i[constant] = log_liks[0, constant]
    lppd = float(np.sum(lppd_i))

    elpd_loo = float(np.sum(elpd_loo_i))
    se = float(np.sqrt(n) * np.std(elpd_loo_i, ddof=1)) if n > 1 else 0.0

    n_bad = int(np.sum(k_hat >= k_threshold))
    if n_bad > 0:
        warnings.warn(
            f"{n_bad} of {n} observations have Pareto k >= {k_threshold}; "
            "their LOO contributions are unreliable.",
            UserWarning,
            stacklevel=2,
        )

    result = {
        "elpd_loo": elpd_loo,
        "se_elpd_loo": se,
        "p_loo": lppd - elpd_loo,
        "looic": -2.0 * elpd_loo,
        "elpd_loo_i": elpd_loo_i,
        "k_hat": k_hat,
        "lppd": lppd,
        "n_bad": n_bad,
        "frac_bad": n_bad / n,
    }
    if return_weights:
        result["log_weights"] = log_weights
    return result


def psis_loo_summary(result: dict, k_threshold: float = K_THRESHOLD) -> str:
    """Format a human-readable summary of PSIS-LOO diagnostics.

    Parameters
    ----------
    result : dict
        Output of :func:`compute_psis_loo`.
    k_threshold : float, default=0.7
        Threshold separating "ok" from "bad" observations.

    Returns
    -------
    str
    """
    k = result["k_hat"]
    n = len(k)
    n_good = int(np.sum(k < 0.5))
    n_ok = int(np.sum((k >= 0.5) & (k < k_threshold)))
    n_bad = int(np.sum(k >= k_threshold))

    lines = [
        "PSIS-LOO Summary",
        "=" * 40,
        f"  elpd_loo : {result['elpd_loo']:.2f} (se {result['se_elpd_loo']:.2f})",
        f"  p_loo    : {result['p_loo']:.2f}",
        f"  LOO-IC   : {result['looic']:.2f}",
        "",
        f"  Pareto k diagnostics (n={n} observations):",
        f"    k < 0.5            (good) : {n_good:5d}  ({100 * n_good / n:5.1f}%)",
        f"    0.5 <= k < {k_threshold:<4g}   (ok) : {n_ok:5d}  ({100 * n_ok / n:5.1f}%)",
        f"    k >= {k_threshold:<4g}          (bad) : {n_bad:5d}  ({100 * n_bad / n:5.1f}%)",
    ]
    if n_bad > 0:
        lines.append(
            f"\n  WARNING: {n_bad} observations have k >= {k_threshold}."
            " LOO estimates may be unreliable for these points."
        )
    return "\n".join(lines)
