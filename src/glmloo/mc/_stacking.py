"""Stacking weights for an ensemble of predictive distributions.

Stacking picks the convex combination of K models that maximizes the
leave-one-out log score of the mixture::

    w* = argmax_{w in simplex} sum_i log sum_k w_k exp(elpd_loo_i[k])

The objective is concave in ``w``, so SLSQP converges to the global optimum;
a few random restarts only guard against a poor starting point on a flat
objective.

References
----------
Yao, Vehtari, Simpson, Gelman (2018), "Using Stacking to Average Bayesian
    Predictive Distributions." Bayesian Analysis.
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np
from scipy.optimize import minimize
from scipy.special import logsumexp

from ..errors import ShapeMismatchError


def _neg_log_score(weights: np.ndarray, loo_i: np.ndarray) -> float:
    """Negative stacking objective for an ``(n, K)`` LOO density matrix."""
    log_w = np.log(np.maximum(weights, 1e-300))
    return -float(np.sum(logsumexp(loo_i + log_w[None, :], axis=1)))


def _neg_log_score_grad(weights: np.ndarray, loo_i: np.ndarray) -> np.ndarray:
    """Gradient of :func:`_neg_log_score` with respect to ``weights``."""
    log_w = np.log(np.maximum(weights, 1e-300))
    log_mix = logsumexp(loo_i + log_w[None, :], axis=1)
    # d/dw_k log sum_j w_j p_ij = p_ik / sum_j w_j p_ij
    ratio = np.exp(loo_i - log_mix[:, None])
    return -np.sum(ratio, axis=0)


def compute_stacking_weights(
    loo_log_densities: List[np.ndarray],
    n_restarts: int = 5,
    seed: int = 42,
) -> np.ndarray:
    """Optimal stacking weights from per-observation LOO log densities.

    Parameters
    ----------
    loo_log_densities : list of np.ndarray
        K arrays of shape ``(n,)``; entry ``k`` is the ``elpd_loo_i`` vector
        of model k from :func:`~glmloo.mc.compute_psis_loo`.
    n_restarts : int, default=5
        Number of random starting points on the simplex.
    seed : int, default=42
        Seed for the starting points.

    Returns
    -------
    np.ndarray, shape ``(K,)``
        Non-negative weights summing to one.

    Raises
    ------
    ShapeMismatchError
        If the vectors do not all have the same length.
    """
    lengths = {np.shape(l)[0] for l in loo_log_densities}
    if len(lengths) != 1:
        raise ShapeMismatchError(
            f"All LOO vectors must have the same length; got {sorted(lengths)}."
        )
    loo_i = np.column_stack(
        [np.asarray(l, dtype=np.float64) for l in loo_log_densities]
    )
    K = loo_i.shape[1]
    if K == 1:
        return np.ones(1)

    rng = np.random.default_rng(seed)
    constraints = {"type": "eq", "fun": lambda w: np.sum(w) - 1.0}
    bounds = [(0.0, 1.0)] * K

    best_val = np.inf
    best_w = np.full(K, 1.0 / K)
    for _ in range(n_restarts):
        result = minimize(
            fun=_neg_log_score,
            x0=rng.dirichlet(np.ones(K)),
            args=(loo_i,),
            jac=_neg_log_score_grad,
            method="SLSQP",
            bounds=bounds,
            constraints=constraints,
            options={"ftol": 1e-12, "maxiter": 1000, "disp": False},
        )
        if result.fun < best_val:
            best_val = result.fun
            best_w = result.x

    best_w = np.clip(best_w, 0.0, 1.0)
    return best_w / best_w.sum()


def stacking_summary(
    weights: np.ndarray,
    model_names: Optional[List[str]] = None,
) -> str:
    """Format stacking weights, largest first."""
    if model_names is None:
        model_names = [f"model_{k}" for k in range(len(weights))]
    lines = ["Stacking Weights", "=" * 30]
    for k in np.argsort(weights)[::-1]:
        lines.append(f"  {model_names[k]:20s}  {weights[k]:.4f}")
    return "\n".join(lines)
