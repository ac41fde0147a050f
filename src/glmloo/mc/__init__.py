"""Bayesian model comparison for glmloo.

Tools for comparing the regression models by out-of-sample predictive
accuracy:

- **PSIS-LOO**: Pareto-smoothed importance sampling leave-one-out, with a
  per-observation reliability diagnostic k̂.
- **WAIC**: analytical approximation from the same log-likelihood matrix.
- **Pairwise differences**: paired elpd differences with standard errors.
- **Stacking / pseudo-BMA**: ensemble weights.

Quick start
-----------

>>> from glmloo.mc import compare_models
>>> mc = compare_models(
...     [draws_normal, draws_poisson, draws_negbinom],
...     table,
...     families=["normal", "poisson", "negbinom"],
... )
>>> print(mc.summary())        # ranked comparison table
>>> print(mc.diagnostics())    # Pareto k̂ diagnostics
>>> mc.pairwise()              # pandas DataFrame of all pairs
"""

from .results import ModelComparisonResults, compare_models

from ._psis_loo import (
    compute_psis_loo,
    psis_loo_summary,
    psis_smooth,
)

from ._waic import (
    compute_waic_stats,
    waic,
    pseudo_bma_weights,
)

from ._pairwise import (
    elpd_difference,
    pairwise_comparison,
)

from ._stacking import (
    compute_stacking_weights,
    stacking_summary,
)

__all__ = [
    # Results class and factory
    "ModelComparisonResults",
    "compare_models",
    # PSIS-LOO
    "compute_psis_loo",
    "psis_loo_summary",
    "psis_smooth",
    # WAIC
    "compute_waic_stats",
    "waic",
    "pseudo_bma_weights",
    # Pairwise comparison
    "elpd_difference",
    "pairwise_comparison",
    # Stacking
    "compute_stacking_weights",
    "stacking_summary",
]
