"""ModelComparisonResults: structured results for Bayesian model comparison.

This module defines:

- ``ModelComparisonResults`` — a dataclass that stores the pointwise
  log-likelihood matrices of K candidate models and provides lazily computed
  PSIS-LOO, WAIC, stacking weights, ranking and pairwise comparisons.
- ``compare_models()`` — factory that scores each model's posterior draws on
  a shared observation table and returns a ``ModelComparisonResults``.

Log-likelihood matrices ``(S, M)`` are computed once and stored; every
downstream quantity is derived from them on first use and cached.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..config import Criterion, LikelihoodFamily
from ..draws import ObservationTable, PosteriorDraws
from ..errors import ShapeMismatchError
from ..log_likelihood import pointwise_log_likelihood
from ._pairwise import elpd_difference, pairwise_comparison
from ._psis_loo import K_THRESHOLD, compute_psis_loo, psis_loo_summary
from ._stacking import compute_stacking_weights
from ._waic import pseudo_bma_weights, waic

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Results class
# ---------------------------------------------------------------------------


@dataclass
class ModelComparisonResults:
    """Comparison of K models scored on the same M observations.

    Parameters
    ----------
    model_names : list of str
        Names of the K models.
    log_liks : list of array-like
        K matrices of shape ``(S_k, M)``.  The number of draws may differ
        between models; the number of observations may not.
    families : list of LikelihoodFamily, optional
        Observation model of each candidate, kept for reporting.
    n_obs : int
        Number of observations M.
    k_threshold : float, default=0.7
        Pareto k at or above which a LOO contribution is flagged.
    dtype : numpy dtype, default=np.float64
        Precision used for PSIS-LOO.

    Examples
    --------
    >>> mc = compare_models(
    ...     [draws_normal, draws_poisson, draws_negbinom],
    ...     table,
    ...     families=["normal", "poisson", "negbinom"],
    ... )
    >>> mc.rank()
    >>> mc.pairwise()
    >>> print(mc.diagnostics())
    """

    model_names: List[str]
    log_liks: List[np.ndarray] = field(repr=False)
    families: Optional[List[LikelihoodFamily]] = None
    n_obs: int = 0
    k_threshold: float = K_THRESHOLD
    dtype: type = field(default=np.float64, repr=False)

    _psis_loo_cache: Optional[List[dict]] = field(
        default=None, repr=False, init=False
    )
    _waic_cache: Optional[List[dict]] = field(
        default=None, repr=False, init=False
    )
    _stacking_cache: Dict[Tuple[int, int], np.ndarray] = field(
        default_factory=dict, repr=False, init=False
    )

    def __post_init__(self):
        if len(self.model_names) != len(self.log_liks):
            raise ValueError(
                f"{len(self.model_names)} model names for "
                f"{len(self.log_liks)} log-likelihood matrices."
            )
        if len(set(self.model_names)) != len(self.model_names):
            raise ValueError(f"Model names must be unique: {self.model_names}.")
        for name, ll in zip(self.model_names, self.log_liks):
            if np.ndim(ll) != 2:
                raise ShapeMismatchError(
                    f"log_liks for {name} must have shape (S, n); got "
                    f"{np.shape(ll)}."
                )
        n_cols = {np.shape(ll)[1] for ll in self.log_liks}
        if len(n_cols) > 1:
            raise ValueError(
                "All models must be scored on the same observations; got "
                f"column counts {sorted(n_cols)}."
            )
        if not self.n_obs and n_cols:
            self.n_obs = n_cols.pop()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def K(self) -> int:
        """Number of models being compared."""
        return len(self.model_names)

    # ------------------------------------------------------------------
    # Criteria
    # ------------------------------------------------------------------

    def psis_loo(self, model: Optional[Union[int, str]] = None):
        """PSIS-LOO statistics for one model or a list for all models.

        Computed on first call and cached.

        Parameters
        ----------
        model : int or str, optional
            Index or name of a single model.

        Returns
        -------
        dict or list of dict
            Output of :func:`~glmloo.mc.compute_psis_loo`.
        """
        if self._psis_loo_cache is None:
            self._psis_loo_cache = []
            for name, ll in zip(self.model_names, self.log_liks):
                logger.info("Computing PSIS-LOO for %s", name)
                self._psis_loo_cache.append(
                    compute_psis_loo(
                        np.asarray(ll),
                        dtype=self.dtype,
                        k_threshold=self.k_threshold,
                    )
                )
        if model is not None:
            return self._psis_loo_cache[_resolve_model_idx(model, self.model_names)]
        return self._psis_loo_cache

    def waic(self, model: Optional[Union[int, str]] = None):
        """WAIC statistics for one model or a list for all models."""
        if self._waic_cache is None:
            self._waic_cache = [waic(ll) for ll in self.log_liks]
        if model is not None:
            return self._waic_cache[_resolve_model_idx(model, self.model_names)]
        return self._waic_cache

    def stacking_weights(self, n_restarts: int = 5, seed: int = 42) -> np.ndarray:
        """Stacking weights from the PSIS-LOO pointwise densities.

        Cached per ``(n_restarts, seed)``.
        """
        key = (n_restarts, seed)
        if key not in self._stacking_cache:
            self._stacking_cache[key] = compute_stacking_weights(
                [r["elpd_loo_i"] for r in self.psis_loo()],
                n_restarts=n_restarts,
                seed=seed,
            )
        return self._stacking_cache[key]

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    def _pointwise(self, criterion: Criterion):
        if criterion is Criterion.PSIS_LOO:
            stats = self.psis_loo()
            return (
                np.array([r["elpd_loo"] for r in stats]),
                np.array([r["se_elpd_loo"] for r in stats]),
                np.array([r["p_loo"] for r in stats]),
                [np.asarray(r["elpd_loo_i"]) for r in stats],
            )
        stats = self.waic()
        return (
            np.array([r["elpd_waic"] for r in stats]),
            np.array([r["se_elpd_waic"] for r in stats]),
            np.array([r["p_waic"] for r in stats]),
            [np.asarray(r["elpd_waic_i"]) for r in stats],
        )

    def rank(
        self,
        criterion: Union[str, Criterion] = Criterion.PSIS_LOO,
        include_stacking: bool = True,
    ) -> pd.DataFrame:
        """Rank models by estimated predictive accuracy.

        Parameters
        ----------
        criterion : {'psis_loo', 'waic'}, default='psis_loo'
            Criterion used for the elpd column.
        include_stacking : bool, default=True
            Include stacking weights (always derived from PSIS-LOO).

        Returns
        -------
        pd.DataFrame
            One row per model, best first, with columns ``rank``, ``model``,
            ``family``, ``elpd``, ``se``, ``p_eff``, ``elpd_diff``,
            ``elpd_diff_se``, ``z_score``, ``weight_pseudo_bma``,
            ``weight_stacking`` (optional) and, for PSIS-LOO, ``n_bad_k``
            and ``frac_bad_k``.  ``elpd_diff`` is relative to the best model
            and therefore 0 or negative.
        """
        criterion = _resolve_criterion(criterion)
        elpd, se, p_eff, pointwise = self._pointwise(criterion)

        best = int(np.argmax(elpd))
        wt_pbma = np.asarray(pseudo_bma_weights(elpd))
        wt_stack = self.stacking_weights() if include_stacking else None

        records = []
        for k in range(self.K):
            if k == best:
                diff, diff_se = 0.0, 0.0
            else:
                diff, diff_se = elpd_difference(pointwise[k], pointwise[best])
            rec = {
                "model": self.model_names[k],
                "family": (
                    LikelihoodFamily(self.families[k]).value
                    if self.families is not None
                    else None
                ),
                "elpd": float(elpd[k]),
                "se": float(se[k]),
                "p_eff": float(p_eff[k]),
                "elpd_diff": diff,
                "elpd_diff_se": diff_se,
                "z_score": diff / diff_se if diff_se > 0 else 0.0,
                "weight_pseudo_bma": float(wt_pbma[k]),
            }
            if wt_stack is not None:
                rec["weight_stacking"] = float(wt_stack[k])
            if criterion is Criterion.PSIS_LOO:
                loo = self.psis_loo(k)
                rec["n_bad_k"] = loo["n_bad"]
                rec["frac_bad_k"] = loo["frac_bad"]
            records.append(rec)

        df = pd.DataFrame(records)
        df = df.sort_values("elpd", ascending=False).reset_index(drop=True)
        df.insert(0, "rank", np.arange(self.K))
        return df

    def pairwise(
        self, criterion: Union[str, Criterion] = Criterion.PSIS_LOO
    ) -> pd.DataFrame:
        """Elpd difference and its standard error for every ordered pair."""
        criterion = _resolve_criterion(criterion)
        _, _, _, pointwise = self._pointwise(criterion)
        return pairwise_comparison(pointwise, self.model_names)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def flagged_observations(self, model: Union[int, str]) -> np.ndarray:
        """Indices of observations whose Pareto k is at or above threshold."""
        k_hat = self.psis_loo(model)["k_hat"]
        return np.flatnonzero(k_hat >= self.k_threshold)

    def diagnostics(self, model: Optional[Union[int, str]] = None) -> str:
        """Pareto k summary for one or all models."""
        if model is not None:
            indices = [_resolve_model_idx(model, self.model_names)]
        else:
            indices = list(range(self.K))

        parts = []
        for k in indices:
            parts.append(f"\n--- {self.model_names[k]} ---")
            parts.append(
                psis_loo_summary(self.psis_loo(k), k_threshold=self.k_threshold)
            )
        return "\n".join(parts)

    def summary(
        self,
        criterion: Union[str, Criterion] = Criterion.PSIS_LOO,
        include_stacking: bool = True,
    ) -> str:
        """Ranked comparison table as a string."""
        criterion = _resolve_criterion(criterion)
        df = self.rank(criterion=criterion, include_stacking=include_stacking)
        header = f"Model Comparison ({criterion.value.upper()})\n" + "=" * 60 + "\n"
        return header + df.to_string(index=False)

    def __repr__(self) -> str:
        return (
            f"ModelComparisonResults("
            f"K={self.K}, "
            f"n_obs={self.n_obs}, "
            f"models={self.model_names})"
        )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _resolve_criterion(criterion: Union[str, Criterion]) -> Criterion:
    try:
        return Criterion(str(getattr(criterion, "value", criterion)).lower())
    except ValueError:
        raise ValueError(
            f"Unknown criterion '{criterion}'. "
            f"Use one of {[c.value for c in Criterion]}."
        ) from None


def _resolve_model_idx(model: Union[int, str], model_names: List[str]) -> int:
    """Resolve a model index or name to its index.

    Raises
    ------
    ValueError
        If the name is unknown or the index is out of range.
    TypeError
        If ``model`` is neither int nor str.
    """
    if isinstance(model, (int, np.integer)):
        if model < 0 or model >= len(model_names):
            raise ValueError(
                f"Model index {model} out of range (K={len(model_names)})."
            )
        return int(model)
    if isinstance(model, str):
        if model not in model_names:
            raise ValueError(f"Model '{model}' not found. Available: {model_names}.")
        return model_names.index(model)
    raise TypeError(f"model must be int or str, got {type(model)}.")


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def compare_models(
    draws: Sequence[PosteriorDraws],
    table: ObservationTable,
    families: Sequence[Union[str, LikelihoodFamily]],
    model_names: Optional[List[str]] = None,
    batch_size: Optional[int] = None,
    k_threshold: float = K_THRESHOLD,
) -> ModelComparisonResults:
    """Score each model's draws on ``table`` and return comparison results.

    Parameters
    ----------
    draws : sequence of PosteriorDraws
        Posterior draws of the K candidate models.
    table : ObservationTable
        Observations shared by all models.
    families : sequence of LikelihoodFamily or str
        Observation model of each candidate, aligned with ``draws``.
    model_names : list of str, optional
        Defaults to the family names.
    batch_size : int, optional
        Draw batch size forwarded to
        :func:`~glmloo.log_likelihood.pointwise_log_likelihood`.
    k_threshold : float, default=0.7
        Pareto k threshold for flagging observations.

    Returns
    -------
    ModelComparisonResults
    """
    families = [LikelihoodFamily(f) for f in families]
    K = len(draws)
    if len(families) != K:
        raise ValueError(
            f"families has length {len(families)} but {K} draw sets were given."
        )
    if model_names is None:
        model_names = [f.value for f in families]
    if len(model_names) != K:
        raise ValueError(
            f"model_names has length {len(model_names)} but {K} draw sets "
            "were given."
        )

    log_liks = []
    for name, model_draws, family in zip(model_names, draws, families):
        logger.info("Computing log-likelihoods for %s", name)
        ll = pointwise_log_likelihood(
            model_draws, table, family, batch_size=batch_size
        )
        log_liks.append(np.asarray(ll))

    return ModelComparisonResults(
        model_names=list(model_names),
        log_liks=log_liks,
        families=families,
        n_obs=table.n_obs,
        k_threshold=k_threshold,
    )
