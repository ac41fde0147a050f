"""Paired elpd differences between candidate models.

Every model is scored on the same observations, so the per-observation elpd
vectors are paired.  The standard error of a difference is computed from the
pointwise differences ``d_i = elpd_i(A) - elpd_i(B)``::

    SE(delta_elpd) = sqrt(n) * sd(d_i)

which is much smaller than combining the two marginal standard errors when
the models agree on which points are hard to predict.
"""

from __future__ import annotations

from itertools import permutations
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..errors import ShapeMismatchError


def elpd_difference(
    elpd_i_a: np.ndarray,
    elpd_i_b: np.ndarray,
) -> Tuple[float, float]:
    """Total elpd difference ``A - B`` and its standard error.

    Parameters
    ----------
    elpd_i_a, elpd_i_b : array-like, shape ``(n,)``
        Pointwise elpd estimates of models A and B on the same observations.

    Returns
    -------
    diff : float
        ``sum_i (elpd_i_a - elpd_i_b)``; positive favors A.
    se : float
        ``sqrt(n) * sd(d_i)`` (0 for a single observation).

    Raises
    ------
    ShapeMismatchError
        If the vectors have different lengths.
    """
    a = np.asarray(elpd_i_a, dtype=np.float64).reshape(-1)
    b = np.asarray(elpd_i_b, dtype=np.float64).reshape(-1)
    if a.shape != b.shape:
        raise ShapeMismatchError(
            f"Pointwise elpd vectors differ in length: {a.shape[0]} vs "
            f"{b.shape[0]}."
        )
    d = a - b
    n = d.shape[0]
    se = float(np.sqrt(n) * np.std(d, ddof=1)) if n > 1 else 0.0
    return float(np.sum(d)), se


def pairwise_comparison(
    elpd_pointwise: Sequence[np.ndarray],
    model_names: Optional[List[str]] = None,
) -> pd.DataFrame:
    """Elpd differences for every ordered pair of models.

    Parameters
    ----------
    elpd_pointwise : sequence of np.ndarray
        K pointwise elpd vectors of equal length.
    model_names : list of str, optional
        Names of the K models.  Defaults to ``model_0, model_1, ...``.

    Returns
    -------
    pd.DataFrame
        One row per ordered pair with columns ``model_a``, ``model_b``,
        ``elpd_diff`` (A - B), ``elpd_diff_se``, ``z_score`` and
        ``favors``.  Rows are sorted by ``elpd_diff`` descending.
    """
    K = len(elpd_pointwise)
    if model_names is None:
        model_names = [f"model_{k}" for k in range(K)]
    if len(model_names) != K:
        raise ValueError(
            f"model_names has length {len(model_names)} but {K} elpd vectors "
            "were given."
        )

    records = []
    for a, b in permutations(range(K), 2):
        diff, se = elpd_difference(elpd_pointwise[a], elpd_pointwise[b])
        records.append(
            {
                "model_a": model_names[a],
                "model_b": model_names[b],
                "elpd_diff": diff,
                "elpd_diff_se": se,
                "z_score": diff / se if se > 0 else 0.0,
                "favors": model_names[a] if diff > 0 else model_names[b],
            }
        )

    columns = [
        "model_a",
        "model_b",
        "elpd_diff",
        "elpd_diff_se",
        "z_score",
        "favors",
    ]
    df = pd.DataFrame(records, columns=columns)
    return df.sort_values("elpd_diff", ascending=False).reset_index(drop=True)
