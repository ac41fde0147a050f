"""
Containers for posterior draws and observations.

``PosteriorDraws`` holds the parameter samples produced by the sampler for one
regression model; ``ObservationTable`` holds the responses and covariates the
model was fitted to.  Both are plain dataclasses around NumPy arrays and are
treated as read-only snapshots by everything downstream.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from .config import LikelihoodFamily
from .errors import ShapeMismatchError

# ==============================================================================
# Posterior draws
# ==============================================================================


@dataclass(frozen=True)
class PosteriorDraws:
    """Posterior samples of a regression model.

    Parameters
    ----------
    intercept : np.ndarray, shape ``(S,)``
        Intercept draws.
    coefficients : np.ndarray, shape ``(S, K)``
        Coefficient draws, one column per covariate.
    dispersion : np.ndarray, shape ``(S,)``, optional
        Scale (Normal) or dispersion (Negative Binomial) draws.  ``None`` for
        the Poisson model.

    Raises
    ------
    ShapeMismatchError
        If the arrays disagree on the number of draws or have the wrong rank.
    """

    intercept: np.ndarray
    coefficients: np.ndarray
    dispersion: Optional[np.ndarray] = None

    def __post_init__(self):
        intercept = np.asarray(self.intercept, dtype=np.float64).reshape(-1)
        coefficients = np.asarray(self.coefficients, dtype=np.float64)
        if coefficients.ndim == 1:
            # A single covariate stored as a flat vector of draws
            coefficients = coefficients[:, None]
        if coefficients.ndim != 2:
            raise ShapeMismatchError(
                "coefficients must have shape (S, K); "
                f"got {coefficients.shape}."
            )
        if coefficients.shape[0] != intercept.shape[0]:
            raise ShapeMismatchError(
                f"intercept has {intercept.shape[0]} draws but coefficients "
                f"has {coefficients.shape[0]}."
            )
        dispersion = self.dispersion
        if dispersion is not None:
            dispersion = np.asarray(dispersion, dtype=np.float64).reshape(-1)
            if dispersion.shape[0] != intercept.shape[0]:
                raise ShapeMismatchError(
                    f"intercept has {intercept.shape[0]} draws but "
                    f"dispersion has {dispersion.shape[0]}."
                )
        object.__setattr__(self, "intercept", intercept)
        object.__setattr__(self, "coefficients", coefficients)
        object.__setattr__(self, "dispersion", dispersion)

    # --------------------------------------------------------------------------

    @property
    def n_draws(self) -> int:
        """Number of draws S."""
        return self.intercept.shape[0]

    @property
    def n_coefficients(self) -> int:
        """Number of coefficients K."""
        return self.coefficients.shape[1]

    # --------------------------------------------------------------------------

    @classmethod
    def from_samples(
        cls,
        samples: Mapping[str, np.ndarray],
        family: LikelihoodFamily,
    ) -> "PosteriorDraws":
        """Build draws from a sample dictionary keyed by site name.

        The dictionary layout is the one returned by
        ``numpyro.infer.MCMC.get_samples()`` for the models in
        :mod:`glmloo.models`: ``alpha`` (intercept), ``beta`` (coefficients)
        and ``sigma``/``phi`` (dispersion, depending on ``family``).

        Raises
        ------
        KeyError
            If a site required by ``family`` is missing.
        """
        family = LikelihoodFamily(family)
        dispersion = None
        if family.has_dispersion:
            dispersion = np.asarray(samples[family.dispersion_site])
        return cls(
            intercept=np.asarray(samples["alpha"]),
            coefficients=np.asarray(samples["beta"]),
            dispersion=dispersion,
        )

    def to_samples(self, family: LikelihoodFamily) -> Dict[str, np.ndarray]:
        """Inverse of :meth:`from_samples`."""
        family = LikelihoodFamily(family)
        samples = {"alpha": self.intercept, "beta": self.coefficients}
        if family.has_dispersion:
            if self.dispersion is None:
                raise ShapeMismatchError(
                    f"The {family.value} family needs dispersion draws."
                )
            samples[family.dispersion_site] = self.dispersion
        return samples

    def subset(self, idx) -> "PosteriorDraws":
        """Select a subset of draws (e.g. a thinned or batched slice)."""
        return PosteriorDraws(
            intercept=self.intercept[idx],
            coefficients=self.coefficients[idx],
            dispersion=None if self.dispersion is None else self.dispersion[idx],
        )


# ==============================================================================
# Observations
# ==============================================================================


@dataclass(frozen=True)
class ObservationTable:
    """Responses and covariates for M observations.

    Parameters
    ----------
    y : np.ndarray, shape ``(M,)``
        Responses (seizure counts).
    X : np.ndarray, shape ``(M, K)``
        Covariate matrix (without an intercept column).
    covariate_names : list of str, optional
        Names of the K covariate columns.  Defaults to ``x0, x1, ...``.
    groups : np.ndarray, shape ``(M,)``, optional
        Group label of each observation (patient id).
    visits : np.ndarray, shape ``(M,)``, optional
        Visit index of each observation.

    Raises
    ------
    ShapeMismatchError
        If ``X`` does not have one row per response, or the names/labels do
        not match the data.
    """

    y: np.ndarray
    X: np.ndarray
    covariate_names: List[str] = field(default_factory=list)
    groups: Optional[np.ndarray] = None
    visits: Optional[np.ndarray] = None

    def __post_init__(self):
        y = np.asarray(self.y, dtype=np.float64).reshape(-1)
        X = np.asarray(self.X, dtype=np.float64)
        if X.ndim == 1:
            X = X[:, None]
        if X.ndim != 2:
            raise ShapeMismatchError(f"X must be 2-dimensional; got {X.shape}.")
        if X.shape[0] != y.shape[0]:
            raise ShapeMismatchError(
                f"X has {X.shape[0]} rows but y has {y.shape[0]} responses."
            )
        names = list(self.covariate_names) or [
            f"x{k}" for k in range(X.shape[1])
        ]
        if len(names) != X.shape[1]:
            raise ShapeMismatchError(
                f"covariate_names has {len(names)} entries but X has "
                f"{X.shape[1]} columns."
            )
        for label in ("groups", "visits"):
            values = getattr(self, label)
            if values is not None:
                values = np.asarray(values)
                if values.shape[0] != y.shape[0]:
                    raise ShapeMismatchError(
                        f"{label} has {values.shape[0]} entries but y has "
                        f"{y.shape[0]}."
                    )
                object.__setattr__(self, label, values)
        object.__setattr__(self, "y", y)
        object.__setattr__(self, "X", X)
        object.__setattr__(self, "covariate_names", names)

    # --------------------------------------------------------------------------

    @property
    def n_obs(self) -> int:
        """Number of observations M."""
        return self.y.shape[0]

    @property
    def n_covariates(self) -> int:
        """Number of covariates K."""
        return self.X.shape[1]

    @property
    def n_groups(self) -> Optional[int]:
        """Number of distinct groups (patients), if known."""
        if self.groups is None:
            return None
        return len(np.unique(self.groups))

    # --------------------------------------------------------------------------

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        response: str,
        covariates: List[str],
        group: Optional[str] = None,
        visit: Optional[str] = None,
    ) -> "ObservationTable":
        """Build a table from selected DataFrame columns.

        Raises
        ------
        ValueError
            If a requested column is missing.
        """
        wanted = [response, *covariates]
        wanted += [c for c in (group, visit) if c is not None]
        missing = [c for c in wanted if c not in df.columns]
        if missing:
            raise ValueError(
                f"Columns {missing} not found. Available: {list(df.columns)}."
            )
        return cls(
            y=df[response].to_numpy(),
            X=df[list(covariates)].to_numpy(),
            covariate_names=list(covariates),
            groups=None if group is None else df[group].to_numpy(),
            visits=None if visit is None else df[visit].to_numpy(),
        )

    def to_dataframe(self) -> pd.DataFrame:
        """Return the table as a DataFrame (response column ``y``)."""
        df = pd.DataFrame(self.X, columns=self.covariate_names)
        df.insert(0, "y", self.y)
        if self.groups is not None:
            df["group"] = self.groups
        if self.visits is not None:
            df["visit"] = self.visits
        return df
