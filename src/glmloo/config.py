"""Configuration models for glmloo using Pydantic.

Configuration objects are immutable and reject unknown fields, so a typo in a
YAML file fails loudly instead of being silently ignored.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ==============================================================================
# Enums
# ==============================================================================


class LikelihoodFamily(str, Enum):
    """Supported observation models."""

    NORMAL = "normal"
    POISSON = "poisson"
    NEGBINOM = "negbinom"

    @property
    def has_dispersion(self) -> bool:
        """Whether the family carries a scale/dispersion parameter."""
        return self is not LikelihoodFamily.POISSON

    @property
    def log_link(self) -> bool:
        """Whether the linear predictor is mapped through ``exp``."""
        return self is not LikelihoodFamily.NORMAL

    @property
    def dispersion_site(self) -> str:
        """Name of the dispersion sample site in the NumPyro models."""
        return {
            LikelihoodFamily.NORMAL: "sigma",
            LikelihoodFamily.POISSON: "",
            LikelihoodFamily.NEGBINOM: "phi",
        }[self]


# ------------------------------------------------------------------------------


class Criterion(str, Enum):
    """Predictive accuracy criteria available for ranking."""

    PSIS_LOO = "psis_loo"
    WAIC = "waic"


# ==============================================================================
# Configuration classes
# ==============================================================================


class PriorConfig(BaseModel):
    """Prior scales shared by the three regression models.

    Parameters
    ----------
    intercept_scale : float
        Standard deviation of the Normal prior on the intercept.
    coefficient_scale : float
        Standard deviation of the Normal prior on each coefficient.
    dispersion_scale : float
        Scale of the HalfNormal prior on ``sigma`` (Normal model) and ``phi``
        (Negative Binomial model).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    intercept_scale: float = Field(5.0, gt=0, description="Intercept prior sd")
    coefficient_scale: float = Field(
        1.0, gt=0, description="Coefficient prior sd"
    )
    dispersion_scale: float = Field(
        5.0, gt=0, description="Dispersion prior scale"
    )


# ------------------------------------------------------------------------------


class MCMCConfig(BaseModel):
    """Settings for the NUTS run.

    Parameters
    ----------
    n_samples : int
        Number of post-warmup draws per chain.
    n_warmup : int
        Number of warmup (adaptation) iterations per chain.
    n_chains : int
        Number of chains.
    seed : int
        Seed for the JAX PRNG key.
    target_accept_prob : float
        Target acceptance probability for step-size adaptation.
    progress_bar : bool
        Show NumPyro's progress bar.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    n_samples: int = Field(1_000, gt=0, description="Draws per chain")
    n_warmup: int = Field(1_000, ge=0, description="Warmup per chain")
    n_chains: int = Field(1, gt=0, description="Number of chains")
    seed: int = Field(42, description="PRNG seed")
    target_accept_prob: float = Field(
        0.8, gt=0, lt=1, description="NUTS target acceptance"
    )
    progress_bar: bool = Field(False, description="Show progress bar")


# ------------------------------------------------------------------------------


class LOOConfig(BaseModel):
    """Settings for model comparison."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    k_threshold: float = Field(
        0.7, gt=0, description="Pareto k above which a point is unreliable"
    )
    criterion: Criterion = Field(
        Criterion.PSIS_LOO, description="Ranking criterion"
    )
    include_stacking: bool = Field(True, description="Compute stacking weights")

    @field_validator("criterion", mode="before")
    @classmethod
    def normalize_criterion(cls, v):
        """Accept criterion names in any case."""
        if isinstance(v, str):
            return v.lower()
        return v
