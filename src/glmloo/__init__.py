"""
glmloo: Bayesian regression of seizure counts, compared by PSIS-LOO.

Fits Normal, Poisson and Negative Binomial regressions with NumPyro and
compares them by Pareto-smoothed importance-sampling leave-one-out
cross-validation.
"""

import numpyro

# Log-likelihoods and Pareto fits are evaluated in double precision. This must
# run before any JAX array is created.
numpyro.enable_x64()

from .config import (
    Criterion,
    LikelihoodFamily,
    LOOConfig,
    MCMCConfig,
    PriorConfig,
)
from .errors import (
    GlmLooError,
    InsufficientDrawsError,
    InvalidParameterError,
    ShapeMismatchError,
)
from .draws import ObservationTable, PosteriorDraws
from .likelihoods import (
    negbinom_log_mass,
    normal_log_density,
    poisson_log_mass,
)
from .log_likelihood import linear_predictor, pointwise_log_likelihood
from .data_loader import load_observation_table
from .inference import fit_models, run_mcmc
from .predictive import ppc_statistics, sample_posterior_predictive
from . import mc
from .mc import ModelComparisonResults, compare_models

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "Criterion",
    "LikelihoodFamily",
    "LOOConfig",
    "MCMCConfig",
    "PriorConfig",
    # Errors
    "GlmLooError",
    "InsufficientDrawsError",
    "InvalidParameterError",
    "ShapeMismatchError",
    # Data containers
    "ObservationTable",
    "PosteriorDraws",
    "load_observation_table",
    # Likelihoods
    "normal_log_density",
    "poisson_log_mass",
    "negbinom_log_mass",
    "linear_predictor",
    "pointwise_log_likelihood",
    # Inference and prediction
    "run_mcmc",
    "fit_models",
    "sample_posterior_predictive",
    "ppc_statistics",
    # Model comparison
    "mc",
    "ModelComparisonResults",
    "compare_models",
]
