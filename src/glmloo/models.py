"""
NumPyro definitions of the three seizure-count regression models.

All three share the linear predictor ``alpha + X @ beta`` and differ only in
the observation model:

- ``normal_glm``   : ``y ~ Normal(eta, sigma)``
- ``poisson_glm``  : ``y ~ Poisson(exp(eta))``
- ``negbinom_glm`` : ``y ~ NegativeBinomial2(exp(eta), phi)``

Each model takes the covariate matrix and optional responses.  With ``y=None``
the ``y`` site is sampled, which is how posterior-predictive draws are
produced.
"""

from typing import Callable, Optional

import jax.numpy as jnp
import numpyro
import numpyro.distributions as dist

from .config import LikelihoodFamily, PriorConfig

# ------------------------------------------------------------------------------
# Shared building blocks
# ------------------------------------------------------------------------------


def _linear_predictor(X: jnp.ndarray, prior: PriorConfig) -> jnp.ndarray:
    """Sample ``alpha`` and ``beta`` and return ``alpha + X @ beta``."""
    n_covariates = X.shape[1]
    alpha = numpyro.sample("alpha", dist.Normal(0.0, prior.intercept_scale))
    beta = numpyro.sample(
        "beta",
        dist.Normal(0.0, prior.coefficient_scale)
        .expand([n_covariates])
        .to_event(1),
    )
    return alpha + X @ beta


# ------------------------------------------------------------------------------
# Models
# ------------------------------------------------------------------------------


def normal_glm(
    X: jnp.ndarray,
    y: Optional[jnp.ndarray] = None,
    prior: Optional[PriorConfig] = None,
):
    """Linear regression with Normal noise."""
    prior = prior or PriorConfig()
    eta = _linear_predictor(X, prior)
    sigma = numpyro.sample("sigma", dist.HalfNormal(prior.dispersion_scale))
    with numpyro.plate("obs", X.shape[0]):
        numpyro.sample("y", dist.Normal(eta, sigma), obs=y)


def poisson_glm(
    X: jnp.ndarray,
    y: Optional[jnp.ndarray] = None,
    prior: Optional[PriorConfig] = None,
):
    """Poisson regression with a log link."""
    prior = prior or PriorConfig()
    eta = _linear_predictor(X, prior)
    with numpyro.plate("obs", X.shape[0]):
        numpyro.sample("y", dist.Poisson(jnp.exp(eta)), obs=y)


def negbinom_glm(
    X: jnp.ndarray,
    y: Optional[jnp.ndarray] = None,
    prior: Optional[PriorConfig] = None,
):
    """Negative Binomial (NB2) regression with a log link.

    ``phi`` is the dispersion: the variance is ``mu + mu**2 / phi``.
    """
    prior = prior or PriorConfig()
    eta = _linear_predictor(X, prior)
    phi = numpyro.sample("phi", dist.HalfNormal(prior.dispersion_scale))
    with numpyro.plate("obs", X.shape[0]):
        numpyro.sample("y", dist.NegativeBinomial2(jnp.exp(eta), phi), obs=y)


# ------------------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------------------

_MODELS = {
    LikelihoodFamily.NORMAL: normal_glm,
    LikelihoodFamily.POISSON: poisson_glm,
    LikelihoodFamily.NEGBINOM: negbinom_glm,
}


def get_model(family: LikelihoodFamily) -> Callable:
    """Return the NumPyro model function for ``family``.

    Raises
    ------
    ValueError
        If ``family`` is not a known family name.
    """
    return _MODELS[LikelihoodFamily(family)]
