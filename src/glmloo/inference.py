"""
MCMC inference for the regression models.

Sampling is delegated to NumPyro's NUTS implementation; this module only wires
an :class:`~glmloo.draws.ObservationTable` and a
:class:`~glmloo.config.MCMCConfig` into it and converts the samples to
:class:`~glmloo.draws.PosteriorDraws`.
"""

import logging
from typing import Dict, Optional, Sequence, Tuple, Union

import jax.numpy as jnp
from jax import random
from numpyro.infer import MCMC, NUTS

from .config import LikelihoodFamily, MCMCConfig, PriorConfig
from .draws import ObservationTable, PosteriorDraws
from .models import get_model

logger = logging.getLogger(__name__)


def run_mcmc(
    table: ObservationTable,
    family: Union[str, LikelihoodFamily],
    mcmc_config: Optional[MCMCConfig] = None,
    prior: Optional[PriorConfig] = None,
) -> Tuple[PosteriorDraws, MCMC]:
    """Fit one regression model with NUTS.

    Parameters
    ----------
    table : ObservationTable
        Responses and covariates.
    family : LikelihoodFamily or str
        Observation model to fit.
    mcmc_config : MCMCConfig, optional
        Sampler settings.  Defaults to ``MCMCConfig()``.
    prior : PriorConfig, optional
        Prior scales.  Defaults to ``PriorConfig()``.

    Returns
    -------
    draws : PosteriorDraws
        Draws from all chains, flattened to ``n_chains * n_samples`` rows.
    mcmc : numpyro.infer.MCMC
        The sampler object, for diagnostics (``print_summary``,
        ``get_extra_fields``).
    """
    family = LikelihoodFamily(family)
    mcmc_config = mcmc_config or MCMCConfig()
    prior = prior or PriorConfig()

    model = get_model(family)
    kernel = NUTS(model, target_accept_prob=mcmc_config.target_accept_prob)
    mcmc = MCMC(
        kernel,
        num_warmup=mcmc_config.n_warmup,
        num_samples=mcmc_config.n_samples,
        num_chains=mcmc_config.n_chains,
        progress_bar=mcmc_config.progress_bar,
    )

    logger.info(
        "Running NUTS for the %s model: %d chain(s) x %d draws (%d warmup)",
        family.value,
        mcmc_config.n_chains,
        mcmc_config.n_samples,
        mcmc_config.n_warmup,
    )
    mcmc.run(
        random.PRNGKey(mcmc_config.seed),
        X=jnp.asarray(table.X),
        y=jnp.asarray(table.y),
        prior=prior,
    )

    draws = PosteriorDraws.from_samples(mcmc.get_samples(), family)
    return draws, mcmc


def fit_models(
    table: ObservationTable,
    families: Sequence[Union[str, LikelihoodFamily]] = tuple(LikelihoodFamily),
    mcmc_config: Optional[MCMCConfig] = None,
    prior: Optional[PriorConfig] = None,
) -> Dict[str, PosteriorDraws]:
    """Fit several families to the same table.

    Returns
    -------
    dict
        Mapping from family name to its :class:`PosteriorDraws`, in the order
        of ``families``.
    """
    fitted = {}
    for family in families:
        family = LikelihoodFamily(family)
        draws, _ = run_mcmc(table, family, mcmc_config=mcmc_config, prior=prior)
        fitted[family.value] = draws
    return fitted
