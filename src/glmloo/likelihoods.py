"""
Log-likelihood kernels for the three observation models.

Each kernel returns the log density (Normal) or log mass (Poisson, Negative
Binomial) of observed responses under a location/rate/dispersion
parameterization.  Inputs broadcast against each other the same way NumPy
arrays do, so a kernel can score one observation or a whole ``(S, M)`` grid.

Kernels validate their inputs before evaluating anything: a non-positive
scale, rate or dispersion, or a negative/non-integer count, raises
:class:`~glmloo.errors.InvalidParameterError` rather than producing ``NaN``.
"""

from typing import Callable, Optional

import numpy as np
import jax.numpy as jnp
import numpyro.distributions as dist
from jax.scipy.special import gammaln, xlogy

from .config import LikelihoodFamily
from .errors import InvalidParameterError

# ------------------------------------------------------------------------------
# Input validation
# ------------------------------------------------------------------------------


def _preview(values: np.ndarray, n: int = 5) -> str:
    """Render the first few offending values for an error message."""
    flat = np.ravel(values)
    shown = ", ".join(f"{v:g}" for v in flat[:n])
    more = f", ... ({flat.size} total)" if flat.size > n else ""
    return f"[{shown}{more}]"


def _require_finite(value, name: str) -> None:
    arr = np.asarray(value, dtype=np.float64)
    bad = ~np.isfinite(arr)
    if np.any(bad):
        raise InvalidParameterError(
            f"{name} must be finite; got {_preview(arr[bad])}."
        )


def _require_positive(value, name: str) -> None:
    arr = np.asarray(value, dtype=np.float64)
    bad = ~(np.isfinite(arr) & (arr > 0))
    if np.any(bad):
        raise InvalidParameterError(
            f"{name} must be finite and strictly positive; "
            f"got {_preview(arr[bad])}."
        )


def _require_counts(value, name: str = "y") -> None:
    arr = np.asarray(value, dtype=np.float64)
    bad = ~(np.isfinite(arr) & (arr >= 0) & (arr == np.floor(arr)))
    if np.any(bad):
        raise InvalidParameterError(
            f"{name} must contain non-negative integer counts; "
            f"got {_preview(arr[bad])}."
        )


def _as_float(value) -> jnp.ndarray:
    return jnp.asarray(value, dtype=jnp.float64)


# ------------------------------------------------------------------------------
# Kernels
# ------------------------------------------------------------------------------


def normal_log_density(y, loc, scale) -> jnp.ndarray:
    """
    Log density of a Normal distribution.

    Computes ``-log(scale) - 0.5 * log(2 * pi) - (y - loc)**2 / (2 *
    scale**2)``.

    Parameters
    ----------
    y : array-like
        Observed real-valued responses.
    loc : array-like
        Location parameter ``mu``.
    scale : array-like
        Standard deviation ``sigma``; must be strictly positive.

    Returns
    -------
    jnp.ndarray
        Log densities, with the broadcast shape of the inputs.

    Raises
    ------
    InvalidParameterError
        If ``scale`` is not strictly positive or any input is not finite.
    """
    _require_finite(y, "y")
    _require_finite(loc, "loc")
    _require_positive(scale, "scale")
    return dist.Normal(_as_float(loc), _as_float(scale)).log_prob(_as_float(y))


def poisson_log_mass(y, rate) -> jnp.ndarray:
    """
    Log probability mass of a Poisson distribution.

    Computes ``y * log(rate) - rate - log(y!)``.

    Parameters
    ----------
    y : array-like
        Observed non-negative integer counts.
    rate : array-like
        Poisson rate ``lambda``; must be strictly positive and finite.

    Returns
    -------
    jnp.ndarray
        Log masses, with the broadcast shape of the inputs.

    Raises
    ------
    InvalidParameterError
        If ``rate`` is not strictly positive or ``y`` is not a count.
    """
    _require_counts(y)
    _require_positive(rate, "rate")
    return dist.Poisson(_as_float(rate)).log_prob(_as_float(y))


def negbinom_log_mass(y, mean, dispersion) -> jnp.ndarray:
    """
    Log probability mass of a Negative Binomial in mean-dispersion form.

    This is the NB2 parameterization::

        lgamma(y + phi) - lgamma(phi) - lgamma(y + 1)
            + phi * log(phi / (phi + mu)) + y * log(mu / (phi + mu))

    with variance ``mu + mu**2 / phi``.  As ``phi`` grows the distribution
    approaches ``Poisson(mu)``.

    Parameters
    ----------
    y : array-like
        Observed non-negative integer counts.
    mean : array-like
        Mean ``mu``; must be strictly positive and finite.
    dispersion : array-like
        Dispersion ``phi``; must be strictly positive and finite.

    Returns
    -------
    jnp.ndarray
        Log masses, with the broadcast shape of the inputs.

    Raises
    ------
    InvalidParameterError
        If ``mean`` or ``dispersion`` is not strictly positive or ``y`` is
        not a count.
    """
    _require_counts(y)
    _require_positive(mean, "mean")
    _require_positive(dispersion, "dispersion")
    y, mean, phi = _as_float(y), _as_float(mean), _as_float(dispersion)
    # NegativeBinomial2.log_prob goes through betaln, which drops ~6 digits
    total = phi + mean
    return (
        gammaln(y + phi)
        - gammaln(phi)
        - gammaln(y + 1.0)
        + xlogy(phi, phi / total)
        + xlogy(y, mean / total)
    )


def negbinom_variance(mean, dispersion) -> jnp.ndarray:
    """Variance ``mu + mu**2 / phi`` implied by the NB2 parameterization."""
    _require_positive(mean, "mean")
    _require_positive(dispersion, "dispersion")
    mean = _as_float(mean)
    return mean + mean**2 / _as_float(dispersion)


# ------------------------------------------------------------------------------
# Family dispatch
# ------------------------------------------------------------------------------


def inverse_link(family: LikelihoodFamily, eta) -> jnp.ndarray:
    """Map a linear predictor to the family's location parameter.

    Count families use a log link, so the rate is ``exp(eta)``; the Normal
    family uses the identity link.
    """
    family = LikelihoodFamily(family)
    eta = _as_float(eta)
    if family.log_link:
        return jnp.exp(eta)
    return eta


def _normal_kernel(y, location, dispersion):
    return normal_log_density(y, location, dispersion)


def _poisson_kernel(y, location, dispersion):
    return poisson_log_mass(y, location)


def _negbinom_kernel(y, location, dispersion):
    return negbinom_log_mass(y, location, dispersion)


_KERNELS = {
    LikelihoodFamily.NORMAL: _normal_kernel,
    LikelihoodFamily.POISSON: _poisson_kernel,
    LikelihoodFamily.NEGBINOM: _negbinom_kernel,
}


def log_likelihood_kernel(
    family: LikelihoodFamily,
) -> Callable[..., jnp.ndarray]:
    """Return the kernel for ``family``.

    The returned callable has the signature ``kernel(y, location,
    dispersion=None)`` where ``location`` is already on the natural scale
    (``mu`` for Normal, ``lambda`` for the count families).  ``dispersion``
    is ignored by the Poisson kernel.

    Raises
    ------
    ValueError
        If ``family`` is not a known family name.
    """
    kernel = _KERNELS[LikelihoodFamily(family)]

    def _kernel(y, location, dispersion: Optional[jnp.ndarray] = None):
        return kernel(y, location, dispersion)

    _kernel.__name__ = f"{LikelihoodFamily(family).value}_kernel"
    return _kernel
