"""Exception classes for glmloo.

All exceptions derive from :class:`GlmLooError` so callers can catch every
package-specific failure with a single clause.  The concrete classes also
derive from ``ValueError`` because each of them reports bad input rather than
an internal fault.
"""


class GlmLooError(Exception):
    """Base class for all glmloo exceptions."""


class InvalidParameterError(GlmLooError, ValueError):
    """Raised when a likelihood receives values outside its support.

    Examples are a non-positive scale, rate or dispersion, a negative or
    non-integer count where a count is required, or a log-likelihood matrix
    containing non-finite entries.
    """


class ShapeMismatchError(GlmLooError, ValueError):
    """Raised when draws, covariates and responses disagree in dimension."""


class InsufficientDrawsError(GlmLooError, ValueError):
    """Raised when there are too few posterior draws to fit a Pareto tail."""
