"""
Error kinds raised by the ordination code.

All of them derive from ValueError, so callers that already guard against
bad input with ``except ValueError`` keep working.
"""


class OrdinationError(ValueError):
    """Base class for ordination errors."""


class DimensionError(OrdinationError):
    """Latent dimensions are missing or don't line up."""


class InvalidParameterError(OrdinationError):
    """A scalar or configuration parameter is outside its allowed range."""


class AxisOutOfRangeError(DimensionError, InvalidParameterError):
    """A selected latent variable index is outside 1..k."""


class UnsupportedBiplotError(OrdinationError):
    """Biplot requested for a model with a single latent variable."""


class MissingUncertaintyError(OrdinationError):
    """Prediction region requested but the model carries no site covariances."""


__all__ = [
    'OrdinationError',
    'DimensionError',
    'InvalidParameterError',
    'AxisOutOfRangeError',
    'UnsupportedBiplotError',
    'MissingUncertaintyError',
]
