"""Custom exceptions for the incremental slice finding package."""


class SliceFinderError(Exception):
    """Base exception for all slice finding errors."""
    pass


class InvalidDataError(SliceFinderError):
    """Raised when input data is invalid or malformed."""
    pass


class InvalidAlgorithmError(SliceFinderError):
    """Raised when an unknown algorithm is requested."""
    pass


class InvalidParameterError(SliceFinderError):
    """Raised when invalid parameters are provided."""
    pass


class IncompletePriorStateError(InvalidParameterError):
    """Raised when an incremental run gets only part of the prior state."""
    pass


class ParameterMismatchError(InvalidParameterError):
    """Raised when incremental run parameters differ from the prior run."""
    pass


class NotFittedError(SliceFinderError):
    """Raised when trying to get results before fitting."""
    pass
