"""Custom exceptions for the densitypipe package."""


class PipelineError(Exception):
    """Base exception for all pipeline-related errors."""

    pass


class ConfigurationError(PipelineError):
    """Raised when grid or smoothing configuration is invalid."""

    pass


class StreamError(PipelineError):
    """Raised when the ray batch source fails to deliver data."""

    pass


class DataValidationError(PipelineError):
    """Raised when ray batch arrays are malformed."""

    pass
