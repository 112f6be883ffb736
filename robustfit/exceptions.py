"""Exception hierarchy for robust estimation."""


class RobustFitError(Exception):
    """Base class for all robustfit errors."""


class ConfigurationError(RobustFitError, ValueError):
    """Raised when a configuration value is out of its valid range."""


class LockedError(RobustFitError):
    """Raised when an estimator is modified or re-entered while running."""

    def __init__(self, message: str = "estimator is locked while running"):
        super().__init__(message)


class NotReadyError(RobustFitError):
    """Raised when an estimation is requested without a usable listener."""

    def __init__(self, message: str = "estimator is not ready"):
        super().__init__(message)


class SubsetSelectorError(RobustFitError):
    """Base class for subset selection failures."""


class NotEnoughSamplesError(SubsetSelectorError):
    """Raised when there are fewer samples than requested."""


class InvalidSubsetSizeError(SubsetSelectorError):
    """Raised when the requested subset size cannot be honoured."""


class InvalidSubsetRangeError(SubsetSelectorError):
    """Raised when the requested index range is empty or negative."""


class RobustEstimatorError(RobustFitError):
    """Raised when a robust estimation fails."""
