"""Exceptions raised by the vehicle analytics pipeline."""


class PipelineError(ValueError):
    """Base class for failures that abort or degrade a pipeline load."""


class InsufficientDataError(PipelineError):
    """The input has no header line plus at least one data line."""

    def __init__(self, message: str = "CSV file is empty or has insufficient data"):
        super().__init__(message)


class NoValidRecordsError(PipelineError):
    """Every row was dropped by the cleaning pass."""

    def __init__(self, message: str = "No valid data found in CSV file"):
        super().__init__(message)


class ModelTrainingError(PipelineError):
    """The price model could not be trained into a usable state."""
