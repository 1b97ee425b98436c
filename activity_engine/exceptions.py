"""
Error hierarchy for the activity engine.
Batch-level errors propagate to the caller; record-level errors are absorbed
by the normalizer and reported as warnings.
"""


class ActivityEngineError(Exception):
    """Base class for all activity engine errors."""


class InvalidRange(ActivityEngineError):
    """Date range whose end lies before its start."""

    def __init__(self, start, end):
        self.start = start
        self.end = end
        super().__init__(f"Invalid date range: end {end} is before start {start}")


class InvalidGranularity(ActivityEngineError):
    """Bucket granularity that is not a positive time span."""


class MalformedRecord(ActivityEngineError):
    """Raw event without a usable timestamp."""


class UnknownCategory(ActivityEngineError):
    """Raw event or toggle request naming a category outside EventCategory."""


class ExportFormatError(ActivityEngineError):
    """Project export file that cannot be read."""
