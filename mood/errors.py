"""
Error taxonomy for the mood tracker.

Device access denial is reported with the builtin ``PermissionError``; it is
the only error that is fatal to a live session.
"""


class MoodTrackerError(Exception):
    """Base class for errors raised by the tracker components."""


class ModelLoadError(MoodTrackerError):
    """A detection model failed to load or exceeded its load timeout."""

    def __init__(self, resource: str, message: str):
        super().__init__(f"{resource}: {message}")
        self.resource = resource


class DetectionError(MoodTrackerError):
    """A single model-backed detection cycle failed."""


class PersistenceError(MoodTrackerError):
    """Saving a mood record or fetching history failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
