"""
Pipeline errors.

Every failure the core can surface derives from PipelineError. Exhaustion is
never an error; a stage that runs out of elements returns EXHAUSTED instead.
"""


class PipelineError(Exception):
    """Base exception for pipeline errors."""

    pass


class OwnershipError(PipelineError):
    """Raised when a producer is claimed by a second consumer."""

    pass


class StageError(PipelineError):
    """Raised when a stage cannot be constructed."""

    pass


class ClosureError(PipelineError):
    """
    Raised when a closure fails while being invoked.

    Attributes:
        value: The element the closure was invoked with
    """

    def __init__(self, message: str, value=None):
        super().__init__(message)
        self.value = value


class SourceError(PipelineError):
    """Raised when a source cannot produce its next element (e.g. bad encoding)."""

    pass


class PipelineFailed(PipelineError):
    """
    Raised by a driver when a pull fails.

    The original ClosureError or SourceError is available as __cause__.
    """

    pass
