"""
Exception types raised by the derivative pipeline.
"""

from typing import List


class DerivgenError(Exception):
    """Base class for all pipeline errors."""
    pass


class TransformError(DerivgenError):
    """Raised when a source image cannot be decoded, transformed or written."""
    pass


class PersistenceError(DerivgenError):
    """Raised when the metadata store rejects or cannot accept a write."""
    pass


class JobNotFoundError(DerivgenError):
    """Raised when a job id is unknown to the job store."""
    pass


class InvalidTransitionError(DerivgenError):
    """Raised when a job is moved to a state its current state does not allow."""
    pass


class JobFailedError(DerivgenError):
    """
    Raised by the orchestrator when at least one sub-task failed.

    The message is the comma-joined list of failure reasons.
    """

    SEPARATOR = ", "

    def __init__(self, reasons: List[str]):
        self.reasons = list(reasons)
        super().__init__(self.SEPARATOR.join(self.reasons))
