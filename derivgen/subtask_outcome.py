"""
SubtaskOutcome - Captured result of one of the three sub-tasks of a job.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Subtask(str, Enum):
    THUMBNAIL = "thumbnail"
    PREVIEW = "preview"
    METADATA = "metadata"

    @property
    def failure_reason(self) -> str:
        return FAILURE_REASONS[self]


FAILURE_REASONS = {
    Subtask.THUMBNAIL: "thumbnail failed",
    Subtask.PREVIEW: "preview failed",
    Subtask.METADATA: "database save failed",
}


@dataclass(frozen=True)
class SubtaskOutcome:
    subtask: Subtask
    succeeded: bool
    error: Optional[BaseException] = None

    @property
    def reason(self) -> Optional[str]:
        """Human-readable failure reason, None when the sub-task succeeded."""
        if self.succeeded:
            return None
        return self.subtask.failure_reason

    @classmethod
    def ok(cls, subtask: Subtask) -> 'SubtaskOutcome':
        return cls(subtask, True)

    @classmethod
    def failed(cls, subtask: Subtask, error: BaseException) -> 'SubtaskOutcome':
        return cls(subtask, False, error)
