"""
ConsumerStats - Counters for a consumer run.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import List


@dataclass
class ConsumerStats:
    """
    Statistics for a consumer run.

    Attributes:
        completed: Jobs completed
        failed: Jobs that used up their attempts
        retried: Failed attempts that were requeued
        start_time: Start timestamp
        error_details: Failure messages, most recent last
    """
    completed: int = 0
    failed: int = 0
    retried: int = 0
    start_time: float = field(default_factory=time.time)
    error_details: List[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    MAX_ERROR_DETAILS = 100

    def record_completed(self) -> None:
        with self._lock:
            self.completed += 1

    def record_failure(self, job_id: str, reason: str, retrying: bool) -> None:
        with self._lock:
            if retrying:
                self.retried += 1
            else:
                self.failed += 1
            self.error_details.append(f"Job {job_id}: {reason}")
            del self.error_details[:-self.MAX_ERROR_DETAILS]

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time

    @property
    def processed_count(self) -> int:
        """Attempts handled (completed + failed + retried)."""
        return self.completed + self.failed + self.retried

    @property
    def rate_per_minute(self) -> float:
        if self.elapsed_seconds > 0:
            return self.processed_count / self.elapsed_seconds * 60
        return 0.0
