"""
In-process job and metadata stores for local runs and tests.

Both are thread safe but not shared between processes.
"""

import copy
import itertools
import logging
import threading
import time
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from .derivative_set import DerivativeSet
from .errors import InvalidTransitionError, JobNotFoundError, PersistenceError
from .job import Job, JobPayload, JobState, RetryPolicy
from .job_store import ALL_STATES, JobStore


class MemoryJobStore(JobStore):
    """
    Job store kept in a dict.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            clock: Time source in seconds, used for retry delays
            logger: Optional logger instance
        """
        super().__init__(logger)
        self.clock = clock
        self._jobs: Dict[str, Job] = {}
        self._available_at: Dict[str, float] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def _insert(self, payload: JobPayload, retry_policy: RetryPolicy) -> str:
        with self._lock:
            job_id = str(next(self._ids))
            self._jobs[job_id] = Job(id=job_id, payload=copy.deepcopy(payload),
                                     retry_policy=copy.deepcopy(retry_policy))
            self._available_at[job_id] = self.clock()
            return job_id

    def _dequeue(self) -> Optional[Job]:
        with self._lock:
            now = self.clock()
            due = [
                job for job in self._jobs.values()
                if job.state == JobState.WAITING and self._available_at[job.id] <= now
            ]
            if not due:
                return None
            job = min(due, key=lambda j: (self._available_at[j.id], int(j.id)))
            job.state = JobState.ACTIVE
            job.attempts_made += 1
            job.processed_at = datetime.fromtimestamp(now)
            return copy.deepcopy(job)

    def _raise_progress(self, job_id: str, percent: int) -> None:
        with self._lock:
            job = self._get(job_id)
            if job.state == JobState.ACTIVE and percent > job.progress:
                job.progress = percent

    def _finish(self, job_id: str, state: JobState, result: Optional[dict], reason: Optional[str]) -> Job:
        with self._lock:
            job = self._get(job_id)
            if job.state != JobState.ACTIVE:
                raise InvalidTransitionError(f"Job {job_id} is {job.state.value}, not active")
            job.state = state
            if state == JobState.COMPLETED:
                job.progress = 100
                job.result = copy.deepcopy(result)
            else:
                job.failed_reason = reason
            job.finished_at = datetime.fromtimestamp(self.clock())
            return copy.deepcopy(job)

    def _requeue(self, job_id: str, delay_ms: int, reason: str) -> Job:
        with self._lock:
            job = self._get(job_id)
            if job.state != JobState.ACTIVE:
                raise InvalidTransitionError(f"Job {job_id} is {job.state.value}, not active")
            job.state = JobState.WAITING
            job.failed_reason = reason
            self._available_at[job_id] = self.clock() + delay_ms / 1000.0
            return copy.deepcopy(job)

    def _get(self, job_id: str) -> Job:
        try:
            return self._jobs[job_id]
        except KeyError:
            raise JobNotFoundError(job_id) from None

    def get(self, job_id: str) -> Job:
        with self._lock:
            return copy.deepcopy(self._get(job_id))

    def jobs(self, states: Iterable[JobState] = ALL_STATES, gallery_id: Optional[str] = None) -> List[Job]:
        wanted = set(states)
        with self._lock:
            return [
                copy.deepcopy(job) for job in sorted(self._jobs.values(), key=lambda j: int(j.id))
                if job.state in wanted and (gallery_id is None or job.gallery_id == gallery_id)
            ]

    def available_at(self, job_id: str) -> float:
        with self._lock:
            return self._available_at[job_id]


class MemoryDerivativeStore:
    """
    Metadata store kept in a list.

    Set `fail_with` to an exception message to make `create` fail.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.records: List[DerivativeSet] = []
        self.fail_with: Optional[str] = None
        self._lock = threading.Lock()

    def connect(self) -> None:
        pass

    def create(self, record: DerivativeSet) -> int:
        with self._lock:
            if self.fail_with:
                raise PersistenceError(self.fail_with)
            record.id = len(self.records) + 1
            self.records.append(record)
            return record.id

    def find_by_gallery(self, gallery_id: str) -> List[DerivativeSet]:
        with self._lock:
            return [r for r in self.records if r.gallery_id == gallery_id]
