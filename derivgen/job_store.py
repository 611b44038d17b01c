"""
JobStore - Durable job queue contract shared by the store implementations.

Subclasses provide the storage primitives; the lifecycle rules (retry with
backoff, progress clamping, terminal-once transitions and notifications)
live here.
"""

import logging
from typing import Callable, Iterable, List, Optional

from .errors import InvalidTransitionError
from .job import Job, JobPayload, JobState, RetryPolicy


CompletedListener = Callable[[Job], None]
FailedListener = Callable[[Job, str], None]

ALL_STATES = (JobState.WAITING, JobState.ACTIVE, JobState.COMPLETED, JobState.FAILED)


class JobStore:
    """
    Base class for job record stores.
    """

    # 100 is only ever written by the completed transition
    MAX_ACTIVE_PROGRESS = 99

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._completed_listeners: List[CompletedListener] = []
        self._failed_listeners: List[FailedListener] = []

    # --- Storage primitives ---------------------------------------------------

    def _insert(self, payload: JobPayload, retry_policy: RetryPolicy) -> str:
        raise NotImplementedError

    def _dequeue(self) -> Optional[Job]:
        """Atomically move the next due waiting job to active and return it."""
        raise NotImplementedError

    def _raise_progress(self, job_id: str, percent: int) -> None:
        """Store `percent` if the job is active and below it."""
        raise NotImplementedError

    def _finish(self, job_id: str, state: JobState, result: Optional[dict], reason: Optional[str]) -> Job:
        """Move an active job to a terminal state; raise InvalidTransitionError otherwise."""
        raise NotImplementedError

    def _requeue(self, job_id: str, delay_ms: int, reason: str) -> Job:
        """Move an active job back to waiting, due after `delay_ms`."""
        raise NotImplementedError

    def get(self, job_id: str) -> Job:
        """Return a snapshot of a job; raise JobNotFoundError if unknown."""
        raise NotImplementedError

    def jobs(self, states: Iterable[JobState] = ALL_STATES, gallery_id: Optional[str] = None) -> List[Job]:
        """Jobs in any of `states`, optionally filtered by gallery id, oldest first."""
        raise NotImplementedError

    # --- Public API -----------------------------------------------------------

    def submit(self, payload: JobPayload, retry_policy: Optional[RetryPolicy] = None) -> str:
        """
        Enqueue a job.

        Args:
            payload: Image to process
            retry_policy: Attempts and backoff (default: 3 attempts, exponential from 2s)

        Returns:
            The new job id
        """
        policy = retry_policy or RetryPolicy()
        if policy.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {policy.max_attempts}")
        job_id = self._insert(payload, policy)
        self.logger.info(f"Queued job {job_id}: {payload.filename} (gallery {payload.gallery_id})")
        return job_id

    def take_next(self) -> Optional[Job]:
        job = self._dequeue()
        if job:
            self.logger.debug(
                f"Job {job.id} active (attempt {job.attempts_made}/{job.retry_policy.max_attempts})"
            )
        return job

    def progress(self, job_id: str, percent: int) -> None:
        """Report progress for an active job; never decreases and never reaches 100."""
        percent = max(0, min(int(percent), self.MAX_ACTIVE_PROGRESS))
        self._raise_progress(job_id, percent)

    def complete(self, job_id: str, result: dict) -> Job:
        job = self._finish(job_id, JobState.COMPLETED, result, None)
        self.logger.info(f"Job completed: {job_id}")
        self._emit_completed(job)
        return job

    def fail(self, job_id: str, reason: str) -> Job:
        """
        Record a failed attempt.

        The job is requeued with exponential backoff while attempts remain,
        otherwise it is marked failed and `failed` listeners are notified.
        """
        job = self.get(job_id)
        if job.state != JobState.ACTIVE:
            raise InvalidTransitionError(f"Job {job_id} is {job.state.value}, not active")

        if job.attempts_remaining > 0:
            delay_ms = job.retry_policy.backoff.delay_for(job.attempts_made)
            job = self._requeue(job_id, delay_ms, reason)
            self.logger.warning(
                f"Job {job_id} attempt {job.attempts_made} failed ({reason}); "
                f"retrying in {delay_ms}ms"
            )
            return job

        job = self._finish(job_id, JobState.FAILED, None, reason)
        self.logger.error(f"Job failed: {job_id} {reason}")
        self._emit_failed(job, reason)
        return job

    def gallery_status(self, gallery_id: str) -> List[dict]:
        """Queue-status rows for every job of a gallery."""
        return [job.summary() for job in self.jobs(ALL_STATES, gallery_id)]

    def consume(self, concurrency: int, handler, poll_interval: float = 1.0, progress=None):
        """
        Process jobs with `handler` until the consumer stops.

        Returns:
            ConsumerStats of the run
        """
        from .consumer import JobConsumer

        consumer = JobConsumer(self, handler, concurrency=concurrency, poll_interval=poll_interval,
                               progress=progress, logger=self.logger)
        return consumer.run()

    # --- Notifications --------------------------------------------------------

    def on_completed(self, listener: CompletedListener) -> None:
        self._completed_listeners.append(listener)

    def on_failed(self, listener: FailedListener) -> None:
        self._failed_listeners.append(listener)

    def _emit_completed(self, job: Job) -> None:
        for listener in self._completed_listeners:
            try:
                listener(job)
            except Exception:
                self.logger.exception(f"completed listener raised for job {job.id}")

    def _emit_failed(self, job: Job, reason: str) -> None:
        for listener in self._failed_listeners:
            try:
                listener(job, reason)
            except Exception:
                self.logger.exception(f"failed listener raised for job {job.id}")
