"""
JobConsumer - Pulls jobs from a job store under a concurrency bound.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional

from .consumer_stats import ConsumerStats
from .errors import JobFailedError
from .job import Job, JobResult
from .job_progress import JobProgress


class JobConsumer:
    """
    Runs `concurrency` slots; a slot pulls a job only when it is free, so
    unprocessed jobs stay in the store until capacity opens up.
    """

    def __init__(
        self,
        store,
        handler: Callable[[Job], JobResult],
        concurrency: int = 2,
        poll_interval: float = 1.0,
        progress: Optional[JobProgress] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize consumer.

        Args:
            store: Job store to pull from and report to
            handler: Callable processing one job (usually a TaskOrchestrator)
            concurrency: Jobs processed at once
            poll_interval: Seconds a slot waits when the store is empty
            progress: Optional progress tracker for periodic summaries
            logger: Optional logger instance
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.store = store
        self.handler = handler
        self.concurrency = concurrency
        self.poll_interval = poll_interval
        self.progress = progress
        self.logger = logger or logging.getLogger(__name__)
        self.stats = ConsumerStats()
        self._stop_requested = threading.Event()

    def stop(self) -> None:
        """Request the consumer to stop once in-flight jobs are done."""
        self._stop_requested.set()

    @property
    def stopping(self) -> bool:
        return self._stop_requested.is_set()

    def run(self) -> ConsumerStats:
        """
        Consume until `stop()` is called.

        An error raised by the store ends the run and is re-raised, which
        takes the worker process down with it.
        """
        self.logger.info(f"Consumer started with concurrency {self.concurrency}")
        with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix='consumer') as slots:
            futures = [slots.submit(self._slot_loop) for _ in range(self.concurrency)]
            try:
                for future in as_completed(futures):
                    future.result()
            finally:
                self.stop()
        self.logger.info(
            f"Consumer stopped: {self.stats.completed} completed, {self.stats.failed} failed, "
            f"{self.stats.retried} retried ({self.stats.elapsed_seconds:.1f}s)"
        )
        return self.stats

    def _slot_loop(self) -> None:
        while not self.stopping:
            if not self.run_once():
                self._stop_requested.wait(self.poll_interval)

    def run_once(self) -> bool:
        """
        Take and process at most one job on the calling thread.

        Returns:
            True if a job was processed
        """
        job = self.store.take_next()
        if job is None:
            return False
        self.process(job)
        return True

    def process(self, job: Job) -> None:
        """Run the handler for an active job and relay the outcome to the store."""
        try:
            result = self.handler(job)
        except JobFailedError as e:
            reason = str(e)
        except Exception as e:
            self.logger.exception(f"Unexpected error processing job {job.id}")
            reason = str(e) or e.__class__.__name__
        else:
            self.store.complete(job.id, result.to_dict())
            self.stats.record_completed()
            self._update_progress()
            return

        updated = self.store.fail(job.id, reason)
        self.stats.record_failure(job.id, reason, retrying=not updated.state.is_terminal)
        self._update_progress()

    def _update_progress(self) -> None:
        if self.progress:
            self.progress.on_progress_update(self.stats)
