"""
JobProgress - Logs job notifications and periodic consumer summaries.
"""

import logging
from typing import Optional

from .consumer_stats import ConsumerStats
from .job import Job
from .job_store import JobStore


class JobProgress:
    """
    Listener for a job store's completed/failed notifications.
    """

    def __init__(
        self,
        show_jobs: bool = False,
        log_interval: int = 100,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize progress tracker.

        Args:
            show_jobs: If True, print each finished job
            log_interval: Log a summary every N handled attempts
            logger: Optional logger instance
        """
        self.show_jobs = show_jobs
        self.log_interval = log_interval
        self.logger = logger or logging.getLogger(__name__)
        self.last_logged = 0

    def attach(self, store: JobStore) -> 'JobProgress':
        store.on_completed(self.on_completed)
        store.on_failed(self.on_failed)
        return self

    def on_completed(self, job: Job) -> None:
        """Called when a job completes."""
        if self.show_jobs:
            print(f"  [OK] {job.id} {job.payload.filename}")

    def on_failed(self, job: Job, reason: str) -> None:
        if self.show_jobs:
            print(f"  [FAILED] {job.id} {job.payload.filename} -> {reason}")

    def on_progress_update(self, stats: ConsumerStats) -> None:
        done = stats.processed_count
        if done - self.last_logged >= self.log_interval:
            self.last_logged = done
            self.logger.info(
                f"Progress: {stats.completed} completed, {stats.failed} failed, "
                f"{stats.retried} retried ({stats.rate_per_minute:.1f}/min)"
            )

    def __call__(self, stats: ConsumerStats) -> None:
        self.on_progress_update(stats)
