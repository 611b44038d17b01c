"""
TaskOrchestrator - Drives one job through its three sub-tasks.

Thumbnail, preview and metadata write run concurrently and independently.
The job result is computed from the three captured outcomes once all of them
have finished. Nothing is rolled back when the job fails: renditions that were
written and a record that was saved stay where they are.
"""

import logging
from concurrent.futures import Executor, ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional

from .derivative_set import DerivativeSet
from .errors import JobFailedError
from .job import Job, JobPayload, JobResult
from .job_store import JobStore
from .subtask_outcome import Subtask, SubtaskOutcome
from .transform_engine import TransformEngine


SUBTASK_ORDER = (Subtask.THUMBNAIL, Subtask.PREVIEW, Subtask.METADATA)


class TaskOrchestrator:
    """
    Fan-out/fan-in controller for a single job.

    Instances are reusable and hold no per-job state; the outcomes of a job
    live only inside the `run` call that handles it.
    """

    def __init__(
        self,
        engine: TransformEngine,
        metadata_store,
        job_store: Optional[JobStore] = None,
        executor: Optional[Executor] = None,
        concurrency: int = 2,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize orchestrator.

        Args:
            engine: Transform engine shared by the process
            metadata_store: Object with `create(DerivativeSet)`
            job_store: Store that receives progress reports (optional)
            executor: Executor for sub-tasks; created if omitted
            concurrency: Jobs run at once by the caller, sizes the created executor
            logger: Optional logger instance
        """
        self.engine = engine
        self.metadata_store = metadata_store
        self.job_store = job_store
        self.logger = logger or logging.getLogger(__name__)
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=len(SUBTASK_ORDER) * concurrency, thread_name_prefix='subtask'
        )

    def run(self, job: Job) -> JobResult:
        """
        Process one job to its terminal outcome.

        Returns:
            JobResult when all three sub-tasks succeeded

        Raises:
            JobFailedError: listing the reason of every failed sub-task
        """
        payload = job.payload
        self.logger.info(f"Processing: {payload.filename} (job {job.id})")

        work: Dict[Subtask, Callable[[], object]] = {
            Subtask.THUMBNAIL: lambda: self.engine.make_thumbnail(
                payload.full_size_image_path, payload.thumbnail_path),
            Subtask.PREVIEW: lambda: self.engine.make_preview(
                payload.full_size_image_path, payload.preview_path),
            Subtask.METADATA: lambda: self._save_record(payload),
        }
        futures = [self.executor.submit(self._run_subtask, subtask, work[subtask]) for subtask in SUBTASK_ORDER]

        outcomes: Dict[Subtask, SubtaskOutcome] = {}
        for future in as_completed(futures):
            outcome = future.result()
            outcomes[outcome.subtask] = outcome
            if len(outcomes) < len(futures):
                self._report_progress(job, len(outcomes), len(futures))

        return self.aggregate(payload, [outcomes[subtask] for subtask in SUBTASK_ORDER])

    __call__ = run

    def aggregate(self, payload: JobPayload, outcomes: List[SubtaskOutcome]) -> JobResult:
        """Turn the captured outcomes into a result or a JobFailedError."""
        reasons = [outcome.reason for outcome in outcomes if not outcome.succeeded]
        if reasons:
            self.logger.error(f"Failed: {payload.filename} {reasons}")
            raise JobFailedError(reasons)

        self.logger.info(f"Completed with DB save: {payload.filename}")
        return JobResult(
            filename=payload.filename,
            thumbnail_path=payload.thumbnail_path,
            preview_path=payload.preview_path,
        )

    def _run_subtask(self, subtask: Subtask, fn: Callable[[], object]) -> SubtaskOutcome:
        try:
            fn()
        except Exception as e:
            self.logger.error(f"{subtask.value} error: {e}")
            return SubtaskOutcome.failed(subtask, e)
        self.logger.debug(f"{subtask.value} done")
        return SubtaskOutcome.ok(subtask)

    def _save_record(self, payload: JobPayload) -> None:
        record = DerivativeSet.from_payload(payload)
        record_id = self.metadata_store.create(record)
        self.logger.info(f"Saved to database: {payload.filename} with ID: {record_id}")

    def _report_progress(self, job: Job, finished: int, total: int) -> None:
        if self.job_store is None:
            return
        percent = finished * 100 // total
        try:
            self.job_store.progress(job.id, percent)
        except Exception as e:
            self.logger.warning(f"Could not report progress {percent}% for job {job.id}: {e}")

    def shutdown(self) -> None:
        if self._owns_executor:
            self.executor.shutdown(wait=True)
