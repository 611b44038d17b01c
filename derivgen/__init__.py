"""
Derivative generation pipeline.

Worker processes pull image jobs from a shared job store and, for each job,
write a thumbnail, a preview and a derivative-set record in parallel.
"""

__version__ = "1.0.0"

from .errors import (
    DerivgenError,
    TransformError,
    PersistenceError,
    JobFailedError,
    JobNotFoundError,
    InvalidTransitionError,
)
from .job import JobState, BackoffPolicy, RetryPolicy, JobPayload, JobResult, Job
from .derivative_set import DerivativeSet
from .subtask_outcome import Subtask, SubtaskOutcome
from .db_config import DbConfig
from .pipeline_config import PipelineConfig
from .decode_cache import DecodeCache
from .transform_engine import TransformEngine
from .job_store import JobStore
from .memory_stores import MemoryJobStore, MemoryDerivativeStore
from .mysql_job_store import MySQLJobStore
from .derivative_db import DerivativeDb
from .orchestrator import TaskOrchestrator
from .consumer_stats import ConsumerStats
from .job_progress import JobProgress
from .consumer import JobConsumer
from .supervisor import WorkerPoolSupervisor, WorkerState, worker_count
from .reporter import Reporter

__all__ = [
    "DerivgenError",
    "TransformError",
    "PersistenceError",
    "JobFailedError",
    "JobNotFoundError",
    "InvalidTransitionError",
    "JobState",
    "BackoffPolicy",
    "RetryPolicy",
    "JobPayload",
    "JobResult",
    "Job",
    "DerivativeSet",
    "Subtask",
    "SubtaskOutcome",
    "DbConfig",
    "PipelineConfig",
    "DecodeCache",
    "TransformEngine",
    "JobStore",
    "MemoryJobStore",
    "MemoryDerivativeStore",
    "MySQLJobStore",
    "DerivativeDb",
    "TaskOrchestrator",
    "ConsumerStats",
    "JobProgress",
    "JobConsumer",
    "WorkerPoolSupervisor",
    "WorkerState",
    "worker_count",
    "Reporter",
]
