"""
PipelineConfig - Process-wide settings, loaded once at process start.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from .db_config import DbConfig


@dataclass
class PipelineConfig:
    """
    Attributes:
        queue_db: Job record store connection
        metadata_db: Metadata store connection
        concurrency: Concurrent jobs per consumer
        poll_interval: Seconds an idle consumer slot waits before polling again
        connect_retry_seconds: Fixed delay between store connection attempts
        workers: Worker process count, None to derive from the CPU count
        transform_concurrency: Simultaneous transforms per process
        cache_bytes: Decode cache budget per process
        log_level: Logging level name
        show_jobs: Print every finished job
    """
    queue_db: DbConfig = field(default_factory=DbConfig)
    metadata_db: DbConfig = field(default_factory=DbConfig)
    concurrency: int = 2
    poll_interval: float = 1.0
    connect_retry_seconds: float = 5.0
    workers: Optional[int] = None
    transform_concurrency: int = 2
    cache_bytes: int = 256 * 1024 * 1024
    log_level: str = "INFO"
    show_jobs: bool = False

    @classmethod
    def from_env(cls) -> 'PipelineConfig':
        workers = os.getenv("DERIVGEN_WORKERS")
        return cls(
            queue_db=DbConfig.from_env("QUEUE_DB"),
            metadata_db=DbConfig.from_env("METADATA_DB"),
            concurrency=int(os.getenv("DERIVGEN_CONCURRENCY", "2")),
            poll_interval=float(os.getenv("DERIVGEN_POLL_INTERVAL", "1.0")),
            connect_retry_seconds=float(os.getenv("DERIVGEN_CONNECT_RETRY_SECONDS", "5")),
            workers=int(workers) if workers else None,
            transform_concurrency=int(os.getenv("DERIVGEN_TRANSFORM_CONCURRENCY", "2")),
            cache_bytes=int(os.getenv("DERIVGEN_CACHE_MB", "256")) * 1024 * 1024,
            log_level=os.getenv("DERIVGEN_LOG_LEVEL", "INFO"),
            show_jobs=os.getenv("DERIVGEN_SHOW_JOBS", "").lower() in ("1", "true", "yes"),
        )

    def validate(self) -> List[str]:
        errors = [f"queue: {e}" for e in self.queue_db.validate()]
        errors += [f"metadata: {e}" for e in self.metadata_db.validate()]
        if self.concurrency < 1:
            errors.append(f"Invalid concurrency: {self.concurrency}")
        if self.workers is not None and self.workers < 1:
            errors.append(f"Invalid worker count: {self.workers}")
        if self.transform_concurrency < 1:
            errors.append(f"Invalid transform concurrency: {self.transform_concurrency}")
        return errors
