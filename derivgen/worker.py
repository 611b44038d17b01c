"""
Worker process entry point.
"""

import os

from .decode_cache import DecodeCache
from .derivative_db import DerivativeDb
from .job_progress import JobProgress
from .logging_config import setup_logging
from .mysql_job_store import MySQLJobStore
from .orchestrator import TaskOrchestrator
from .pipeline_config import PipelineConfig
from .transform_engine import TransformEngine


def run_worker(config: PipelineConfig) -> None:
    """
    Connect both stores, then consume jobs until the process dies.

    Connection attempts repeat at a fixed interval until each store is
    reachable; jobs are only pulled once both are.
    """
    logger = setup_logging(level=config.log_level)
    logger.info(f"Worker started with PID: {os.getpid()}")

    metadata_db = DerivativeDb(config.metadata_db, config.connect_retry_seconds, logger)
    job_store = MySQLJobStore(config.queue_db, config.connect_retry_seconds, logger)
    metadata_db.connect()
    job_store.connect()

    engine = TransformEngine(
        max_concurrent=config.transform_concurrency,
        cache=DecodeCache(config.cache_bytes, logger),
        logger=logger
    )
    orchestrator = TaskOrchestrator(
        engine, metadata_db, job_store, concurrency=config.concurrency, logger=logger
    )
    progress = JobProgress(show_jobs=config.show_jobs, logger=logger).attach(job_store)

    logger.info(f"Processor ready (PID {os.getpid()})")
    try:
        job_store.consume(config.concurrency, orchestrator, config.poll_interval, progress=progress)
    finally:
        orchestrator.shutdown()
