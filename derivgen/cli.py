"""
Command Line Interface for the derivative pipeline.
"""

import argparse
import logging
import os
from typing import List, Optional

from .derivative_db import DerivativeDb
from .job import BackoffPolicy, JobPayload, RetryPolicy
from .logging_config import setup_logging
from .mysql_job_store import MySQLJobStore
from .pipeline_config import PipelineConfig
from .reporter import Reporter
from .supervisor import WorkerPoolSupervisor, worker_count
from .worker import run_worker


# Connection attempts before a one-shot command gives up
CLI_CONNECT_ATTEMPTS = 2


def load_config(args: argparse.Namespace, logger: logging.Logger) -> PipelineConfig:
    """Load configuration from the environment and apply CLI overrides."""
    config = PipelineConfig.from_env()

    if getattr(args, 'workers', None):
        config.workers = args.workers
    if getattr(args, 'concurrency', None):
        config.concurrency = args.concurrency
    if getattr(args, 'show_jobs', False):
        config.show_jobs = True
    if getattr(args, 'verbose', False):
        config.log_level = 'DEBUG'

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        raise ValueError("Configuration invalid")
    return config


def cmd_work(args: argparse.Namespace) -> int:
    """Start the worker pool and supervise it until interrupted."""
    logger = setup_logging(args.verbose)
    try:
        config = load_config(args, logger)
    except ValueError:
        return 1

    count = config.workers or worker_count()
    logger.info(f"Workers: {count}, concurrency per worker: {config.concurrency}")
    logger.info(f"Queue: {config.queue_db.host}:{config.queue_db.port}/{config.queue_db.database}")

    supervisor = WorkerPoolSupervisor(run_worker, args=(config,), count=count, logger=logger)
    try:
        supervisor.run()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    return 0


def cmd_submit(args: argparse.Namespace) -> int:
    """Queue one stored image for derivative generation."""
    logger = setup_logging(args.verbose)
    try:
        config = load_config(args, logger)
    except ValueError:
        return 1

    source = os.path.abspath(args.image)
    if not os.path.isfile(source):
        logger.error(f"Image not found: {source}")
        return 1

    stem, ext = os.path.splitext(os.path.basename(source))
    gallery_path = os.path.abspath(args.gallery_path or os.path.dirname(source))
    for subdir in (JobPayload.THUMBNAIL_DIR, JobPayload.PREVIEW_DIR):
        os.makedirs(os.path.join(gallery_path, subdir), exist_ok=True)

    payload = JobPayload(
        full_size_image_path=source,
        gallery_path=gallery_path,
        filename=args.filename or stem,
        extension=ext.lstrip('.').lower(),
        user_id=args.user,
        gallery_id=args.gallery_id,
        user_fullname=args.author or "",
    )
    policy = RetryPolicy(max_attempts=args.attempts, backoff=BackoffPolicy(delay_ms=args.backoff_ms))

    try:
        store = MySQLJobStore(config.queue_db, config.connect_retry_seconds, logger,
                              max_connect_attempts=CLI_CONNECT_ATTEMPTS)
        job_id = store.submit(payload, policy)
    except Exception as e:
        logger.exception(f"Submit failed: {e}")
        return 1

    print(job_id)
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Print the queue status of a gallery."""
    logger = setup_logging(args.verbose)
    try:
        config = load_config(args, logger)
    except ValueError:
        return 1

    try:
        store = MySQLJobStore(config.queue_db, config.connect_retry_seconds, logger,
                              max_connect_attempts=CLI_CONNECT_ATTEMPTS)
        rows = store.gallery_status(args.gallery_id)
    except Exception as e:
        logger.error(f"Could not get status: {e}")
        return 1

    Reporter().report_gallery_status(args.gallery_id, rows)
    return 0


def cmd_init_db(args: argparse.Namespace) -> int:
    """Create the jobs and derivative_sets tables."""
    logger = setup_logging(args.verbose)
    try:
        config = load_config(args, logger)
    except ValueError:
        return 1

    try:
        MySQLJobStore(config.queue_db, config.connect_retry_seconds, logger,
                      max_connect_attempts=CLI_CONNECT_ATTEMPTS).create_tables()
        DerivativeDb(config.metadata_db, config.connect_retry_seconds, logger,
                     max_connect_attempts=CLI_CONNECT_ATTEMPTS).create_tables()
    except Exception as e:
        logger.exception(f"Table creation failed: {e}")
        return 1

    logger.info("Tables ready")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='derivgen',
        description='Thumbnail and preview generation workers',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Workflow:
  1. Tables:  python -m derivgen init-db
  2. Workers: python -m derivgen work
  3. Submit:  python -m derivgen submit photo.jpg --gallery-id g1 --user alice
  4. Status:  python -m derivgen status --gallery-id g1

Connection settings come from QUEUE_DB_* and METADATA_DB_* environment
variables (HOST, PORT, USER, PASSWORD, DATABASE).
"""
    )

    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    work_parser = subparsers.add_parser('work', help='Run the supervised worker pool')
    work_parser.add_argument('-w', '--workers', type=int, metavar='N',
                             help='Worker processes (default: half the CPUs)')
    work_parser.add_argument('-c', '--concurrency', type=int, metavar='N',
                             help='Concurrent jobs per worker (default: 2)')
    work_parser.add_argument('--show-jobs', action='store_true', help='Print every finished job')
    work_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    submit_parser = subparsers.add_parser('submit', help='Queue an image for processing')
    submit_parser.add_argument('image', help='Stored full-size image')
    submit_parser.add_argument('-g', '--gallery-id', required=True, help='Owning gallery id')
    submit_parser.add_argument('-u', '--user', required=True, help='Submitter id')
    submit_parser.add_argument('--author', help='Submitter display name')
    submit_parser.add_argument('--gallery-path', help='Gallery directory (default: image directory)')
    submit_parser.add_argument('--filename', help='Rendition filename stem (default: image stem)')
    submit_parser.add_argument('--attempts', type=int, default=3, help='Max attempts (default: 3)')
    submit_parser.add_argument('--backoff-ms', type=int, default=2000,
                               help='Base retry delay in ms (default: 2000)')
    submit_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    status_parser = subparsers.add_parser('status', help='Show queue status for a gallery')
    status_parser.add_argument('-g', '--gallery-id', required=True, help='Gallery id')
    status_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    init_parser = subparsers.add_parser('init-db', help='Create database tables')
    init_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == 'work':
        return cmd_work(parsed_args)
    elif parsed_args.command == 'submit':
        return cmd_submit(parsed_args)
    elif parsed_args.command == 'status':
        return cmd_status(parsed_args)
    elif parsed_args.command == 'init-db':
        return cmd_init_db(parsed_args)

    return 1
