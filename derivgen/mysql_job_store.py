"""
MySQLJobStore - Job record store on a MySQL table.

Dequeue uses `SELECT ... FOR UPDATE SKIP LOCKED` so any number of worker
processes can pull from the same table without handing a job out twice.
"""

import json
import logging
from typing import Iterable, List, Optional

import mysql.connector

from .db_config import DbConfig
from .errors import InvalidTransitionError, JobNotFoundError
from .job import BackoffPolicy, Job, JobPayload, JobState, RetryPolicy
from .job_store import ALL_STATES, JobStore
from .mysql_pool import MySQLPool


TABLES = [
    ('jobs', (
        "CREATE TABLE IF NOT EXISTS `jobs` ("
        "  id BIGINT NOT NULL AUTO_INCREMENT PRIMARY KEY,"
        "  gallery_id VARCHAR(255),"
        "  payload TEXT NOT NULL,"
        "  state VARCHAR(16) NOT NULL,"
        "  progress INT NOT NULL DEFAULT 0,"
        "  attempts_made INT NOT NULL DEFAULT 0,"
        "  max_attempts INT NOT NULL,"
        "  backoff_type VARCHAR(32) NOT NULL,"
        "  backoff_delay_ms INT NOT NULL,"
        "  failed_reason TEXT,"
        "  result TEXT,"
        "  created_at DATETIME(3) NOT NULL,"
        "  available_at DATETIME(3) NOT NULL,"
        "  processed_at DATETIME(3),"
        "  finished_at DATETIME(3),"
        "  INDEX idx_jobs_due (state, available_at),"
        "  INDEX idx_jobs_gallery (gallery_id)"
        ") ENGINE=InnoDB"
    )),
]

COLUMNS = (
    "id, payload, state, progress, attempts_made, max_attempts, backoff_type, backoff_delay_ms,"
    " failed_reason, result, created_at, processed_at, finished_at"
)


class MySQLJobStore(JobStore):
    """
    Job store shared by all worker processes through one MySQL table.
    """

    def __init__(
        self,
        config: DbConfig,
        retry_seconds: float = 5.0,
        logger: Optional[logging.Logger] = None,
        pool: Optional[MySQLPool] = None,
        max_connect_attempts: Optional[int] = None
    ):
        super().__init__(logger)
        self.pool = pool or MySQLPool(config, "job_store_pool", retry_seconds, self.logger,
                                      max_connect_attempts=max_connect_attempts)

    def connect(self) -> None:
        self.pool.connect()

    def create_tables(self) -> None:
        self.pool.create_tables(TABLES)

    @staticmethod
    def _row_to_job(row) -> Job:
        (id, payload, state, progress, attempts_made, max_attempts, backoff_type, backoff_delay_ms,
         failed_reason, result, created_at, processed_at, finished_at) = row
        return Job(
            id=str(id),
            payload=JobPayload.from_dict(json.loads(payload)),
            retry_policy=RetryPolicy(max_attempts, BackoffPolicy(backoff_type, backoff_delay_ms)),
            state=JobState(state),
            progress=progress,
            attempts_made=attempts_made,
            failed_reason=failed_reason,
            result=json.loads(result) if result else None,
            created_at=created_at,
            processed_at=processed_at,
            finished_at=finished_at,
        )

    def _write(self, sql: str, params: tuple) -> int:
        """Run one statement in its own transaction and return the affected row count."""
        cursor, connection = None, None
        try:
            cursor, connection = self.pool.get_cursor()
            cursor.execute(sql, params)
            connection.commit()
            return cursor.rowcount
        except mysql.connector.Error as e:
            self.logger.error(f"Error executing job store update: {e}")
            raise
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.pool.close_connection(connection)

    def _insert(self, payload: JobPayload, retry_policy: RetryPolicy) -> str:
        cursor, connection = None, None
        try:
            cursor, connection = self.pool.get_cursor()
            cursor.execute(
                "INSERT INTO jobs (gallery_id, payload, state, max_attempts, backoff_type, backoff_delay_ms,"
                " created_at, available_at) VALUES (%s, %s, %s, %s, %s, %s, NOW(3), NOW(3))",
                (payload.gallery_id, json.dumps(payload.to_dict()), JobState.WAITING.value,
                 retry_policy.max_attempts, retry_policy.backoff.type, retry_policy.backoff.delay_ms)
            )
            connection.commit()
            return str(cursor.lastrowid)
        except mysql.connector.Error as e:
            self.logger.error(f"Error inserting job: {e}")
            raise
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.pool.close_connection(connection)

    def _dequeue(self) -> Optional[Job]:
        cursor, connection = None, None
        try:
            cursor, connection = self.pool.get_cursor()
            cursor.execute(
                "SELECT id FROM jobs WHERE state = %s AND available_at <= NOW(3)"
                " ORDER BY available_at, id LIMIT 1 FOR UPDATE SKIP LOCKED",
                (JobState.WAITING.value,)
            )
            row = cursor.fetchone()
            if row is None:
                connection.rollback()
                return None
            job_id = row[0]
            cursor.execute(
                "UPDATE jobs SET state = %s, attempts_made = attempts_made + 1,"
                " processed_at = NOW(3) WHERE id = %s",
                (JobState.ACTIVE.value, job_id)
            )
            cursor.execute(f"SELECT {COLUMNS} FROM jobs WHERE id = %s", (job_id,))
            job = self._row_to_job(cursor.fetchone())
            connection.commit()
            return job
        except mysql.connector.Error as e:
            self.logger.error(f"Error dequeuing job: {e}")
            if connection:
                connection.rollback()
            raise
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.pool.close_connection(connection)

    def _raise_progress(self, job_id: str, percent: int) -> None:
        self._write(
            "UPDATE jobs SET progress = %s WHERE id = %s AND state = %s AND progress < %s",
            (percent, job_id, JobState.ACTIVE.value, percent)
        )

    def _finish(self, job_id: str, state: JobState, result: Optional[dict], reason: Optional[str]) -> Job:
        if state == JobState.COMPLETED:
            updated = self._write(
                "UPDATE jobs SET state = %s, progress = 100, result = %s, finished_at = NOW(3)"
                " WHERE id = %s AND state = %s",
                (state.value, json.dumps(result), job_id, JobState.ACTIVE.value)
            )
        else:
            updated = self._write(
                "UPDATE jobs SET state = %s, failed_reason = %s, finished_at = NOW(3)"
                " WHERE id = %s AND state = %s",
                (state.value, reason, job_id, JobState.ACTIVE.value)
            )
        return self._after_transition(job_id, updated)

    def _requeue(self, job_id: str, delay_ms: int, reason: str) -> Job:
        updated = self._write(
            "UPDATE jobs SET state = %s, failed_reason = %s,"
            " available_at = DATE_ADD(NOW(3), INTERVAL %s MICROSECOND)"
            " WHERE id = %s AND state = %s",
            (JobState.WAITING.value, reason, delay_ms * 1000, job_id, JobState.ACTIVE.value)
        )
        return self._after_transition(job_id, updated)

    def _after_transition(self, job_id: str, updated: int) -> Job:
        job = self.get(job_id)
        if not updated:
            raise InvalidTransitionError(f"Job {job_id} is {job.state.value}, not active")
        return job

    def _select(self, where: str, params: tuple) -> List[Job]:
        cursor, connection = None, None
        try:
            cursor, connection = self.pool.get_cursor()
            cursor.execute(f"SELECT {COLUMNS} FROM jobs {where} ORDER BY id", params)
            return [self._row_to_job(row) for row in cursor.fetchall()]
        except mysql.connector.Error as e:
            self.logger.error(f"Error fetching jobs: {e}")
            raise
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.pool.close_connection(connection)

    def get(self, job_id: str) -> Job:
        jobs = self._select("WHERE id = %s", (job_id,))
        if not jobs:
            raise JobNotFoundError(job_id)
        return jobs[0]

    def jobs(self, states: Iterable[JobState] = ALL_STATES, gallery_id: Optional[str] = None) -> List[Job]:
        values = [JobState(s).value for s in states]
        if not values:
            return []
        where = f"WHERE state IN ({', '.join(['%s'] * len(values))})"
        params = list(values)
        if gallery_id is not None:
            where += " AND gallery_id = %s"
            params.append(gallery_id)
        return self._select(where, tuple(params))
