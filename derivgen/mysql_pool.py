"""
MySQLPool - Lazily created mysql.connector pool shared by the MySQL stores.
"""

import logging
from typing import Iterable, Optional, Tuple

import mysql.connector
from mysql.connector import errorcode, pooling
from retrying import Retrying, retry

from .db_config import DbConfig


def _is_mysql_error(e: Exception) -> bool:
    return isinstance(e, mysql.connector.Error)


class MySQLPool:
    """
    Connection pool for one MySQL schema.

    `connect()` keeps retrying at a fixed interval until the server accepts
    the pool. With `max_connect_attempts` unset there is no attempt cap;
    otherwise the last connection error is raised once the cap is reached.
    """

    def __init__(
        self,
        config: DbConfig,
        pool_name: str,
        retry_seconds: float = 5.0,
        logger: Optional[logging.Logger] = None,
        max_connect_attempts: Optional[int] = None
    ):
        """
        Initialize pool wrapper (no connection is made yet).

        Args:
            config: Connection settings
            pool_name: mysql.connector pool name
            retry_seconds: Fixed delay between connection attempts
            logger: Optional logger instance
            max_connect_attempts: Give up after this many attempts (None: never)
        """
        self.config = config
        self.pool_name = pool_name
        self.retry_seconds = retry_seconds
        self.max_connect_attempts = max_connect_attempts
        self.logger = logger or logging.getLogger(__name__)
        self.connection_pool = None
        self.connect_attempts = 0

    @property
    def connected(self) -> bool:
        return self.connection_pool is not None

    def connect(self) -> None:
        """Create the pool, retrying while the server is unreachable."""
        if self.connection_pool:
            return
        retry_kwargs = {}
        if self.max_connect_attempts is not None:
            retry_kwargs['stop_max_attempt_number'] = self.max_connect_attempts
        retrying = Retrying(
            retry_on_exception=self._log_connect_failure,
            wait_fixed=int(self.retry_seconds * 1000),
            **retry_kwargs
        )
        self.connection_pool = retrying.call(self._create_pool)
        self.logger.info(f"Connected to {self.config.host}:{self.config.port}/{self.config.database}")

    def _create_pool(self):
        self.connect_attempts += 1
        self.logger.info(f"MySQL connection attempt {self.connect_attempts} ({self.pool_name})")
        return pooling.MySQLConnectionPool(
            pool_name=self.pool_name,
            pool_size=self.config.pool_size,
            **self.config.connection_kwargs()
        )

    def _log_connect_failure(self, e: Exception) -> bool:
        if not _is_mysql_error(e):
            return False
        self.logger.warning(
            f"MySQL connection error ({self.pool_name}): {e}; "
            f"retrying in {self.retry_seconds:g}s"
        )
        return True

    @retry(retry_on_exception=_is_mysql_error, stop_max_attempt_number=3, wait_exponential_multiplier=1000)
    def get_cursor(self) -> Tuple[object, object]:
        """
        Get a connection from the pool and create a cursor.
        """
        try:
            self.connect()
            connection = self.connection_pool.get_connection()
            return connection.cursor(buffered=True), connection
        except mysql.connector.Error as e:
            self.logger.warning(f"Error getting cursor: {e}")
            raise

    def close_connection(self, connection) -> None:
        """
        Return a connection to the pool.
        """
        if connection:
            try:
                connection.close()
            except mysql.connector.Error as e:
                self.logger.warning(f"Error closing connection: {e}")

    def create_tables(self, tables: Iterable[Tuple[str, str]]) -> None:
        """
        Create tables from (name, DDL) pairs if they do not exist.
        """
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            for table_name, table_description in tables:
                try:
                    self.logger.info(f"Creating table {table_name}...")
                    cursor.execute(table_description)
                except mysql.connector.Error as err:
                    if err.errno == errorcode.ER_TABLE_EXISTS_ERROR:
                        self.logger.info(f"Table {table_name} already exists.")
                    else:
                        raise
            connection.commit()
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)
