"""
DerivativeDb - MySQL metadata store for derivative-set records.
"""

import logging
from typing import List, Optional

import mysql.connector

from .db_config import DbConfig
from .derivative_set import DerivativeSet
from .errors import PersistenceError
from .mysql_pool import MySQLPool


TABLES = [
    ('derivative_sets', (
        "CREATE TABLE IF NOT EXISTS `derivative_sets` ("
        "  id INT NOT NULL AUTO_INCREMENT PRIMARY KEY,"
        "  filename VARCHAR(255) NOT NULL,"
        "  author_id VARCHAR(255),"
        "  gallery_id VARCHAR(255),"
        "  thumbnail VARCHAR(2000),"
        "  preview VARCHAR(2000),"
        "  full_size VARCHAR(2000),"
        "  author VARCHAR(255) NOT NULL DEFAULT '',"
        "  created_at DATETIME(3) NOT NULL,"
        "  INDEX idx_derivative_sets_gallery (gallery_id)"
        ") ENGINE=InnoDB"
    )),
]

COLUMNS = "id, filename, author_id, gallery_id, thumbnail, preview, full_size, author, created_at"


class DerivativeDb:
    """
    Writes and reads derivative-set records.
    """

    def __init__(
        self,
        config: DbConfig,
        retry_seconds: float = 5.0,
        logger: Optional[logging.Logger] = None,
        pool: Optional[MySQLPool] = None,
        max_connect_attempts: Optional[int] = None
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.pool = pool or MySQLPool(config, "derivative_db_pool", retry_seconds, self.logger,
                                      max_connect_attempts=max_connect_attempts)

    def connect(self) -> None:
        """Block until the database is reachable."""
        self.pool.connect()

    def create_tables(self) -> None:
        self.pool.create_tables(TABLES)

    def create(self, record: DerivativeSet) -> int:
        """
        Insert a record and return its id.

        Raises:
            PersistenceError: when the database is unreachable or rejects the row
        """
        cursor, connection = None, None
        try:
            cursor, connection = self.pool.get_cursor()
            cursor.execute(
                "INSERT INTO derivative_sets"
                " (filename, author_id, gallery_id, thumbnail, preview, full_size, author, created_at)"
                " VALUES (%s, %s, %s, %s, %s, %s, %s, %s)",
                (record.filename, record.author_id, record.gallery_id, record.thumbnail_path,
                 record.preview_path, record.full_size_path, record.author or "", record.created_at)
            )
            connection.commit()
            record.id = cursor.lastrowid
            self.logger.debug(f"Saved derivative set {record.id} for {record.filename}")
            return record.id
        except mysql.connector.Error as e:
            self.logger.error(f"Error inserting derivative set for {record.filename}: {e}")
            raise PersistenceError(str(e)) from e
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.pool.close_connection(connection)

    def find_by_gallery(self, gallery_id: str) -> List[DerivativeSet]:
        cursor, connection = None, None
        try:
            cursor, connection = self.pool.get_cursor()
            cursor.execute(
                f"SELECT {COLUMNS} FROM derivative_sets WHERE gallery_id = %s ORDER BY created_at, id",
                (gallery_id,)
            )
            records = []
            for (id, filename, author_id, gallery, thumbnail, preview, full_size, author, created_at) in cursor:
                records.append(DerivativeSet(
                    filename=filename,
                    author_id=author_id,
                    gallery_id=gallery,
                    thumbnail_path=thumbnail,
                    preview_path=preview,
                    full_size_path=full_size,
                    created_at=created_at,
                    author=author or "",
                    id=id,
                ))
            return records
        except mysql.connector.Error as e:
            self.logger.error(f"Error fetching derivative sets for gallery {gallery_id}: {e}")
            raise PersistenceError(str(e)) from e
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.pool.close_connection(connection)
