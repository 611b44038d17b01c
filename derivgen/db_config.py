"""
DbConfig - Connection settings for a MySQL-backed store.
"""

import os
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class DbConfig:
    """
    MySQL connection settings.

    Attributes:
        host: Server host
        port: Server port
        user: Account name
        password: Account password
        database: Schema name
        pool_size: Connections kept in the pool
    """
    host: Optional[str] = None
    port: int = 3306
    user: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    pool_size: int = 4

    @classmethod
    def from_env(cls, prefix: str) -> 'DbConfig':
        """
        Load settings from `<prefix>_HOST`, `<prefix>_PORT`, `<prefix>_USER`,
        `<prefix>_PASSWORD`, `<prefix>_DATABASE` and `<prefix>_POOL_SIZE`.
        """
        return cls(
            host=os.getenv(f"{prefix}_HOST"),
            port=int(os.getenv(f"{prefix}_PORT", "3306")),
            user=os.getenv(f"{prefix}_USER"),
            password=os.getenv(f"{prefix}_PASSWORD"),
            database=os.getenv(f"{prefix}_DATABASE"),
            pool_size=int(os.getenv(f"{prefix}_POOL_SIZE", "4")),
        )

    def validate(self) -> List[str]:
        """Return a list of configuration errors (empty when valid)."""
        errors = []
        if not self.host:
            errors.append("Database host is not set")
        if not self.user:
            errors.append("Database user is not set")
        if not self.database:
            errors.append("Database name is not set")
        if not 0 < self.port < 65536:
            errors.append(f"Invalid database port: {self.port}")
        if self.pool_size < 1:
            errors.append(f"Invalid pool size: {self.pool_size}")
        return errors

    def connection_kwargs(self) -> dict:
        return {
            'host': self.host,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'database': self.database,
        }
