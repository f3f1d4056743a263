"""Base operation class for SQLite cache operations."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    import sqlite3

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on old builds
MAX_SQL_PARAMS = 500


class BaseOperation:
    """Base class for cache operations with shared functionality."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize base operation.

        Args:
            conn: SQLite database connection
        """
        self.conn = conn

    def _validate_connection(self) -> None:
        """Validate database connection is available.

        Raises:
            RuntimeError: If connection is not initialized
        """
        if self.conn is None:
            raise RuntimeError("Database connection not initialized")

    @staticmethod
    def _to_timestamp(value: datetime) -> float:
        return value.timestamp()

    @staticmethod
    def _chunked(values: Sequence[T], size: int = MAX_SQL_PARAMS) -> Iterator[Sequence[T]]:
        for start in range(0, len(values), size):
            yield values[start : start + size]
