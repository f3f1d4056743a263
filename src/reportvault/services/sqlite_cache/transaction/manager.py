"""Transaction manager for the report cache database."""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import sqlite3

logger = logging.getLogger(__name__)


class TransactionManager:
    """Explicit transactions over an autocommit connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def begin(self) -> None:
        self.conn.execute("BEGIN IMMEDIATE")

    def commit(self) -> None:
        self.conn.execute("COMMIT")

    def rollback(self) -> None:
        self.conn.execute("ROLLBACK")

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """Commit on success, roll back and re-raise on failure.

        Example:
            >>> with transaction_manager.transaction():
            ...     insert_ops.upsert_record(record_a, "all-time", now)
            ...     insert_ops.upsert_record(record_b, "all-time", now)
        """
        self.begin()
        try:
            yield
            self.commit()
        except Exception:
            self.rollback()
            logger.debug("Rolled back cache transaction")
            raise
