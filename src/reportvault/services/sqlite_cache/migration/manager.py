"""Migration manager for the report cache database."""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

REQUIRED_TABLES = ("report_cache", "rate_limit_windows", "schema_version")


class MigrationManager:
    """Creates and checks the database schema."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize migration manager.

        Args:
            conn: SQLite database connection
        """
        self.conn = conn
        self._current_version = self._get_current_version()

    def get_current_version(self) -> int:
        """Get current schema version."""
        return self._current_version

    def _get_current_version(self) -> int:
        cursor = self.conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        )
        if cursor.fetchone() is None:
            return 0

        cursor = self.conn.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row and row[0] is not None else 0

    def create_tables(self) -> None:
        """Create database schema (v1)."""
        schema_sql = """
        CREATE TABLE IF NOT EXISTS report_cache (
            item_id TEXT NOT NULL,
            timeframe TEXT NOT NULL,
            kind TEXT NOT NULL,

            -- ReportRecord as JSON
            record TEXT NOT NULL,

            -- Store clock, POSIX seconds
            cached_at REAL NOT NULL,

            PRIMARY KEY (item_id, timeframe),
            CHECK (length(item_id) > 0),
            CHECK (length(timeframe) > 0)
        );

        CREATE INDEX IF NOT EXISTS idx_report_cache_timeframe
            ON report_cache(timeframe, cached_at);

        CREATE TABLE IF NOT EXISTS rate_limit_windows (
            upstream TEXT PRIMARY KEY,
            until REAL NOT NULL,
            window_seconds REAL NOT NULL,
            strikes INTEGER NOT NULL DEFAULT 1
        );

        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER PRIMARY KEY,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP NOT NULL
        );
        """

        self.conn.executescript(schema_sql)

        if self._current_version < SCHEMA_VERSION:
            self.conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            self._current_version = SCHEMA_VERSION
            logger.info("Created database schema (v%d)", SCHEMA_VERSION)

    def validate_schema(self) -> bool:
        """Check that every required table exists."""
        for table in REQUIRED_TABLES:
            cursor = self.conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
                (table,),
            )
            if cursor.fetchone() is None:
                logger.error("Required table '%s' not found", table)
                return False
        return True
