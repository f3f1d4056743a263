"""SQLite cache migration module."""

from reportvault.services.sqlite_cache.migration.manager import MigrationManager

__all__ = ["MigrationManager"]
