"""SQLite cache transaction module."""

from reportvault.services.sqlite_cache.transaction.manager import TransactionManager

__all__ = ["TransactionManager"]
