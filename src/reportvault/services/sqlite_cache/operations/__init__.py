"""SQLite cache operations module."""

from reportvault.services.sqlite_cache.operations.insert import InsertOperations
from reportvault.services.sqlite_cache.operations.query import QueryOperations
from reportvault.services.sqlite_cache.operations.update import UpdateOperations

__all__ = ["InsertOperations", "QueryOperations", "UpdateOperations"]
