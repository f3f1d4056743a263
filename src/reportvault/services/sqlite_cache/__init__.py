"""SQLite storage for cached reports and rate-limit windows.

Query, insert, update, migration and transaction concerns live in separate
modules; ``reportvault.services.cache_store.ReportCacheStore`` is the facade.
"""
