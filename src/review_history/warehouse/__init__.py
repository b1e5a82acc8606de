"""
History table storage: PostgreSQL and in-memory stores.
"""

from .connection import DatabaseConnectionPool, DatabaseSettings
from .history_store import HistoryStore
from .memory_store import InMemoryHistoryStore
from .postgres_store import PostgresHistoryStore
from .schema_mgmt import HistoryTableManager

__all__ = [
    "DatabaseConnectionPool",
    "DatabaseSettings",
    "HistoryStore",
    "InMemoryHistoryStore",
    "PostgresHistoryStore",
    "HistoryTableManager",
]
