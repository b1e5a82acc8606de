"""
PostgreSQL-backed history store.

Inserts go through INSERT ... executemany inside one transaction, and
expiration is a single existence-check UPDATE, so each phase of a run is
atomic for readers.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Sequence

import psycopg
from psycopg import errors, sql

from review_history.core.errors import StorageRejectedError, StorageUnavailableError
from review_history.core.models import (
    ATTRIBUTE_FIELDS,
    HistoryEntry,
    HistorySnapshot,
    InvariantReport,
)
from review_history.observability.logger import get_logger

from .connection import DatabaseConnectionPool
from .history_store import HistoryStore

logger = get_logger(__name__)

HISTORY_COLUMNS: tuple[str, ...] = (
    "surrogate_id",
    "business_key",
    "version",
    "is_current",
    "effective_from",
    "effective_to",
    *ATTRIBUTE_FIELDS,
    "loaded_at",
)

EXPIRE_SUPERSEDED_SQL = """
    UPDATE {table} AS cur
    SET effective_to = %s,
        is_current = FALSE
    WHERE cur.is_current
      AND EXISTS (
          SELECT 1 FROM {table} AS newer
          WHERE newer.business_key = cur.business_key
            AND newer.is_current
            AND newer.version > cur.version
      )
"""

INVARIANTS_SQL = """
    SELECT business_key,
           COUNT(*) AS total_versions,
           COUNT(*) FILTER (WHERE is_current) AS current_rows,
           MIN(version) AS min_version,
           MAX(version) AS max_version
    FROM {table}
    GROUP BY business_key
    HAVING COUNT(*) FILTER (WHERE is_current) <> 1
        OR MIN(version) <> 1
        OR MAX(version) <> COUNT(*)
    ORDER BY business_key
"""


@contextmanager
def storage_errors(operation: str):
    """
    Translate psycopg failures into pipeline errors.

    Connectivity failures become StorageUnavailableError. Values or statements
    the table refuses (out-of-range data, a missing table) become
    StorageRejectedError.
    """
    try:
        yield
    except (psycopg.OperationalError, psycopg.InterfaceError) as e:
        logger.error(f"History store unavailable during {operation}: {e}")
        raise StorageUnavailableError(f"History store unavailable during {operation}: {e}") from e
    except (psycopg.DataError, errors.UndefinedTable) as e:
        logger.error(f"History store rejected {operation}: {e}")
        raise StorageRejectedError(f"History store rejected {operation}: {e}") from e


class PostgresHistoryStore(HistoryStore):
    """
    History store over a PostgreSQL table created by HistoryTableManager.
    """

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        table_name: str = "review_history",
        lookup_chunk_size: int = 5000,
    ):
        """
        Initialize Postgres history store.

        Args:
            pool: Database connection pool
            table_name: History table name
            lookup_chunk_size: Keys per ANY(...) lookup when loading snapshots
        """
        self.pool = pool
        self.table_name = table_name
        self.lookup_chunk_size = lookup_chunk_size
        self._table = sql.Identifier(table_name)
        self._columns = sql.SQL(", ").join(sql.Identifier(c) for c in HISTORY_COLUMNS)

    def _select(self, where: str = "", order_by: str = "business_key, version") -> sql.Composed:
        query = "SELECT {columns} FROM {table}"
        if where:
            query += f" WHERE {where}"
        query += f" ORDER BY {order_by}"
        return sql.SQL(query).format(columns=self._columns, table=self._table)

    def count_rows(self) -> int:
        with storage_errors("count_rows"):
            result = self.pool.execute_query(
                sql.SQL("SELECT COUNT(*) AS total FROM {table}").format(table=self._table)
            )
        return result[0]["total"] if result else 0

    def load_snapshot(self, business_keys: Iterable[str]) -> HistorySnapshot:
        keys = sorted(set(business_keys))
        snapshot = HistorySnapshot()
        if not keys:
            return snapshot

        max_version_query = sql.SQL(
            "SELECT business_key, MAX(version) AS max_version FROM {table} "
            "WHERE business_key = ANY(%s) GROUP BY business_key"
        ).format(table=self._table)
        current_query = self._select(where="is_current AND business_key = ANY(%s)")

        with storage_errors("load_snapshot"):
            for start in range(0, len(keys), self.lookup_chunk_size):
                chunk = keys[start:start + self.lookup_chunk_size]
                for row in self.pool.execute_query(max_version_query, (chunk,)):
                    snapshot.max_versions[row["business_key"]] = row["max_version"]
                for row in self.pool.execute_query(current_query, (chunk,)):
                    entry = HistoryEntry(**row)
                    incumbent = snapshot.current.get(entry.business_key)
                    if incumbent is None or entry.version > incumbent.version:
                        snapshot.current[entry.business_key] = entry

        return snapshot

    def insert_entries(self, entries: Sequence[HistoryEntry], replace_all: bool = False) -> int:
        if not entries and not replace_all:
            return 0

        insert_sql = sql.SQL("INSERT INTO {table} ({columns}) VALUES ({placeholders})").format(
            table=self._table,
            columns=self._columns,
            placeholders=sql.SQL(", ").join(sql.Placeholder() for _ in HISTORY_COLUMNS),
        )
        data_tuples = [
            tuple(getattr(entry, column) for column in HISTORY_COLUMNS)
            for entry in entries
        ]

        with storage_errors("insert_entries"):
            with self.pool.transaction() as cur:
                if replace_all:
                    cur.execute(sql.SQL("DELETE FROM {table}").format(table=self._table))
                    logger.warning(f"Full refresh: removed {cur.rowcount} existing history rows")
                if data_tuples:
                    cur.executemany(insert_sql, data_tuples)

        return len(data_tuples)

    def expire_superseded(self, now: datetime) -> int:
        with storage_errors("expire_superseded"):
            return self.pool.execute_command(
                sql.SQL(EXPIRE_SUPERSEDED_SQL).format(table=self._table), (now,)
            )

    def find_inconsistent_keys(self) -> dict[str, int]:
        query = sql.SQL(
            "SELECT business_key, COUNT(*) AS current_rows FROM {table} "
            "WHERE is_current GROUP BY business_key HAVING COUNT(*) > 1"
        ).format(table=self._table)
        with storage_errors("find_inconsistent_keys"):
            rows = self.pool.execute_query(query)
        return {row["business_key"]: row["current_rows"] for row in rows}

    def fetch_history(self, business_key: str) -> list[HistoryEntry]:
        with storage_errors("fetch_history"):
            rows = self.pool.execute_query(
                self._select(where="business_key = %s", order_by="version"), (business_key,)
            )
        return [HistoryEntry(**row) for row in rows]

    def all_entries(self) -> list[HistoryEntry]:
        with storage_errors("all_entries"):
            rows = self.pool.execute_query(self._select())
        return [HistoryEntry(**row) for row in rows]

    def check_invariants(self) -> InvariantReport:
        totals_query = sql.SQL(
            "SELECT COUNT(*) AS total_rows, COUNT(DISTINCT business_key) AS business_keys FROM {table}"
        ).format(table=self._table)

        with storage_errors("check_invariants"):
            totals = self.pool.execute_query(totals_query)[0]
            offenders = self.pool.execute_query(sql.SQL(INVARIANTS_SQL).format(table=self._table))

        report = InvariantReport(
            total_rows=totals["total_rows"],
            business_keys=totals["business_keys"],
        )
        for row in offenders:
            key = row["business_key"]
            if row["current_rows"] > 1:
                report.multiple_current[key] = row["current_rows"]
            elif row["current_rows"] == 0:
                report.missing_current.append(key)
            if row["min_version"] != 1 or row["max_version"] != row["total_versions"]:
                report.version_gaps.append(key)
        return report
