"""
DDL management for the review history table.
"""

from psycopg import sql

from review_history.observability.logger import get_logger

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

# No unique index on (business_key) WHERE is_current: between the insert and
# expire phases a key legitimately holds two current rows.
CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS {table} (
        surrogate_id     UUID PRIMARY KEY,
        business_key     TEXT NOT NULL,
        version          INTEGER NOT NULL CHECK (version >= 1),
        is_current       BOOLEAN NOT NULL,
        effective_from   TIMESTAMPTZ NOT NULL,
        effective_to     TIMESTAMPTZ,
        source_ref       TEXT,
        entity_ref       TEXT NOT NULL,
        measured_value   DOUBLE PRECISION NOT NULL,
        flag             BOOLEAN,
        event_date       DATE NOT NULL,
        event_year       TEXT NOT NULL,
        free_text_1      TEXT,
        free_text_2      TEXT,
        actor_id         TEXT,
        actor_label      TEXT,
        epoch_timestamp  BIGINT,
        loaded_at        TIMESTAMPTZ NOT NULL,
        UNIQUE (business_key, version),
        CHECK (is_current = (effective_to IS NULL))
    )
"""

CREATE_CURRENT_INDEX_SQL = """
    CREATE INDEX IF NOT EXISTS {index} ON {table} (business_key) WHERE is_current
"""


class HistoryTableManager:
    """
    Creates and drops the history table.

    Handles:
    - Creating the table, its constraints and the current-row index
    - Dropping the table (tests and full teardown)
    """

    def __init__(self, pool: DatabaseConnectionPool, table_name: str = "review_history"):
        """
        Initialize table manager.

        Args:
            pool: Database connection pool
            table_name: History table name
        """
        self.pool = pool
        self.table_name = table_name

    def create_table(self) -> None:
        """Create the history table and indexes if they do not exist."""
        table = sql.Identifier(self.table_name)
        index = sql.Identifier(f"{self.table_name}_current_idx")

        with self.pool.transaction() as cur:
            cur.execute(sql.SQL(CREATE_TABLE_SQL).format(table=table))
            cur.execute(sql.SQL(CREATE_CURRENT_INDEX_SQL).format(index=index, table=table))

        logger.info(f"History table ready: {self.table_name}")

    def drop_table(self) -> None:
        self.pool.execute_command(
            sql.SQL("DROP TABLE IF EXISTS {table}").format(table=sql.Identifier(self.table_name))
        )
        logger.info(f"Dropped history table: {self.table_name}")

    def table_exists(self) -> bool:
        result = self.pool.execute_query(
            "SELECT to_regclass(%s) IS NOT NULL AS present", (self.table_name,)
        )
        return bool(result and result[0]["present"])
