"""
PostgreSQL connection pool for the history table (psycopg3 + psycopg_pool)

Every store operation borrows a connection from DatabaseConnectionPool.
Connection failures surface as StorageUnavailableError so the pipeline can
treat them as fatal for the run.
"""
import os
import time
from contextlib import contextmanager

from psycopg import OperationalError
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool
from pydantic import BaseModel, Field, SecretStr

from review_history.core.errors import StorageUnavailableError
from review_history.observability.logger import get_logger

logger = get_logger(__name__)


class DatabaseSettings(BaseModel):
    """
    Connection parameters for the history database.

    Attributes:
        host: Database host
        port: Database port
        dbname: Database name
        user: Database user
        password: Database password (never logged)
        connect_timeout: Per-connection timeout in seconds
    """

    host: str = "localhost"
    port: int = Field(5432, gt=0)
    dbname: str = "reviews"
    user: str = "history"
    password: SecretStr
    connect_timeout: int = Field(30, gt=0)

    @classmethod
    def from_env(cls, **overrides) -> "DatabaseSettings":
        """
        Build settings from DB_HOST, DB_PORT, DB_NAME, DB_USER and DB_PASSWORD.

        Args:
            **overrides: Explicit values; None means "use the environment"

        Raises:
            ValueError: If no password is configured
        """
        values = {
            "host": os.getenv("DB_HOST", "localhost"),
            "port": os.getenv("DB_PORT", "5432"),
            "dbname": os.getenv("DB_NAME", "reviews"),
            "user": os.getenv("DB_USER", "history"),
            "password": os.getenv("DB_PASSWORD"),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})

        if not values["password"]:
            raise ValueError(
                "Database password must be provided. "
                "Set DB_PASSWORD environment variable or pass --db-password."
            )
        return cls(**values)

    def conninfo(self) -> str:
        return make_conninfo(
            host=self.host,
            port=self.port,
            dbname=self.dbname,
            user=self.user,
            password=self.password.get_secret_value(),
            connect_timeout=self.connect_timeout,
        )


class DatabaseConnectionPool:
    """
    Small connection pool for a single-writer batch job.

    Rows are returned as dictionaries (dict_row).
    """

    def __init__(self, settings: DatabaseSettings, min_size: int = 1, max_size: int = 4):
        """
        Initialize database connection pool

        Args:
            settings: Connection parameters
            min_size: Minimum pool size
            max_size: Maximum pool size
        """
        self.settings = settings
        self.min_size = min_size
        self.max_size = max_size
        self._pool: ConnectionPool | None = None

    def open(self, max_retries: int = 3, retry_delay: float = 2.0) -> None:
        """
        Open the pool, retrying while the database is unreachable.

        Args:
            max_retries: Maximum number of connection attempts
            retry_delay: Delay between attempts in seconds

        Raises:
            StorageUnavailableError: If no connection could be made
        """
        if self._pool is not None:
            return

        timeout = float(self.settings.connect_timeout)
        for attempt in range(1, max_retries + 1):
            pool = ConnectionPool(
                conninfo=self.settings.conninfo(),
                min_size=self.min_size,
                max_size=self.max_size,
                timeout=timeout,
                kwargs={"row_factory": dict_row},
                open=False,
            )
            try:
                pool.open(wait=True, timeout=timeout)
            except OperationalError as e:
                pool.close()
                if attempt == max_retries:
                    raise StorageUnavailableError(
                        f"Cannot reach {self.settings.host}:{self.settings.port}/{self.settings.dbname} "
                        f"after {max_retries} attempts: {e}"
                    ) from e
                logger.warning(f"Database connection attempt {attempt} failed: {e}; retrying")
                time.sleep(retry_delay)
            else:
                self._pool = pool
                logger.debug(f"Connection pool open: {self.settings.host}:{self.settings.port}")
                return

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    @contextmanager
    def get_connection(self):
        """
        Borrow a connection. A transaction left open by a failing block is
        rolled back when the connection returns to the pool.

        Raises:
            RuntimeError: If the pool is not open
        """
        if self._pool is None:
            raise RuntimeError("Connection pool is not open. Call open() first.")

        with self._pool.connection() as conn:
            yield conn

    @contextmanager
    def transaction(self):
        """
        Yield a cursor inside one transaction: committed when the block
        completes, rolled back when it raises.
        """
        with self.get_connection() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    yield cur

    def execute_query(self, query, params: tuple | None = None) -> list[dict]:
        """
        Run a SELECT and return all rows

        Args:
            query: SQL string or psycopg.sql.Composed
            params: Query parameters (optional)

        Returns:
            List of dictionaries (one per row)
        """
        with self.transaction() as cur:
            cur.execute(query, params)
            return cur.fetchall()

    def execute_command(self, command, params: tuple | None = None) -> int:
        """
        Run an INSERT/UPDATE/DELETE/DDL statement in its own transaction

        Returns:
            Number of rows affected
        """
        with self.transaction() as cur:
            cur.execute(command, params)
            return cur.rowcount

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
