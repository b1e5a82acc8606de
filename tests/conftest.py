"""
Pytest configuration and fixtures for review-history tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from pyspark.sql import SparkSession
from testcontainers.postgres import PostgresContainer

from review_history.core.keys import KeyDeriver
from review_history.core.normalization import Normalizer
from review_history.warehouse import (
    DatabaseConnectionPool,
    DatabaseSettings,
    HistoryTableManager,
    InMemoryHistoryStore,
    PostgresHistoryStore,
)


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# SPARK FIXTURES
# =======================

@pytest.fixture(scope="session")
def spark_session() -> Generator[SparkSession, None, None]:
    """
    Create a Spark session for testing with local mode

    Yields:
        SparkSession configured for local testing
    """
    spark = (
        SparkSession.builder
        .appName("review-history-test")
        .master("local[2]")
        .config("spark.sql.shuffle.partitions", "2")
        .config("spark.driver.memory", "1g")
        .config("spark.ui.enabled", "false")
        .config("spark.sql.warehouse.dir", "/tmp/spark-warehouse")
        .getOrCreate()
    )
    spark.sparkContext.setLogLevel("WARN")

    yield spark

    spark.stop()


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_history",
        password="test_password",
        dbname="test_reviews",
    ) as postgres:
        yield postgres


@pytest.fixture(scope="function")
def db_pool(postgres_container, test_env_vars) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Open a connection pool against the test container, with database name
    and credentials from config/test.env

    Yields:
        Open DatabaseConnectionPool
    """
    pool = DatabaseConnectionPool(DatabaseSettings.from_env(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
    ))
    pool.open()

    yield pool

    pool.close()


@pytest.fixture(scope="function")
def history_table(db_pool) -> Generator[HistoryTableManager, None, None]:
    """
    Create a fresh history table for one test and drop it afterwards

    Yields:
        HistoryTableManager for the test table
    """
    manager = HistoryTableManager(db_pool, "review_history_test")
    manager.drop_table()
    manager.create_table()

    yield manager

    manager.drop_table()


@pytest.fixture(scope="function")
def postgres_store(db_pool, history_table) -> PostgresHistoryStore:
    return PostgresHistoryStore(db_pool, history_table.table_name)


@pytest.fixture(scope="function")
def memory_store() -> InMemoryHistoryStore:
    return InMemoryHistoryStore()


# =======================
# RECORD FIXTURES
# =======================

@pytest.fixture
def make_review():
    """
    Factory for raw review records in the Amazon dump layout

    Returns:
        Callable building a raw record; keyword arguments override fields
    """
    def _make(asin: str = "B000FA64PK", reviewer: str = "A1REVIEWER", **overrides):
        record = {
            "asin": asin,
            "overall": 4.0,
            "verified": True,
            "reviewTime": "11 2, 2013",
            "unixReviewTime": 1383350400,
            "reviewText": "Works as advertised.",
            "summary": "Good value",
            "reviewerID": reviewer,
            "reviewerName": "Jane D.",
        }
        record.update(overrides)
        return record

    return _make


@pytest.fixture
def make_keyed(make_review):
    """
    Factory for keyed canonical records

    Returns:
        Callable returning (business_key, CanonicalRecord)
    """
    normalizer = Normalizer()
    deriver = KeyDeriver()

    def _make(**overrides):
        record = normalizer.normalize(make_review(**overrides))
        return deriver.derive(record), record

    return _make


@pytest.fixture
def clock():
    """
    Deterministic clock advancing one minute per call

    Returns:
        Callable returning timezone-aware UTC datetimes
    """
    state = {"now": datetime(2024, 1, 1, tzinfo=timezone.utc)}

    def _tick() -> datetime:
        state["now"] += timedelta(minutes=1)
        return state["now"]

    return _tick


# =======================
# FILE FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_data_dir() -> str:
    """
    Get path to test data fixtures directory

    Returns:
        Path to tests/fixtures directory
    """
    return os.path.join(os.path.dirname(__file__), "fixtures")


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_env_vars():
    """
    Set test environment variables

    This fixture loads config/test.env and sets environment variables
    """
    from dotenv import load_dotenv

    env_path = os.path.join(
        os.path.dirname(os.path.dirname(__file__)),
        "config",
        "test.env"
    )

    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)
