"""
Unit tests for psycopg error translation in the Postgres store.
"""
import psycopg
import pytest
from psycopg import errors

from review_history.core.errors import HistoryPipelineError, StorageRejectedError, StorageUnavailableError
from review_history.warehouse.postgres_store import storage_errors


@pytest.mark.unit
class TestStorageErrors:
    """Tests for storage_errors"""

    @pytest.mark.parametrize("raised", [
        psycopg.DataError("PostgreSQL text fields cannot contain NUL (0x00) bytes"),
        errors.NumericValueOutOfRange("value out of range for type bigint"),
        errors.UndefinedTable('relation "review_history" does not exist'),
    ])
    def test_refused_statements(self, raised):
        with pytest.raises(StorageRejectedError) as exc_info:
            with storage_errors("insert_entries"):
                raise raised

        assert isinstance(exc_info.value, HistoryPipelineError)
        assert exc_info.value.__cause__ is raised
        assert "insert_entries" in str(exc_info.value)

    def test_connectivity_failures(self):
        with pytest.raises(StorageUnavailableError):
            with storage_errors("count_rows"):
                raise psycopg.OperationalError("connection refused")

    def test_other_errors_pass_through(self):
        with pytest.raises(errors.UniqueViolation):
            with storage_errors("insert_entries"):
                raise errors.UniqueViolation("duplicate key")
