"""
Unit tests for database settings and the pool's guard rails.
"""
import pytest

from review_history.warehouse import DatabaseConnectionPool, DatabaseSettings

DB_VARS = ("DB_HOST", "DB_PORT", "DB_NAME", "DB_USER", "DB_PASSWORD")


@pytest.fixture
def clean_env(monkeypatch):
    for name in DB_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.mark.unit
class TestDatabaseSettings:
    """Tests for DatabaseSettings"""

    def test_defaults_with_password(self, clean_env):
        settings = DatabaseSettings.from_env(password="secret")

        assert settings.host == "localhost"
        assert settings.port == 5432
        assert settings.dbname == "reviews"
        assert settings.user == "history"

    def test_password_required(self, clean_env):
        with pytest.raises(ValueError, match="password"):
            DatabaseSettings.from_env()

    def test_environment_values(self, clean_env):
        clean_env.setenv("DB_HOST", "db.internal")
        clean_env.setenv("DB_PORT", "6543")
        clean_env.setenv("DB_PASSWORD", "from-env")

        settings = DatabaseSettings.from_env()

        assert settings.host == "db.internal"
        assert settings.port == 6543
        assert settings.password.get_secret_value() == "from-env"

    def test_explicit_values_override_environment(self, clean_env):
        clean_env.setenv("DB_HOST", "db.internal")
        clean_env.setenv("DB_PASSWORD", "from-env")

        settings = DatabaseSettings.from_env(host="override", port=None)

        assert settings.host == "override"
        assert settings.port == 5432

    def test_password_hidden_from_repr(self, clean_env):
        settings = DatabaseSettings.from_env(password="secret")

        assert "secret" not in repr(settings)
        assert "password=secret" in settings.conninfo()


@pytest.mark.unit
def test_pool_must_be_opened_before_use():
    pool = DatabaseConnectionPool(DatabaseSettings(password="secret"))

    with pytest.raises(RuntimeError, match="not open"):
        pool.execute_query("SELECT 1")
