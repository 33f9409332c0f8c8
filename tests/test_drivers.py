"""
Unit tests for database driver variants.

Tests URL building, host:port parsing, required options, DDL types and
duplicate-key recognition for MySQL, PostgreSQL and SQLite.
"""
import sqlite3

import pytest
from sqlalchemy import Integer, String, Text

from csv_uploader.core.exceptions import ConfigurationError
from csv_uploader.db.drivers import (
    DRIVERS,
    MYSQL_DUPLICATE_ENTRY,
    PGSQL_UNIQUE_VIOLATION,
    get_driver,
    parse_hostname,
)
from csv_uploader.schemas.upload import DatabaseOptions


class TestDriverLookup:
    """Test selecting a driver by name."""

    def test_known_drivers(self):
        """The closed set is mysql, pgsql and sqlite."""
        assert set(DRIVERS) == {"mysql", "pgsql", "sqlite"}

    def test_lookup_is_case_insensitive(self):
        """Driver names are normalized before lookup."""
        assert get_driver("  MySQL ").name == "mysql"

    def test_unknown_driver(self):
        """Unknown driver should raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match=r"Unknown database driver \[oracle\]"):
            get_driver("oracle")

    def test_empty_driver(self):
        """Missing driver is an unknown driver."""
        with pytest.raises(ConfigurationError):
            get_driver(None)


class TestHostnameParsing:
    """Test splitting host strings."""

    def test_bare_host_uses_default_port(self):
        assert parse_hostname("db.local", 3306) == ("db.local", 3306)

    def test_host_with_port(self):
        assert parse_hostname("db.local:3307", 3306) == ("db.local", 3307)

    def test_splits_on_first_colon(self):
        """Only the first colon separates host from port."""
        with pytest.raises(ConfigurationError, match="Invalid port"):
            parse_hostname("db.local:33:07", 3306)

    def test_non_numeric_port(self):
        with pytest.raises(ConfigurationError):
            parse_hostname("db.local:abc", 3306)


class TestBuildUrl:
    """Test connection URL construction."""

    def test_mysql_url(self):
        """MySQL uses pymysql and the default port 3306."""
        options = DatabaseOptions(driver="mysql", host="localhost", user="root", password="secret", dbname="app")
        url = get_driver("mysql").build_url(options)
        assert url.drivername == "mysql+pymysql"
        assert url.host == "localhost"
        assert url.port == 3306
        assert url.username == "root"
        assert url.password == "secret"
        assert url.database == "app"

    def test_pgsql_url_with_port(self):
        """PostgreSQL uses psycopg2; an explicit port wins."""
        options = DatabaseOptions(driver="pgsql", host="pg:6543", user="u", password="p", dbname="d")
        url = get_driver("pgsql").build_url(options)
        assert url.drivername == "postgresql+psycopg2"
        assert url.host == "pg"
        assert url.port == 6543

    def test_pgsql_default_port(self):
        options = DatabaseOptions(driver="pgsql", host="pg", user="u", password="p", dbname="d")
        assert get_driver("pgsql").build_url(options).port == 5432

    def test_sqlite_url(self, tmp_path):
        """SQLite only needs a path."""
        path = str(tmp_path / "app.db")
        url = get_driver("sqlite").build_url(DatabaseOptions(driver="sqlite", path=path))
        assert url.drivername == "sqlite"
        assert url.database == path

    @pytest.mark.parametrize("missing", ["host", "user", "password", "dbname"])
    def test_mysql_missing_option(self, missing):
        """Every network option is required."""
        values = {"driver": "mysql", "host": "h", "user": "u", "password": "p", "dbname": "d"}
        values[missing] = "   "
        with pytest.raises(ConfigurationError, match=f"\\[mysql\\] option '{missing}' must be non empty string"):
            get_driver("mysql").build_url(DatabaseOptions(**values))

    def test_sqlite_missing_path(self):
        with pytest.raises(ConfigurationError, match="option 'path'"):
            get_driver("sqlite").build_url(DatabaseOptions(driver="sqlite"))


class TestColumnTypes:
    """Test logical type mapping per driver."""

    def test_string_types(self):
        """VARCHAR(255) on network drivers, TEXT on SQLite."""
        mysql_type = get_driver("mysql").column_type("string")
        assert isinstance(mysql_type, String) and mysql_type.length == 255
        assert get_driver("pgsql").column_type("string").length == 255
        assert isinstance(get_driver("sqlite").column_type("string"), Text)

    @pytest.mark.parametrize("driver", ["mysql", "pgsql", "sqlite"])
    def test_integer_type(self, driver):
        """INTEGER on every driver, including the "int" alias."""
        assert isinstance(get_driver(driver).column_type("integer"), Integer)
        assert isinstance(get_driver(driver).column_type("int"), Integer)


class FakePgError(Exception):
    """Stand-in for a psycopg2 error carrying a SQLSTATE."""

    def __init__(self, message, pgcode):
        super().__init__(message)
        self.pgcode = pgcode
        self.diag = None


class TestDuplicateKeyDetection:
    """Test recognising uniqueness violations in DBAPI errors."""

    def test_mysql_duplicate_entry(self):
        error = Exception(MYSQL_DUPLICATE_ENTRY, "Duplicate entry 'john@x.com' for key 'email'")
        assert get_driver("mysql").duplicate_key(error) == (
            1062, "Duplicate entry 'john@x.com' for key 'email'"
        )

    def test_mysql_other_error(self):
        """Other MySQL error codes are not duplicates."""
        assert get_driver("mysql").duplicate_key(Exception(1048, "Column 'name' cannot be null")) is None

    def test_pgsql_unique_violation(self):
        """Message is the first line of the PostgreSQL error."""
        error = FakePgError(
            'duplicate key value violates unique constraint "users_email_key"\nDETAIL:  Key exists.',
            PGSQL_UNIQUE_VIOLATION,
        )
        code, message = get_driver("pgsql").duplicate_key(error)
        assert code == "23505"
        assert message == 'duplicate key value violates unique constraint "users_email_key"'

    def test_pgsql_not_null_violation(self):
        assert get_driver("pgsql").duplicate_key(FakePgError("null value", "23502")) is None

    def test_sqlite_unique_constraint(self):
        error = sqlite3.IntegrityError("UNIQUE constraint failed: users.email")
        code, message = get_driver("sqlite").duplicate_key(error)
        assert message == "UNIQUE constraint failed: users.email"

    def test_sqlite_not_null_constraint(self):
        error = sqlite3.IntegrityError("NOT NULL constraint failed: users.name")
        assert get_driver("sqlite").duplicate_key(error) is None
