"""
Test configuration and fixtures.

Every test gets its own SQLite database file under pytest's tmp_path.
"""
import logging
from pathlib import Path
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text

from csv_uploader.core.config import Settings, get_settings, parse_column_mapping
from csv_uploader.db.backend import DatabaseBackend
from csv_uploader.schemas.upload import ColumnMapping, DatabaseOptions
from csv_uploader.services.upload import UploadService


@pytest.fixture(autouse=True)
def reset_package_logger() -> Generator[None, None, None]:
    """Drop handlers added by configure_logging during a test."""
    yield
    logger = logging.getLogger("csv_uploader")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def sqlite_options(tmp_path: Path) -> DatabaseOptions:
    """Options for a fresh SQLite database file."""
    return DatabaseOptions(driver="sqlite", path=str(tmp_path / "test.db"))


@pytest.fixture
def database() -> Generator[DatabaseBackend, None, None]:
    """Database backend, closed after the test."""
    backend = DatabaseBackend()
    yield backend
    backend.close()


@pytest.fixture
def users_mapping() -> ColumnMapping:
    """Required name plus a unique, validated email."""
    return parse_column_mapping({
        "name": {
            "type": "string",
            "nullable": False,
            "transformer": ["lower", "ucfirst"],
        },
        "email": {
            "type": "string",
            "nullable": False,
            "unique": True,
            "validator": ["email"],
            "transformer": ["lower"],
        },
    })


@pytest.fixture
def write_csv(tmp_path: Path) -> Callable[..., Path]:
    """Write CSV text to a file and return its path."""
    def _write(content: str, name: str = "users.csv", encoding: str = "utf-8") -> Path:
        path = tmp_path / name
        path.write_bytes(content.encode(encoding))
        return path
    return _write


@pytest.fixture
def make_service(database: DatabaseBackend, users_mapping: ColumnMapping) -> Callable[..., UploadService]:
    """Build an UploadService for the users table."""
    def _make(batch_size: int = 1, mapping: ColumnMapping = None, table_name: str = "users") -> UploadService:
        return UploadService(
            table_name=table_name,
            column_mapping=mapping or users_mapping,
            database=database,
            batch_size=batch_size,
        )
    return _make


@pytest.fixture
def users_table(make_service, sqlite_options: DatabaseOptions) -> UploadService:
    """Service whose users table has already been created."""
    service = make_service()
    service.create_table(sqlite_options)
    return service


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a temporary SQLite database, ignoring .env files."""
    return Settings(
        _env_file=None,
        DB_DRIVER="sqlite",
        DB_PATH=str(tmp_path / "app.db"),
        LOG_DIR=tmp_path,
    )


@pytest.fixture
def client(settings: Settings) -> Generator[TestClient, None, None]:
    """Create test client with settings override."""
    from csv_uploader.main import app

    app.dependency_overrides[get_settings] = lambda: settings

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def fetch_rows(sqlite_options: DatabaseOptions) -> Callable[[str], list]:
    """Read rows back from the test database through a separate connection."""
    def _fetch(sql: str) -> list:
        engine = create_engine(f"sqlite:///{sqlite_options.path}")
        try:
            with engine.connect() as conn:
                return [tuple(row) for row in conn.execute(text(sql))]
        finally:
            engine.dispose()
    return _fetch
