"""
Database backend lifecycle for request handlers.
"""
from typing import Generator

from csv_uploader.db.backend import DatabaseBackend


def get_database() -> Generator[DatabaseBackend, None, None]:
    """Dependency that provides a database backend, closed after use."""
    database = DatabaseBackend()
    try:
        yield database
    finally:
        database.close()
