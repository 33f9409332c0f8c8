"""
Database backend for the upload pipeline.

Wraps one SQLAlchemy connection with an explicit open/close lifecycle and the
four operations the pipeline needs: table existence probe, table creation from
a column mapping, and transactional batched inserts.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError
from sqlalchemy import Column, MetaData, Table, column, create_engine, insert, table, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.schema import CreateTable

from csv_uploader.core.exceptions import ConfigurationError, DatabaseConnectionError, DuplicateKeyError
from csv_uploader.db.drivers import Driver, get_driver
from csv_uploader.schemas.upload import ColumnMapping, DatabaseOptions

logger = logging.getLogger(__name__)


def build_table(name: str, mapping: ColumnMapping, driver: Driver) -> Table:
    """
    Build the SQLAlchemy table for a column mapping.

    Column order follows the mapping's iteration order.

    Args:
        name: Table name
        mapping: Column name -> ColumnSpec
        driver: Driver whose column types are used

    Returns:
        Table bound to a private MetaData
    """
    columns = [
        Column(
            column_name,
            driver.column_type(spec.type),
            nullable=spec.nullable,
            unique=spec.unique,
        )
        for column_name, spec in mapping.items()
    ]
    return Table(name, MetaData(), *columns)


class DatabaseBackend:
    """
    One database connection for one upload (or table creation) at a time.

    The connection is opened lazily by open() and reused until close().
    Use as a context manager to close it automatically.
    """

    def __init__(self):
        self._engine: Optional[Engine] = None
        self._connection: Optional[Connection] = None
        self._driver: Optional[Driver] = None
        self.last_error: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    @property
    def driver(self) -> Optional[Driver]:
        return self._driver

    def open(self, options: Union[DatabaseOptions, Mapping[str, Any]]) -> bool:
        """
        Connect to the database described by options.

        Calling open() on an already open backend is a no-op.

        Args:
            options: DatabaseOptions or a plain dict of the same keys

        Returns:
            True on success; False with last_error set when an option is
            missing or invalid, or the driver rejects the connection

        Raises:
            ConfigurationError: If the driver is unknown (no connection attempt is made)
        """
        if self._connection is not None:
            return True

        if not isinstance(options, DatabaseOptions):
            try:
                options = DatabaseOptions(**dict(options))
            except ValidationError as e:
                self.last_error = f"Invalid database options: {e}"
                return False

        driver = get_driver(options.driver)

        try:
            url = driver.build_url(options)
        except ConfigurationError as e:
            self.last_error = str(e)
            return False

        engine = create_engine(url, connect_args=dict(options.options))
        try:
            connection = engine.connect()
        except SQLAlchemyError as e:
            engine.dispose()
            orig = getattr(e, "orig", None)
            self.last_error = str(orig) if orig is not None else str(e)
            return False

        self._engine = engine
        self._connection = connection
        self._driver = driver
        self.last_error = None
        logger.debug(f"Connected to {driver.name} database {url.render_as_string(hide_password=True)}")
        return True

    def close(self) -> None:
        """Close the connection; the backend can be opened again afterwards."""
        if self._connection is not None:
            self._connection.close()
        if self._engine is not None:
            self._engine.dispose()
        self._connection = None
        self._engine = None
        self._driver = None

    def __enter__(self) -> "DatabaseBackend":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def table_exists(self, name: str) -> bool:
        """
        Probe a table with a bounded select.

        Any query error means the table is treated as missing.
        """
        if self._connection is None:
            return False

        quoted = self._engine.dialect.identifier_preparer.quote(name)
        try:
            with self._connection.begin():
                self._connection.execute(text(f"SELECT 1 FROM {quoted} LIMIT 1"))
        except SQLAlchemyError as e:
            logger.debug(f"Table probe for {name} failed: {e}")
            return False
        return True

    def create_table(self, name: str, mapping: ColumnMapping) -> bool:
        """
        Issue CREATE TABLE IF NOT EXISTS for a column mapping.

        Args:
            name: Table name
            mapping: Column mapping (types, NOT NULL, UNIQUE)

        Returns:
            False with last_error set when there is no open connection
        """
        if self._connection is None:
            self.last_error = "No Database connection"
            return False

        ddl = CreateTable(build_table(name, mapping, self._driver), if_not_exists=True)
        with self._connection.begin():
            self._connection.execute(ddl)
        return True

    def insert_batch(self, table_name: str, rows: List[Dict[str, Any]]) -> None:
        """
        Insert rows with one multi-row parameterized INSERT in a transaction.

        The column list comes from the first row; every row in the batch
        must carry exactly the same fields.

        Args:
            table_name: Target table
            rows: Processed rows (column name -> value)

        Raises:
            DuplicateKeyError: On a uniqueness violation (the batch is rolled back)
            ValueError: If rows do not share the first row's field set
            DatabaseConnectionError: If the backend is not open
            sqlalchemy.exc.DBAPIError: Any other insert failure (rolled back)
        """
        if not rows:
            return
        if self._connection is None:
            raise DatabaseConnectionError("No Database connection")

        fields = list(rows[0].keys())
        expected = set(fields)
        for position, row in enumerate(rows, start=1):
            if set(row.keys()) != expected:
                raise ValueError(
                    f"Row {position} of the batch has fields {sorted(row.keys())}, "
                    f"expected {sorted(expected)}"
                )

        target = table(table_name, *[column(field) for field in fields])
        statement = insert(target).values([{field: row[field] for field in fields} for row in rows])

        try:
            with self._connection.begin():
                self._connection.execute(statement)
        except DBAPIError as e:
            duplicate = self._driver.duplicate_key(e.orig)
            if duplicate is not None:
                code, message = duplicate
                raise DuplicateKeyError(message, code) from e
            raise
