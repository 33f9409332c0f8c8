"""
Supported database drivers.

Each driver is a small variant record: how to build the SQLAlchemy URL from
connection options, which column types to emit in DDL, and how to recognise a
uniqueness violation in the DBAPI error it raises.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy import Integer, String, Text
from sqlalchemy.engine import URL
from sqlalchemy.types import TypeEngine

from csv_uploader.core.exceptions import ConfigurationError
from csv_uploader.schemas.upload import DatabaseOptions

DRIVER_MYSQL = "mysql"
DRIVER_PGSQL = "pgsql"
DRIVER_SQLITE = "sqlite"

DEFAULT_STRING_LENGTH = 255

MYSQL_DUPLICATE_ENTRY = 1062
PGSQL_UNIQUE_VIOLATION = "23505"
SQLITE_CONSTRAINT_UNIQUE = 2067
SQLITE_CONSTRAINT_PRIMARYKEY = 1555

# (code, message) of a duplicate-key error, or None for any other error
DuplicateCheck = Callable[[BaseException], Optional[Tuple[Optional[object], str]]]


def require_option(driver: str, name: str, options: DatabaseOptions) -> str:
    """
    Return a stripped, non-empty option value.

    Raises:
        ConfigurationError: If the option is missing or blank
    """
    value = (getattr(options, name, None) or "").strip()
    if not value:
        raise ConfigurationError(f"[{driver}] option '{name}' must be non empty string")
    return value


def parse_hostname(hostname: str, default_port: int) -> Tuple[str, int]:
    """
    Split "host:port" on the first colon.

    Examples:
        "db.local"      → ("db.local", default_port)
        "db.local:3307" → ("db.local", 3307)
    """
    if ":" not in hostname:
        return hostname, default_port

    host, port = hostname.split(":", 1)
    try:
        return host, int(port)
    except ValueError:
        raise ConfigurationError(f"Invalid port '{port}' in host '{hostname}'")


def _mysql_duplicate(error: BaseException):
    args = getattr(error, "args", ())
    if len(args) >= 2 and args[0] == MYSQL_DUPLICATE_ENTRY:
        return MYSQL_DUPLICATE_ENTRY, str(args[1])
    return None


def _pgsql_duplicate(error: BaseException):
    if getattr(error, "pgcode", None) != PGSQL_UNIQUE_VIOLATION:
        return None
    diag = getattr(error, "diag", None)
    message = getattr(diag, "message_primary", None) or str(error).strip().splitlines()[0]
    return PGSQL_UNIQUE_VIOLATION, message


def _sqlite_duplicate(error: BaseException):
    code = getattr(error, "sqlite_errorcode", None)
    message = str(error)
    if code in (SQLITE_CONSTRAINT_UNIQUE, SQLITE_CONSTRAINT_PRIMARYKEY) or "UNIQUE constraint failed" in message:
        return code, message
    return None


@dataclass(frozen=True)
class Driver:
    """A database driver variant."""
    name: str
    drivername: str  # SQLAlchemy "dialect+dbapi"
    default_port: Optional[int]
    string_type: Callable[[], TypeEngine]
    integer_type: Callable[[], TypeEngine]
    duplicate_check: DuplicateCheck
    embedded: bool = False

    def build_url(self, options: DatabaseOptions) -> URL:
        """
        Build the connection URL from options.

        Network drivers need host[:port], user, password and dbname;
        embedded drivers need path.

        Raises:
            ConfigurationError: If a required option is missing
        """
        if self.embedded:
            return URL.create(self.drivername, database=require_option(self.name, "path", options))

        host, port = parse_hostname(require_option(self.name, "host", options), self.default_port)
        return URL.create(
            self.drivername,
            username=require_option(self.name, "user", options),
            password=require_option(self.name, "password", options),
            host=host,
            port=port,
            database=require_option(self.name, "dbname", options),
        )

    def column_type(self, logical_type: str) -> TypeEngine:
        """Map a logical column type (string|integer) to a driver column type."""
        if logical_type in ("int", "integer"):
            return self.integer_type()
        return self.string_type()

    def duplicate_key(self, error: BaseException):
        """Return (code, message) when the DBAPI error is a uniqueness violation."""
        return self.duplicate_check(error)


DRIVERS: Dict[str, Driver] = {
    DRIVER_MYSQL: Driver(
        name=DRIVER_MYSQL,
        drivername="mysql+pymysql",
        default_port=3306,
        string_type=lambda: String(DEFAULT_STRING_LENGTH),
        integer_type=Integer,
        duplicate_check=_mysql_duplicate,
    ),
    DRIVER_PGSQL: Driver(
        name=DRIVER_PGSQL,
        drivername="postgresql+psycopg2",
        default_port=5432,
        string_type=lambda: String(DEFAULT_STRING_LENGTH),
        integer_type=Integer,
        duplicate_check=_pgsql_duplicate,
    ),
    DRIVER_SQLITE: Driver(
        name=DRIVER_SQLITE,
        drivername="sqlite",
        default_port=None,
        string_type=Text,
        integer_type=Integer,
        duplicate_check=_sqlite_duplicate,
        embedded=True,
    ),
}


def get_driver(name: Optional[str]) -> Driver:
    """
    Look up a driver by name (case-insensitive).

    Raises:
        ConfigurationError: For anything outside mysql, pgsql and sqlite
    """
    key = (name or "").strip().lower()
    if key not in DRIVERS:
        raise ConfigurationError(f"Unknown database driver [{key}]")
    return DRIVERS[key]
