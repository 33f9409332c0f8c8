"""
Application configuration using Pydantic Settings.
"""
import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from csv_uploader.core.exceptions import ConfigurationError
from csv_uploader.schemas.upload import ColumnMapping, ColumnSpec, DatabaseOptions


# Users import shipped with the tool; overridden by COLUMN_MAPPING_FILE
DEFAULT_COLUMN_MAPPING: Dict[str, Dict[str, Any]] = {
    "name": {
        "type": "string",
        "nullable": False,
        "validator": {"string": {"min_length": 1, "max_length": 255}},
        "transformer": ["lower", "ucfirst"],
    },
    "surname": {
        "type": "string",
        "nullable": False,
        "validator": {"string": {"min_length": 1, "max_length": 255}},
        "transformer": ["lower", "ucfirst"],
    },
    "email": {
        "type": "string",
        "unique": True,
        "nullable": False,
        "validator": ["email"],
        "transformer": ["lower"],
    },
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables (prefix CSV_UPLOADER_)."""

    model_config = SettingsConfigDict(
        env_prefix="CSV_UPLOADER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "CSV Uploader"
    DEBUG: bool = False

    # Import
    IMPORT_TABLE_NAME: str = "users"
    CSV_SEPARATOR: str = ","
    CSV_ENCODING: Optional[str] = None  # None = detect with chardet
    BATCH_SIZE: int = Field(default=1, ge=1)
    COLUMN_MAPPING_FILE: Optional[Path] = None

    # Database
    DB_DRIVER: str = "sqlite"
    DB_HOST: Optional[str] = None
    DB_USER: Optional[str] = None
    DB_PASSWORD: Optional[str] = None
    DB_NAME: Optional[str] = None
    DB_PATH: Optional[str] = "./uploader.db"

    # Logging
    LOG_DIR: Path = Path("./")
    LOG_FILENAME: str = "uploader.log"
    LOG_LEVEL: str = "INFO"

    def database_options(self, **overrides: Any) -> DatabaseOptions:
        """
        Build database options from settings.

        Args:
            **overrides: Values that win over settings (None values are ignored)

        Returns:
            DatabaseOptions for DatabaseBackend.open()
        """
        values = {
            "driver": self.DB_DRIVER,
            "host": self.DB_HOST,
            "user": self.DB_USER,
            "password": self.DB_PASSWORD,
            "dbname": self.DB_NAME,
            "path": self.DB_PATH,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return DatabaseOptions(**values)

    def column_mapping(self) -> ColumnMapping:
        """Column mapping from COLUMN_MAPPING_FILE, or the built-in users mapping."""
        if self.COLUMN_MAPPING_FILE is not None:
            return load_column_mapping(self.COLUMN_MAPPING_FILE)
        return parse_column_mapping(DEFAULT_COLUMN_MAPPING)


def parse_column_mapping(data: Dict[str, Any]) -> ColumnMapping:
    """
    Parse a raw mapping of column name -> column declaration.

    Raises:
        ConfigurationError: If the mapping is not a dict or a column is invalid
    """
    if not isinstance(data, dict) or not data:
        raise ConfigurationError("Column mapping must be a non-empty object")

    mapping: ColumnMapping = {}
    for column, spec in data.items():
        try:
            mapping[column] = ColumnSpec.model_validate(spec or {})
        except (ValidationError, ValueError) as e:
            raise ConfigurationError(f"Invalid column mapping for '{column}': {e}") from e
    return mapping


def load_column_mapping(path: Path) -> ColumnMapping:
    """
    Load a column mapping from a JSON file.

    Args:
        path: Path to a JSON object of column name -> declaration

    Returns:
        Ordered ColumnMapping (file order is kept)

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Column mapping file not found: {path}")

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Column mapping file {path} is not valid JSON: {e}") from e

    return parse_column_mapping(data)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
