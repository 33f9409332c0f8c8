"""
Error taxonomy for the CSV uploader.

Fatal errors (configuration, connection, missing file, schema) abort an upload.
InvalidValueError and DuplicateKeyError are recovered by the upload pipeline
and turned into skipped rows plus an entry in the result's error list.
"""
from typing import Optional, Union


class UploaderError(Exception):
    """Base class for all uploader errors."""


class ConfigurationError(UploaderError):
    """Unknown driver, unknown rule name or malformed configuration."""


class DatabaseConnectionError(UploaderError):
    """The database driver rejected the connection."""


class CSVFileNotFoundError(UploaderError, FileNotFoundError):
    """The input CSV file does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f'A CSV file not found "{path}"')


class SchemaError(UploaderError):
    """Target table is missing, or already exists when creating it."""


class InvalidValueError(UploaderError, ValueError):
    """A single field value failed a validator."""

    def __init__(self, reason: str, validator: str):
        self.reason = reason
        self.validator = validator
        super().__init__(reason)


class DuplicateKeyError(UploaderError):
    """A batch insert violated a uniqueness constraint."""

    def __init__(self, message: str, code: Optional[Union[int, str]] = None):
        self.message = message
        self.code = code
        super().__init__(message)
