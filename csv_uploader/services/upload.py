"""
Upload service: stream a CSV file, transform and validate each row, and load
valid rows into the import table in batches.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from csv_uploader.core.config import Settings
from csv_uploader.core.exceptions import (
    CSVFileNotFoundError,
    DatabaseConnectionError,
    DuplicateKeyError,
    InvalidValueError,
    SchemaError,
)
from csv_uploader.db.backend import DatabaseBackend
from csv_uploader.schemas.upload import ColumnMapping, DatabaseOptions, UploadResult
from csv_uploader.services.csv_reader import CSVReader
from csv_uploader.services.transformers import TransformerRegistry
from csv_uploader.services.validators import ValidatorRegistry

logger = logging.getLogger(__name__)

DbOptions = Union[DatabaseOptions, Mapping[str, Any]]


class UploadService:
    """
    Service for importing a CSV file into a database table.

    Features:
    - Streaming read, one row in memory at a time (plus the pending batch)
    - Per-column transformers and validators from the column mapping
    - Batched inserts, each batch in its own transaction
    - Duplicate-key batches are skipped and reported, other DB errors abort
    - Dry run: transform and validate only, nothing is written
    """

    def __init__(
        self,
        table_name: str,
        column_mapping: ColumnMapping,
        database: DatabaseBackend,
        reader: Optional[CSVReader] = None,
        validators: Optional[ValidatorRegistry] = None,
        transformers: Optional[TransformerRegistry] = None,
        batch_size: int = 1,
    ):
        """
        Initialize upload service.

        Args:
            table_name: Import table
            column_mapping: Column name -> ColumnSpec
            database: Backend owning the connection
            reader: Row reader (comma separated, detected encoding by default)
            validators: Validator registry
            transformers: Transformer registry
            batch_size: Rows per INSERT (1 = commit every row)

        Raises:
            ConfigurationError: If the mapping names an unknown transformer or validator
            ValueError: If batch_size is below 1
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.table_name = table_name
        self.column_mapping = column_mapping
        self.database = database
        self.reader = reader or CSVReader()
        self.validators = validators or ValidatorRegistry()
        self.transformers = transformers or TransformerRegistry()
        self.batch_size = batch_size

        # Unknown rule names fail here, not on the first row that uses them
        for spec in column_mapping.values():
            self.transformers.check(spec.transformer)
            self.validators.check(spec.validator)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        database: DatabaseBackend,
        table_name: Optional[str] = None,
        batch_size: Optional[int] = None,
    ) -> "UploadService":
        """Build a service from application settings, with optional overrides."""
        return cls(
            table_name=table_name or settings.IMPORT_TABLE_NAME,
            column_mapping=settings.column_mapping(),
            database=database,
            reader=CSVReader(separator=settings.CSV_SEPARATOR, encoding=settings.CSV_ENCODING),
            batch_size=batch_size or settings.BATCH_SIZE,
        )

    def upload(self, csv_path: Union[str, Path], db_options: DbOptions, dry_run: bool = False) -> UploadResult:
        """
        Import a CSV file.

        Args:
            csv_path: Input file with a header line
            db_options: Connection options
            dry_run: Transform and validate only, no inserts

        Returns:
            UploadResult with inserted/processed/skipped counts and error lines

        Raises:
            CSVFileNotFoundError: If the file does not exist
            DatabaseConnectionError: If the database cannot be opened
            SchemaError: If the import table does not exist
            sqlalchemy.exc.DBAPIError: Insert failures other than duplicate keys
        """
        logger.debug(
            f"Before upload: csv_filename={csv_path} "
            f"db_options={self._masked(db_options)} dry_run={dry_run}"
        )

        if not Path(csv_path).exists():
            raise CSVFileNotFoundError(str(csv_path))

        self._connect(db_options)

        if not self.database.table_exists(self.table_name):
            logger.error(f'Table "{self.table_name}" not exists')
            raise SchemaError(f'Table "{self.table_name}" not exists')

        errors: List[str] = []
        batch: List[Dict[str, Any]] = []
        line_number = 0
        inserted = 0
        skipped = 0

        for line_number, row in self.reader.rows(csv_path, with_headers=True):
            row_to_insert: Dict[str, Any] = {}
            is_valid = True

            for column_name, raw_value in row.items():
                spec = self.column_mapping.get(column_name)

                # 1. Transform values
                transformers = spec.transformer if spec else []
                row_to_insert[column_name] = self.transformers.transform(raw_value, transformers)

                # 2. Validate raw values
                validators = spec.validator if spec else []
                try:
                    self.validators.validate(raw_value, validators)
                except InvalidValueError as e:
                    errors.append(f"{e.reason} {column_name}='{raw_value}' at line {line_number + 1}")
                    logger.warning(
                        f'Invalid value at the "{column_name}" column value=[{raw_value}] '
                        f'a row will be skipped (validator={e.validator}, line={line_number})'
                    )
                    is_valid = False
                    skipped += 1
                    break

            if not is_valid or dry_run:
                continue

            batch.append(row_to_insert)
            if len(batch) == self.batch_size:
                ok, message = self._insert_batch(batch)
                if ok:
                    inserted += len(batch)
                else:
                    errors.append(f"{message} at line {line_number + 1}")
                    skipped += 1
                batch = []

        if not dry_run and batch:
            ok, message = self._insert_batch(batch)
            if ok:
                inserted += len(batch)
            else:
                errors.append(f"{message} at line {line_number + 1}")
                skipped += 1

        logger.debug(
            f"After upload: inserted_rows={inserted} processed_rows={line_number} skipped_rows={skipped}"
        )

        return UploadResult(inserted=inserted, processed=line_number, skipped=skipped, errors=errors)

    def create_table(self, db_options: DbOptions) -> None:
        """
        Create the import table from the column mapping.

        Raises:
            DatabaseConnectionError: If the database cannot be opened
            SchemaError: If the table already exists
        """
        self._connect(db_options)

        if self.database.table_exists(self.table_name):
            logger.error(f'Could not create table: the table "{self.table_name}" already exists')
            raise SchemaError(f'The table "{self.table_name}" already exists')

        if not self.database.create_table(self.table_name, self.column_mapping):
            raise SchemaError(f'Could not create table "{self.table_name}": {self.database.last_error}')
        logger.debug(f'The table "{self.table_name}" has been created')

    def _insert_batch(self, batch: List[Dict[str, Any]]) -> Tuple[bool, str]:
        """
        Insert one batch.

        Returns:
            (True, "") on success, (False, driver message) on a duplicate key
        """
        try:
            self.database.insert_batch(self.table_name, batch)
        except DuplicateKeyError as e:
            logger.error(f"Could not insert a batch: {e.message}")
            return False, e.message
        return True, ""

    def _connect(self, db_options: DbOptions) -> None:
        if not self.database.open(db_options):
            logger.error(f"Could not connect to database: {self.database.last_error}")
            raise DatabaseConnectionError(
                "Could not connect to the database, please check connection options. "
                f"{self.database.last_error}"
            )

    @staticmethod
    def _masked(db_options: DbOptions) -> Dict[str, Any]:
        if isinstance(db_options, DatabaseOptions):
            return db_options.masked()
        return {key: ("***" if key == "password" and value else value) for key, value in dict(db_options).items()}
