"""
Upload router for CSV imports over HTTP.
"""
import logging
import os
import shutil
import tempfile

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from csv_uploader.core.config import Settings, get_settings
from csv_uploader.core.exceptions import (
    ConfigurationError,
    CSVFileNotFoundError,
    DatabaseConnectionError,
    SchemaError,
    UploaderError,
)
from csv_uploader.db.backend import DatabaseBackend
from csv_uploader.db.session import get_database
from csv_uploader.schemas.upload import TableCreatedResponse, UploadResult
from csv_uploader.services.upload import UploadService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])


def _http_error(error: UploaderError) -> HTTPException:
    """Map an uploader error to an HTTP error response."""
    if isinstance(error, DatabaseConnectionError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(error, SchemaError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(error, CSVFileNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, ConfigurationError):
        code = status.HTTP_400_BAD_REQUEST
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(error))


@router.post("/uploads", response_model=UploadResult)
def upload_csv(
    file: UploadFile = File(...),
    dry_run: bool = Form(False),
    settings: Settings = Depends(get_settings),
    database: DatabaseBackend = Depends(get_database),
):
    """
    Import a CSV file into the configured table.

    The file must have a header line. Rows failing validation and batches
    hitting a duplicate key are skipped and reported in ``errors``.

    Returns:
        UploadResult with inserted, processed and skipped counts
    """
    if not file.filename or not file.filename.endswith('.csv'):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File must be a CSV"
        )

    # The reader streams from disk, so spool the upload to a temporary file
    fd, tmp_path = tempfile.mkstemp(suffix=".csv")
    try:
        with os.fdopen(fd, "wb") as tmp:
            shutil.copyfileobj(file.file, tmp)

        service = UploadService.from_settings(settings, database)
        return service.upload(tmp_path, settings.database_options(), dry_run=dry_run)
    except UploaderError as e:
        raise _http_error(e)
    finally:
        os.unlink(tmp_path)


@router.post("/tables", response_model=TableCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_table(
    settings: Settings = Depends(get_settings),
    database: DatabaseBackend = Depends(get_database),
):
    """Create the import table from the configured column mapping."""
    service = UploadService.from_settings(settings, database)
    try:
        service.create_table(settings.database_options())
    except UploaderError as e:
        raise _http_error(e)
    return TableCreatedResponse(table=service.table_name)
