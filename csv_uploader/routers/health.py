"""
Health check router with database connectivity verification.
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from csv_uploader.core.config import Settings, get_settings
from csv_uploader.core.exceptions import ConfigurationError
from csv_uploader.db.backend import DatabaseBackend
from csv_uploader.db.session import get_database

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic health check - always returns OK."""
    return {"status": "ok"}


@router.get("/api/health")
def api_health_check(
    settings: Settings = Depends(get_settings),
    database: DatabaseBackend = Depends(get_database),
):
    """
    Health check verifying the configured database can be opened and
    whether the import table exists.

    Returns 503 if the database is unreachable or misconfigured.
    """
    health_status = {
        "status": "ok",
        "services": {}
    }

    try:
        connected = database.open(settings.database_options())
    except ConfigurationError as e:
        connected = False
        database.last_error = str(e)

    if not connected:
        health_status["status"] = "unhealthy"
        health_status["services"]["database"] = {"status": "error", "message": database.last_error}
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=health_status
        )

    health_status["services"]["database"] = {
        "status": "ok",
        "driver": database.driver.name,
        "table": settings.IMPORT_TABLE_NAME,
        "table_exists": database.table_exists(settings.IMPORT_TABLE_NAME),
    }
    return health_status
