from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging

from csv_uploader.core.config import get_settings
from csv_uploader.routers.health import router as health_router
from csv_uploader.routers.uploads import router as uploads_router

logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(
    title=settings.APP_NAME,
    description="Validate, transform and bulk-load CSV files into MySQL, PostgreSQL or SQLite tables.",
    version="0.1.0",
)


# Global exception handler for unhandled errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected server errors with structured response."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later.",
            "request_id": request.headers.get("X-Request-ID"),
        }
    )


app.include_router(health_router)
app.include_router(uploads_router, prefix="/api")
