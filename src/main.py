"""
InspectFlow - Invoice Extraction Pipeline 🧾
============================================

This is the main entry point for the InspectFlow FastAPI application.
It initializes the application, sets up lifecycle management (startup/shutdown),
maps core exceptions to HTTP responses and registers the API routers.

Key Responsibilities:
---------------------
1. **App Initialization**: Creates the `FastAPI` app instance with metadata.
2. **Lifecycle Management**: Configures logging and MongoDB indexes on startup.
3. **Error Mapping**: Turns `InvalidState`, `QuotaExceeded`, ... into JSON errors.
4. **Route Registration**: Imports and includes routers from `src/routes`.

Usage:
------
Run the server directly:
    $ python src/main.py

Or using uvicorn:
    $ uvicorn main:app --app-dir src --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from core.config import get_settings
from core.exceptions import (
    AttemptsExceeded,
    ConcurrencyConflict,
    DocumentNotFound,
    InspectFlowError,
    InvalidState,
    QuotaExceeded,
    SessionNotFound,
    UnsupportedFileType,
)
from core.logging_config import get_logger, setup_logging
from routes import (
    base_router,
    documents_router,
    extraction_router,
    quota_router,
    sessions_router,
)
from services.db_service import get_repository

logger = get_logger(__name__)

ERROR_STATUS_CODES = {
    InvalidState: 409,
    AttemptsExceeded: 409,
    ConcurrencyConflict: 409,
    QuotaExceeded: 402,
    DocumentNotFound: 404,
    SessionNotFound: 404,
    UnsupportedFileType: 415,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application Lifespan Context Manager.

    Startup Actions:
    - Configure logging.
    - Create MongoDB indexes (skipped with a warning if MongoDB is down).

    Shutdown Actions:
    - Nothing to release; the MongoDB client is process-wide.
    """
    # --- STARTUP ---
    settings = get_settings()
    setup_logging(settings)
    logger.info(f"🚀 Starting {settings.app_name} v{settings.app_version}")
    try:
        get_repository().ensure_indexes()
    except Exception as e:
        logger.warning(f"Could not ensure MongoDB indexes: {e}")

    yield

    # --- SHUTDOWN ---
    logger.info("👋 Shutting down...")


# --- Application Setup ---
settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
     InspectFlow API 🧾

    Upload invoices into inspection sessions and track their extraction
    lifecycle, token usage and plan quotas.
    """,
    lifespan=lifespan,
)


@app.exception_handler(InspectFlowError)
async def inspectflow_error_handler(request: Request, exc: InspectFlowError):
    status_code = ERROR_STATUS_CODES.get(type(exc), 400)
    body = {"error": type(exc).__name__, "detail": str(exc)}
    if isinstance(exc, QuotaExceeded):
        body["quota"] = exc.decision.model_dump()
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"error": "ValueError", "detail": str(exc)})


# --- Router Registration ---
# base_router: Health checks and basic info
app.include_router(base_router)

# sessions_router: Inspection sessions and their progress (/api/v1/sessions)
app.include_router(sessions_router)

# documents_router: Uploads and operator actions (/api/v1/documents)
app.include_router(documents_router)

# quota_router: Plan usage (/api/v1/quota)
app.include_router(quota_router)

# extraction_router: Worker contract and dispatch (/api/v1/extraction)
app.include_router(extraction_router)

# Uploaded files of the local object storage, fetched by the extractor
app.mount("/files", StaticFiles(directory=settings.storage.root_dir, check_dir=False), name="files")


if __name__ == "__main__":
    """
    Standard Entry Point.

    Allows running the application directly as a script.
    Defaults to host 0.0.0.0 (accessible externally) on port 8007.
    """
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8007)
