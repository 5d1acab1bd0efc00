"""Base API routes."""
from fastapi import APIRouter, Depends
from core.config import get_settings, Settings
from services.db_service import ping

base_router = APIRouter(
    prefix="/api/v1",
    tags=["api_v1"],
)


@base_router.get("/")
async def welcome(settings: Settings = Depends(get_settings)):
    """
    API welcome endpoint.

    Returns application name, version, and status.
    """
    return {
        "app_name": settings.app_name,
        "app_version": settings.app_version,
        "status": "healthy"
    }


@base_router.get("/health")
def health_check():
    """
    Health check endpoint.

    Reports whether MongoDB answers.
    """
    mongo_ok = ping()
    return {"status": "ok" if mongo_ok else "degraded", "mongodb": mongo_ok}
