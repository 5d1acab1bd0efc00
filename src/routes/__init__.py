"""Routes module initialization."""

from routes.documents import documents_router, quota_router
from routes.extraction import extraction_router
from routes.health import base_router
from routes.sessions import sessions_router

__all__ = [
    "base_router",
    "documents_router",
    "extraction_router",
    "quota_router",
    "sessions_router",
]
