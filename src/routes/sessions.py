"""
Inspection Session Routes 🗂️
============================

Endpoints:
- POST  /api/v1/sessions/                        - Create a session
- GET   /api/v1/sessions/                        - List the caller's sessions
- GET   /api/v1/sessions/{id}                    - Session with progress
- PATCH /api/v1/sessions/{id}                    - Rename / toggle auto-extract
- POST  /api/v1/sessions/{id}/enable-extraction  - Start extracting its documents
- POST  /api/v1/sessions/{id}/recompute          - Rebuild the aggregate
- GET   /api/v1/sessions/{id}/documents          - Member documents
- GET   /api/v1/sessions/{id}/export             - Extracted data as JSON
"""
from typing import List

from fastapi import APIRouter, Depends

from controllers import SessionController
from models.user import UserIdentity
from routes.dependencies import get_session_controller, sync_user_profile
from schemas.extraction import DocumentResponse
from schemas.session import CreateSessionRequest, SessionResponse, UpdateSessionRequest

sessions_router = APIRouter(
    prefix="/api/v1/sessions",
    tags=["sessions"],
)


@sessions_router.post("/", response_model=SessionResponse, status_code=201)
def create_session(
    request: CreateSessionRequest,
    user: UserIdentity = Depends(sync_user_profile),
    controller: SessionController = Depends(get_session_controller),
):
    session = controller.create_session(
        user,
        session_name=request.session_name,
        auto_extract_on_upload=request.auto_extract_on_upload,
        extraction_enabled=request.extraction_enabled,
        extraction_priority=request.extraction_priority,
    )
    return SessionResponse.from_record(session)


@sessions_router.get("/", response_model=List[SessionResponse])
def list_sessions(
    user: UserIdentity = Depends(sync_user_profile),
    controller: SessionController = Depends(get_session_controller),
):
    return [SessionResponse.from_record(s) for s in controller.list_sessions(user)]


@sessions_router.get("/{session_id}", response_model=SessionResponse)
def get_session(
    session_id: str,
    user: UserIdentity = Depends(sync_user_profile),
    controller: SessionController = Depends(get_session_controller),
):
    return SessionResponse.from_record(controller.get_session(user, session_id))


@sessions_router.patch("/{session_id}", response_model=SessionResponse)
def update_session(
    session_id: str,
    request: UpdateSessionRequest,
    user: UserIdentity = Depends(sync_user_profile),
    controller: SessionController = Depends(get_session_controller),
):
    session = controller.update_session(
        user,
        session_id,
        session_name=request.session_name,
        auto_extract_on_upload=request.auto_extract_on_upload,
        extraction_priority=request.extraction_priority,
    )
    return SessionResponse.from_record(session)


@sessions_router.post("/{session_id}/enable-extraction", response_model=SessionResponse)
def enable_extraction(
    session_id: str,
    user: UserIdentity = Depends(sync_user_profile),
    controller: SessionController = Depends(get_session_controller),
):
    return SessionResponse.from_record(controller.enable_extraction(user, session_id))


@sessions_router.post("/{session_id}/recompute", response_model=SessionResponse)
def recompute_session(
    session_id: str,
    user: UserIdentity = Depends(sync_user_profile),
    controller: SessionController = Depends(get_session_controller),
):
    return SessionResponse.from_record(controller.recompute(user, session_id))


@sessions_router.get("/{session_id}/documents", response_model=List[DocumentResponse])
def list_session_documents(
    session_id: str,
    user: UserIdentity = Depends(sync_user_profile),
    controller: SessionController = Depends(get_session_controller),
):
    return [DocumentResponse.from_record(d) for d in controller.list_session_documents(user, session_id)]


@sessions_router.get("/{session_id}/export")
def export_session(
    session_id: str,
    user: UserIdentity = Depends(sync_user_profile),
    controller: SessionController = Depends(get_session_controller),
):
    return controller.export_extracted_data(user, session_id)
