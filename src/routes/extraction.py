"""
Extraction worker contract routes.

These endpoints are called by extraction workers and by the scheduler beat,
not by end users. When `WORKER__API_TOKEN` is set, callers must send it as
`Authorization: Bearer <token>`.

Endpoints:
- POST /api/v1/extraction/dispatch                  - Run one dispatch tick
- POST /api/v1/extraction/documents/{id}/start      - queued → extracting
- POST /api/v1/extraction/documents/{id}/complete   - extracting → extracted
- POST /api/v1/extraction/documents/{id}/fail       - extracting → failed
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from controllers import ExtractionController
from core.config import Settings, get_settings
from routes.dependencies import get_extraction_controller
from schemas.extraction import (
    CompleteExtractionRequest,
    DispatchResponse,
    DocumentResponse,
    FailExtractionRequest,
)
from worker.tasks import submit_extraction


def verify_worker_token(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
):
    expected = settings.worker.api_token
    if expected and authorization != f"Bearer {expected}":
        raise HTTPException(status_code=401, detail="Invalid worker token")


extraction_router = APIRouter(
    prefix="/api/v1/extraction",
    tags=["extraction"],
    dependencies=[Depends(verify_worker_token)],
)


@extraction_router.post("/dispatch", response_model=DispatchResponse)
def dispatch(
    limit: Optional[int] = Query(None, ge=1),
    controller: ExtractionController = Depends(get_extraction_controller),
):
    """Queue the next batch of eligible documents and submit their jobs."""
    documents = controller.dispatch(send=submit_extraction, limit=limit)
    return DispatchResponse(
        dispatched_count=len(documents),
        documents=[DocumentResponse.from_record(d) for d in documents],
    )


@extraction_router.post("/documents/{document_id}/start", response_model=DocumentResponse)
def start_extraction(
    document_id: str,
    controller: ExtractionController = Depends(get_extraction_controller),
):
    return DocumentResponse.from_record(controller.start_extraction(document_id))


@extraction_router.post("/documents/{document_id}/complete", response_model=DocumentResponse)
def complete_extraction(
    document_id: str,
    request: CompleteExtractionRequest,
    controller: ExtractionController = Depends(get_extraction_controller),
):
    document = controller.complete_extraction(document_id, request.extracted_data, request.tokens_used)
    return DocumentResponse.from_record(document)


@extraction_router.post("/documents/{document_id}/fail", response_model=DocumentResponse)
def fail_extraction(
    document_id: str,
    request: FailExtractionRequest,
    controller: ExtractionController = Depends(get_extraction_controller),
):
    return DocumentResponse.from_record(controller.fail_extraction(document_id, request.error_message))
