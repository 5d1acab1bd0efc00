"""
Documents Routes 📄
===================

Endpoints:
- POST /api/v1/documents/upload              - Upload invoice files (multipart)
- GET  /api/v1/documents/                    - List the caller's documents
- GET  /api/v1/documents/{id}                - One document
- GET  /api/v1/documents/{id}/extracted-data - Extracted payload
- POST /api/v1/documents/{id}/extract        - Manual extraction request
- POST /api/v1/documents/{id}/cancel         - Cancel a queued extraction
- GET  /api/v1/quota                         - Plan usage
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from controllers import DocumentController, IncomingFile
from models.enums import ExtractionStatusEnum
from models.user import UserIdentity
from routes.dependencies import get_document_controller, sync_user_profile
from schemas.extraction import DocumentResponse, UploadResponse

documents_router = APIRouter(
    prefix="/api/v1/documents",
    tags=["documents"],
)

quota_router = APIRouter(
    prefix="/api/v1/quota",
    tags=["quota"],
)


@documents_router.post("/upload", response_model=UploadResponse, status_code=201)
def upload_documents(
    files: List[UploadFile] = File(...),
    session_id: Optional[str] = Form(None),
    user: UserIdentity = Depends(sync_user_profile),
    controller: DocumentController = Depends(get_document_controller),
):
    """
    Upload one or more invoice files, optionally into a session.

    Returns 402 when the batch would exceed the plan's document limit.
    """
    incoming = [
        IncomingFile(filename=f.filename or "", data=f.file.read(), content_type=f.content_type)
        for f in files
        if f.filename
    ]
    if not incoming:
        raise HTTPException(status_code=400, detail="At least one file is required")

    documents = controller.upload_documents(user, incoming, session_id=session_id)
    return UploadResponse(
        session_id=session_id,
        uploaded_count=len(documents),
        documents=[DocumentResponse.from_record(d) for d in documents],
    )


@documents_router.get("/", response_model=List[DocumentResponse])
def list_documents(
    session_id: Optional[str] = Query(None, description="Filter by session ID"),
    extraction_status: Optional[ExtractionStatusEnum] = Query(None),
    user: UserIdentity = Depends(sync_user_profile),
    controller: DocumentController = Depends(get_document_controller),
):
    documents = controller.list_documents(user, session_id=session_id, extraction_status=extraction_status)
    return [DocumentResponse.from_record(d) for d in documents]


@documents_router.get("/{document_id}", response_model=DocumentResponse)
def get_document(
    document_id: str,
    user: UserIdentity = Depends(sync_user_profile),
    controller: DocumentController = Depends(get_document_controller),
):
    return DocumentResponse.from_record(controller.get_document(user, document_id))


@documents_router.get("/{document_id}/extracted-data")
def get_extracted_data(
    document_id: str,
    user: UserIdentity = Depends(sync_user_profile),
    controller: DocumentController = Depends(get_document_controller),
):
    document = controller.get_document(user, document_id)
    if document.extraction_status != ExtractionStatusEnum.EXTRACTED:
        raise HTTPException(status_code=404, detail="Document has no extracted data yet")
    return {"document_id": document.id, "filename": document.filename, "extracted_data": document.extracted_data}


@documents_router.post("/{document_id}/extract", response_model=DocumentResponse)
def request_manual_extraction(
    document_id: str,
    user: UserIdentity = Depends(sync_user_profile),
    controller: DocumentController = Depends(get_document_controller),
):
    """Re-queue a pending or failed document with boosted priority (409 if in flight)."""
    return DocumentResponse.from_record(controller.request_manual_extraction(user, document_id))


@documents_router.post("/{document_id}/cancel", response_model=DocumentResponse)
def cancel_extraction(
    document_id: str,
    user: UserIdentity = Depends(sync_user_profile),
    controller: DocumentController = Depends(get_document_controller),
):
    return DocumentResponse.from_record(controller.cancel_extraction(user, document_id))


@quota_router.get("/")
def get_quota(
    user: UserIdentity = Depends(sync_user_profile),
    controller: DocumentController = Depends(get_document_controller),
):
    return controller.quota_usage(user)
