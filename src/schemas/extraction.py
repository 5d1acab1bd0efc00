"""Pydantic schemas for document and extraction routes."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models.document import DocumentRecord


class DocumentResponse(BaseModel):
    """Public view of a document record."""
    id: str
    session_id: Optional[str] = None
    filename: str
    file_size: int
    upload_url: Optional[str] = None
    status: str
    extraction_status: str
    extraction_job_id: Optional[str] = None
    extraction_started_at: Optional[datetime] = None
    extraction_completed_at: Optional[datetime] = None
    extraction_error: Optional[str] = None
    extraction_attempts: int
    max_extraction_attempts: int
    priority: int
    manual_extraction_requested: bool
    tokens_used: int
    extracted_data: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, document: DocumentRecord) -> "DocumentResponse":
        data = document.to_mongo()
        data["id"] = data.pop("_id")
        return cls.model_validate(data)


class UploadResponse(BaseModel):
    session_id: Optional[str] = None
    uploaded_count: int
    documents: List[DocumentResponse]


class CompleteExtractionRequest(BaseModel):
    extracted_data: Dict[str, Any] = {}
    tokens_used: int = Field(default=0, ge=0)


class FailExtractionRequest(BaseModel):
    error_message: str = Field(..., min_length=1)


class DispatchResponse(BaseModel):
    dispatched_count: int
    documents: List[DocumentResponse]
