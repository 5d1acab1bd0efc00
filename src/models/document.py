"""Document record: the unit of extraction work."""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from models.base import MongoRecord, new_id, utcnow
from models.enums import DocumentStatusEnum, ExtractionStatusEnum


class DocumentRecord(MongoRecord):
    """An uploaded invoice file and its extraction state."""

    id: str = Field(default_factory=new_id)
    user_id: str
    session_id: Optional[str] = None
    filename: str
    file_size: int = Field(default=0, ge=0)
    upload_url: Optional[str] = None
    content_type: Optional[str] = None

    status: DocumentStatusEnum = DocumentStatusEnum.UPLOADED
    extraction_status: ExtractionStatusEnum = ExtractionStatusEnum.PENDING
    extraction_job_id: Optional[str] = None
    extraction_started_at: Optional[datetime] = None
    extraction_completed_at: Optional[datetime] = None
    extraction_error: Optional[str] = None
    extraction_attempts: int = Field(default=0, ge=0)
    max_extraction_attempts: int = Field(default=3, ge=1)

    priority: int = 0
    manual_extraction_requested: bool = False
    tokens_used: int = Field(default=0, ge=0)
    extracted_data: Optional[Dict[str, Any]] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
