"""Inspection session record and its derived aggregate."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from models.base import MongoRecord, new_id, utcnow
from models.enums import SessionStatusEnum


class SessionAggregate(BaseModel):
    """Counters and status derived from the member documents of a session."""

    status: SessionStatusEnum = SessionStatusEnum.DRAFT
    total_files: int = 0
    processed_files: int = 0
    failed_files: int = 0
    total_tokens_used: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class InspectionSession(MongoRecord):
    """A named group of documents uploaded together."""

    id: str = Field(default_factory=new_id)
    user_id: str
    session_name: Optional[str] = None

    status: SessionStatusEnum = SessionStatusEnum.DRAFT
    total_files: int = 0
    processed_files: int = 0
    failed_files: int = 0
    total_tokens_used: int = 0

    extraction_enabled: bool = False
    auto_extract_on_upload: bool = False
    extraction_priority: int = 0
    last_extraction_check: Optional[datetime] = None
    # Set when a recompute lost every compare-and-set retry
    needs_recompute: bool = False

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def accepts_extraction(self) -> bool:
        return self.extraction_enabled or self.auto_extract_on_upload

    def aggregate(self) -> SessionAggregate:
        return SessionAggregate(
            status=self.status,
            total_files=self.total_files,
            processed_files=self.processed_files,
            failed_files=self.failed_files,
            total_tokens_used=self.total_tokens_used,
            started_at=self.started_at,
            completed_at=self.completed_at,
        )
