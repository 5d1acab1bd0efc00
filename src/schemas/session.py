"""Pydantic schemas for session routes."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from models.session import InspectionSession
from services.session_aggregator import progress_percentage


class CreateSessionRequest(BaseModel):
    session_name: Optional[str] = None
    auto_extract_on_upload: bool = False
    extraction_enabled: bool = False
    extraction_priority: int = 0


class UpdateSessionRequest(BaseModel):
    session_name: Optional[str] = None
    auto_extract_on_upload: Optional[bool] = None
    extraction_priority: Optional[int] = None


class SessionResponse(BaseModel):
    id: str
    session_name: Optional[str] = None
    status: str
    total_files: int
    processed_files: int
    failed_files: int
    total_tokens_used: int
    progress_percentage: float
    extraction_enabled: bool
    auto_extract_on_upload: bool
    extraction_priority: int
    last_extraction_check: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, session: InspectionSession) -> "SessionResponse":
        data = session.to_mongo()
        data["id"] = data.pop("_id")
        data["progress_percentage"] = progress_percentage(session)
        return cls.model_validate(data)
