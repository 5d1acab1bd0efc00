"""Models package initialization."""

from models.document import DocumentRecord
from models.enums import (
    DocumentStatusEnum,
    ExtractionStatusEnum,
    FileTypeEnum,
    PlanTypeEnum,
    SessionStatusEnum,
)
from models.session import InspectionSession, SessionAggregate
from models.user import UserIdentity, UserProfile

__all__ = [
    "DocumentRecord",
    "InspectionSession",
    "SessionAggregate",
    "UserIdentity",
    "UserProfile",
    "FileTypeEnum",
    "PlanTypeEnum",
    "DocumentStatusEnum",
    "ExtractionStatusEnum",
    "SessionStatusEnum",
]
