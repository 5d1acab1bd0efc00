"""Lifecycle status enumerations for documents and sessions."""
from enum import Enum


class ExtractionStatusEnum(str, Enum):
    """Document extraction lifecycle."""
    PENDING = "pending"
    QUEUED = "queued"
    EXTRACTING = "extracting"
    EXTRACTED = "extracted"
    FAILED = "failed"

    @classmethod
    def get_in_flight_types(cls) -> list:
        """States in which a worker owns the document."""
        return [cls.QUEUED, cls.EXTRACTING]


class DocumentStatusEnum(str, Enum):
    """Coarse upload status shown next to each file."""
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SessionStatusEnum(str, Enum):
    """Inspection session status, always derived from member documents."""
    DRAFT = "draft"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL = "partial"

    @classmethod
    def get_terminal_types(cls) -> list:
        return [cls.COMPLETED, cls.FAILED, cls.PARTIAL]
