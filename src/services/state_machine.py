"""
Document Extraction State Machine 🔁
====================================

Pure transition functions over `DocumentRecord`.

    pending ──enqueue──▶ queued ──start──▶ extracting ──complete──▶ extracted
       ▲                   │                    │
       │                cancel                 fail
       │                   ▼                    ▼
       └────────────── pending            failed ──schedule_retry / manual──▶ pending

Every function returns a *new* record and never mutates its input. A call
from a state that does not permit the transition raises `InvalidState`; this
precondition check is what makes racing callers (manual requests vs. the
scheduler) safe, since the loser re-reads and gets a clean error.

The attempt counter only moves in `start_extraction`.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from core.exceptions import AttemptsExceeded, InvalidState
from models.base import utcnow
from models.document import DocumentRecord
from models.enums import DocumentStatusEnum, ExtractionStatusEnum

DEFAULT_MANUAL_PRIORITY = 100

_DOCUMENT_STATUS = {
    ExtractionStatusEnum.PENDING: DocumentStatusEnum.UPLOADED,
    ExtractionStatusEnum.QUEUED: DocumentStatusEnum.PROCESSING,
    ExtractionStatusEnum.EXTRACTING: DocumentStatusEnum.PROCESSING,
    ExtractionStatusEnum.EXTRACTED: DocumentStatusEnum.COMPLETED,
    ExtractionStatusEnum.FAILED: DocumentStatusEnum.FAILED,
}


def derive_document_status(extraction_status) -> DocumentStatusEnum:
    """Map the fine-grained extraction status onto the coarse upload status."""
    return _DOCUMENT_STATUS[ExtractionStatusEnum(extraction_status)]


def has_attempts_remaining(document: DocumentRecord) -> bool:
    return document.extraction_attempts < document.max_extraction_attempts


def is_retryable(document: DocumentRecord) -> bool:
    """Failed, but the automatic retry path is still open."""
    return (
        document.extraction_status == ExtractionStatusEnum.FAILED
        and has_attempts_remaining(document)
    )


def is_exhausted(document: DocumentRecord) -> bool:
    return (
        document.extraction_status == ExtractionStatusEnum.FAILED
        and not has_attempts_remaining(document)
    )


def is_terminal(document: DocumentRecord) -> bool:
    """Extracted, or failed with no automatic retry left."""
    return document.extraction_status == ExtractionStatusEnum.EXTRACTED or is_exhausted(document)


def _require(document: DocumentRecord, operation: str, allowed: Iterable[ExtractionStatusEnum]):
    allowed = tuple(allowed)
    if document.extraction_status not in allowed:
        raise InvalidState(
            operation,
            ExtractionStatusEnum(document.extraction_status).value,
            [state.value for state in allowed],
        )


def _transition(
    document: DocumentRecord,
    target: ExtractionStatusEnum,
    now: datetime,
    **changes: Any,
) -> DocumentRecord:
    changes.update(
        extraction_status=target,
        status=derive_document_status(target),
        updated_at=now,
    )
    return document.model_copy(update=changes)


def enqueue(
    document: DocumentRecord,
    job_id: str,
    now: Optional[datetime] = None,
) -> DocumentRecord:
    """pending → queued, recording the job that will run the extraction."""
    _require(document, "enqueue", [ExtractionStatusEnum.PENDING])
    if not has_attempts_remaining(document):
        raise AttemptsExceeded(
            document.id, document.extraction_attempts, document.max_extraction_attempts
        )
    return _transition(
        document,
        ExtractionStatusEnum.QUEUED,
        now or utcnow(),
        extraction_job_id=job_id,
    )


def start_extraction(document: DocumentRecord, now: Optional[datetime] = None) -> DocumentRecord:
    """queued → extracting; counts one attempt."""
    _require(document, "start extraction", [ExtractionStatusEnum.QUEUED])
    now = now or utcnow()
    return _transition(
        document,
        ExtractionStatusEnum.EXTRACTING,
        now,
        extraction_started_at=now,
        extraction_completed_at=None,
        extraction_error=None,
        extraction_attempts=document.extraction_attempts + 1,
    )


def complete_extraction(
    document: DocumentRecord,
    data: Optional[Dict[str, Any]],
    tokens_used: int,
    now: Optional[datetime] = None,
) -> DocumentRecord:
    """extracting → extracted, storing the payload and charging tokens."""
    _require(document, "complete extraction", [ExtractionStatusEnum.EXTRACTING])
    if tokens_used < 0:
        raise ValueError("tokens_used must be >= 0")
    now = now or utcnow()
    return _transition(
        document,
        ExtractionStatusEnum.EXTRACTED,
        now,
        extraction_completed_at=now,
        extracted_data=dict(data) if data is not None else {},
        tokens_used=document.tokens_used + tokens_used,
        extraction_error=None,
        manual_extraction_requested=False,
    )


def fail_extraction(
    document: DocumentRecord,
    error_message: str,
    now: Optional[datetime] = None,
) -> DocumentRecord:
    """extracting → failed. Retryable while attempts remain, terminal otherwise."""
    _require(document, "fail extraction", [ExtractionStatusEnum.EXTRACTING])
    now = now or utcnow()
    return _transition(
        document,
        ExtractionStatusEnum.FAILED,
        now,
        extraction_completed_at=now,
        extraction_error=error_message or "Extraction failed",
        manual_extraction_requested=False,
    )


def schedule_retry(document: DocumentRecord, now: Optional[datetime] = None) -> DocumentRecord:
    """Automatic re-queue path: failed → pending while attempts remain."""
    _require(document, "schedule retry", [ExtractionStatusEnum.FAILED])
    if not has_attempts_remaining(document):
        raise AttemptsExceeded(
            document.id, document.extraction_attempts, document.max_extraction_attempts
        )
    return _transition(
        document,
        ExtractionStatusEnum.PENDING,
        now or utcnow(),
        extraction_job_id=None,
    )


def request_manual_extraction(
    document: DocumentRecord,
    manual_priority: int = DEFAULT_MANUAL_PRIORITY,
    now: Optional[datetime] = None,
) -> DocumentRecord:
    """
    Operator override: pending|failed → pending with a priority boost.

    An exhausted document gets exactly one more attempt by lifting its cap
    to `extraction_attempts + 1`, so attempts never exceed the cap.
    """
    _require(
        document,
        "request manual extraction",
        [ExtractionStatusEnum.PENDING, ExtractionStatusEnum.FAILED],
    )
    max_attempts = max(document.max_extraction_attempts, document.extraction_attempts + 1)
    return _transition(
        document,
        ExtractionStatusEnum.PENDING,
        now or utcnow(),
        priority=manual_priority,
        manual_extraction_requested=True,
        max_extraction_attempts=max_attempts,
        extraction_error=None,
        extraction_job_id=None,
    )


def cancel(document: DocumentRecord, now: Optional[datetime] = None) -> DocumentRecord:
    """queued → pending. Documents already extracting cannot be cancelled."""
    _require(document, "cancel", [ExtractionStatusEnum.QUEUED])
    return _transition(
        document,
        ExtractionStatusEnum.PENDING,
        now or utcnow(),
        extraction_job_id=None,
    )
