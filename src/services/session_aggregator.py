"""
Session aggregate recomputation.

The aggregate is a pure function of the member documents (plus the session's
extraction flags): it never looks at transition history, so recomputing it
any number of times, in any order of trigger events, gives the same result.
"""
from typing import Iterable

from models.document import DocumentRecord
from models.enums import ExtractionStatusEnum, SessionStatusEnum
from models.session import InspectionSession, SessionAggregate
from services.state_machine import is_terminal


def derive_session_status(documents: list, extraction_enabled: bool) -> SessionStatusEnum:
    if not documents:
        return SessionStatusEnum.DRAFT

    if all(is_terminal(doc) for doc in documents):
        failed = sum(1 for doc in documents if doc.extraction_status == ExtractionStatusEnum.FAILED)
        if failed == 0:
            return SessionStatusEnum.COMPLETED
        if failed == len(documents):
            return SessionStatusEnum.FAILED
        return SessionStatusEnum.PARTIAL

    if extraction_enabled:
        return SessionStatusEnum.PROCESSING
    return SessionStatusEnum.DRAFT


def compute_aggregate(
    session: InspectionSession,
    documents: Iterable[DocumentRecord],
) -> SessionAggregate:
    """
    Derive counters, tokens, timestamps and status for `session`.

    Documents belonging to other sessions are ignored so callers may pass a
    wider result set.
    """
    members = [doc for doc in documents if doc.session_id == session.id]

    status = derive_session_status(members, session.accepts_extraction)

    started = [doc.extraction_started_at for doc in members if doc.extraction_started_at]
    completed_at = None
    if status in SessionStatusEnum.get_terminal_types():
        finished = [doc.extraction_completed_at for doc in members if doc.extraction_completed_at]
        completed_at = max(finished) if finished else None

    return SessionAggregate(
        status=status,
        total_files=len(members),
        processed_files=sum(
            1 for doc in members if doc.extraction_status == ExtractionStatusEnum.EXTRACTED
        ),
        failed_files=sum(
            1 for doc in members if doc.extraction_status == ExtractionStatusEnum.FAILED
        ),
        total_tokens_used=sum(doc.tokens_used for doc in members),
        started_at=min(started) if started else None,
        completed_at=completed_at,
    )


def apply_aggregate(
    session: InspectionSession,
    aggregate: SessionAggregate,
    now=None,
) -> InspectionSession:
    """Return a copy of `session` carrying `aggregate`; untouched when nothing changed."""
    if session.aggregate() == aggregate:
        return session
    update = aggregate.model_dump()
    if now is not None:
        update["updated_at"] = now
    return session.model_copy(update=update)


def progress_percentage(session: InspectionSession) -> float:
    if session.total_files <= 0:
        return 0.0
    return round(session.processed_files / session.total_files * 100, 2)

