"""
Extraction Scheduler 📋
=======================

Selection policy for the next batch of documents to extract.

Candidates:
- `pending` documents;
- `failed` documents with attempts remaining whose last failure is older
  than the retry cool-down (so a persistently failing extractor is not
  hot-looped).

A candidate is eligible when its session accepts extraction
(`extraction_enabled` or `auto_extract_on_upload`) or when an operator asked
for it manually. Eligible documents are ordered by effective priority
(document priority + session priority) descending, then `created_at`
ascending, and admitted while the per-session in-flight count
(`queued` + `extracting`) stays under the concurrency cap and the owner still
has token budget.

The scheduler only *selects*; the controller applies the transitions.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from models.document import DocumentRecord
from models.enums import ExtractionStatusEnum
from models.session import InspectionSession
from services.state_machine import is_retryable


@dataclass(frozen=True)
class ScheduledDocument:
    document: DocumentRecord
    # True when the document comes back from `failed` and needs `schedule_retry` first
    retry: bool = False


def _concurrency_key(document: DocumentRecord) -> str:
    if document.session_id:
        return f"session:{document.session_id}"
    return f"user:{document.user_id}"


def _cooled_down(document: DocumentRecord, cooldown: timedelta, now: datetime) -> bool:
    failed_at = document.extraction_completed_at or document.updated_at
    return failed_at + cooldown <= now


def _is_eligible(document: DocumentRecord, session: Optional[InspectionSession]) -> bool:
    if document.manual_extraction_requested:
        return True
    return session is not None and session.accepts_extraction


def effective_priority(document: DocumentRecord, session: Optional[InspectionSession]) -> int:
    return document.priority + (session.extraction_priority if session else 0)


def select_batch(
    documents: Iterable[DocumentRecord],
    sessions: Iterable[InspectionSession],
    *,
    limit: int,
    max_concurrent_per_session: int,
    retry_cooldown: timedelta,
    now: datetime,
    token_allowance: Optional[Callable[[str], bool]] = None,
) -> List[ScheduledDocument]:
    """
    Pick at most `limit` documents to enqueue.

    Args:
        documents: Documents to consider, including in-flight ones (they count
            against the concurrency cap).
        sessions: Sessions the documents belong to.
        limit: Batch size.
        max_concurrent_per_session: Cap on queued + extracting per session.
        retry_cooldown: Minimum delay between a failure and its automatic retry.
        now: Current time.
        token_allowance: `user_id -> bool`; False skips that user's documents.
    """
    sessions_by_id = {session.id: session for session in sessions}
    documents = list(documents)

    in_flight: Dict[str, int] = {}
    for doc in documents:
        if doc.extraction_status in ExtractionStatusEnum.get_in_flight_types():
            key = _concurrency_key(doc)
            in_flight[key] = in_flight.get(key, 0) + 1

    candidates = []
    for doc in documents:
        session = sessions_by_id.get(doc.session_id) if doc.session_id else None
        if not _is_eligible(doc, session):
            continue
        if doc.extraction_status == ExtractionStatusEnum.PENDING:
            if doc.extraction_attempts >= doc.max_extraction_attempts:
                continue
            candidates.append((doc, session, False))
        elif is_retryable(doc) and _cooled_down(doc, retry_cooldown, now):
            candidates.append((doc, session, True))

    candidates.sort(key=lambda item: (-effective_priority(item[0], item[1]), item[0].created_at))

    allowance_cache: Dict[str, bool] = {}
    selected: List[ScheduledDocument] = []
    for doc, session, retry in candidates:
        if len(selected) >= limit:
            break
        key = _concurrency_key(doc)
        if in_flight.get(key, 0) >= max_concurrent_per_session:
            continue
        if token_allowance is not None:
            if doc.user_id not in allowance_cache:
                allowance_cache[doc.user_id] = token_allowance(doc.user_id)
            if not allowance_cache[doc.user_id]:
                continue
        in_flight[key] = in_flight.get(key, 0) + 1
        selected.append(ScheduledDocument(document=doc, retry=retry))

    return selected
