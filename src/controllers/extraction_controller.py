"""
Extraction Controller 🎮
========================

This module implements the `ExtractionController` class, the bridge between
the background workers (Celery tasks, out-of-process extractors) and the
document state machine.

Responsibilities:
-----------------
- **Dispatch**: ask the scheduler for the next batch, move each document to
  `queued` and hand it to a sender (normally the Celery extraction task).
- **Worker contract**: `start_extraction`, `complete_extraction` and
  `fail_extraction`, each applied through the optimistic-concurrency write
  path so the session aggregate follows every transition.
- **Quota**: the token budget of the owner is consulted before a document
  starts; a denied document is put back to `pending`.
- **Reconcile**: every dispatch tick recomputes the sessions it looked at and
  any session flagged `needs_recompute`.
- **Watchdog**: documents stuck in `extracting` past the configured timeout
  are failed. The core never runs timers itself; the worker beat calls this.
- **Error Handling**: one document's failure never stops the rest of a batch.
"""
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from controllers.base_controller import BaseController
from core.exceptions import (
    AttemptsExceeded,
    ConcurrencyConflict,
    ExternalWorkerError,
    InvalidState,
    QuotaExceeded,
)
from core.logging_config import get_logger
from models.base import utcnow
from models.document import DocumentRecord
from models.session import InspectionSession
from models.user import UserIdentity
from services import state_machine
from services.extractor_client import ExtractorClient
from services.quota_service import QuotaGuard
from services.scheduler import select_batch

logger = get_logger(__name__)


class ExtractionController(BaseController):
    """
    Controller driving documents through the extraction lifecycle.
    Inherits from BaseController for the shared write paths.
    """

    def __init__(self, *args, quota: Optional[QuotaGuard] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.quota = quota or QuotaGuard(self.settings.quota)

    # ==================== Quota ====================

    def owner_identity(self, user_id: str) -> UserIdentity:
        """Plan information of a document owner, from the stored profile."""
        profile = self.repository.get_profile(user_id)
        if profile is None:
            return UserIdentity(id=user_id, plan_type=self.settings.quota.default_plan)
        return profile.to_identity()

    def check_token_budget(self, user_id: str):
        user = self.owner_identity(user_id)
        tokens_used = self.repository.sum_user_tokens(user_id)
        return self.quota.can_consume_tokens(user, tokens_used, self.settings.extraction.token_reservation)

    def has_token_budget(self, user_id: str) -> bool:
        return self.check_token_budget(user_id).allowed

    # ==================== Dispatch ====================

    def dispatch(
        self,
        send: Optional[Callable[[DocumentRecord], None]] = None,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[DocumentRecord]:
        """
        Select eligible documents and move them to `queued`.

        Args:
            send: Called with each queued document; typically submits the
                Celery task whose id is the document's `extraction_job_id`.
                If it raises, the document is cancelled back to `pending`.
            now: Current time (for cool-down evaluation).
            limit: Batch size, defaults to `extraction.dispatch_batch_size`.

        Returns:
            Documents that were queued and handed to `send`.
        """
        now = now or utcnow()
        cfg = self.settings.extraction

        documents = self.repository.find_dispatch_candidates()
        sessions = self.repository.get_sessions(d.session_id for d in documents if d.session_id)

        batch = select_batch(
            documents,
            sessions,
            limit=limit or cfg.dispatch_batch_size,
            max_concurrent_per_session=cfg.max_concurrent_per_session,
            retry_cooldown=timedelta(seconds=cfg.retry_cooldown_seconds),
            now=now,
            token_allowance=self.has_token_budget,
        )

        queued = []
        for item in batch:
            document_id = item.document.id
            job_id = str(uuid.uuid4())
            try:
                if item.retry:
                    self.apply_transition(document_id, state_machine.schedule_retry, "retry scheduled")
                document = self.apply_transition(
                    document_id,
                    lambda doc: state_machine.enqueue(doc, job_id),
                    "queued",
                )
            except (InvalidState, AttemptsExceeded, ConcurrencyConflict) as e:
                # Someone else moved the document first; the next tick re-reads.
                logger.warning(f"Skipping document during dispatch: {e}", extra={"document_id": document_id})
                continue

            if send is not None:
                try:
                    send(document)
                except Exception as e:
                    logger.error(
                        f"Could not submit extraction job: {e}",
                        extra={"document_id": document_id, "job_id": job_id},
                    )
                    self._cancel_quietly(document_id)
                    continue
            queued.append(document)

        self.repository.mark_sessions_checked((s.id for s in sessions), now)
        self.reconcile_sessions(s.id for s in sessions)

        if queued:
            logger.info(f"Dispatched {len(queued)} document(s) for extraction")
        return queued

    def reconcile_sessions(self, session_ids=()) -> List[InspectionSession]:
        """
        Recompute the given sessions plus every session flagged
        `needs_recompute`, so an aggregate left stale by a lost race catches up.
        """
        ids = set(session_ids)
        ids.update(s.id for s in self.repository.find_sessions_needing_recompute())
        return [self.settle_session(session_id) for session_id in sorted(ids)]

    def _cancel_quietly(self, document_id: str):
        try:
            self.apply_transition(document_id, state_machine.cancel, "extraction cancelled")
        except (InvalidState, ConcurrencyConflict) as e:
            logger.warning(f"Could not cancel document: {e}", extra={"document_id": document_id})

    # ==================== Worker contract ====================

    def start_extraction(self, document_id: str) -> DocumentRecord:
        """
        queued → extracting, after checking the owner's token budget.

        Raises:
            QuotaExceeded: the owner is out of tokens; the document is returned
                to `pending` so it can run once budget is available.
        """
        document = self.repository.get_document(document_id)
        decision = self.check_token_budget(document.user_id)
        if not decision.allowed:
            self._cancel_quietly(document_id)
            raise QuotaExceeded(decision)
        return self.apply_transition(document_id, state_machine.start_extraction, "extraction started")

    def complete_extraction(
        self,
        document_id: str,
        data: Optional[Dict[str, Any]],
        tokens_used: int,
    ) -> DocumentRecord:
        return self.apply_transition(
            document_id,
            lambda doc: state_machine.complete_extraction(doc, data, tokens_used),
            "extraction completed",
        )

    def fail_extraction(self, document_id: str, error_message: str) -> DocumentRecord:
        document = self.apply_transition(
            document_id,
            lambda doc: state_machine.fail_extraction(doc, error_message),
            "extraction failed",
        )
        logger.error(
            f"Extraction failed: {error_message}",
            extra={
                "document_id": document_id,
                "attempts": document.extraction_attempts,
                "max_attempts": document.max_extraction_attempts,
                "retryable": state_machine.is_retryable(document),
            },
        )
        return document

    def run_extraction(self, document_id: str, client: Optional[ExtractorClient] = None) -> DocumentRecord:
        """
        Full worker round for one queued document: start, call the external
        extractor, then complete or fail.
        """
        client = client or ExtractorClient(self.settings.extractor)
        document = self.start_extraction(document_id)
        try:
            result = client.extract(document)
        except ExternalWorkerError as e:
            return self.fail_extraction(document_id, str(e))
        return self.complete_extraction(document_id, result.data, result.tokens_used)

    # ==================== Watchdog ====================

    def fail_stale_extractions(self, now: Optional[datetime] = None) -> List[DocumentRecord]:
        """Fail every document that has been `extracting` longer than the timeout."""
        now = now or utcnow()
        timeout = self.settings.extraction.extraction_timeout_seconds
        message = f"Extraction timed out after {timeout}s"
        failed = []
        for document in self.repository.find_stale_extractions(now - timedelta(seconds=timeout)):
            attempt = document.extraction_attempts

            def fail_same_attempt(doc: DocumentRecord) -> DocumentRecord:
                # A newer attempt started since the stale read; leave it alone.
                if doc.extraction_attempts != attempt:
                    raise InvalidState("fail stale extraction", "restarted")
                return state_machine.fail_extraction(doc, message)

            try:
                failed.append(self.apply_transition(document.id, fail_same_attempt, "extraction timed out"))
            except (InvalidState, ConcurrencyConflict) as e:
                logger.warning(f"Watchdog skipped document: {e}", extra={"document_id": document.id})
        return failed
