"""
Base controller with shared functionality.

All controllers inherit from this class to access the repository, the event
bus, settings and the two write paths every operation goes through:

- `apply_transition`: read a document, run a pure state-machine transition,
  compare-and-set write, publish `document.changed`, recompute the session.
- `recompute_session`: rebuild a session aggregate from its documents and
  write it back with compare-and-set.
- `settle_session`: recompute after a committed change; if the session keeps
  conflicting it is flagged for the dispatch tick to reconcile instead.

Both retry on `ConcurrencyConflict` by re-reading; a transition that is no
longer valid after the re-read raises `InvalidState` to the caller.
"""
from typing import Callable, Optional

from core.config import Settings, get_settings
from core.exceptions import ConcurrencyConflict, DocumentNotFound, SessionNotFound
from core.logging_config import get_logger
from models.base import utcnow
from models.document import DocumentRecord
from models.session import InspectionSession
from models.user import UserIdentity
from services.db_service import MongoRepository, get_repository
from services.event_service import EventBus, document_changed, get_event_bus, session_changed
from services.session_aggregator import apply_aggregate, compute_aggregate

logger = get_logger(__name__)


class BaseController:
    """Base class for all controllers."""

    def __init__(
        self,
        repository: Optional[MongoRepository] = None,
        events: Optional[EventBus] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings: Settings = settings or get_settings()
        self.repository = repository or get_repository()
        self.events = events or get_event_bus()

    @property
    def max_write_retries(self) -> int:
        return max(self.settings.extraction.max_write_retries, 1)

    # ==================== Ownership ====================

    def get_owned_document(self, user: UserIdentity, document_id: str) -> DocumentRecord:
        document = self.repository.get_document(document_id)
        if document.user_id != user.id:
            raise DocumentNotFound(f"Document '{document_id}' not found")
        return document

    def get_owned_session(self, user: UserIdentity, session_id: str) -> InspectionSession:
        session = self.repository.get_session(session_id)
        if session.user_id != user.id:
            raise SessionNotFound(f"Session '{session_id}' not found")
        return session

    # ==================== Write paths ====================

    def apply_transition(
        self,
        document_id: str,
        transition: Callable[[DocumentRecord], DocumentRecord],
        operation: str,
    ) -> DocumentRecord:
        """
        Apply `transition` to the stored document with optimistic concurrency.

        Args:
            document_id: Document to transition.
            transition: Pure function from the current record to the new one.
            operation: Name used in logs and in the published event.

        Returns:
            The stored record (with its bumped version).
        """
        expected_version = None
        for _ in range(self.max_write_retries):
            current = self.repository.get_document(document_id)
            expected_version = current.version
            updated = transition(current)
            try:
                stored = self.repository.replace_document(updated, current.version)
            except ConcurrencyConflict:
                logger.warning(
                    "Document changed concurrently, retrying",
                    extra={"document_id": document_id, "operation": operation},
                )
                continue

            logger.info(
                f"Document {operation}",
                extra={
                    "document_id": stored.id,
                    "session_id": stored.session_id,
                    "from": current.extraction_status,
                    "to": stored.extraction_status,
                    "attempts": stored.extraction_attempts,
                },
            )
            self.events.publish(document_changed(stored, operation))
            if stored.session_id:
                self.settle_session(stored.session_id)
            return stored

        raise ConcurrencyConflict("documents", document_id, expected_version)

    def change_session(
        self,
        session_id: str,
        change: Callable[[InspectionSession], InspectionSession],
    ) -> InspectionSession:
        """Compare-and-set a user-driven session change, then recompute."""
        expected_version = None
        for _ in range(self.max_write_retries):
            current = self.repository.get_session(session_id)
            expected_version = current.version
            updated = change(current).model_copy(update={"updated_at": utcnow()})
            try:
                self.repository.replace_session(updated, current.version)
            except ConcurrencyConflict:
                continue
            return self.settle_session(session_id, force_event=True)

        raise ConcurrencyConflict("sessions", session_id, expected_version)

    def recompute_session(self, session_id: str, force_event: bool = False) -> InspectionSession:
        """
        Rebuild the aggregate of `session_id` from its member documents.

        Writes (and publishes `session.changed`) only when the aggregate moved,
        unless `force_event` is set.
        """
        expected_version = None
        for _ in range(self.max_write_retries):
            session = self.repository.get_session(session_id)
            expected_version = session.version
            documents = self.repository.list_documents(session_id=session_id)
            updated = apply_aggregate(session, compute_aggregate(session, documents), now=utcnow())
            if session.needs_recompute:
                updated = updated.model_copy(update={"needs_recompute": False})

            if updated is session:
                if force_event:
                    self.events.publish(session_changed(session))
                return session

            try:
                stored = self.repository.replace_session(updated, session.version)
            except ConcurrencyConflict:
                logger.warning("Session changed concurrently, recomputing", extra={"session_id": session_id})
                continue

            logger.info(
                "Session aggregate updated",
                extra={
                    "session_id": session_id,
                    "status": stored.status,
                    "processed": stored.processed_files,
                    "failed": stored.failed_files,
                    "total": stored.total_files,
                },
            )
            self.events.publish(session_changed(stored))
            return stored

        raise ConcurrencyConflict("sessions", session_id, expected_version)

    def settle_session(self, session_id: str, force_event: bool = False) -> InspectionSession:
        """
        Recompute after a change that is already committed.

        A recompute that keeps losing the compare-and-set race must not undo
        the caller's success: the session is flagged `needs_recompute` and
        the next dispatch tick reconciles it.
        """
        try:
            return self.recompute_session(session_id, force_event=force_event)
        except ConcurrencyConflict as e:
            logger.warning(
                f"Session recompute deferred: {e}",
                extra={"session_id": session_id},
            )
            self.repository.flag_session_for_recompute(session_id)
            return self.repository.get_session(session_id)
