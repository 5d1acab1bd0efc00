"""
Exceptions raised by the extraction core.

All of them are scoped to a single document or a single operation; none is
fatal to the process.
"""


class InspectFlowError(Exception):
    """Base exception for all InspectFlow errors"""
    pass


class InvalidState(InspectFlowError):
    """A transition was attempted from a state that does not permit it.

    Recoverable: the caller re-reads the record and decides again.
    """

    def __init__(self, operation: str, current_state: str, allowed_states=()):
        self.operation = operation
        self.current_state = current_state
        self.allowed_states = tuple(allowed_states)
        allowed = ", ".join(self.allowed_states) or "none"
        super().__init__(
            f"Cannot {operation} from state '{current_state}' (allowed: {allowed})"
        )


class AttemptsExceeded(InspectFlowError):
    """The document used up its extraction attempts; only a manual request can revive it."""

    def __init__(self, document_id: str, attempts: int, max_attempts: int):
        self.document_id = document_id
        self.attempts = attempts
        self.max_attempts = max_attempts
        super().__init__(
            f"Document {document_id} exhausted its extraction attempts ({attempts}/{max_attempts})"
        )


class QuotaExceeded(InspectFlowError):
    """User-facing plan denial, not a system fault."""

    def __init__(self, decision):
        self.decision = decision
        super().__init__(decision.reason)


class ExternalWorkerError(InspectFlowError):
    """The external extraction service failed; the message ends up in `extraction_error`."""
    pass


class ConcurrencyConflict(InspectFlowError):
    """A compare-and-set write found a newer version of the record."""

    def __init__(self, collection: str, record_id: str, expected_version: int):
        self.collection = collection
        self.record_id = record_id
        self.expected_version = expected_version
        super().__init__(
            f"{collection} record {record_id} changed concurrently (expected version {expected_version})"
        )


class DocumentNotFound(InspectFlowError):
    pass


class SessionNotFound(InspectFlowError):
    pass


class UnsupportedFileType(InspectFlowError):
    pass
