"""
Document Controller 📄
======================

Uploads, listing and operator actions on single documents.

Upload flow:
------------
1. Validate file types and sizes.
2. Reserve `incoming` slots on the user's `documents_reserved` counter. The
   reservation is a single conditional increment, so concurrent uploads
   cannot both pass the Quota Guard on the same stale count.
3. Store each file through the object storage adapter (only the URL is kept).
4. Insert one `pending` document per file and recompute the session.

A rejected batch leaves nothing behind: validation and quota run before any
byte is stored. When storage fails partway, the documents already inserted
stay, the unused slots are released and the session is still recomputed.
"""
from dataclasses import dataclass
from typing import List, Optional

from controllers.base_controller import BaseController
from core.exceptions import ConcurrencyConflict, UnsupportedFileType
from core.logging_config import get_logger
from models.document import DocumentRecord
from models.enums import ExtractionStatusEnum
from models.user import UserIdentity
from services import state_machine
from services.event_service import document_changed
from services.quota_service import QuotaGuard
from services.storage_service import ObjectStorage, get_storage
from utils.file_utils import is_allowed_file

logger = get_logger(__name__)


@dataclass
class IncomingFile:
    """A file received from the client, already read into memory."""
    filename: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


class DocumentController(BaseController):

    def __init__(self, *args, storage: Optional[ObjectStorage] = None, quota: Optional[QuotaGuard] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.storage = storage or get_storage()
        self.quota = quota or QuotaGuard(self.settings.quota)

    def _validate_files(self, files: List[IncomingFile]):
        allowed = self.settings.file.allowed_types_list
        for incoming in files:
            if not is_allowed_file(incoming.filename, allowed):
                raise UnsupportedFileType(
                    f"'{incoming.filename}' is not a supported file type ({', '.join(allowed)})"
                )
            if incoming.size > self.settings.file.max_size:
                raise UnsupportedFileType(
                    f"'{incoming.filename}' exceeds the maximum size of {self.settings.file.max_size} bytes"
                )

    def upload_documents(
        self,
        user: UserIdentity,
        files: List[IncomingFile],
        session_id: Optional[str] = None,
    ) -> List[DocumentRecord]:
        """
        Accept a batch of files into an (optional) session.

        Raises:
            ValueError: empty batch.
            UnsupportedFileType: a file has a disallowed type or is too large.
            SessionNotFound: the session does not exist or belongs to someone else.
            QuotaExceeded: the batch would exceed the plan's document ceiling.
        """
        files = [f for f in files if f.filename]
        if not files:
            raise ValueError("At least one file is required")

        self._validate_files(files)
        if session_id:
            self.get_owned_session(user, session_id)

        self._reserve_documents(user, len(files))

        documents = []
        try:
            for incoming in files:
                document = DocumentRecord(
                    user_id=user.id,
                    session_id=session_id,
                    filename=incoming.filename,
                    file_size=incoming.size,
                    content_type=incoming.content_type,
                    max_extraction_attempts=self.settings.extraction.max_attempts,
                )
                key = ObjectStorage.build_key(user.id, document.id, incoming.filename)
                document = document.model_copy(
                    update={"upload_url": self.storage.put(key, incoming.data, incoming.content_type)}
                )
                self.repository.insert_document(document)
                self.events.publish(document_changed(document, "uploaded"))
                documents.append(document)
        finally:
            unused = len(files) - len(documents)
            if unused:
                self.repository.release_documents(user.id, unused)
            if session_id and documents:
                self.settle_session(session_id)

        logger.info(
            f"Uploaded {len(documents)} document(s)",
            extra={"user_id": user.id, "session_id": session_id},
        )
        return documents

    def _reserve_documents(self, user: UserIdentity, count: int):
        """Reserve `count` document slots on the user's plan or raise `QuotaExceeded`."""
        limit = self.quota.limits_for(user).max_documents
        stored = self.repository.count_user_documents(user.id)
        used = stored
        for _ in range(self.max_write_retries):
            reserved = self.repository.get_reserved_documents(user.id)
            used = stored if reserved is None else reserved
            self.quota.ensure_can_upload(user, used, count)
            if self.repository.reserve_documents(user.id, count, limit, seed=stored):
                return
        raise ConcurrencyConflict("user_profiles", user.id, used)

    def list_documents(
        self,
        user: UserIdentity,
        session_id: Optional[str] = None,
        extraction_status: Optional[ExtractionStatusEnum] = None,
    ) -> List[DocumentRecord]:
        statuses = [extraction_status] if extraction_status else None
        return self.repository.list_documents(user_id=user.id, session_id=session_id, statuses=statuses)

    def get_document(self, user: UserIdentity, document_id: str) -> DocumentRecord:
        return self.get_owned_document(user, document_id)

    def request_manual_extraction(self, user: UserIdentity, document_id: str) -> DocumentRecord:
        """Operator override: back to `pending` with the boosted priority."""
        self.get_owned_document(user, document_id)
        priority = self.settings.extraction.manual_priority
        return self.apply_transition(
            document_id,
            lambda doc: state_machine.request_manual_extraction(doc, manual_priority=priority),
            "manual extraction requested",
        )

    def cancel_extraction(self, user: UserIdentity, document_id: str) -> DocumentRecord:
        """Pull a `queued` document back to `pending`."""
        self.get_owned_document(user, document_id)
        return self.apply_transition(document_id, state_machine.cancel, "extraction cancelled")

    def quota_usage(self, user: UserIdentity):
        """Documents and tokens consumed against the user's plan."""
        return self.quota.usage_summary(
            user,
            document_count=self.repository.count_user_documents(user.id),
            tokens_used=self.repository.sum_user_tokens(user.id),
        )
