"""Inspection session operations: create, rename, enable extraction, export."""
from typing import List, Optional

from controllers.base_controller import BaseController
from core.logging_config import get_logger
from models.document import DocumentRecord
from models.enums import ExtractionStatusEnum
from models.session import InspectionSession
from models.user import UserIdentity

logger = get_logger(__name__)


class SessionController(BaseController):

    def create_session(
        self,
        user: UserIdentity,
        session_name: Optional[str] = None,
        auto_extract_on_upload: bool = False,
        extraction_enabled: bool = False,
        extraction_priority: int = 0,
    ) -> InspectionSession:
        session = InspectionSession(
            user_id=user.id,
            session_name=(session_name or "").strip() or None,
            auto_extract_on_upload=auto_extract_on_upload,
            extraction_enabled=extraction_enabled,
            extraction_priority=extraction_priority,
        )
        self.repository.insert_session(session)
        logger.info("Session created", extra={"session_id": session.id, "user_id": user.id})
        return session

    def list_sessions(self, user: UserIdentity) -> List[InspectionSession]:
        return self.repository.list_sessions(user.id)

    def get_session(self, user: UserIdentity, session_id: str) -> InspectionSession:
        return self.get_owned_session(user, session_id)

    def update_session(
        self,
        user: UserIdentity,
        session_id: str,
        session_name: Optional[str] = None,
        auto_extract_on_upload: Optional[bool] = None,
        extraction_priority: Optional[int] = None,
    ) -> InspectionSession:
        self.get_owned_session(user, session_id)

        changes = {}
        if session_name is not None:
            name = session_name.strip()
            if not name:
                raise ValueError("Session name is required")
            changes["session_name"] = name
        if auto_extract_on_upload is not None:
            changes["auto_extract_on_upload"] = auto_extract_on_upload
        if extraction_priority is not None:
            changes["extraction_priority"] = extraction_priority

        if not changes:
            return self.get_owned_session(user, session_id)
        return self.change_session(session_id, lambda s: s.model_copy(update=changes))

    def enable_extraction(self, user: UserIdentity, session_id: str) -> InspectionSession:
        """Turn extraction on; pending documents become eligible for dispatch."""
        self.get_owned_session(user, session_id)
        session = self.change_session(
            session_id, lambda s: s.model_copy(update={"extraction_enabled": True})
        )
        logger.info("Extraction enabled", extra={"session_id": session_id})
        return session

    def recompute(self, user: UserIdentity, session_id: str) -> InspectionSession:
        self.get_owned_session(user, session_id)
        return self.recompute_session(session_id)

    def list_session_documents(self, user: UserIdentity, session_id: str) -> List[DocumentRecord]:
        self.get_owned_session(user, session_id)
        return self.repository.list_documents(session_id=session_id)

    def export_extracted_data(self, user: UserIdentity, session_id: str) -> dict:
        """Extracted payloads of every extracted document in the session."""
        session = self.get_owned_session(user, session_id)
        documents = self.repository.list_documents(
            session_id=session_id, statuses=[ExtractionStatusEnum.EXTRACTED]
        )
        return {
            "session_id": session.id,
            "session_name": session.session_name,
            "documents": [
                {
                    "document_id": doc.id,
                    "filename": doc.filename,
                    "tokens_used": doc.tokens_used,
                    "extracted_data": doc.extracted_data or {},
                }
                for doc in documents
            ],
        }
