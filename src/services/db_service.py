"""
Database Service (MongoDB) 💾
============================

This service abstracts all interactions with the MongoDB database.

Collections:
------------
- `sessions`: one record per inspection session (`_id` = session UUID).
- `documents`: one record per uploaded file (`_id` = document UUID), with
  `session_id` and `user_id` references.
- `user_profiles`: plan information mirrored from the authentication gateway,
  plus the `documents_reserved` counter that upload quota checks reserve
  against.

Key Concepts:
-------------
- **Optimistic concurrency**: sessions and documents carry a `version`
  counter. `replace_document` / `replace_session` only write when the stored
  version still equals the version that was read, and bump it; otherwise
  `ConcurrencyConflict` is raised and the caller re-reads.
- **UTC datetimes**: the client is created with `tz_aware=True` so timestamps
  come back timezone-aware.

Configuration:
--------------
Controlled via `MONGO__*` environment variables (see `core.config`).
"""
from datetime import datetime
from functools import lru_cache
from typing import Iterable, List, Optional

from pymongo import ASCENDING, MongoClient

from core.config import get_settings
from core.exceptions import ConcurrencyConflict, DocumentNotFound, SessionNotFound
from core.logging_config import get_logger
from models.document import DocumentRecord
from models.enums import ExtractionStatusEnum
from models.session import InspectionSession
from models.user import UserProfile

logger = get_logger(__name__)

# Global client
_client = None


def get_db_client() -> MongoClient:
    """
    Get or initialize the MongoDB client.

    This implements a singleton-like pattern to reuse the database connection
    across the application lifecycle. The connection itself is established
    lazily by pymongo on first use.
    """
    global _client
    if _client is None:
        mongo = get_settings().mongo
        _client = MongoClient(mongo.connection_url, serverSelectionTimeoutMS=5000, tz_aware=True)
        logger.info("MongoDB client created", extra={"db": mongo.db_name})
    return _client


def ping() -> bool:
    """Return True when MongoDB answers a ping."""
    try:
        get_db_client().admin.command("ping")
        return True
    except Exception as e:
        logger.warning(f"MongoDB ping failed: {e}")
        return False


class MongoRepository:
    """Persistence for sessions, documents and user profiles."""

    def __init__(self, sessions, documents, profiles):
        self.sessions = sessions
        self.documents = documents
        self.profiles = profiles

    @classmethod
    def from_database(cls, database, settings=None) -> "MongoRepository":
        mongo = (settings or get_settings()).mongo
        return cls(
            sessions=database[mongo.sessions_collection],
            documents=database[mongo.documents_collection],
            profiles=database[mongo.profiles_collection],
        )

    def ensure_indexes(self):
        self.documents.create_index([("session_id", ASCENDING)])
        self.documents.create_index([("user_id", ASCENDING)])
        self.documents.create_index(
            [("extraction_status", ASCENDING), ("priority", -1), ("created_at", ASCENDING)]
        )
        self.sessions.create_index([("user_id", ASCENDING), ("created_at", -1)])
        self.sessions.create_index([("needs_recompute", ASCENDING)])

    # ==================== Documents ====================

    def insert_document(self, document: DocumentRecord) -> DocumentRecord:
        self.documents.insert_one(document.to_mongo())
        return document

    def get_document(self, document_id: str) -> DocumentRecord:
        raw = self.documents.find_one({"_id": document_id})
        if raw is None:
            raise DocumentNotFound(f"Document '{document_id}' not found")
        return DocumentRecord.from_mongo(raw)

    def replace_document(self, document: DocumentRecord, expected_version: int) -> DocumentRecord:
        """Compare-and-set write; returns the stored record with its new version."""
        stored = document.model_copy(update={"version": expected_version + 1})
        result = self.documents.replace_one(
            {"_id": document.id, "version": expected_version},
            stored.to_mongo(),
        )
        if result.matched_count == 0:
            raise ConcurrencyConflict("documents", document.id, expected_version)
        return stored

    def list_documents(
        self,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        statuses: Optional[Iterable[ExtractionStatusEnum]] = None,
    ) -> List[DocumentRecord]:
        query = {}
        if user_id is not None:
            query["user_id"] = user_id
        if session_id is not None:
            query["session_id"] = session_id
        if statuses is not None:
            query["extraction_status"] = {"$in": [ExtractionStatusEnum(s).value for s in statuses]}
        cursor = self.documents.find(query).sort("created_at", ASCENDING)
        return [DocumentRecord.from_mongo(raw) for raw in cursor]

    def count_user_documents(self, user_id: str) -> int:
        return self.documents.count_documents({"user_id": user_id})

    def sum_user_tokens(self, user_id: str) -> int:
        rows = list(
            self.documents.aggregate(
                [
                    {"$match": {"user_id": user_id}},
                    {"$group": {"_id": None, "total": {"$sum": "$tokens_used"}}},
                ]
            )
        )
        return int(rows[0]["total"]) if rows else 0

    def find_dispatch_candidates(self) -> List[DocumentRecord]:
        """Documents the scheduler needs to see: candidates plus in-flight ones."""
        return self.list_documents(
            statuses=[
                ExtractionStatusEnum.PENDING,
                ExtractionStatusEnum.FAILED,
                ExtractionStatusEnum.QUEUED,
                ExtractionStatusEnum.EXTRACTING,
            ]
        )

    def find_stale_extractions(self, started_before: datetime) -> List[DocumentRecord]:
        cursor = self.documents.find(
            {
                "extraction_status": ExtractionStatusEnum.EXTRACTING.value,
                "extraction_started_at": {"$lt": started_before},
            }
        )
        return [DocumentRecord.from_mongo(raw) for raw in cursor]

    # ==================== Sessions ====================

    def insert_session(self, session: InspectionSession) -> InspectionSession:
        self.sessions.insert_one(session.to_mongo())
        return session

    def get_session(self, session_id: str) -> InspectionSession:
        raw = self.sessions.find_one({"_id": session_id})
        if raw is None:
            raise SessionNotFound(f"Session '{session_id}' not found")
        return InspectionSession.from_mongo(raw)

    def get_sessions(self, session_ids: Iterable[str]) -> List[InspectionSession]:
        ids = list(set(session_ids))
        if not ids:
            return []
        return [InspectionSession.from_mongo(raw) for raw in self.sessions.find({"_id": {"$in": ids}})]

    def list_sessions(self, user_id: str) -> List[InspectionSession]:
        cursor = self.sessions.find({"user_id": user_id}).sort("created_at", -1)
        return [InspectionSession.from_mongo(raw) for raw in cursor]

    def replace_session(self, session: InspectionSession, expected_version: int) -> InspectionSession:
        stored = session.model_copy(update={"version": expected_version + 1})
        result = self.sessions.replace_one(
            {"_id": session.id, "version": expected_version},
            stored.to_mongo(),
        )
        if result.matched_count == 0:
            raise ConcurrencyConflict("sessions", session.id, expected_version)
        return stored

    def flag_session_for_recompute(self, session_id: str) -> None:
        self.sessions.update_one(
            {"_id": session_id},
            {"$set": {"needs_recompute": True}, "$inc": {"version": 1}},
        )

    def find_sessions_needing_recompute(self) -> List[InspectionSession]:
        return [InspectionSession.from_mongo(raw) for raw in self.sessions.find({"needs_recompute": True})]

    def mark_sessions_checked(self, session_ids: Iterable[str], checked_at: datetime) -> int:
        ids = list(set(session_ids))
        if not ids:
            return 0
        result = self.sessions.update_many(
            {"_id": {"$in": ids}},
            {"$set": {"last_extraction_check": checked_at}, "$inc": {"version": 1}},
        )
        return result.modified_count

    # ==================== User profiles ====================

    def upsert_profile(self, profile: UserProfile) -> UserProfile:
        data = profile.to_mongo()
        data.pop("version", None)
        self.profiles.update_one(
            {"_id": data.pop("_id")},
            {"$set": data, "$setOnInsert": {"version": 0}},
            upsert=True,
        )
        return profile

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        raw = self.profiles.find_one({"_id": user_id})
        return UserProfile.from_mongo(raw) if raw else None

    # ==================== Upload reservations ====================

    def get_reserved_documents(self, user_id: str) -> Optional[int]:
        raw = self.profiles.find_one({"_id": user_id}, {"documents_reserved": 1})
        return raw.get("documents_reserved") if raw else None

    def reserve_documents(self, user_id: str, count: int, limit: int, seed: int) -> bool:
        """
        Atomically add `count` to the user's reserved document counter unless
        the result would exceed `limit`.

        The counter lives on the profile record and is seeded with `seed`
        (the stored document count) the first time it is used.
        """
        self.profiles.update_one({"_id": user_id}, {"$setOnInsert": {"version": 0}}, upsert=True)
        self.profiles.update_one(
            {"_id": user_id, "documents_reserved": {"$exists": False}},
            {"$set": {"documents_reserved": seed}},
        )
        reserved = self.profiles.find_one_and_update(
            {"_id": user_id, "documents_reserved": {"$lte": limit - count}},
            {"$inc": {"documents_reserved": count}},
        )
        return reserved is not None

    def release_documents(self, user_id: str, count: int) -> None:
        self.profiles.update_one({"_id": user_id}, {"$inc": {"documents_reserved": -count}})


@lru_cache()
def get_repository() -> MongoRepository:
    settings = get_settings()
    return MongoRepository.from_database(get_db_client()[settings.mongo.db_name], settings)
