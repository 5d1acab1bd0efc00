"""
InspectFlow Test Suite Configuration
====================================

This module provides shared pytest fixtures and configuration for the
InspectFlow test suite. It includes an in-memory stand-in for the MongoDB
repository (with the same optimistic-concurrency behaviour), a recording
event bus and sample users, sessions and documents.

Fixtures:
---------
    settings : Settings
        Real application settings with Redis events disabled.
    repository : FakeRepository
        In-memory repository implementing the `MongoRepository` interface.
    event_log : list
        Every `DomainEvent` published on the `event_bus` fixture.
    event_bus : EventBus
        Event bus recording into `event_log`.
    free_user / pro_user : UserIdentity
        Authenticated callers on the free and pro plans.
    make_document / make_session : callable
        Factories for records with sensible defaults.

Usage:
------
    Fixtures are automatically available in test functions:

    def test_example(repository, make_document):
        doc = repository.insert_document(make_document())
        assert repository.get_document(doc.id) == doc

Author:
-------
    Mohammed Saber <mohammed.saber.business@gmail.com>

License:
--------
    MIT License
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.config import EventSettings, Settings  # noqa: E402
from core.exceptions import ConcurrencyConflict, DocumentNotFound, SessionNotFound  # noqa: E402
from models.document import DocumentRecord  # noqa: E402
from models.enums import ExtractionStatusEnum, PlanTypeEnum  # noqa: E402
from models.session import InspectionSession  # noqa: E402
from models.user import UserIdentity  # noqa: E402
from services.event_service import EventBus  # noqa: E402

T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


class FakeRepository:
    """
    In-memory repository with compare-and-set semantics.

    `document_conflicts` and `session_conflicts` let a test force
    `ConcurrencyConflict` on the next N writes, simulating a concurrent writer.
    """

    def __init__(self):
        self.documents = {}
        self.sessions = {}
        self.profiles = {}
        self.document_conflicts = 0
        self.session_conflicts = 0
        self.document_reservations = {}
        self.checked_sessions = []

    def ensure_indexes(self):
        pass

    # Documents

    def insert_document(self, document):
        self.documents[document.id] = document
        return document

    def get_document(self, document_id):
        if document_id not in self.documents:
            raise DocumentNotFound(f"Document '{document_id}' not found")
        return self.documents[document_id]

    def replace_document(self, document, expected_version):
        current = self.documents.get(document.id)
        if self.document_conflicts > 0:
            self.document_conflicts -= 1
            # Another writer got there first
            self.documents[document.id] = current.model_copy(update={"version": current.version + 1})
            raise ConcurrencyConflict("documents", document.id, expected_version)
        if current is None or current.version != expected_version:
            raise ConcurrencyConflict("documents", document.id, expected_version)
        stored = document.model_copy(update={"version": expected_version + 1})
        self.documents[document.id] = stored
        return stored

    def list_documents(self, user_id=None, session_id=None, statuses=None):
        wanted = {ExtractionStatusEnum(s) for s in statuses} if statuses is not None else None
        docs = [
            d for d in self.documents.values()
            if (user_id is None or d.user_id == user_id)
            and (session_id is None or d.session_id == session_id)
            and (wanted is None or d.extraction_status in wanted)
        ]
        return sorted(docs, key=lambda d: d.created_at)

    def count_user_documents(self, user_id):
        return len(self.list_documents(user_id=user_id))

    def sum_user_tokens(self, user_id):
        return sum(d.tokens_used for d in self.list_documents(user_id=user_id))

    def find_dispatch_candidates(self):
        return self.list_documents(
            statuses=[
                ExtractionStatusEnum.PENDING,
                ExtractionStatusEnum.FAILED,
                ExtractionStatusEnum.QUEUED,
                ExtractionStatusEnum.EXTRACTING,
            ]
        )

    def find_stale_extractions(self, started_before):
        return [
            d for d in self.documents.values()
            if d.extraction_status == ExtractionStatusEnum.EXTRACTING
            and d.extraction_started_at is not None
            and d.extraction_started_at < started_before
        ]

    # Sessions

    def insert_session(self, session):
        self.sessions[session.id] = session
        return session

    def get_session(self, session_id):
        if session_id not in self.sessions:
            raise SessionNotFound(f"Session '{session_id}' not found")
        return self.sessions[session_id]

    def get_sessions(self, session_ids):
        return [self.sessions[i] for i in set(session_ids) if i in self.sessions]

    def list_sessions(self, user_id):
        sessions = [s for s in self.sessions.values() if s.user_id == user_id]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    def replace_session(self, session, expected_version):
        current = self.sessions.get(session.id)
        if self.session_conflicts > 0:
            self.session_conflicts -= 1
            self.sessions[session.id] = current.model_copy(update={"version": current.version + 1})
            raise ConcurrencyConflict("sessions", session.id, expected_version)
        if current is None or current.version != expected_version:
            raise ConcurrencyConflict("sessions", session.id, expected_version)
        stored = session.model_copy(update={"version": expected_version + 1})
        self.sessions[session.id] = stored
        return stored

    def flag_session_for_recompute(self, session_id):
        current = self.sessions[session_id]
        self.sessions[session_id] = current.model_copy(
            update={"needs_recompute": True, "version": current.version + 1}
        )

    def find_sessions_needing_recompute(self):
        return [s for s in self.sessions.values() if s.needs_recompute]

    def mark_sessions_checked(self, session_ids, checked_at):
        ids = set(session_ids)
        for session_id in ids:
            current = self.sessions[session_id]
            self.sessions[session_id] = current.model_copy(
                update={"last_extraction_check": checked_at, "version": current.version + 1}
            )
        self.checked_sessions.extend(ids)
        return len(ids)

    # Profiles

    def upsert_profile(self, profile):
        self.profiles[profile.id] = profile
        return profile

    def get_profile(self, user_id):
        return self.profiles.get(user_id)

    # Upload reservations

    def get_reserved_documents(self, user_id):
        return self.document_reservations.get(user_id)

    def reserve_documents(self, user_id, count, limit, seed):
        self.document_reservations.setdefault(user_id, seed)
        if self.document_reservations[user_id] > limit - count:
            return False
        self.document_reservations[user_id] += count
        return True

    def release_documents(self, user_id, count):
        self.document_reservations[user_id] -= count


@pytest.fixture
def settings():
    """
    Real settings object, isolated from Redis.

    Returns:
        Settings: Defaults with event publishing disabled.
    """
    return Settings(events=EventSettings(enabled=False))


@pytest.fixture
def repository():
    return FakeRepository()


@pytest.fixture
def event_log():
    return []


@pytest.fixture
def event_bus(event_log):
    """
    Event bus that records every published event.

    Returns:
        EventBus: Bus with a single subscriber appending to `event_log`.
    """
    bus = EventBus()
    bus.subscribe(event_log.append)
    return bus


@pytest.fixture
def free_user():
    return UserIdentity(id="user-free", email="free@example.com", plan_type=PlanTypeEnum.FREE)


@pytest.fixture
def pro_user():
    return UserIdentity(id="user-pro", email="pro@example.com", plan_type=PlanTypeEnum.PRO)


@pytest.fixture
def make_document():
    """
    Factory for `DocumentRecord` objects.

    Documents created by one factory get increasing `created_at` values so
    their upload order is deterministic.
    """
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "user_id": "user-free",
            "filename": f"invoice-{counter['n']}.pdf",
            "file_size": 1024,
            "created_at": T0 + timedelta(seconds=counter["n"]),
            "updated_at": T0 + timedelta(seconds=counter["n"]),
        }
        fields.update(overrides)
        return DocumentRecord(**fields)

    return _make


@pytest.fixture
def make_session():
    """Factory for `InspectionSession` objects."""

    def _make(**overrides):
        fields = {"user_id": "user-free", "session_name": "March invoices", "created_at": T0, "updated_at": T0}
        fields.update(overrides)
        return InspectionSession(**fields)

    return _make
