"""
InspectFlow Session Aggregator Unit Tests
=========================================

Tests for the session aggregate derived from member documents.

Test Classes:
-------------
    TestSessionStatus : draft / processing / completed / partial / failed.
    TestCounters : file counters, tokens and timestamps.
    TestIdempotence : recomputation does not depend on history or order.

Running Tests:
--------------
    pytest tests/unit/test_session_aggregator.py -v
"""
from datetime import datetime, timedelta, timezone

from models.enums import ExtractionStatusEnum, SessionStatusEnum
from services.session_aggregator import (
    apply_aggregate,
    compute_aggregate,
    progress_percentage,
)

T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

EXTRACTED = ExtractionStatusEnum.EXTRACTED
FAILED = ExtractionStatusEnum.FAILED


def _extracted(make_document, session, tokens, finished_at):
    return make_document(
        session_id=session.id,
        extraction_status=EXTRACTED,
        extraction_attempts=1,
        tokens_used=tokens,
        extraction_started_at=finished_at - timedelta(seconds=30),
        extraction_completed_at=finished_at,
    )


def _exhausted(make_document, session, finished_at):
    return make_document(
        session_id=session.id,
        extraction_status=FAILED,
        extraction_attempts=3,
        max_extraction_attempts=3,
        extraction_error="unreadable scan",
        extraction_started_at=finished_at - timedelta(seconds=10),
        extraction_completed_at=finished_at,
    )


class TestSessionStatus:

    def test_empty_session_is_draft(self, make_session):
        session = make_session()

        aggregate = compute_aggregate(session, [])

        assert aggregate.status == SessionStatusEnum.DRAFT
        assert aggregate.total_files == 0

    def test_pending_documents_without_extraction_stay_draft(self, make_session, make_document):
        session = make_session()
        docs = [make_document(session_id=session.id) for _ in range(2)]

        assert compute_aggregate(session, docs).status == SessionStatusEnum.DRAFT

    def test_enabled_session_with_pending_documents_is_processing(self, make_session, make_document):
        session = make_session(extraction_enabled=True)
        docs = [make_document(session_id=session.id)]

        assert compute_aggregate(session, docs).status == SessionStatusEnum.PROCESSING

    def test_partial_when_some_documents_exhausted(self, make_session, make_document):
        """
        Two extracted documents (40 and 60 tokens) and one exhausted failure
        give a partial session with 100 tokens and all counters filled in.
        """
        session = make_session(extraction_enabled=True)
        docs = [
            _extracted(make_document, session, 40, T0 + timedelta(minutes=1)),
            _extracted(make_document, session, 60, T0 + timedelta(minutes=2)),
            _exhausted(make_document, session, T0 + timedelta(minutes=3)),
        ]

        aggregate = compute_aggregate(session, docs)

        assert aggregate.status == SessionStatusEnum.PARTIAL
        assert aggregate.total_files == 3
        assert aggregate.processed_files == 2
        assert aggregate.failed_files == 1
        assert aggregate.total_tokens_used == 100
        assert aggregate.completed_at == T0 + timedelta(minutes=3)

    def test_completed_when_all_extracted(self, make_session, make_document):
        session = make_session(extraction_enabled=True)
        docs = [_extracted(make_document, session, 10, T0) for _ in range(2)]

        assert compute_aggregate(session, docs).status == SessionStatusEnum.COMPLETED

    def test_failed_when_all_exhausted(self, make_session, make_document):
        session = make_session(extraction_enabled=True)
        docs = [_exhausted(make_document, session, T0) for _ in range(2)]

        assert compute_aggregate(session, docs).status == SessionStatusEnum.FAILED

    def test_retryable_failure_keeps_session_processing(self, make_session, make_document):
        session = make_session(extraction_enabled=True)
        docs = [
            _extracted(make_document, session, 10, T0),
            make_document(
                session_id=session.id,
                extraction_status=FAILED,
                extraction_attempts=1,
                max_extraction_attempts=3,
            ),
        ]

        aggregate = compute_aggregate(session, docs)

        assert aggregate.status == SessionStatusEnum.PROCESSING
        assert aggregate.failed_files == 1
        assert aggregate.completed_at is None


class TestCounters:

    def test_documents_of_other_sessions_are_ignored(self, make_session, make_document):
        session = make_session()
        docs = [make_document(session_id=session.id), make_document(session_id="other")]

        assert compute_aggregate(session, docs).total_files == 1

    def test_started_at_is_earliest_start(self, make_session, make_document):
        session = make_session(extraction_enabled=True)
        docs = [
            _extracted(make_document, session, 1, T0 + timedelta(minutes=5)),
            _extracted(make_document, session, 1, T0 + timedelta(minutes=1)),
        ]

        aggregate = compute_aggregate(session, docs)

        assert aggregate.started_at == T0 + timedelta(minutes=1) - timedelta(seconds=30)

    def test_progress_percentage(self, make_session):
        session = make_session(total_files=3, processed_files=2)

        assert progress_percentage(session) == 66.67
        assert progress_percentage(make_session()) == 0.0


class TestIdempotence:

    def test_order_of_documents_does_not_matter(self, make_session, make_document):
        session = make_session(extraction_enabled=True)
        docs = [
            _extracted(make_document, session, 40, T0 + timedelta(minutes=1)),
            _exhausted(make_document, session, T0 + timedelta(minutes=2)),
            make_document(session_id=session.id),
        ]

        assert compute_aggregate(session, docs) == compute_aggregate(session, list(reversed(docs)))

    def test_reapplying_same_aggregate_is_a_no_op(self, make_session, make_document):
        session = make_session(extraction_enabled=True)
        docs = [_extracted(make_document, session, 40, T0)]

        once = apply_aggregate(session, compute_aggregate(session, docs), now=T0)
        twice = apply_aggregate(once, compute_aggregate(once, docs), now=T0 + timedelta(hours=1))

        assert twice is once
        assert once.total_tokens_used == 40
        assert once.status == SessionStatusEnum.COMPLETED
