"""
InspectFlow State Machine Unit Tests
====================================

Tests for the pure document extraction transitions in
`services.state_machine`.

Test Classes:
-------------
    TestHappyPath : pending → queued → extracting → extracted.
    TestFailureAndRetry : failures, retries and attempt exhaustion.
    TestManualExtraction : operator overrides.
    TestCancel : pulling queued documents back.
    TestDerivedStatus : coarse upload status mapping.

Running Tests:
--------------
    pytest tests/unit/test_state_machine.py -v
"""
import pytest

from core.exceptions import AttemptsExceeded, InvalidState
from models.enums import DocumentStatusEnum, ExtractionStatusEnum
from services import state_machine as sm


@pytest.fixture
def queued(make_document):
    return sm.enqueue(make_document(), "job-1")


@pytest.fixture
def extracting(queued):
    return sm.start_extraction(queued)


class TestHappyPath:
    """A document extracted on its first attempt."""

    def test_enqueue_records_job_and_moves_to_processing(self, make_document):
        doc = make_document()

        queued = sm.enqueue(doc, "job-1")

        assert queued.extraction_status == ExtractionStatusEnum.QUEUED
        assert queued.status == DocumentStatusEnum.PROCESSING
        assert queued.extraction_job_id == "job-1"
        assert queued.extraction_attempts == 0

    def test_transitions_never_mutate_input(self, make_document):
        doc = make_document()

        sm.enqueue(doc, "job-1")

        assert doc.extraction_status == ExtractionStatusEnum.PENDING
        assert doc.extraction_job_id is None

    def test_start_counts_one_attempt(self, queued):
        started = sm.start_extraction(queued)

        assert started.extraction_status == ExtractionStatusEnum.EXTRACTING
        assert started.extraction_attempts == 1
        assert started.extraction_started_at is not None

    def test_complete_stores_data_and_tokens(self, extracting):
        data = {"vendor": "ACME", "total": "120.00"}

        done = sm.complete_extraction(extracting, data, tokens_used=40)

        assert done.extraction_status == ExtractionStatusEnum.EXTRACTED
        assert done.status == DocumentStatusEnum.COMPLETED
        assert done.extracted_data == data
        assert done.tokens_used == 40
        assert done.extraction_completed_at is not None
        assert sm.is_terminal(done)

    def test_complete_with_zero_tokens(self, extracting):
        done = sm.complete_extraction(extracting, None, tokens_used=0)

        assert done.tokens_used == 0
        assert done.extracted_data == {}

    def test_negative_tokens_rejected(self, extracting):
        with pytest.raises(ValueError):
            sm.complete_extraction(extracting, {}, tokens_used=-1)

    def test_start_from_pending_is_invalid(self, make_document):
        with pytest.raises(InvalidState) as exc_info:
            sm.start_extraction(make_document())

        assert exc_info.value.current_state == "pending"
        assert exc_info.value.allowed_states == ("queued",)

    def test_complete_from_queued_is_invalid(self, queued):
        with pytest.raises(InvalidState):
            sm.complete_extraction(queued, {}, 1)


class TestFailureAndRetry:
    """Failures stay retryable until the attempt cap is reached."""

    def test_fail_keeps_error_and_is_retryable(self, extracting):
        failed = sm.fail_extraction(extracting, "timeout")

        assert failed.extraction_status == ExtractionStatusEnum.FAILED
        assert failed.status == DocumentStatusEnum.FAILED
        assert failed.extraction_error == "timeout"
        assert failed.extraction_completed_at is not None
        assert sm.is_retryable(failed)
        assert not sm.is_terminal(failed)

    def test_schedule_retry_returns_to_pending(self, extracting):
        failed = sm.fail_extraction(extracting, "timeout")

        retried = sm.schedule_retry(failed)

        assert retried.extraction_status == ExtractionStatusEnum.PENDING
        assert retried.extraction_attempts == 1
        assert retried.extraction_job_id is None
        # The last error stays visible until the next attempt starts
        assert retried.extraction_error == "timeout"

    def test_next_start_clears_error(self, extracting):
        retried = sm.schedule_retry(sm.fail_extraction(extracting, "timeout"))

        restarted = sm.start_extraction(sm.enqueue(retried, "job-2"))

        assert restarted.extraction_error is None
        assert restarted.extraction_attempts == 2

    def test_exhaustion_after_max_attempts(self, make_document):
        doc = make_document(max_extraction_attempts=2)
        for n in range(2):
            doc = sm.fail_extraction(sm.start_extraction(sm.enqueue(doc, f"job-{n}")), "boom")
            if n == 0:
                doc = sm.schedule_retry(doc)

        assert doc.extraction_attempts == 2
        assert sm.is_exhausted(doc)
        assert sm.is_terminal(doc)
        with pytest.raises(AttemptsExceeded):
            sm.schedule_retry(doc)

    def test_enqueue_refused_without_attempts(self, make_document):
        doc = make_document(extraction_attempts=3, max_extraction_attempts=3)

        with pytest.raises(AttemptsExceeded):
            sm.enqueue(doc, "job-x")

    def test_fail_without_message_gets_default(self, extracting):
        assert sm.fail_extraction(extracting, "").extraction_error == "Extraction failed"


class TestManualExtraction:
    """Operator requests boost priority and may revive exhausted documents."""

    def test_manual_on_pending_boosts_priority(self, make_document):
        doc = sm.request_manual_extraction(make_document(), manual_priority=100)

        assert doc.priority == 100
        assert doc.manual_extraction_requested is True
        assert doc.extraction_status == ExtractionStatusEnum.PENDING

    def test_manual_on_exhausted_grants_one_attempt(self, make_document):
        doc = make_document(
            extraction_status=ExtractionStatusEnum.FAILED,
            extraction_attempts=3,
            max_extraction_attempts=3,
            extraction_error="boom",
        )

        revived = sm.request_manual_extraction(doc)

        assert revived.max_extraction_attempts == 4
        assert revived.extraction_error is None
        assert sm.has_attempts_remaining(revived)

    def test_manual_during_extracting_is_invalid(self, extracting):
        with pytest.raises(InvalidState):
            sm.request_manual_extraction(extracting)

    def test_manual_on_extracted_is_invalid(self, extracting):
        with pytest.raises(InvalidState):
            sm.request_manual_extraction(sm.complete_extraction(extracting, {}, 1))

    def test_completion_clears_manual_flag(self, make_document):
        doc = sm.request_manual_extraction(make_document())
        doc = sm.start_extraction(sm.enqueue(doc, "job-1"))

        assert sm.complete_extraction(doc, {}, 5).manual_extraction_requested is False


class TestCancel:

    def test_cancel_queued(self, queued):
        cancelled = sm.cancel(queued)

        assert cancelled.extraction_status == ExtractionStatusEnum.PENDING
        assert cancelled.extraction_job_id is None
        assert cancelled.extraction_attempts == 0

    def test_cancel_extracting_is_invalid(self, extracting):
        with pytest.raises(InvalidState):
            sm.cancel(extracting)


class TestDerivedStatus:

    @pytest.mark.parametrize(
        "extraction_status, expected",
        [
            ("pending", DocumentStatusEnum.UPLOADED),
            ("queued", DocumentStatusEnum.PROCESSING),
            ("extracting", DocumentStatusEnum.PROCESSING),
            ("extracted", DocumentStatusEnum.COMPLETED),
            ("failed", DocumentStatusEnum.FAILED),
        ],
    )
    def test_mapping(self, extraction_status, expected):
        assert sm.derive_document_status(extraction_status) == expected
