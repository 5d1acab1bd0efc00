"""
InspectFlow Event Service Unit Tests
====================================

Tests for domain events, the in-process bus and the Redis publisher.

Running Tests:
--------------
    pytest tests/unit/test_event_service.py -v
"""
import json
from unittest.mock import MagicMock

from services.event_service import (
    DOCUMENT_CHANGED,
    EventBus,
    RedisEventPublisher,
    document_changed,
    session_changed,
)


class TestEvents:

    def test_document_event_payload(self, make_document):
        doc = make_document(session_id="s-1")

        event = document_changed(doc, "queued")

        assert event.event_type == DOCUMENT_CHANGED
        assert event.entity_id == doc.id
        assert event.session_id == "s-1"
        assert event.payload["operation"] == "queued"

    def test_session_event_carries_counters(self, make_session):
        session = make_session(total_files=3, processed_files=1)

        payload = session_changed(session).payload

        assert payload["total_files"] == 3
        assert payload["processed_files"] == 1


class TestEventBus:

    def test_failing_subscriber_does_not_block_others(self, make_document):
        bus = EventBus()
        received = []
        bus.subscribe(MagicMock(side_effect=RuntimeError("gateway down")))
        bus.subscribe(received.append)

        delivered = bus.publish(document_changed(make_document(), "uploaded"))

        assert delivered == 1
        assert len(received) == 1

    def test_unsubscribe(self, make_document):
        bus = EventBus()
        received = []
        unsubscribe = bus.subscribe(received.append)

        unsubscribe()
        bus.publish(document_changed(make_document(), "uploaded"))

        assert received == []


class TestRedisEventPublisher:

    def test_publishes_json_on_user_channel(self, make_document):
        client = MagicMock()
        publisher = RedisEventPublisher(client, channel_prefix="inspectflow")

        publisher(document_changed(make_document(user_id="u-1"), "uploaded"))

        channel, message = client.publish.call_args[0]
        assert channel == "inspectflow:user:u-1:events"
        body = json.loads(message)
        assert body["event_type"] == DOCUMENT_CHANGED
        assert body["payload"]["extraction_status"] == "pending"
