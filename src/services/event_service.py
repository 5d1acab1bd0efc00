"""
Change Notification Service 📣
==============================

The core announces every document and session change as a `DomainEvent`.
Delivery is someone else's job: the `EventBus` fans events out to in-process
subscribers and to publishers such as `RedisEventPublisher`, which pushes
JSON messages to a per-user Redis pub/sub channel that the realtime gateway
relays to browsers.

Channel pattern: `{prefix}:user:{user_id}:events`

A failing subscriber or publisher is logged and skipped; it never aborts the
state transition that produced the event.
"""
import json
from datetime import datetime
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional

import redis
from pydantic import BaseModel, Field

from core.config import get_settings
from core.logging_config import get_logger
from models.base import utcnow
from models.document import DocumentRecord
from models.session import InspectionSession

logger = get_logger(__name__)

DOCUMENT_CHANGED = "document.changed"
SESSION_CHANGED = "session.changed"


class DomainEvent(BaseModel):
    event_type: str
    user_id: str
    entity_id: str
    session_id: Optional[str] = None
    payload: Dict[str, Any] = {}
    occurred_at: datetime = Field(default_factory=utcnow)


def document_changed(document: DocumentRecord, operation: str) -> DomainEvent:
    return DomainEvent(
        event_type=DOCUMENT_CHANGED,
        user_id=document.user_id,
        entity_id=document.id,
        session_id=document.session_id,
        payload={
            "operation": operation,
            "status": document.status,
            "extraction_status": document.extraction_status,
            "extraction_attempts": document.extraction_attempts,
            "tokens_used": document.tokens_used,
            "version": document.version,
        },
    )


def session_changed(session: InspectionSession) -> DomainEvent:
    return DomainEvent(
        event_type=SESSION_CHANGED,
        user_id=session.user_id,
        entity_id=session.id,
        session_id=session.id,
        payload={
            "status": session.status,
            "total_files": session.total_files,
            "processed_files": session.processed_files,
            "failed_files": session.failed_files,
            "total_tokens_used": session.total_tokens_used,
            "version": session.version,
        },
    )


class RedisEventPublisher:
    """Publishes events to Redis pub/sub."""

    def __init__(self, client: redis.Redis, channel_prefix: str = "inspectflow"):
        self.client = client
        self.channel_prefix = channel_prefix

    def channel_for(self, user_id: str) -> str:
        return f"{self.channel_prefix}:user:{user_id}:events"

    def __call__(self, event: DomainEvent) -> None:
        message = json.dumps(event.model_dump(mode="json"))
        self.client.publish(self.channel_for(event.user_id), message)


class EventBus:
    """Fan-out of domain events to subscribers."""

    def __init__(self):
        self._subscribers: List[Callable[[DomainEvent], None]] = []

    def subscribe(self, callback: Callable[[DomainEvent], None]) -> Callable[[], None]:
        """Register `callback`; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: DomainEvent) -> int:
        """Deliver `event` to every subscriber; returns how many succeeded."""
        delivered = 0
        for callback in list(self._subscribers):
            try:
                callback(event)
                delivered += 1
            except Exception as e:
                logger.error(
                    f"Event delivery failed: {e}",
                    extra={"event_type": event.event_type, "entity_id": event.entity_id},
                )
        return delivered


@lru_cache()
def get_event_bus() -> EventBus:
    settings = get_settings()
    bus = EventBus()
    if settings.events.enabled:
        client = redis.Redis.from_url(settings.redis.url, decode_responses=True)
        bus.subscribe(RedisEventPublisher(client, settings.events.channel_prefix))
    return bus
