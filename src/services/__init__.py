"""
Services module for the extraction pipeline.

This module provides the core services behind the controllers:

- state_machine: pure document lifecycle transitions
- session_aggregator: session counters/status derived from documents
- scheduler: selection of the next documents to extract
- quota_service: plan-based document and token ceilings
- db_service: MongoDB persistence with optimistic concurrency
- event_service: document/session change notifications
- storage_service: object storage adapter for uploads
- extractor_client: HTTP client for the external extraction service
"""

from services.db_service import MongoRepository, get_db_client, get_repository
from services.event_service import EventBus, get_event_bus
from services.extractor_client import ExtractionResult, ExtractorClient
from services.quota_service import QuotaDecision, QuotaGuard
from services.scheduler import ScheduledDocument, select_batch
from services.session_aggregator import compute_aggregate, progress_percentage
from services.storage_service import LocalObjectStorage, ObjectStorage, get_storage

__all__ = [
    # Database
    "MongoRepository",
    "get_db_client",
    "get_repository",
    # Events
    "EventBus",
    "get_event_bus",
    # Extractor
    "ExtractorClient",
    "ExtractionResult",
    # Quota
    "QuotaGuard",
    "QuotaDecision",
    # Scheduling
    "ScheduledDocument",
    "select_batch",
    # Sessions
    "compute_aggregate",
    "progress_percentage",
    # Storage
    "ObjectStorage",
    "LocalObjectStorage",
    "get_storage",
]
