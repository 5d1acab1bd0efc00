"""
InspectFlow API Routes Unit Tests
=================================

Tests for the FastAPI routes using `TestClient`. Controllers are wired to
the in-memory repository through `app.dependency_overrides`, so no MongoDB,
Redis or Celery broker is needed.

Running Tests:
--------------
    pytest tests/unit/test_routes.py -v
"""
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from controllers import DocumentController, ExtractionController, SessionController
from core.config import WorkerSettings, get_settings
from main import app
from models.enums import ExtractionStatusEnum
from routes.dependencies import (
    get_document_controller,
    get_extraction_controller,
    get_session_controller,
)
from services.db_service import get_repository

HEADERS = {"X-User-Id": "user-free", "X-User-Email": "free@example.com", "X-User-Plan": "free"}


@pytest.fixture
def client(repository, event_bus, settings):
    settings = settings.model_copy(update={"worker": WorkerSettings(api_token="worker-secret")})
    storage = MagicMock()
    storage.put.return_value = "http://files/upload.pdf"
    common = {"repository": repository, "events": event_bus, "settings": settings}

    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_session_controller] = lambda: SessionController(**common)
    app.dependency_overrides[get_document_controller] = lambda: DocumentController(storage=storage, **common)
    app.dependency_overrides[get_extraction_controller] = lambda: ExtractionController(**common)
    yield TestClient(app)
    app.dependency_overrides.clear()


WORKER_HEADERS = {"Authorization": "Bearer worker-secret"}


class TestAuthentication:

    def test_missing_user_is_401(self, client):
        assert client.get("/api/v1/sessions/").status_code == 401

    def test_unknown_plan_is_400(self, client):
        response = client.get("/api/v1/sessions/", headers={"X-User-Id": "u", "X-User-Plan": "gold"})

        assert response.status_code == 400

    def test_profile_is_mirrored(self, client, repository):
        client.get("/api/v1/sessions/", headers={**HEADERS, "X-User-Plan": "pro"})

        assert repository.get_profile("user-free").plan_type == "pro"


class TestSessionRoutes:

    def test_create_and_get_session(self, client):
        created = client.post("/api/v1/sessions/", json={"session_name": "March"}, headers=HEADERS)

        assert created.status_code == 201
        session_id = created.json()["id"]
        body = client.get(f"/api/v1/sessions/{session_id}", headers=HEADERS).json()
        assert body["session_name"] == "March"
        assert body["status"] == "draft"
        assert body["progress_percentage"] == 0.0

    def test_foreign_session_is_404(self, client):
        created = client.post("/api/v1/sessions/", json={}, headers={"X-User-Id": "someone-else"})

        response = client.get(f"/api/v1/sessions/{created.json()['id']}", headers=HEADERS)

        assert response.status_code == 404
        assert response.json()["error"] == "SessionNotFound"

    def test_enable_extraction(self, client):
        session_id = client.post("/api/v1/sessions/", json={}, headers=HEADERS).json()["id"]

        response = client.post(f"/api/v1/sessions/{session_id}/enable-extraction", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["extraction_enabled"] is True


class TestDocumentRoutes:

    def test_upload_into_session(self, client):
        session_id = client.post("/api/v1/sessions/", json={}, headers=HEADERS).json()["id"]

        response = client.post(
            "/api/v1/documents/upload",
            files=[("files", ("invoice.pdf", b"%PDF-1.4", "application/pdf"))],
            data={"session_id": session_id},
            headers=HEADERS,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["uploaded_count"] == 1
        assert body["documents"][0]["extraction_status"] == "pending"
        assert body["documents"][0]["upload_url"] == "http://files/upload.pdf"

    def test_upload_over_quota_is_402(self, client, repository, make_document):
        for _ in range(15):
            repository.insert_document(make_document())

        response = client.post(
            "/api/v1/documents/upload",
            files=[("files", ("invoice.pdf", b"%PDF-1.4", "application/pdf"))],
            headers=HEADERS,
        )

        assert response.status_code == 402
        assert response.json()["quota"]["limit"] == 15

    def test_unsupported_type_is_415(self, client):
        response = client.post(
            "/api/v1/documents/upload",
            files=[("files", ("notes.txt", b"hello", "text/plain"))],
            headers=HEADERS,
        )

        assert response.status_code == 415

    def test_manual_extract_while_extracting_is_409(self, client, repository, make_document):
        doc = repository.insert_document(make_document(extraction_status=ExtractionStatusEnum.EXTRACTING))

        response = client.post(f"/api/v1/documents/{doc.id}/extract", headers=HEADERS)

        assert response.status_code == 409
        assert response.json()["error"] == "InvalidState"

    def test_extracted_data_not_ready_is_404(self, client, repository, make_document):
        doc = repository.insert_document(make_document())

        assert client.get(f"/api/v1/documents/{doc.id}/extracted-data", headers=HEADERS).status_code == 404

    def test_quota_usage(self, client, repository, make_document):
        repository.insert_document(make_document(tokens_used=25))

        body = client.get("/api/v1/quota/", headers=HEADERS).json()

        assert body["documents_used"] == 1
        assert body["tokens_remaining"] == 75


class TestExtractionRoutes:

    def test_worker_token_required(self, client):
        assert client.post("/api/v1/extraction/dispatch").status_code == 401

    def test_worker_contract(self, client, repository, make_document):
        doc = repository.insert_document(make_document(extraction_status=ExtractionStatusEnum.QUEUED))

        started = client.post(f"/api/v1/extraction/documents/{doc.id}/start", headers=WORKER_HEADERS)
        completed = client.post(
            f"/api/v1/extraction/documents/{doc.id}/complete",
            json={"extracted_data": {"vendor": "ACME"}, "tokens_used": 12},
            headers=WORKER_HEADERS,
        )

        assert started.json()["extraction_status"] == "extracting"
        assert completed.json()["extraction_status"] == "extracted"
        assert completed.json()["tokens_used"] == 12

    def test_negative_tokens_rejected(self, client, repository, make_document):
        doc = repository.insert_document(make_document(extraction_status=ExtractionStatusEnum.EXTRACTING))

        response = client.post(
            f"/api/v1/extraction/documents/{doc.id}/complete",
            json={"tokens_used": -1},
            headers=WORKER_HEADERS,
        )

        assert response.status_code == 422

    def test_dispatch_submits_jobs(self, client, repository, make_document):
        doc = repository.insert_document(make_document(manual_extraction_requested=True))

        with patch("routes.extraction.submit_extraction") as submit:
            response = client.post("/api/v1/extraction/dispatch", headers=WORKER_HEADERS)

        assert response.json()["dispatched_count"] == 1
        submit.assert_called_once()
        assert repository.get_document(doc.id).extraction_status == ExtractionStatusEnum.QUEUED
