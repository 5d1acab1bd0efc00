"""
Extraction Worker Client 🤖
===========================

Thin HTTP client for the external extraction service that performs the
actual content analysis (vendor, invoice number, amounts, ...).

Request (JSON):
    {"document_id": str, "filename": str, "upload_url": str, "content_type": str}

Response (JSON):
    {"data": {...}, "tokens_used": int}

Any transport error, timeout, non-200 status or malformed body is raised as
`ExternalWorkerError` with a message suitable for `extraction_error`.
"""
from typing import Any, Dict, Optional

import requests
from pydantic import BaseModel

from core.config import ExtractorSettings, get_settings
from core.exceptions import ExternalWorkerError
from core.logging_config import get_logger
from models.document import DocumentRecord

logger = get_logger(__name__)


class ExtractionResult(BaseModel):
    data: Dict[str, Any] = {}
    tokens_used: int = 0


class ExtractorClient:
    def __init__(self, settings: Optional[ExtractorSettings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or get_settings().extractor
        self.http = session or requests.Session()

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"
        return headers

    def extract(self, document: DocumentRecord) -> ExtractionResult:
        payload = {
            "document_id": document.id,
            "filename": document.filename,
            "upload_url": document.upload_url,
            "content_type": document.content_type,
        }
        timeout = self.settings.timeout

        try:
            response = self.http.post(
                self.settings.api_url, json=payload, timeout=timeout, headers=self._headers()
            )
        except requests.exceptions.Timeout as e:
            raise ExternalWorkerError(f"Extractor timed out after {timeout}s") from e
        except requests.exceptions.ConnectionError as e:
            raise ExternalWorkerError(f"Could not connect to extractor at {self.settings.api_url}") from e
        except requests.exceptions.RequestException as e:
            raise ExternalWorkerError(f"Extractor request failed: {e}") from e

        if response.status_code != 200:
            raise ExternalWorkerError(
                f"Extractor returned status {response.status_code}: {response.text[:500]}"
            )

        try:
            body = response.json()
            result = ExtractionResult(
                data=body.get("data") or {},
                tokens_used=int(body.get("tokens_used") or 0),
            )
        except (ValueError, TypeError, AttributeError) as e:
            raise ExternalWorkerError(f"Malformed extractor response: {e}") from e

        if result.tokens_used < 0:
            raise ExternalWorkerError("Extractor reported negative token usage")

        logger.info(
            "Extractor finished",
            extra={"document_id": document.id, "tokens_used": result.tokens_used},
        )
        return result
