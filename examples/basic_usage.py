"""
InspectFlow API Usage Example
=============================

This script walks through the life of an inspection session using the
InspectFlow REST API.

Operations Demonstrated:
------------------------
    1. Session Creation: Start a named inspection session.
    2. Document Upload: Submit invoice files into the session.
    3. Enable Extraction: Let the scheduler pick the documents up.
    4. Progress Polling: Watch the session aggregate move.
    5. Manual Extraction: Re-queue a failed document with high priority.
    6. Export: Download the extracted data of the session.

Prerequisites:
--------------
    - InspectFlow API server running on localhost:8007
    - Celery worker and beat running (see README)
    - Python requests library

Usage:
------
    python examples/basic_usage.py path/to/invoice.pdf [more files...]
"""
import sys
import time
from pathlib import Path

import requests

# Configuration
API_BASE_URL = "http://localhost:8007/api/v1"

# Normally set by the authentication gateway in front of the API
HEADERS = {
    "X-User-Id": "example-user-001",
    "X-User-Email": "demo@example.com",
    "X-User-Plan": "free",
}


def create_session(name: str) -> dict:
    response = requests.post(
        f"{API_BASE_URL}/sessions/", json={"session_name": name}, headers=HEADERS
    )
    response.raise_for_status()
    return response.json()


def upload_invoices(session_id: str, paths: list) -> dict:
    """
    Upload invoice files into a session.

    Returns:
        dict: Upload response with the created documents.
    """
    handles = [open(p, "rb") for p in paths]
    try:
        files = [("files", (Path(p).name, h)) for p, h in zip(paths, handles)]
        response = requests.post(
            f"{API_BASE_URL}/documents/upload",
            files=files,
            data={"session_id": session_id},
            headers=HEADERS,
        )
    finally:
        for h in handles:
            h.close()

    if response.status_code == 402:
        print(f"⛔ Plan limit reached: {response.json()['detail']}")
        sys.exit(1)
    response.raise_for_status()
    return response.json()


def enable_extraction(session_id: str) -> dict:
    response = requests.post(
        f"{API_BASE_URL}/sessions/{session_id}/enable-extraction", headers=HEADERS
    )
    response.raise_for_status()
    return response.json()


def wait_for_session(session_id: str, timeout: int = 300) -> dict:
    """Poll the session until its status is terminal."""
    deadline = time.time() + timeout
    while True:
        session = requests.get(f"{API_BASE_URL}/sessions/{session_id}", headers=HEADERS).json()
        print(
            f"   {session['status']:<10} {session['processed_files']}/{session['total_files']} "
            f"processed, {session['failed_files']} failed, {session['total_tokens_used']} tokens"
        )
        if session["status"] in ("completed", "partial", "failed") or time.time() > deadline:
            return session
        time.sleep(5)


def retry_failed(session_id: str):
    documents = requests.get(
        f"{API_BASE_URL}/sessions/{session_id}/documents", headers=HEADERS
    ).json()
    for doc in documents:
        if doc["extraction_status"] == "failed":
            print(f"🔁 Requesting manual extraction for {doc['filename']}")
            requests.post(f"{API_BASE_URL}/documents/{doc['id']}/extract", headers=HEADERS)


def main():
    paths = sys.argv[1:]
    if not paths:
        print("Usage: python examples/basic_usage.py invoice.pdf [...]")
        sys.exit(1)

    session = create_session("Example inspection")
    print(f"🗂️  Session {session['id']} created")

    upload = upload_invoices(session["id"], paths)
    print(f"📤 Uploaded {upload['uploaded_count']} file(s)")

    enable_extraction(session["id"])
    final = wait_for_session(session["id"])

    if final["status"] == "partial":
        retry_failed(session["id"])

    export = requests.get(f"{API_BASE_URL}/sessions/{session['id']}/export", headers=HEADERS).json()
    for doc in export["documents"]:
        print(f"🧾 {doc['filename']}: {doc['extracted_data']}")


if __name__ == "__main__":
    main()
