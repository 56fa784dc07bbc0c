"""Integration tests for the /api/v1/batches endpoints.

Uses a standalone FastAPI app with the batches router and the project's
error handlers; collaborators are the in-memory fakes from conftest.py.
"""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import pytest
from conftest import (
    MP3_BYTES,
    FakeCommitter,
    FakeCredentials,
    FakeExtractor,
    FakeUploader,
)
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from label_ingest.clients.credentials import CredentialIssuanceError
from label_ingest.ingest.orchestrator import StageTimeouts
from label_ingest.ingest.registry import BatchRegistry, Collaborators
from label_ingest.main import register_error_handlers
from label_ingest.routers.batches import router as batches_router
from label_ingest.schemas.collaborators import ExtractedMetadata

_TEST_ADMIN_KEY = "test-admin-key-12345"
_HEADERS = {"X-Admin-Key": _TEST_ADMIN_KEY}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _admin_key():
    with patch("label_ingest.auth.admin.settings", MagicMock(admin_api_key=_TEST_ADMIN_KEY)):
        yield


@pytest.fixture
def collaborators() -> Collaborators:
    return Collaborators(
        extractor=FakeExtractor(
            {"intro.mp3": ExtractedMetadata(title="Intro", album="Debut", duration=61)}
        ),
        credentials=FakeCredentials(),
        uploader=FakeUploader(),
        committer=FakeCommitter(),
    )


@pytest.fixture
def batches_app(collaborators: Collaborators) -> FastAPI:
    """Minimal FastAPI app with only the batches router mounted."""
    application = FastAPI()
    application.include_router(batches_router, prefix="/api/v1")
    application.state.batches = BatchRegistry(
        collaborators,
        timeouts=StageTimeouts(metadata=1.0, credentials=1.0, upload=1.0, commit=1.0),
        max_concurrent_extractions=2,
        max_concurrent_uploads=2,
    )
    register_error_handlers(application)
    return application


@pytest.fixture
async def client(batches_app: FastAPI) -> AsyncClient:
    transport = ASGITransport(app=batches_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _open_batch(client: AsyncClient, **options) -> str:
    resp = await client.post("/api/v1/batches", headers=_HEADERS, json=options or None)
    assert resp.status_code == 201
    return resp.json()["batch_id"]


async def _add(client: AsyncClient, batch_id: str, *files: tuple[str, bytes, str]):
    return await client.post(
        f"/api/v1/batches/{batch_id}/files",
        headers=_HEADERS,
        files=[("files", f) for f in files],
    )


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_missing_admin_key_is_forbidden(client: AsyncClient):
    resp = await client.post("/api/v1/batches")
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_unconfigured_admin_key_disables_endpoints(client: AsyncClient):
    with patch("label_ingest.auth.admin.settings", MagicMock(admin_api_key="")):
        resp = await client.post("/api/v1/batches", headers=_HEADERS)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "AUTH_NOT_CONFIGURED"


# ---------------------------------------------------------------------------
# Batch lifecycle
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_batch_with_options(client: AsyncClient):
    resp = await client.post(
        "/api/v1/batches",
        headers=_HEADERS,
        json={"auto_match_or_create_release": False, "publish_on_create": True},
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["auto_match_or_create_release"] is False
    assert body["publish_on_create"] is True
    assert body["tracks"] == []
    assert body["can_run"] is False
    assert body["summary"]["total"] == 0


@pytest.mark.asyncio
async def test_unknown_batch_is_404(client: AsyncClient):
    resp = await client.get("/api/v1/batches/nope", headers=_HEADERS)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "BATCH_NOT_FOUND"


@pytest.mark.asyncio
async def test_update_options_and_close(client: AsyncClient):
    batch_id = await _open_batch(client)

    resp = await client.patch(
        f"/api/v1/batches/{batch_id}", headers=_HEADERS, json={"publish_on_create": True}
    )
    assert resp.status_code == 200
    assert resp.json()["publish_on_create"] is True

    resp = await client.delete(f"/api/v1/batches/{batch_id}", headers=_HEADERS)
    assert resp.status_code == 204
    resp = await client.get(f"/api/v1/batches/{batch_id}", headers=_HEADERS)
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Files and tracks
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_add_files_skips_unsupported(client: AsyncClient):
    batch_id = await _open_batch(client)

    resp = await _add(
        client,
        batch_id,
        ("intro.mp3", MP3_BYTES, "audio/mpeg"),
        ("notes.txt", b"liner notes", "text/plain"),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["outcome"] == "some_skipped"
    assert body["message"] == "1 unsupported file(s) were skipped"
    assert body["rejected_files"] == ["notes.txt"]
    [track] = body["batch"]["tracks"]
    assert track["title"] == "Intro"
    assert track["album"] == "Debut"
    assert track["status"] == "ready"
    assert track["status_label"] == "Ready"
    assert track["duration_display"] == "1:01"
    assert track["position"] == 1
    assert body["batch"]["can_run"] is True


@pytest.mark.asyncio
async def test_add_only_unsupported_files(client: AsyncClient):
    batch_id = await _open_batch(client)

    resp = await _add(client, batch_id, ("cover.png", b"\x89PNG", "image/png"))

    body = resp.json()
    assert body["outcome"] == "no_supported_files"
    assert body["accepted_count"] == 0
    assert body["batch"]["tracks"] == []


@pytest.mark.asyncio
async def test_edit_remove_and_clear_tracks(client: AsyncClient):
    batch_id = await _open_batch(client)
    resp = await _add(
        client,
        batch_id,
        ("a.mp3", MP3_BYTES, "audio/mpeg"),
        ("b.mp3", MP3_BYTES, "audio/mpeg"),
    )
    first, second = resp.json()["batch"]["tracks"]

    resp = await client.patch(
        f"/api/v1/batches/{batch_id}/tracks/{first['local_id']}",
        headers=_HEADERS,
        json={"title": "Renamed", "position": 5},
    )
    assert resp.status_code == 200
    assert (resp.json()["title"], resp.json()["position"]) == ("Renamed", 5)

    resp = await client.patch(
        f"/api/v1/batches/{batch_id}/tracks/{first['local_id']}",
        headers=_HEADERS,
        json={"title": "  "},
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "Title is required"

    resp = await client.delete(
        f"/api/v1/batches/{batch_id}/tracks/{second['local_id']}", headers=_HEADERS
    )
    assert resp.status_code == 204
    resp = await client.get(f"/api/v1/batches/{batch_id}", headers=_HEADERS)
    assert [t["title"] for t in resp.json()["tracks"]] == ["Renamed"]

    resp = await client.delete(f"/api/v1/batches/{batch_id}/tracks", headers=_HEADERS)
    assert resp.status_code == 204
    resp = await client.get(f"/api/v1/batches/{batch_id}", headers=_HEADERS)
    assert resp.json()["tracks"] == []


@pytest.mark.asyncio
async def test_unknown_track_is_404(client: AsyncClient):
    batch_id = await _open_batch(client)
    resp = await client.post(f"/api/v1/batches/{batch_id}/tracks/missing/retry", headers=_HEADERS)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "TRACK_NOT_FOUND"


# ---------------------------------------------------------------------------
# Pipeline run
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_run_creates_tracks(client: AsyncClient, collaborators: Collaborators):
    batch_id = await _open_batch(client)
    await _add(client, batch_id, ("intro.mp3", MP3_BYTES, "audio/mpeg"))

    resp = await client.post(f"/api/v1/batches/{batch_id}/run", headers=_HEADERS)

    assert resp.status_code == 200
    body = resp.json()
    assert body["level"] == "success"
    assert body["outcome"] == "success"
    assert body["message"] == "Successfully created 1 track(s)"
    [track] = body["batch"]["tracks"]
    assert track["status"] == "created"
    assert track["editable"] is False
    assert track["track_id"] == "trk-0"
    assert body["batch"]["summary"]["progress_percent"] == 100.0
    assert len(collaborators.committer.calls) == 1


@pytest.mark.asyncio
async def test_run_with_nothing_ready_is_409(client: AsyncClient):
    batch_id = await _open_batch(client)
    resp = await client.post(f"/api/v1/batches/{batch_id}/run", headers=_HEADERS)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "BATCH_NOT_READY"


@pytest.mark.asyncio
async def test_credential_failure_is_reported_in_body(
    client: AsyncClient, collaborators: Collaborators
):
    collaborators.credentials.error = CredentialIssuanceError("S3 storage is not configured.")
    batch_id = await _open_batch(client)
    await _add(client, batch_id, ("a.mp3", MP3_BYTES, "audio/mpeg"))

    resp = await client.post(f"/api/v1/batches/{batch_id}/run", headers=_HEADERS)

    assert resp.status_code == 200
    body = resp.json()
    assert body["level"] == "error"
    assert body["message"] == "S3 storage is not configured."
    assert body["batch"]["tracks"][0]["status"] == "ready"
    assert collaborators.uploader.calls == []


@pytest.mark.asyncio
async def test_concurrent_run_is_rejected(client: AsyncClient, collaborators: Collaborators):
    uploader: FakeUploader = collaborators.uploader
    uploader.gate = asyncio.Event()
    batch_id = await _open_batch(client)
    await _add(client, batch_id, ("a.mp3", MP3_BYTES, "audio/mpeg"))

    first = asyncio.create_task(
        client.post(f"/api/v1/batches/{batch_id}/run", headers=_HEADERS)
    )
    await uploader.started.wait()

    second = await client.post(f"/api/v1/batches/{batch_id}/run", headers=_HEADERS)
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "BATCH_BUSY"

    closing = await client.delete(f"/api/v1/batches/{batch_id}", headers=_HEADERS)
    assert closing.status_code == 409

    uploader.gate.set()
    resp = await first
    assert resp.status_code == 200
    assert resp.json()["level"] == "success"
