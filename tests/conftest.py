"""Shared fixtures and in-memory collaborators for the ingestion tests.

The fakes record every call so tests can assert on what reached each
external service (and, just as often, what never did).
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence

import pytest

from label_ingest.clients.storage import UploadOutcome
from label_ingest.ingest.files import AudioFile
from label_ingest.ingest.models import Batch
from label_ingest.ingest.orchestrator import IngestionOrchestrator, StageTimeouts
from label_ingest.schemas.collaborators import (
    CommitItemResult,
    CommitResponse,
    CommitTrack,
    ExtractedMetadata,
    UploadCredential,
)

MP3_BYTES = b"ID3\x03\x00\x00\x00\x00\x00\x00" + b"\xff\xfb\x90\x00" * 64


def make_audio(
    name: str = "song.mp3",
    mime_type: str = "audio/mpeg",
    content: bytes = MP3_BYTES,
) -> AudioFile:
    return AudioFile.from_bytes(name, content, mime_type)


def credential_for(name: str) -> UploadCredential:
    return UploadCredential(
        upload_url=f"https://storage.test/upload/{name}?sig=abc",
        cdn_url=f"https://cdn.test/media/tracks/bulk/{name}",
        key=f"media/tracks/bulk/{name}",
    )


def all_created(tracks: Sequence[CommitTrack]) -> CommitResponse:
    """Commit response where every submitted track is created."""
    return CommitResponse(
        success=True,
        success_count=len(tracks),
        failed_count=0,
        results=[
            CommitItemResult(
                index=i,
                success=True,
                title=t.title,
                track_id=f"trk-{i}",
                release_id="rel-1",
                release_title=t.album or "Singles",
                release_created=i == 0,
            )
            for i, t in enumerate(tracks)
        ],
    )


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class FakeExtractor:
    def __init__(
        self,
        results: dict[str, ExtractedMetadata | Exception] | None = None,
        gates: dict[str, asyncio.Event] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.results = results or {}
        self.gates = gates or {}
        self.delay = delay
        self.calls: list[str] = []

    async def extract(self, audio: AudioFile) -> ExtractedMetadata:
        self.calls.append(audio.name)
        if audio.name in self.gates:
            await self.gates[audio.name].wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.results.get(audio.name, ExtractedMetadata())
        if isinstance(result, Exception):
            raise result
        return result


class FakeCredentials:
    def __init__(
        self,
        error: Exception | None = None,
        issue: int | None = None,
        delay: float = 0.0,
    ) -> None:
        self.error = error
        self.issue = issue
        self.delay = delay
        self.calls: list[list[str]] = []

    async def request(self, files: Sequence[AudioFile]) -> list[UploadCredential]:
        self.calls.append([f.name for f in files])
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        count = len(files) if self.issue is None else self.issue
        return [credential_for(f.name) for f in files[:count]]


class FakeUploader:
    def __init__(
        self,
        failures: dict[str, str] | None = None,
        raises: dict[str, Exception] | None = None,
        gate: asyncio.Event | None = None,
        delay: float = 0.0,
    ) -> None:
        self.failures = failures or {}
        self.raises = raises or {}
        self.gate = gate
        self.delay = delay
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.started = asyncio.Event()

    async def upload(self, audio: AudioFile, credential: UploadCredential) -> UploadOutcome:
        self.calls.append(audio.name)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.started.set()
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if audio.name in self.raises:
                raise self.raises[audio.name]
            if audio.name in self.failures:
                return UploadOutcome(
                    success=False,
                    key=credential.key,
                    cdn_url=credential.cdn_url,
                    error=self.failures[audio.name],
                )
            return UploadOutcome(success=True, key=credential.key, cdn_url=credential.cdn_url)
        finally:
            self.in_flight -= 1


class FakeCommitter:
    def __init__(
        self,
        respond: Callable[[Sequence[CommitTrack]], CommitResponse] = all_created,
        error: Exception | None = None,
    ) -> None:
        self.respond = respond
        self.error = error
        self.calls: list[list[CommitTrack]] = []

    async def commit(self, tracks: Sequence[CommitTrack]) -> CommitResponse:
        self.calls.append(list(tracks))
        if self.error is not None:
            raise self.error
        return self.respond(tracks)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def credentials() -> FakeCredentials:
    return FakeCredentials()


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()


@pytest.fixture
def committer() -> FakeCommitter:
    return FakeCommitter()


@pytest.fixture
def make_orchestrator(extractor, credentials, uploader, committer):
    """Factory building an orchestrator over a fresh batch; any part can be overridden."""

    def _make(**overrides) -> IngestionOrchestrator:
        batch = overrides.pop("batch", None) or Batch()
        options = {
            "extractor": extractor,
            "credentials": credentials,
            "uploader": uploader,
            "committer": committer,
            "timeouts": StageTimeouts(metadata=1.0, credentials=1.0, upload=1.0, commit=1.0),
        }
        options.update(overrides)
        return IngestionOrchestrator(batch, **options)

    return _make
