"""In-memory batch state for the ingestion pipeline.

A ``Batch`` is an ordered list of ``UploadableTrack`` entries plus the
request options and a run guard. Each track carries its own status along
a forward-only state machine:

    pending -> extracting -> ready -> uploading -> uploaded -> committing -> created
                                          |                        |
                                          +-------> failed <-------+

The only ways back are manual: removing the entry, clearing the batch,
or resetting/editing a track whose status is still editable.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from label_ingest.ingest.errors import (
    InvalidEditError,
    InvalidTransitionError,
    TrackLockedError,
    TrackNotFoundError,
)
from label_ingest.ingest.files import AudioFile
from label_ingest.schemas.collaborators import (
    CommitItemResult,
    ExtractedMetadata,
    UploadCredential,
)


class TrackStatus(StrEnum):
    PENDING = "pending"
    EXTRACTING = "extracting"
    READY = "ready"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    COMMITTING = "committing"
    CREATED = "created"
    FAILED = "failed"


TRANSITIONS: dict[TrackStatus, frozenset[TrackStatus]] = {
    TrackStatus.PENDING: frozenset({TrackStatus.EXTRACTING}),
    TrackStatus.EXTRACTING: frozenset({TrackStatus.READY}),
    TrackStatus.READY: frozenset({TrackStatus.UPLOADING}),
    TrackStatus.UPLOADING: frozenset({TrackStatus.UPLOADED, TrackStatus.FAILED}),
    TrackStatus.UPLOADED: frozenset({TrackStatus.COMMITTING}),
    TrackStatus.COMMITTING: frozenset({TrackStatus.CREATED, TrackStatus.FAILED}),
    TrackStatus.CREATED: frozenset(),
    TrackStatus.FAILED: frozenset(),
}

EDITABLE_STATUSES: frozenset[TrackStatus] = frozenset(
    {TrackStatus.PENDING, TrackStatus.EXTRACTING, TrackStatus.READY, TrackStatus.FAILED}
)

TERMINAL_STATUSES: frozenset[TrackStatus] = frozenset({TrackStatus.CREATED, TrackStatus.FAILED})

# Statuses at or past a successful upload; remote_key/cdn_url are set only here.
UPLOADED_STATUSES: frozenset[TrackStatus] = frozenset(
    {TrackStatus.UPLOADED, TrackStatus.COMMITTING, TrackStatus.CREATED}
)

EDITABLE_FIELDS: frozenset[str] = frozenset(
    {"title", "album", "artist", "duration_seconds", "track_number", "position"}
)


@dataclass(eq=False)
class UploadableTrack:
    """One accepted audio file and its metadata as it moves through a batch."""

    file: AudioFile
    position: int
    title: str = ""
    local_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    album: str | None = None
    artist: str | None = None
    duration_seconds: float | None = None
    track_number: int | None = None
    metadata: ExtractedMetadata | None = None
    status: TrackStatus = TrackStatus.PENDING
    error: str | None = None
    remote_key: str | None = None
    cdn_url: str | None = None
    track_id: str | None = None
    release_id: str | None = None
    release_title: str | None = None
    release_created: bool | None = None
    edited_fields: set[str] = field(default_factory=set)

    @property
    def editable(self) -> bool:
        return self.status in EDITABLE_STATUSES

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, new_status: TrackStatus, *, error: str | None = None) -> None:
        """Move to ``new_status`` along a legal edge of the state machine.

        A move to ``failed`` requires an error message; any other move
        clears a stale one.
        """
        if new_status not in TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Track {self.local_id} cannot move from {self.status} to {new_status}"
            )
        if new_status == TrackStatus.FAILED:
            self.error = error or "Unknown error"
        else:
            self.error = None
        self.status = new_status

    def apply_metadata(self, metadata: ExtractedMetadata | None) -> None:
        """Populate tag fields from extraction, keeping anything the user edited.

        ``None`` means extraction failed: the filename title stays and the
        remaining fields stay empty. A tagged track number becomes the
        position unless the user already set one.
        """
        self.metadata = metadata
        if metadata is None:
            return
        extracted = {
            "title": metadata.title,
            "album": metadata.album,
            "artist": metadata.artist,
            "duration_seconds": metadata.duration,
            "track_number": metadata.track_number,
        }
        for name, value in extracted.items():
            if name in self.edited_fields:
                continue
            if name == "title" and not (value or "").strip():
                continue
            setattr(self, name, value)
        if (metadata.track_number or 0) > 0 and "position" not in self.edited_fields:
            self.position = metadata.track_number

    def mark_uploaded(self, credential: UploadCredential) -> None:
        self.transition(TrackStatus.UPLOADED)
        self.remote_key = credential.key
        self.cdn_url = credential.cdn_url

    def mark_created(self, result: CommitItemResult) -> None:
        self.transition(TrackStatus.CREATED)
        self.track_id = result.track_id
        self.release_id = result.release_id
        self.release_title = result.release_title
        self.release_created = result.release_created

    def edit(self, **changes: Any) -> None:
        """Apply user edits; editing a failed track makes it ready again."""
        if not self.editable:
            raise TrackLockedError(f"Track '{self.title}' is {self.status} and cannot be edited")
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise InvalidEditError(f"Fields not editable: {', '.join(sorted(unknown))}")
        if "title" in changes and not (changes["title"] or "").strip():
            raise InvalidEditError("Title is required")
        if "position" in changes and (changes["position"] is None or changes["position"] < 1):
            raise InvalidEditError("Position must be a positive integer")

        for name, value in changes.items():
            setattr(self, name, value)
        self.edited_fields.update(changes)
        if self.status == TrackStatus.FAILED:
            self.reset()

    def reset(self) -> None:
        """Clear a failure so the track is selected by the next run."""
        if self.status != TrackStatus.FAILED:
            raise TrackLockedError(f"Only failed tracks can be retried (track is {self.status})")
        self.status = TrackStatus.READY
        self.error = None
        self.remote_key = None
        self.cdn_url = None


@dataclass(eq=False)
class Batch:
    """The tracks selected in one ingestion session and their run options."""

    tracks: list[UploadableTrack] = field(default_factory=list)
    auto_match_or_create_release: bool = True
    publish_on_create: bool = False
    batch_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    run_guard: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def processing(self) -> bool:
        return self.run_guard.locked()

    @property
    def extracting(self) -> bool:
        return any(t.status == TrackStatus.EXTRACTING for t in self.tracks)

    @property
    def next_position(self) -> int:
        return max((t.position for t in self.tracks), default=0) + 1

    def get(self, local_id: str) -> UploadableTrack:
        for track in self.tracks:
            if track.local_id == local_id:
                return track
        raise TrackNotFoundError(f"Track {local_id} not found in batch {self.batch_id}")

    def with_status(self, *statuses: TrackStatus) -> list[UploadableTrack]:
        return [t for t in self.tracks if t.status in statuses]
