from __future__ import annotations

from pydantic import BaseModel, Field

from label_ingest.ingest.models import TrackStatus, UploadableTrack
from label_ingest.ingest.orchestrator import IngestionOrchestrator
from label_ingest.ingest.status import (
    STATUS_LABELS,
    BatchSummary,
    ReportLevel,
    RunOutcome,
    RunReport,
    format_duration,
    format_file_size,
)
from label_ingest.ingest.validator import ValidationOutcome, ValidationResult


class BatchCreate(BaseModel):
    auto_match_or_create_release: bool | None = None
    publish_on_create: bool | None = None


class BatchOptionsUpdate(BaseModel):
    auto_match_or_create_release: bool | None = None
    publish_on_create: bool | None = None


class TrackEdit(BaseModel):
    """Fields an admin may change before a track is committed."""

    title: str | None = None
    album: str | None = None
    artist: str | None = None
    duration_seconds: float | None = Field(default=None, gt=0)
    track_number: int | None = Field(default=None, ge=1)
    position: int | None = Field(default=None, ge=1)


class TrackView(BaseModel):
    """Read-only projection of one track's state."""

    local_id: str
    file_name: str
    file_size: int
    file_size_display: str
    mime_type: str
    title: str
    album: str | None = None
    artist: str | None = None
    duration_seconds: float | None = None
    duration_display: str
    track_number: int | None = None
    position: int
    status: TrackStatus
    status_label: str
    editable: bool
    error: str | None = None
    remote_key: str | None = None
    cdn_url: str | None = None
    track_id: str | None = None
    release_id: str | None = None
    release_title: str | None = None
    release_created: bool | None = None

    @classmethod
    def from_track(cls, track: UploadableTrack) -> TrackView:
        return cls(
            local_id=track.local_id,
            file_name=track.file.name,
            file_size=track.file.size,
            file_size_display=format_file_size(track.file.size),
            mime_type=track.file.mime_type,
            title=track.title,
            album=track.album,
            artist=track.artist,
            duration_seconds=track.duration_seconds,
            duration_display=format_duration(track.duration_seconds),
            track_number=track.track_number,
            position=track.position,
            status=track.status,
            status_label=STATUS_LABELS[track.status],
            editable=track.editable,
            error=track.error,
            remote_key=track.remote_key,
            cdn_url=track.cdn_url,
            track_id=track.track_id,
            release_id=track.release_id,
            release_title=track.release_title,
            release_created=track.release_created,
        )


class SummaryView(BaseModel):
    total: int
    pending_count: int
    uploading_count: int
    created_count: int
    failed_count: int
    progress_percent: float

    @classmethod
    def from_summary(cls, summary: BatchSummary) -> SummaryView:
        return cls(
            total=summary.total,
            pending_count=summary.pending_count,
            uploading_count=summary.uploading_count,
            created_count=summary.created_count,
            failed_count=summary.failed_count,
            progress_percent=summary.progress_percent,
        )


class BatchView(BaseModel):
    batch_id: str
    auto_match_or_create_release: bool
    publish_on_create: bool
    processing: bool
    can_run: bool
    summary: SummaryView
    tracks: list[TrackView] = Field(default_factory=list)

    @classmethod
    def from_orchestrator(cls, orchestrator: IngestionOrchestrator) -> BatchView:
        batch = orchestrator.batch
        return cls(
            batch_id=batch.batch_id,
            auto_match_or_create_release=batch.auto_match_or_create_release,
            publish_on_create=batch.publish_on_create,
            processing=batch.processing,
            can_run=orchestrator.can_run,
            summary=SummaryView.from_summary(orchestrator.summary()),
            tracks=[TrackView.from_track(t) for t in batch.tracks],
        )


class AddFilesResponse(BaseModel):
    outcome: ValidationOutcome
    message: str
    accepted_count: int
    rejected_count: int
    rejected_files: list[str] = Field(default_factory=list)
    batch: BatchView

    @classmethod
    def build(
        cls, result: ValidationResult, orchestrator: IngestionOrchestrator
    ) -> AddFilesResponse:
        return cls(
            outcome=result.outcome,
            message=result.message,
            accepted_count=len(result.accepted),
            rejected_count=result.rejected_count,
            rejected_files=result.rejected,
            batch=BatchView.from_orchestrator(orchestrator),
        )


class RunResponse(BaseModel):
    level: ReportLevel
    message: str
    outcome: RunOutcome | None = None
    created_count: int
    failed_count: int
    batch: BatchView

    @classmethod
    def build(cls, report: RunReport, orchestrator: IngestionOrchestrator) -> RunResponse:
        return cls(
            level=report.level,
            message=report.message,
            outcome=report.outcome,
            created_count=report.created_count,
            failed_count=report.failed_count,
            batch=BatchView.from_orchestrator(orchestrator),
        )
