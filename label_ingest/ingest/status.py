"""Derived batch status: counts, run outcome, and summary notifications.

Everything here is a pure function of track statuses. Nothing in this
module mutates a track or decides a transition.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from label_ingest.ingest.models import TrackStatus, UploadableTrack

PENDING_GROUP = frozenset({TrackStatus.PENDING, TrackStatus.EXTRACTING, TrackStatus.READY})
UPLOADING_GROUP = frozenset({TrackStatus.UPLOADING, TrackStatus.UPLOADED, TrackStatus.COMMITTING})

STATUS_LABELS: dict[TrackStatus, str] = {
    TrackStatus.PENDING: "Pending",
    TrackStatus.EXTRACTING: "Extracting metadata...",
    TrackStatus.READY: "Ready",
    TrackStatus.UPLOADING: "Uploading...",
    TrackStatus.UPLOADED: "Uploaded",
    TrackStatus.COMMITTING: "Creating track...",
    TrackStatus.CREATED: "Created",
    TrackStatus.FAILED: "Failed",
}


class RunOutcome(StrEnum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class ReportLevel(StrEnum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class BatchSummary:
    total: int
    pending_count: int
    uploading_count: int
    created_count: int
    failed_count: int

    @property
    def progress_percent(self) -> float:
        if self.total == 0:
            return 0.0
        return round((self.created_count + self.failed_count) / self.total * 100, 1)


@dataclass(frozen=True)
class RunReport:
    """The single notification produced by one pipeline run."""

    level: ReportLevel
    message: str
    outcome: RunOutcome | None = None
    created_count: int = 0
    failed_count: int = 0


def summarize(tracks: Sequence[UploadableTrack]) -> BatchSummary:
    return BatchSummary(
        total=len(tracks),
        pending_count=sum(1 for t in tracks if t.status in PENDING_GROUP),
        uploading_count=sum(1 for t in tracks if t.status in UPLOADING_GROUP),
        created_count=sum(1 for t in tracks if t.status == TrackStatus.CREATED),
        failed_count=sum(1 for t in tracks if t.status == TrackStatus.FAILED),
    )


def derive_outcome(tracks: Sequence[UploadableTrack]) -> RunOutcome | None:
    """Outcome of a set of tracks, or None until every one is terminal."""
    if not tracks or not all(t.terminal for t in tracks):
        return None
    created = sum(1 for t in tracks if t.status == TrackStatus.CREATED)
    if created == len(tracks):
        return RunOutcome.SUCCESS
    if created > 0:
        return RunOutcome.PARTIAL
    return RunOutcome.FAILED


def build_run_report(
    tracks: Sequence[UploadableTrack],
    *,
    error: str | None = None,
) -> RunReport:
    """Build the summary notification for the tracks of a finished run.

    ``error`` is the batch-level reason used when nothing was created; it
    falls back to the first per-track error.
    """
    summary = summarize(tracks)
    outcome = derive_outcome(tracks)
    created, failed = summary.created_count, summary.failed_count

    if outcome == RunOutcome.SUCCESS:
        return RunReport(
            ReportLevel.SUCCESS,
            f"Successfully created {created} track(s)",
            outcome,
            created,
            failed,
        )
    if outcome == RunOutcome.PARTIAL:
        return RunReport(
            ReportLevel.WARNING,
            f"Created {created} track(s), {failed} failed",
            outcome,
            created,
            failed,
        )

    reason = error or next((t.error for t in tracks if t.error), None) or "Unknown error"
    return RunReport(
        ReportLevel.ERROR,
        f"Failed to create tracks: {reason}",
        outcome,
        created,
        failed,
    )


def format_duration(seconds: float | None) -> str:
    """Render seconds as M:SS or H:MM:SS; unknown or non-positive is --:--."""
    if not seconds or seconds <= 0:
        return "--:--"
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    exponent = 0
    while size >= 1024 ** (exponent + 1) and exponent < len(units) - 1:
        exponent += 1
    value = round(size / 1024**exponent, 2)
    return f"{value:g} {units[exponent]}"
