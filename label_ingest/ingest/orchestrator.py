"""Bulk ingestion orchestrator: drives a batch from local files to track records.

Owns one ``Batch`` and is its only writer while a run is in flight. A run
goes through four phases against three collaborators:

1. Acquire  - one credential request for every ``ready`` track
2. Upload   - concurrent byte transfers, all-settled
3. Commit   - one batch commit for everything that uploaded
4. Finalize - release the run guard and derive the summary report

Every stage failure is caught at the stage boundary and recorded as track
state or as the run report; nothing a collaborator raises escapes ``run()``.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from label_ingest.clients.commit import BatchCommitError
from label_ingest.clients.credentials import CredentialIssuanceError
from label_ingest.clients.storage import UploadOutcome
from label_ingest.ingest.errors import BatchBusyError, BatchNotReadyError, TrackLockedError
from label_ingest.ingest.files import AudioFile
from label_ingest.ingest.models import Batch, TrackStatus, UploadableTrack
from label_ingest.ingest.status import (
    BatchSummary,
    ReportLevel,
    RunReport,
    build_run_report,
    derive_outcome,
    summarize,
)
from label_ingest.ingest.validator import ValidationResult, validate_files
from label_ingest.schemas.collaborators import (
    CommitItemResult,
    CommitResponse,
    CommitTrack,
    ExtractedMetadata,
    UploadCredential,
)
from label_ingest.settings import settings

logger = logging.getLogger(__name__)

NO_CREDENTIAL_ERROR = "No upload credential was issued for this file"
NO_COMMIT_RESULT_ERROR = "No commit result was returned for this track"


# ---------------------------------------------------------------------------
# Collaborator interfaces
# ---------------------------------------------------------------------------


class MetadataExtractor(Protocol):
    async def extract(self, audio: AudioFile) -> ExtractedMetadata: ...


class CredentialRequestor(Protocol):
    async def request(self, files: Sequence[AudioFile]) -> list[UploadCredential]: ...


class Uploader(Protocol):
    async def upload(self, audio: AudioFile, credential: UploadCredential) -> UploadOutcome: ...


class Committer(Protocol):
    async def commit(self, tracks: Sequence[CommitTrack]) -> CommitResponse: ...


@dataclass(frozen=True)
class StageTimeouts:
    """Per-call timeout budgets in seconds. A timeout counts as a failure."""

    metadata: float = 60.0
    credentials: float = 15.0
    upload: float = 300.0
    commit: float = 60.0

    @classmethod
    def from_settings(cls) -> StageTimeouts:
        return cls(
            metadata=settings.metadata_timeout_seconds,
            credentials=settings.credentials_timeout_seconds,
            upload=settings.upload_timeout_seconds,
            commit=settings.commit_timeout_seconds,
        )


# ---------------------------------------------------------------------------
# Result reconciliation
# ---------------------------------------------------------------------------


def reconcile_commit_results(
    submitted: Sequence[UploadableTrack],
    results: Iterable[CommitItemResult],
) -> None:
    """Apply per-item commit results to the tracks they were submitted for.

    Results are matched on ``result.index`` (position in the submitted
    list), not on response order. Unknown or repeated indexes are ignored;
    a submitted track with no result fails.
    """
    by_index: dict[int, CommitItemResult] = {}
    for result in results:
        if not 0 <= result.index < len(submitted):
            logger.warning("Ignoring commit result with unknown index %d", result.index)
            continue
        if result.index in by_index:
            logger.warning("Ignoring duplicate commit result for index %d", result.index)
            continue
        by_index[result.index] = result

    for index, track in enumerate(submitted):
        result = by_index.get(index)
        if result is None:
            track.transition(TrackStatus.FAILED, error=NO_COMMIT_RESULT_ERROR)
        elif result.success:
            track.mark_created(result)
        else:
            track.transition(TrackStatus.FAILED, error=result.error or "Failed to create track")


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class IngestionOrchestrator:
    """Drives one batch through validation, extraction, upload and commit.

    Usage::

        orchestrator = IngestionOrchestrator(
            Batch(), extractor=..., credentials=..., uploader=..., committer=...
        )
        await orchestrator.ingest_files(files)
        report = await orchestrator.run()
    """

    def __init__(
        self,
        batch: Batch,
        *,
        extractor: MetadataExtractor,
        credentials: CredentialRequestor,
        uploader: Uploader,
        committer: Committer,
        timeouts: StageTimeouts | None = None,
        max_concurrent_extractions: int = 4,
        max_concurrent_uploads: int = 4,
    ) -> None:
        self._batch = batch
        self._extractor = extractor
        self._credentials = credentials
        self._uploader = uploader
        self._committer = committer
        self._timeouts = timeouts or StageTimeouts()
        self._max_extractions = max(1, max_concurrent_extractions)
        self._max_uploads = max(1, max_concurrent_uploads)

    @property
    def batch(self) -> Batch:
        return self._batch

    @property
    def can_run(self) -> bool:
        return (
            not self._batch.processing
            and not self._batch.extracting
            and bool(self._batch.with_status(TrackStatus.READY))
        )

    def summary(self) -> BatchSummary:
        return summarize(self._batch.tracks)

    # ------------------------------------------------------------------
    # Batch editing
    # ------------------------------------------------------------------

    def _ensure_idle(self) -> None:
        if self._batch.processing:
            raise BatchBusyError("A batch upload is in progress")

    def add_files(self, files: Iterable[AudioFile]) -> ValidationResult:
        """Validate candidate files and append the supported ones as pending tracks."""
        self._ensure_idle()
        result = validate_files(files, start_position=self._batch.next_position)
        self._batch.tracks.extend(result.accepted)
        if result.rejected:
            logger.warning(
                "Batch %s: skipped %d unsupported file(s): %s",
                self._batch.batch_id,
                result.rejected_count,
                ", ".join(result.rejected),
            )
        logger.info("Batch %s: accepted %d file(s)", self._batch.batch_id, len(result.accepted))
        return result

    async def ingest_files(self, files: Iterable[AudioFile]) -> ValidationResult:
        """Add files to the batch and extract their metadata."""
        result = self.add_files(files)
        if result.accepted:
            await self.extract_pending()
        return result

    def edit_track(self, local_id: str, **changes: Any) -> UploadableTrack:
        self._ensure_idle()
        track = self._batch.get(local_id)
        track.edit(**changes)
        return track

    def retry_track(self, local_id: str) -> UploadableTrack:
        """Make a failed track eligible for the next run."""
        self._ensure_idle()
        track = self._batch.get(local_id)
        track.reset()
        logger.info("Batch %s: track %s reset for retry", self._batch.batch_id, local_id)
        return track

    def remove_track(self, local_id: str) -> None:
        self._ensure_idle()
        track = self._batch.get(local_id)
        if not track.editable:
            raise TrackLockedError(f"Track '{track.title}' is {track.status} and cannot be removed")
        self._batch.tracks.remove(track)

    def clear_all(self) -> None:
        self._ensure_idle()
        self._batch.tracks.clear()

    def set_options(
        self,
        *,
        auto_match_or_create_release: bool | None = None,
        publish_on_create: bool | None = None,
    ) -> None:
        self._ensure_idle()
        if auto_match_or_create_release is not None:
            self._batch.auto_match_or_create_release = auto_match_or_create_release
        if publish_on_create is not None:
            self._batch.publish_on_create = publish_on_create

    # ------------------------------------------------------------------
    # Metadata extraction
    # ------------------------------------------------------------------

    async def extract_pending(self) -> None:
        """Extract metadata for every pending track, concurrently.

        All pending tracks move to ``extracting`` before the first request
        so the batch cannot be run while any of them is outstanding.
        """
        pending = self._batch.with_status(TrackStatus.PENDING)
        if not pending:
            return
        for track in pending:
            track.transition(TrackStatus.EXTRACTING)

        semaphore = asyncio.Semaphore(self._max_extractions)
        results = await asyncio.gather(
            *(self._extract_one(track, semaphore) for track in pending),
            return_exceptions=True,
        )
        for track, result in zip(pending, results, strict=True):
            if isinstance(result, BaseException):
                logger.error("Extraction task crashed for %s: %r", track.file.name, result)
                if track.status == TrackStatus.EXTRACTING:
                    track.transition(TrackStatus.READY)

    async def _extract_one(self, track: UploadableTrack, semaphore: asyncio.Semaphore) -> None:
        metadata: ExtractedMetadata | None = None
        async with semaphore:
            try:
                metadata = await asyncio.wait_for(
                    self._extractor.extract(track.file),
                    timeout=self._timeouts.metadata,
                )
            except TimeoutError:
                logger.warning(
                    "Metadata extraction timed out after %.1fs for %s, using filename",
                    self._timeouts.metadata,
                    track.file.name,
                )
            except Exception as exc:
                logger.warning(
                    "Metadata extraction failed for %s, using filename: %s",
                    track.file.name,
                    exc,
                )
        track.apply_metadata(metadata)
        track.transition(TrackStatus.READY)

    # ------------------------------------------------------------------
    # Pipeline run
    # ------------------------------------------------------------------

    async def run(self) -> RunReport:
        """Upload and commit every ``ready`` track.

        Raises:
            BatchBusyError: Another run is in flight for this batch.
            BatchNotReadyError: Extraction is still running, or nothing is ready.
        """
        if self._batch.processing:
            raise BatchBusyError("A batch upload is already in progress")
        if self._batch.extracting:
            raise BatchNotReadyError("Metadata extraction is still in progress")
        active = self._batch.with_status(TrackStatus.READY)
        if not active:
            raise BatchNotReadyError("No tracks ready for upload")

        # No await point between the checks above and taking the guard.
        async with self._batch.run_guard:
            return await self._run(active)

    async def _run(self, active: list[UploadableTrack]) -> RunReport:
        run_id = uuid.uuid4().hex[:8]
        t0 = time.perf_counter()
        logger.info(
            "Run %s: %d track(s) selected from batch %s",
            run_id,
            len(active),
            self._batch.batch_id,
        )

        # Phase 1: acquire credentials
        credentials, error = await self._acquire_credentials(active)
        if error is not None:
            logger.error("Run %s aborted before upload: %s", run_id, error)
            return RunReport(ReportLevel.ERROR, error)

        # Phase 2: upload
        for track in active:
            track.transition(TrackStatus.UPLOADING)
        paired = list(zip(active, credentials))
        for track in active[len(paired) :]:
            track.transition(TrackStatus.FAILED, error=NO_CREDENTIAL_ERROR)

        uploaded = await self._upload_all(paired)
        if not uploaded:
            logger.error("Run %s: all %d upload(s) failed", run_id, len(active))
            return RunReport(
                ReportLevel.ERROR,
                "All file uploads failed",
                derive_outcome(active),
                0,
                len(active),
            )
        logger.info("Run %s: %d/%d file(s) uploaded", run_id, len(uploaded), len(active))

        # Phase 3: commit
        commit_error = await self._commit(uploaded)

        # Phase 4: finalize
        report = build_run_report(active, error=commit_error)
        logger.info(
            "Run %s complete in %.2fs: %s (created=%d, failed=%d)",
            run_id,
            time.perf_counter() - t0,
            report.outcome,
            report.created_count,
            report.failed_count,
        )
        return report

    async def _acquire_credentials(
        self, active: list[UploadableTrack]
    ) -> tuple[list[UploadCredential], str | None]:
        try:
            credentials = await asyncio.wait_for(
                self._credentials.request([t.file for t in active]),
                timeout=self._timeouts.credentials,
            )
        except TimeoutError:
            return [], f"Upload URL request timed out after {self._timeouts.credentials:g}s"
        except CredentialIssuanceError as exc:
            return [], str(exc)
        except Exception as exc:
            logger.exception("Unexpected error requesting upload URLs")
            return [], f"Failed to get upload URLs: {exc}"

        if not credentials:
            return [], "Failed to get upload URLs"
        return list(credentials), None

    async def _upload_all(
        self, paired: list[tuple[UploadableTrack, UploadCredential]]
    ) -> list[UploadableTrack]:
        semaphore = asyncio.Semaphore(self._max_uploads)
        results = await asyncio.gather(
            *(self._upload_one(track, credential, semaphore) for track, credential in paired),
            return_exceptions=True,
        )
        for (track, _), result in zip(paired, results, strict=True):
            if isinstance(result, BaseException) and track.status == TrackStatus.UPLOADING:
                logger.error("Upload task crashed for %s: %r", track.file.name, result)
                track.transition(
                    TrackStatus.FAILED, error=str(result) or result.__class__.__name__
                )
        return [track for track, _ in paired if track.status == TrackStatus.UPLOADED]

    async def _upload_one(
        self,
        track: UploadableTrack,
        credential: UploadCredential,
        semaphore: asyncio.Semaphore,
    ) -> None:
        async with semaphore:
            try:
                outcome = await asyncio.wait_for(
                    self._uploader.upload(track.file, credential),
                    timeout=self._timeouts.upload,
                )
            except TimeoutError:
                outcome = UploadOutcome(
                    success=False,
                    key=credential.key,
                    cdn_url=credential.cdn_url,
                    error=f"Upload timed out after {self._timeouts.upload:g}s",
                )

        if outcome.success:
            track.mark_uploaded(credential)
        else:
            logger.warning("Upload failed for %s: %s", track.file.name, outcome.error)
            track.transition(TrackStatus.FAILED, error=outcome.error or "Upload failed")

    def _commit_item(self, track: UploadableTrack) -> CommitTrack:
        extra = track.metadata or ExtractedMetadata()
        return CommitTrack(
            title=track.title.strip(),
            album=track.album,
            artist=track.artist,
            duration=track.duration_seconds,
            position=track.position,
            remote_key=track.remote_key or "",
            cdn_url=track.cdn_url or "",
            auto_match_or_create_release=self._batch.auto_match_or_create_release,
            publish_on_create=self._batch.publish_on_create,
            album_artist=extra.album_artist,
            year=extra.year,
            label=extra.label,
            catalog_number=extra.catalog_number,
            lossless=extra.lossless,
            date=extra.date,
            cover_art=extra.cover_art,
        )

    async def _commit(self, uploaded: list[UploadableTrack]) -> str | None:
        """Commit uploaded tracks; returns the batch-level error, if any."""
        for track in uploaded:
            track.transition(TrackStatus.COMMITTING)
        items = [self._commit_item(track) for track in uploaded]

        response: CommitResponse | None = None
        error: str | None = None
        try:
            response = await asyncio.wait_for(
                self._committer.commit(items),
                timeout=self._timeouts.commit,
            )
        except TimeoutError:
            error = f"Commit request timed out after {self._timeouts.commit:g}s"
        except BatchCommitError as exc:
            error = str(exc)
        except Exception as exc:
            logger.exception("Unexpected error committing tracks")
            error = str(exc) or exc.__class__.__name__

        if response is not None and not response.results:
            error = response.error or "No commit results were returned"

        if error is not None or response is None:
            error = error or "Unknown error"
            logger.error("Commit failed for %d track(s): %s", len(uploaded), error)
            for track in uploaded:
                track.transition(TrackStatus.FAILED, error=error)
            return error

        reconcile_commit_results(uploaded, response.results)
        return response.error
