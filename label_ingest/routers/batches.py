"""Batch ingestion endpoints.

An admin opens a batch, adds audio files (validated and metadata-extracted
on arrival), edits titles and positions, then triggers one pipeline run
that uploads and commits every ready track. The batch lives in memory on
``app.state.batches`` until it is closed.

Protected by admin API key (X-Admin-Key header). A batch accepts one run
at a time; a second concurrent run is rejected with 409.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile

from label_ingest.auth.admin import require_admin_key
from label_ingest.ingest.files import AudioFile
from label_ingest.ingest.registry import BatchRegistry
from label_ingest.schemas.batch import (
    AddFilesResponse,
    BatchCreate,
    BatchOptionsUpdate,
    BatchView,
    RunResponse,
    TrackEdit,
    TrackView,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/batches",
    tags=["batches"],
    dependencies=[Depends(require_admin_key)],
)


def _registry(request: Request) -> BatchRegistry:
    return request.app.state.batches


# ---------------------------------------------------------------------------
# Batch lifecycle
# ---------------------------------------------------------------------------


@router.post("", response_model=BatchView, status_code=201)
async def create_batch(request: Request, body: BatchCreate | None = None) -> BatchView:
    options = body or BatchCreate()
    orchestrator = _registry(request).create(
        auto_match_or_create_release=options.auto_match_or_create_release,
        publish_on_create=options.publish_on_create,
    )
    return BatchView.from_orchestrator(orchestrator)


@router.get("/{batch_id}", response_model=BatchView)
async def get_batch(request: Request, batch_id: str) -> BatchView:
    return BatchView.from_orchestrator(_registry(request).get(batch_id))


@router.patch("/{batch_id}", response_model=BatchView)
async def update_batch_options(
    request: Request, batch_id: str, body: BatchOptionsUpdate
) -> BatchView:
    orchestrator = _registry(request).get(batch_id)
    orchestrator.set_options(
        auto_match_or_create_release=body.auto_match_or_create_release,
        publish_on_create=body.publish_on_create,
    )
    return BatchView.from_orchestrator(orchestrator)


@router.delete("/{batch_id}", status_code=204)
async def close_batch(request: Request, batch_id: str) -> Response:
    _registry(request).discard(batch_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Files and tracks
# ---------------------------------------------------------------------------


@router.post("/{batch_id}/files", response_model=AddFilesResponse)
async def add_files(
    request: Request,
    batch_id: str,
    files: list[UploadFile] = File(  # noqa: B008
        ...,
        description="Audio files to add (MP3, WAV, FLAC, AAC, OGG, M4A).",
    ),
) -> AddFilesResponse:
    """Validate the uploaded files, add the supported ones, extract their metadata.

    Unsupported files are counted and named in the response rather than
    failing the request; ``outcome`` tells "some skipped" apart from
    "no supported files".
    """
    orchestrator = _registry(request).get(batch_id)

    audio_files: list[AudioFile] = []
    for upload in files:
        content = await upload.read()
        audio_files.append(
            AudioFile.from_bytes(upload.filename or "upload", content, upload.content_type)
        )

    result = await orchestrator.ingest_files(audio_files)
    return AddFilesResponse.build(result, orchestrator)


@router.patch("/{batch_id}/tracks/{local_id}", response_model=TrackView)
async def edit_track(request: Request, batch_id: str, local_id: str, body: TrackEdit) -> TrackView:
    orchestrator = _registry(request).get(batch_id)
    track = orchestrator.edit_track(local_id, **body.model_dump(exclude_unset=True))
    return TrackView.from_track(track)


@router.post("/{batch_id}/tracks/{local_id}/retry", response_model=TrackView)
async def retry_track(request: Request, batch_id: str, local_id: str) -> TrackView:
    orchestrator = _registry(request).get(batch_id)
    return TrackView.from_track(orchestrator.retry_track(local_id))


@router.delete("/{batch_id}/tracks/{local_id}", status_code=204)
async def remove_track(request: Request, batch_id: str, local_id: str) -> Response:
    _registry(request).get(batch_id).remove_track(local_id)
    return Response(status_code=204)


@router.delete("/{batch_id}/tracks", status_code=204)
async def clear_tracks(request: Request, batch_id: str) -> Response:
    _registry(request).get(batch_id).clear_all()
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Pipeline run
# ---------------------------------------------------------------------------


@router.post(
    "/{batch_id}/run",
    response_model=RunResponse,
    responses={
        404: {"description": "Unknown batch"},
        409: {"description": "A run is in progress, extraction is running, or nothing is ready"},
    },
)
async def run_batch(request: Request, batch_id: str) -> RunResponse:
    """Upload and commit every ready track in the batch.

    Stage failures are reported in the body (``level`` and per-track
    ``error``), not as HTTP errors.
    """
    orchestrator = _registry(request).get(batch_id)
    report = await orchestrator.run()
    return RunResponse.build(report, orchestrator)
