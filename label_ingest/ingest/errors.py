"""Errors raised by batch actions that are not allowed in the current state.

Stage failures inside a pipeline run never use these: they become track
state or a run report. These cover the user-facing preconditions (busy
batch, locked track, unknown id) and are mapped to the project's JSON
error envelope by the exception handler registered in main.py.
"""

from __future__ import annotations


class IngestActionError(Exception):
    """Base class for rejected batch actions."""

    status_code: int = 400
    default_code: str = "INGEST_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        self.code = code or self.default_code
        self.message = message
        super().__init__(message)


class BatchBusyError(IngestActionError):
    """A pipeline run is already in flight for this batch."""

    status_code = 409
    default_code = "BATCH_BUSY"


class BatchNotReadyError(IngestActionError):
    """The batch has nothing to upload, or extraction is still running."""

    status_code = 409
    default_code = "BATCH_NOT_READY"


class BatchNotFoundError(IngestActionError):
    status_code = 404
    default_code = "BATCH_NOT_FOUND"


class TrackNotFoundError(IngestActionError):
    status_code = 404
    default_code = "TRACK_NOT_FOUND"


class TrackLockedError(IngestActionError):
    """The track is past the point where it may be edited or removed."""

    status_code = 409
    default_code = "TRACK_LOCKED"


class InvalidEditError(IngestActionError):
    status_code = 400
    default_code = "INVALID_EDIT"


class InvalidTransitionError(IngestActionError):
    """A status change that is not an edge of the track state machine."""

    status_code = 500
    default_code = "INVALID_TRANSITION"
