"""Audio type validation for files offered to a batch.

A file is accepted when either its MIME type or its extension is in the
supported set; browsers and file pickers disagree on MIME types for the
same container, so either signal is enough.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum

from label_ingest.ingest.files import AudioFile
from label_ingest.ingest.models import UploadableTrack

SUPPORTED_MIME_TYPES: frozenset[str] = frozenset(
    {
        "audio/mpeg",
        "audio/mp3",
        "audio/wav",
        "audio/wave",
        "audio/x-wav",
        "audio/aiff",
        "audio/x-aiff",
        "audio/flac",
        "audio/x-flac",
        "audio/aac",
        "audio/ogg",
        "audio/webm",
        "audio/m4a",
        "audio/x-m4a",
        "audio/mp4",
    }
)

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
    {".mp3", ".wav", ".wave", ".flac", ".aac", ".ogg", ".oga", ".m4a", ".aif", ".aiff", ".webm"}
)


class ValidationOutcome(StrEnum):
    EMPTY = "empty"
    NO_SUPPORTED_FILES = "no_supported_files"
    SOME_SKIPPED = "some_skipped"
    ALL_ACCEPTED = "all_accepted"


@dataclass
class ValidationResult:
    accepted: list[UploadableTrack] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)

    @property
    def rejected_count(self) -> int:
        return len(self.rejected)

    @property
    def outcome(self) -> ValidationOutcome:
        if not self.accepted and not self.rejected:
            return ValidationOutcome.EMPTY
        if not self.accepted:
            return ValidationOutcome.NO_SUPPORTED_FILES
        if self.rejected:
            return ValidationOutcome.SOME_SKIPPED
        return ValidationOutcome.ALL_ACCEPTED

    @property
    def message(self) -> str:
        outcome = self.outcome
        if outcome == ValidationOutcome.EMPTY:
            return "No files selected"
        if outcome == ValidationOutcome.NO_SUPPORTED_FILES:
            return "No supported audio files selected"
        if outcome == ValidationOutcome.SOME_SKIPPED:
            return f"{self.rejected_count} unsupported file(s) were skipped"
        return f"Added {len(self.accepted)} track(s)"


def is_supported_audio(audio: AudioFile) -> bool:
    mime_type = (audio.mime_type or "").split(";", 1)[0].strip().lower()
    return mime_type in SUPPORTED_MIME_TYPES or audio.extension in SUPPORTED_EXTENSIONS


def validate_files(files: Iterable[AudioFile], start_position: int = 1) -> ValidationResult:
    """Split candidate files into new pending tracks and rejected names.

    Accepted tracks are numbered from ``start_position`` in input order and
    titled with the file name minus its extension.
    """
    result = ValidationResult()
    for audio in files:
        if not is_supported_audio(audio):
            result.rejected.append(audio.name)
            continue
        result.accepted.append(
            UploadableTrack(
                file=audio,
                position=start_position + len(result.accepted),
                title=audio.stem,
            )
        )
    return result
