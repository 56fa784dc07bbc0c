"""Tests for audio file references and MIME detection."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from label_ingest.ingest.files import GENERIC_MIME_TYPE, AudioFile


def test_declared_mime_type_is_kept():
    with patch("label_ingest.ingest.files.magic") as mock_magic:
        audio = AudioFile.from_bytes("a.mp3", b"ID3", "audio/mpeg")

    mock_magic.from_buffer.assert_not_called()
    assert audio.mime_type == "audio/mpeg"
    assert audio.size == 3


def test_generic_mime_type_is_sniffed_from_content():
    with patch("label_ingest.ingest.files.magic") as mock_magic:
        mock_magic.from_buffer.return_value = "audio/flac"
        audio = AudioFile.from_bytes("master", b"fLaC", GENERIC_MIME_TYPE)

    mock_magic.from_buffer.assert_called_once_with(b"fLaC", mime=True)
    assert audio.mime_type == "audio/flac"


def test_detection_failure_falls_back_to_generic_type():
    with patch("label_ingest.ingest.files.magic") as mock_magic:
        mock_magic.from_buffer.side_effect = RuntimeError("magic database missing")
        audio = AudioFile.from_bytes("blob", b"\x00\x01")

    assert audio.mime_type == GENERIC_MIME_TYPE


def test_path_is_sniffed_from_file(tmp_path: Path):
    path = tmp_path / "Take 3.WAV"
    path.write_bytes(b"RIFF")

    with patch("label_ingest.ingest.files.magic") as mock_magic:
        mock_magic.from_file.return_value = "audio/x-wav"
        audio = AudioFile.from_path(path)

    mock_magic.from_file.assert_called_once_with(str(path), mime=True)
    assert (audio.name, audio.extension, audio.stem) == ("Take 3.WAV", ".wav", "Take 3")
    assert audio.mime_type == "audio/x-wav"


@pytest.mark.asyncio
async def test_read_prefers_buffer_then_disk(tmp_path: Path):
    path = tmp_path / "a.mp3"
    path.write_bytes(b"on disk")

    assert await AudioFile.from_bytes("a.mp3", b"in memory", "audio/mpeg").read() == b"in memory"
    assert await AudioFile.from_path(path, "audio/mpeg").read() == b"on disk"
