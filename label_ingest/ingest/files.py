"""Local audio file references handed to the ingestion pipeline.

An ``AudioFile`` is the opaque byte source behind a track: a name, a MIME
type and a size, backed either by a path on disk (CLI) or by an in-memory
buffer (HTTP multipart upload).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import magic

logger = logging.getLogger(__name__)

GENERIC_MIME_TYPE = "application/octet-stream"


def _sniff_mime_type(path: Path | None = None, content: bytes | None = None) -> str:
    """Detect a MIME type from magic bytes, falling back to the generic type."""
    try:
        if content is not None:
            return magic.from_buffer(content[:8192], mime=True)
        if path is not None:
            return magic.from_file(str(path), mime=True)
    except Exception:
        logger.exception("Failed to detect MIME type for %s", path or "buffer")
    return GENERIC_MIME_TYPE


@dataclass(frozen=True)
class AudioFile:
    """A raw audio byte source selected for ingestion."""

    name: str
    mime_type: str
    size: int
    path: Path | None = None
    content: bytes | None = None

    @classmethod
    def from_path(cls, path: Path, mime_type: str | None = None) -> AudioFile:
        path = Path(path)
        return cls(
            name=path.name,
            mime_type=mime_type or _sniff_mime_type(path=path),
            size=path.stat().st_size,
            path=path,
        )

    @classmethod
    def from_bytes(cls, name: str, content: bytes, mime_type: str | None = None) -> AudioFile:
        if not mime_type or mime_type == GENERIC_MIME_TYPE:
            mime_type = _sniff_mime_type(content=content)
        return cls(name=name, mime_type=mime_type, size=len(content), content=content)

    @property
    def extension(self) -> str:
        """Lowercase extension including the dot, or an empty string."""
        return Path(self.name).suffix.lower()

    @property
    def stem(self) -> str:
        """File name without its final extension."""
        return Path(self.name).stem if self.extension else self.name

    async def read(self) -> bytes:
        if self.content is not None:
            return self.content
        if self.path is None:
            raise ValueError(f"AudioFile {self.name!r} has no byte source")
        return await asyncio.to_thread(self.path.read_bytes)
