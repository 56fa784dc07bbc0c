"""Direct byte upload to object storage through a presigned URL."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from label_ingest.ingest.files import AudioFile
from label_ingest.schemas.collaborators import UploadCredential

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadOutcome:
    success: bool
    key: str
    cdn_url: str
    error: str | None = None


class StorageUploader:
    """PUTs file bytes to presigned URLs.

    Never raises for a failed transfer: every outcome, including transport
    errors, comes back as an ``UploadOutcome`` so sibling uploads are
    unaffected.
    """

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def upload(self, audio: AudioFile, credential: UploadCredential) -> UploadOutcome:
        try:
            content = await audio.read()
            response = await self._http.put(
                credential.upload_url,
                content=content,
                headers={"Content-Type": audio.mime_type},
            )
        except (httpx.HTTPError, OSError) as exc:
            logger.warning("Upload error for %s (%s): %r", audio.name, credential.key, exc)
            return UploadOutcome(
                success=False,
                key=credential.key,
                cdn_url=credential.cdn_url,
                error=str(exc) or exc.__class__.__name__,
            )

        if not response.is_success:
            detail = response.text.strip()
            error = f"Upload failed: {response.status_code} {response.reason_phrase}".rstrip()
            if detail:
                error = f"{error} - {detail}"
            logger.warning("Storage rejected %s (%s): %s", audio.name, credential.key, error)
            return UploadOutcome(
                success=False, key=credential.key, cdn_url=credential.cdn_url, error=error
            )

        return UploadOutcome(success=True, key=credential.key, cdn_url=credential.cdn_url)
