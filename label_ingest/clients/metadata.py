"""Client for the metadata extraction service.

Posts one file's bytes as multipart form data and returns the parsed tags.
Any failure (transport, non-2xx, malformed body, ``success: false``) is
raised as ``MetadataExtractionError``; the orchestrator turns that into a
filename-derived title.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from label_ingest.clients.base import CollaboratorClient, describe_http_error
from label_ingest.ingest.files import AudioFile
from label_ingest.schemas.collaborators import ExtractedMetadata, MetadataResponse

logger = logging.getLogger(__name__)


class MetadataExtractionError(Exception):
    """Metadata could not be extracted for a file."""


class MetadataExtractorClient(CollaboratorClient):
    async def extract(self, audio: AudioFile) -> ExtractedMetadata:
        content = await audio.read()
        try:
            response = await self._http.post(
                self._url,
                files={"file": (audio.name, content, audio.mime_type)},
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            raise MetadataExtractionError(
                f"Metadata request failed for {audio.name}: {exc!r}"
            ) from exc

        if not response.is_success:
            raise MetadataExtractionError(
                f"Metadata extraction failed for {audio.name}: {describe_http_error(response)}"
            )

        try:
            payload = MetadataResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise MetadataExtractionError(
                f"Malformed metadata response for {audio.name}"
            ) from exc

        if not payload.success or payload.metadata is None:
            raise MetadataExtractionError(
                f"Metadata extraction failed for {audio.name}: {payload.error or 'no metadata'}"
            )

        logger.debug("Extracted metadata for %s: %s", audio.name, payload.metadata)
        return payload.metadata
