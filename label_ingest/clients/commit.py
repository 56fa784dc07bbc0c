"""Client for the batch track creation service."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx
from pydantic import ValidationError

from label_ingest.clients.base import CollaboratorClient, describe_http_error
from label_ingest.schemas.collaborators import CommitRequest, CommitResponse, CommitTrack

logger = logging.getLogger(__name__)


class BatchCommitError(Exception):
    """The commit call failed as a whole (transport, status, or body)."""


class BatchCommitClient(CollaboratorClient):
    async def commit(self, tracks: Sequence[CommitTrack]) -> CommitResponse:
        """Persist uploaded files as track records.

        A response that reports total failure (``success: false`` with no
        per-item results) is returned as-is; only an unusable response
        raises.
        """
        body = CommitRequest(tracks=list(tracks)).to_wire()
        try:
            response = await self._http.post(self._url, json=body, headers=self._headers())
        except httpx.HTTPError as exc:
            raise BatchCommitError(f"Commit request failed: {exc!r}") from exc

        try:
            payload = CommitResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            if not response.is_success:
                raise BatchCommitError(describe_http_error(response)) from exc
            raise BatchCommitError("Malformed commit response") from exc

        logger.info(
            "Commit response: success=%s created=%d failed=%d results=%d",
            payload.success,
            payload.success_count,
            payload.failed_count,
            len(payload.results),
        )
        return payload
