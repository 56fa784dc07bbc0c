"""Client for the presigned upload URL issuance service.

One request covers the whole active set; the response data is aligned
with the request order. Total failure raises ``CredentialIssuanceError``
carrying the service's error message verbatim where it sent one.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx
from pydantic import ValidationError

from label_ingest.clients.base import CollaboratorClient, describe_http_error
from label_ingest.ingest.files import AudioFile
from label_ingest.schemas.collaborators import (
    CredentialFile,
    CredentialRequest,
    CredentialResponse,
    UploadCredential,
)

logger = logging.getLogger(__name__)


class CredentialIssuanceError(Exception):
    """No upload credentials were issued for the batch."""


class UploadCredentialClient(CollaboratorClient):
    def __init__(
        self,
        http: httpx.AsyncClient,
        url: str,
        api_key: str = "",
        *,
        entity_type: str = "tracks",
        entity_id: str = "bulk",
    ) -> None:
        super().__init__(http, url, api_key)
        self._entity_type = entity_type
        self._entity_id = entity_id

    def build_request(self, files: Sequence[AudioFile]) -> CredentialRequest:
        return CredentialRequest(
            entity_type=self._entity_type,
            entity_id=self._entity_id,
            files=[
                CredentialFile(file_name=f.name, mime_type=f.mime_type, file_size=f.size)
                for f in files
            ],
        )

    async def request(self, files: Sequence[AudioFile]) -> list[UploadCredential]:
        """Exchange a list of files for one presigned location each.

        The returned list may be shorter than ``files`` if the service
        issued fewer credentials than requested; it is never empty.
        """
        body = self.build_request(files).to_wire()
        try:
            response = await self._http.post(self._url, json=body, headers=self._headers())
        except httpx.HTTPError as exc:
            raise CredentialIssuanceError(f"Failed to get upload URLs: {exc!r}") from exc

        try:
            payload = CredentialResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            if not response.is_success:
                raise CredentialIssuanceError(describe_http_error(response)) from exc
            raise CredentialIssuanceError("Malformed upload URL response") from exc

        if not response.is_success or not payload.success:
            raise CredentialIssuanceError(
                payload.error or describe_http_error(response) or "Failed to get upload URLs"
            )
        if not payload.data:
            raise CredentialIssuanceError(payload.error or "Failed to get upload URLs")

        if len(payload.data) != len(files):
            logger.warning(
                "Credential service issued %d URL(s) for %d file(s)",
                len(payload.data),
                len(files),
            )
        return payload.data
