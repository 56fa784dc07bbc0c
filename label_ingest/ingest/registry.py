"""In-memory registry of open ingestion batches.

A batch lives as long as the admin session that opened it; nothing is
persisted, so a process restart drops every open batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from label_ingest.clients.commit import BatchCommitClient
from label_ingest.clients.credentials import UploadCredentialClient
from label_ingest.clients.metadata import MetadataExtractorClient
from label_ingest.clients.storage import StorageUploader
from label_ingest.ingest.errors import BatchBusyError, BatchNotFoundError
from label_ingest.ingest.models import Batch
from label_ingest.ingest.orchestrator import (
    Committer,
    CredentialRequestor,
    IngestionOrchestrator,
    MetadataExtractor,
    StageTimeouts,
    Uploader,
)
from label_ingest.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Collaborators:
    extractor: MetadataExtractor
    credentials: CredentialRequestor
    uploader: Uploader
    committer: Committer

    @classmethod
    def from_settings(cls, http: httpx.AsyncClient) -> Collaborators:
        """Build the HTTP-backed collaborators sharing one client."""
        api_key = settings.collaborator_api_key
        return cls(
            extractor=MetadataExtractorClient(http, settings.metadata_service_url, api_key),
            credentials=UploadCredentialClient(
                http,
                settings.upload_credentials_url,
                api_key,
                entity_type=settings.upload_entity_type,
                entity_id=settings.upload_entity_id,
            ),
            uploader=StorageUploader(http),
            committer=BatchCommitClient(http, settings.batch_commit_url, api_key),
        )


class BatchRegistry:
    def __init__(
        self,
        collaborators: Collaborators,
        *,
        timeouts: StageTimeouts | None = None,
        max_concurrent_extractions: int | None = None,
        max_concurrent_uploads: int | None = None,
    ) -> None:
        self._collaborators = collaborators
        self._timeouts = timeouts or StageTimeouts.from_settings()
        self._max_extractions = max_concurrent_extractions or settings.max_concurrent_extractions
        self._max_uploads = max_concurrent_uploads or settings.max_concurrent_uploads
        self._batches: dict[str, IngestionOrchestrator] = {}

    def __len__(self) -> int:
        return len(self._batches)

    def create(
        self,
        *,
        auto_match_or_create_release: bool | None = None,
        publish_on_create: bool | None = None,
    ) -> IngestionOrchestrator:
        batch = Batch(
            auto_match_or_create_release=(
                settings.auto_match_or_create_release
                if auto_match_or_create_release is None
                else auto_match_or_create_release
            ),
            publish_on_create=(
                settings.publish_on_create if publish_on_create is None else publish_on_create
            ),
        )
        orchestrator = IngestionOrchestrator(
            batch,
            extractor=self._collaborators.extractor,
            credentials=self._collaborators.credentials,
            uploader=self._collaborators.uploader,
            committer=self._collaborators.committer,
            timeouts=self._timeouts,
            max_concurrent_extractions=self._max_extractions,
            max_concurrent_uploads=self._max_uploads,
        )
        self._batches[batch.batch_id] = orchestrator
        logger.info("Opened batch %s", batch.batch_id)
        return orchestrator

    def get(self, batch_id: str) -> IngestionOrchestrator:
        try:
            return self._batches[batch_id]
        except KeyError:
            raise BatchNotFoundError(f"Batch {batch_id} not found") from None

    def discard(self, batch_id: str) -> None:
        orchestrator = self.get(batch_id)
        if orchestrator.batch.processing:
            raise BatchBusyError("Cannot close a batch while its upload is in progress")
        del self._batches[batch_id]
        logger.info("Closed batch %s", batch_id)
