"""Wire models for the external services the ingestion pipeline talks to.

All collaborators speak camelCase JSON; models accept either the alias or
the field name and serialize with aliases.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Metadata extraction
# ---------------------------------------------------------------------------


class ExtractedMetadata(CamelModel):
    """Tags and technical info read from one audio file."""

    title: str | None = None
    artist: str | None = None
    album: str | None = None
    duration: float | None = None
    track_number: int | None = None
    album_artist: str | None = None
    year: int | None = None
    label: str | None = None
    catalog_number: str | None = None
    lossless: bool | None = None
    date: str | None = None
    cover_art: str | None = None


class MetadataResponse(CamelModel):
    success: bool = True
    metadata: ExtractedMetadata | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Upload credential issuance
# ---------------------------------------------------------------------------


class CredentialFile(CamelModel):
    file_name: str
    mime_type: str
    file_size: int | None = None


class CredentialRequest(CamelModel):
    entity_type: str
    entity_id: str
    files: list[CredentialFile]


class UploadCredential(CamelModel):
    """A presigned write location for one file."""

    upload_url: str
    cdn_url: str
    key: str


class CredentialResponse(CamelModel):
    success: bool
    data: list[UploadCredential] = Field(default_factory=list)
    error: str | None = None


# ---------------------------------------------------------------------------
# Batch commit
# ---------------------------------------------------------------------------


class CommitTrack(CamelModel):
    """One uploaded file to persist as a track record."""

    title: str
    album: str | None = None
    artist: str | None = None
    duration: float | None = None
    position: int
    remote_key: str
    cdn_url: str
    auto_match_or_create_release: bool
    publish_on_create: bool
    album_artist: str | None = None
    year: int | None = None
    label: str | None = None
    catalog_number: str | None = None
    lossless: bool | None = None
    date: str | None = None
    cover_art: str | None = None


class CommitRequest(CamelModel):
    tracks: list[CommitTrack]


class CommitItemResult(CamelModel):
    index: int
    success: bool
    title: str = ""
    track_id: str | None = None
    release_id: str | None = None
    release_title: str | None = None
    release_created: bool | None = None
    error: str | None = None


class CommitResponse(CamelModel):
    success: bool
    success_count: int = 0
    failed_count: int = 0
    results: list[CommitItemResult] = Field(default_factory=list)
    error: str | None = None
