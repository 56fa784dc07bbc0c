from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Service
    service_port: int = 17020
    service_host: str = "0.0.0.0"  # nosec B104

    # CORS
    cors_origins: str = "http://localhost:3000"

    # App metadata
    app_name: str = "label-ingest-service"
    app_version: str = "0.1.0"

    # Admin
    admin_api_key: str = ""  # Empty = batch endpoints locked (fail-closed)

    # Collaborators
    metadata_service_url: str = "http://localhost:3000/api/tracks/metadata"
    upload_credentials_url: str = "http://localhost:3000/api/uploads/presigned"
    batch_commit_url: str = "http://localhost:3000/api/tracks/bulk"
    collaborator_api_key: str = ""

    # Per-stage timeouts (seconds)
    metadata_timeout_seconds: float = 60.0
    credentials_timeout_seconds: float = 15.0
    upload_timeout_seconds: float = 300.0
    commit_timeout_seconds: float = 60.0

    # Fan-out bounds
    max_concurrent_extractions: int = 4
    max_concurrent_uploads: int = 4

    # Upload credential scope
    upload_entity_type: str = "tracks"
    upload_entity_id: str = "bulk"

    # Batch defaults
    auto_match_or_create_release: bool = True
    publish_on_create: bool = False

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
