import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from label_ingest.auth.admin import AdminAuthError
from label_ingest.ingest.errors import IngestActionError
from label_ingest.ingest.registry import BatchRegistry, Collaborators
from label_ingest.routers import batches, health
from label_ingest.settings import settings

logger = logging.getLogger(__name__)


def _missing_collaborators() -> list[str]:
    """Names of collaborator URLs that are not configured."""
    urls = {
        "METADATA_SERVICE_URL": settings.metadata_service_url,
        "UPLOAD_CREDENTIALS_URL": settings.upload_credentials_url,
        "BATCH_COMMIT_URL": settings.batch_commit_url,
    }
    return [name for name, url in urls.items() if not url]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    missing = _missing_collaborators()
    if missing:
        raise SystemExit(f"FATAL: collaborator endpoints not configured: {', '.join(missing)}")

    if not settings.admin_api_key:
        logger.warning("ADMIN_API_KEY is not set; batch endpoints will reject every request")

    # Per-stage deadlines are enforced by the orchestrator; this is the
    # transport ceiling for any single request.
    http = httpx.AsyncClient(
        timeout=httpx.Timeout(
            max(
                settings.metadata_timeout_seconds,
                settings.credentials_timeout_seconds,
                settings.upload_timeout_seconds,
                settings.commit_timeout_seconds,
            )
        ),
    )
    app.state.http = http
    app.state.batches = BatchRegistry(Collaborators.from_settings(http))
    logger.info(
        "Collaborators: metadata=%s credentials=%s commit=%s",
        settings.metadata_service_url,
        settings.upload_credentials_url,
        settings.batch_commit_url,
    )

    yield

    # Shutdown
    await http.aclose()


def register_error_handlers(application: FastAPI) -> None:
    @application.exception_handler(AdminAuthError)
    async def admin_auth_error_handler(request: Request, exc: AdminAuthError) -> JSONResponse:
        return JSONResponse(
            status_code=403,
            content={"error": {"code": exc.code, "message": exc.message}},
        )

    @application.exception_handler(IngestActionError)
    async def ingest_action_error_handler(
        request: Request, exc: IngestActionError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": exc.code, "message": exc.message}},
        )

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred.",
                    "details": None,
                }
            },
        )


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(health.router)
    application.include_router(batches.router, prefix="/api/v1")

    register_error_handlers(application)

    return application


app = create_app()
