from fastapi import APIRouter, Request

from label_ingest.schemas.health import HealthResponse
from label_ingest.settings import settings

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    registry = getattr(request.app.state, "batches", None)
    return HealthResponse(
        status="ok",
        version=settings.app_version,
        active_batches=len(registry) if registry is not None else 0,
    )
