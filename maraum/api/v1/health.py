"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from maraum.api.deps import get_store
from maraum.models.base import BaseSchema
from maraum.services.store import SupabaseStore

router = APIRouter(tags=["health"])


class HealthResponse(BaseSchema):
    """Health check response."""

    status: str
    service_name: str
    timestamp: str
    version: str
    database: str


@router.get("/health", response_model=HealthResponse)
async def health_check(store: SupabaseStore = Depends(get_store)) -> HealthResponse:
    """Check service health."""
    database_ok = await store.ping()
    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        service_name="maraum-backend",
        timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
        version="0.1.0",
        database="ok" if database_ok else "unavailable",
    )
