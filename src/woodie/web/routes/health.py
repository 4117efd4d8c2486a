"""Health check endpoint."""

from fastapi import APIRouter

from woodie.utils.dates import to_iso, utc_now
from woodie.web.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check API health status."""
    return HealthResponse(
        status="ok",
        version="0.1.0",
        timestamp=to_iso(utc_now()),
    )
