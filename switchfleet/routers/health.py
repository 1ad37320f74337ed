"""Health-check endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from switchfleet import __version__
from switchfleet.models.responses import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def service_health() -> HealthResponse:
    """Basic liveness probe (no auth required)."""
    return HealthResponse(status="ok", version=__version__)
