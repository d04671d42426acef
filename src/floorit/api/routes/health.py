"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...services.routing.osrm_client import OSRMClient
from ..dependencies import get_osrm_client

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/osrm", status_code=status.HTTP_200_OK)
async def health_osrm(client: OSRMClient = Depends(get_osrm_client)) -> dict:
    """Check OSRM service health on the active server."""
    healthy = await client.check_health()
    return {"service": "osrm", "healthy": healthy, "server": client.active_server}
