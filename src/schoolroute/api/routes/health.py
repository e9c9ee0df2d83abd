"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...container import ServiceContainer
from ..dependencies import get_container

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/maps", status_code=status.HTTP_200_OK)
def health_maps(container: ServiceContainer = Depends(get_container)) -> dict:
    """Check mapping provider reachability."""
    check = getattr(container.provider, "check_health", None)
    if check is None:
        return {"service": "maps", "healthy": False, "error": "provider is not configured"}
    try:
        return {"service": "maps", "healthy": bool(check())}
    except Exception as e:
        return {"service": "maps", "healthy": False, "error": str(e)}
