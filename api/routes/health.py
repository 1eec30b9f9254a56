"""
Health check endpoints.

Used for monitoring and load balancer health checks.
"""
from datetime import datetime, timezone
import platform

from fastapi import APIRouter, Depends

from api.dependencies import get_event_bus
from core.domain.event_bus import EventBus


router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns system health status.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "opendrive-api",
        "python_version": platform.python_version(),
    }


@router.get("/health/ready")
async def readiness_check(bus: EventBus = Depends(get_event_bus)):
    """
    Readiness check endpoint.

    Not ready once the event bus is closed (the process is shutting down).
    """
    details = bus.describe()
    ready = not details.get("closed", False)
    return {
        "status": "ready" if ready else "shutting_down",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {"event_bus": details},
    }
