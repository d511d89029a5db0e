"""
Health check endpoints

Provides two endpoints:
- GET /api/health - Basic health check
- GET /api/health/dependencies - Ticket store reachability
"""
import time
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import APIRouter, Request, status
from pydantic import BaseModel, Field

from maintdesk import __version__
from maintdesk.errors import TransportError
from maintdesk.routes.dependencies import get_store
from maintdesk.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/health", tags=["health"])

# Application start time for uptime calculation
APP_START_TIME = time.time()

# Cache for dependency check results (30 seconds TTL)
_dependency_cache: Optional["DependencyHealth"] = None
_cache_timestamp: float = 0.0
CACHE_TTL_SECONDS = 30.0


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Pydantic Models
# ============================================================================

class HealthResponse(BaseModel):
    """Basic health check response"""
    status: str = Field(..., description="Overall status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=_now, description="Check timestamp")
    version: str = Field(..., description="Application version")
    uptime_seconds: float = Field(..., description="Application uptime in seconds")


class DependencyStatus(BaseModel):
    """Status of a single dependency"""
    name: str = Field(..., description="Dependency name")
    status: str = Field(..., description="Status: healthy, unhealthy")
    latency_ms: Optional[float] = Field(None, description="Response latency in milliseconds")
    error_message: Optional[str] = Field(None, description="Error message if unhealthy")


class DependencyHealth(BaseModel):
    """Dependency health check response"""
    overall_status: str = Field(..., description="Overall status: healthy, unhealthy")
    dependencies: Dict[str, DependencyStatus] = Field(..., description="Individual dependency statuses")
    checked_at: datetime = Field(default_factory=_now, description="Check timestamp")


# ============================================================================
# Dependency Check Functions
# ============================================================================

async def check_ticket_store(request: Request) -> DependencyStatus:
    """
    Check that the ticket store answers a ticket listing

    Returns:
        DependencyStatus with health information
    """
    try:
        start = time.time()
        await get_store(request).list_tickets()
        latency = (time.time() - start) * 1000

        return DependencyStatus(
            name="ticket_store",
            status="healthy",
            latency_ms=round(latency, 2)
        )

    except TransportError as e:
        logger.error(f"Ticket store health check failed: {e}")
        return DependencyStatus(
            name="ticket_store",
            status="unhealthy",
            error_message=str(e)
        )


# ============================================================================
# API Endpoints
# ============================================================================

@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns basic application health status and uptime"
)
async def basic_health_check() -> HealthResponse:
    """
    Basic health check endpoint

    Always returns 200 OK. Does not contact the ticket store.
    """
    uptime = time.time() - APP_START_TIME

    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        version=__version__,
        uptime_seconds=round(uptime, 2)
    )


@router.get(
    "/dependencies",
    response_model=DependencyHealth,
    status_code=status.HTTP_200_OK,
    summary="Dependency health check",
    description="Checks the ticket store and returns detailed status"
)
async def dependency_health_check(request: Request) -> DependencyHealth:
    """
    Ticket store health check endpoint

    Results are cached for 30 seconds to avoid hammering the store.
    Always returns 200 OK with detailed status information.
    """
    global _dependency_cache, _cache_timestamp

    current_time = time.time()
    if _dependency_cache and (current_time - _cache_timestamp) < CACHE_TTL_SECONDS:
        logger.debug("Returning cached dependency health check results")
        return _dependency_cache

    logger.info("Performing dependency health checks")
    store_status = await check_ticket_store(request)

    response = DependencyHealth(
        overall_status=store_status.status,
        dependencies={store_status.name: store_status},
        checked_at=_now()
    )

    _dependency_cache = response
    _cache_timestamp = current_time

    if store_status.status == "unhealthy":
        logger.warning("Unhealthy dependencies: ticket_store")

    return response
