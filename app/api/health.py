"""Health check API for monitoring the relay."""

from datetime import datetime
from importlib.metadata import version, PackageNotFoundError
from typing import List, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.context import SyncContext, get_context
from app.core.auth import verify_credentials

try:
    __version__ = version("gh-jira-relay")
except PackageNotFoundError:
    __version__ = "0.1.0"  # Fallback for development


router = APIRouter(prefix="/api/health", tags=["health"])


class ComponentHealth(BaseModel):
    """Health status of a single component."""
    name: str
    status: str  # "healthy", "degraded", "unhealthy"
    message: Optional[str] = None


class HealthResponse(BaseModel):
    """Complete health check response."""
    status: str
    timestamp: str
    version: str
    components: List[ComponentHealth]
    issues_mirrored: int


def _scheduler_health(context: SyncContext) -> ComponentHealth:
    scheduler = context.scheduler
    if scheduler.fatal_error is not None:
        return ComponentHealth(
            name="scheduler",
            status="unhealthy",
            message=f"Stopped by configuration error: {scheduler.fatal_error}",
        )
    if not scheduler.running:
        return ComponentHealth(name="scheduler", status="unhealthy", message="Not running")
    return ComponentHealth(name="scheduler", status="healthy")


def _last_cycle_health(context: SyncContext) -> ComponentHealth:
    stats = context.engine.last_stats
    if stats is None:
        return ComponentHealth(name="last_cycle", status="healthy", message="No cycle completed yet")
    if stats.fetch_failed:
        return ComponentHealth(
            name="last_cycle",
            status="degraded",
            message="Could not list GitHub issues",
        )
    if stats.issues_failed or stats.links_failed:
        return ComponentHealth(
            name="last_cycle",
            status="degraded",
            message=f"{stats.issues_failed} failed, {stats.links_failed} unlinked",
        )
    return ComponentHealth(name="last_cycle", status="healthy")


@router.get("", response_model=HealthResponse)
async def detailed_health(
    context: SyncContext = Depends(get_context),
    _: str = Depends(verify_credentials)
):
    """Health of the scheduler and the outcome of the last poll cycle."""
    components = [_scheduler_health(context), _last_cycle_health(context)]

    if any(c.status == "unhealthy" for c in components):
        overall_status = "unhealthy"
    elif any(c.status == "degraded" for c in components):
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.utcnow().isoformat(),
        version=__version__,
        components=components,
        issues_mirrored=len(context.ledger),
    )
