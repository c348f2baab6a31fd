"""Poll cycle status and manual trigger."""

from fastapi import APIRouter, Depends, HTTPException, status

from app.context import SyncContext, get_context
from app.core.auth import verify_credentials


router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.get("/status")
async def sync_status(
    context: SyncContext = Depends(get_context),
    _: str = Depends(verify_credentials)
):
    """Scheduler state, ledger size and the stats of the last cycle."""
    last_stats = context.engine.last_stats
    return {
        "repository": f"{context.settings.gh_owner}/{context.settings.gh_repo}",
        "jira_project": context.settings.jira_project_key,
        "scheduler": context.scheduler.get_status(),
        "issues_mirrored": len(context.ledger),
        "last_cycle": last_stats.to_dict() if last_stats else None,
    }


@router.post("/trigger")
async def trigger_sync(
    context: SyncContext = Depends(get_context),
    _: str = Depends(verify_credentials)
):
    """Run one poll cycle now. Refused while another cycle is running."""
    stats = await context.scheduler.trigger()
    if stats is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A poll cycle is already in progress",
        )
    return stats.to_dict()
