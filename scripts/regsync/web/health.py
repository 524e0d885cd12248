"""
Health check endpoint for monitoring service status.
"""

from datetime import datetime

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    """Return service health status as JSON."""
    started_at = getattr(request.app.state, "started_at", None)
    scheduler = getattr(request.app.state, "scheduler", None)
    context = getattr(request.app.state, "context", None)

    uptime_seconds = None
    if started_at:
        uptime_seconds = (datetime.now() - started_at).total_seconds()

    sources = {"registered": 0, "active": 0}
    if context is not None:
        sources = {
            "registered": len(context.registry),
            "active": len(context.registry.list_active()),
        }

    return {
        "status": "healthy",
        "started_at": str(started_at) if started_at else None,
        "uptime_seconds": uptime_seconds,
        "scheduler": {
            "running": scheduler.running,
            "jobs": scheduler.next_runs(),
        }
        if scheduler
        else {"running": False, "jobs": []},
        "sources": sources,
    }
