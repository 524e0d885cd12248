"""
FastAPI lifespan context manager.

Builds the service context (unless one was injected) and starts/stops the
job scheduler alongside the web server.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup/shutdown of the service context and scheduler."""
    app.state.started_at = datetime.now()
    app.state.scheduler = None

    if getattr(app.state, "context", None) is None:
        from regsync.services import build_context

        app.state.context = build_context()

    scheduler = _start_scheduler(app.state.context)
    if scheduler:
        app.state.scheduler = scheduler

    logger.info("RegSync started: scheduler=%s", scheduler is not None)

    yield

    if app.state.scheduler:
        try:
            app.state.scheduler.stop()
            logger.info("Scheduler stopped")
        except Exception:
            logger.exception("Error stopping scheduler")

    logger.info("RegSync shutdown complete")


def _start_scheduler(context):
    """Start the job scheduler if enabled in config."""
    if not context.config.get("scheduler.enabled", False):
        logger.info("Scheduler disabled in config")
        return None

    try:
        context.scheduler.start()
    except Exception:
        logger.exception("Failed to start scheduler")
        return None
    return context.scheduler
