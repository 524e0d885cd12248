"""
Admin data-source routes: listing, statistics, health checks and manual syncs.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException

from regsync.exceptions import NotFoundError
from regsync.services import ServiceContext
from regsync.sources.models import SourceStatus
from regsync.web.dependencies import get_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])


@router.get("/data-sources")
async def list_data_sources(active_only: bool = True, context: ServiceContext = Depends(get_context)):
    """Configured data sources, priority ordered."""
    registry = context.registry
    sources = registry.list_active() if active_only else registry.list_all()
    return [s.to_dict() for s in sources]


@router.get("/data-sources/health")
async def data_sources_health(context: ServiceContext = Depends(get_context)):
    """Check the health endpoint of every active API source."""
    return await asyncio.to_thread(context.orchestrator.health_check)


@router.get("/data-sources/unauthenticated")
async def unauthenticated_sources(context: ServiceContext = Depends(get_context)):
    """Sources waiting for credentials."""
    return [s.to_dict() for s in context.registry.list_unauthenticated()]


@router.get("/data-sources/regions")
async def sources_by_region(context: ServiceContext = Depends(get_context)):
    """Active sources grouped by region."""
    return {
        region: [s.to_dict() for s in sources]
        for region, sources in context.registry.group_by_region().items()
    }


@router.get("/data-sources/statistics")
async def source_statistics(context: ServiceContext = Depends(get_context)):
    return context.registry.statistics()


@router.post("/data-sources/sync")
async def sync_all_sources(active_only: bool = True, context: ServiceContext = Depends(get_context)):
    """Sync all (active) sources now and return the run summary."""
    run = await asyncio.to_thread(context.orchestrator.sync_all, active_only)
    return run.summary()


@router.post("/data-sources/{source_id}/sync")
async def sync_source(source_id: str, context: ServiceContext = Depends(get_context)):
    """Sync one source now and return the run summary."""
    try:
        run = await asyncio.to_thread(context.orchestrator.sync_one, source_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return run.summary()


@router.post("/data-sources/{source_id}/activate")
async def activate_source(source_id: str, context: ServiceContext = Depends(get_context)):
    """Operator reactivation of a deactivated source."""
    try:
        source = context.registry.set_status(source_id, SourceStatus.ACTIVE)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    context.rate_limiter.reset(source_id)
    logger.info("Source %s reactivated by operator", source_id)
    return source.to_dict()
