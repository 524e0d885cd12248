"""
Admin review routes: records waiting for review and marking them reviewed.
"""

import asyncio
import logging
from datetime import timedelta
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from regsync.services import ServiceContext
from regsync.web.dependencies import get_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["review"])


class ReviewRequest(BaseModel):
    record_ids: List[int]


@router.get("/records/pending")
async def pending_records(older_than_hours: float = 0, context: ServiceContext = Depends(get_context)):
    """Unreviewed records stored more than ``older_than_hours`` ago."""
    if older_than_hours < 0:
        raise HTTPException(status_code=422, detail="older_than_hours must not be negative")
    cutoff = context.clock() - timedelta(hours=older_than_hours)
    records = await asyncio.to_thread(context.store.pending_review, cutoff)
    return [r.to_dict() for r in records]


@router.post("/records/review")
async def review_records(body: ReviewRequest, context: ServiceContext = Depends(get_context)):
    """Mark records reviewed so the hourly check stops reporting them."""
    reviewed = await asyncio.to_thread(context.store.mark_reviewed, body.record_ids)
    logger.info("Marked %d of %d record(s) reviewed", reviewed, len(body.record_ids))
    return {"requested": len(body.record_ids), "reviewed": reviewed}
