"""
Change-feed ingress.

The record store (or its trigger bridge) posts each create/update/delete with
before/after snapshots. Events are either routed inline or enqueued for the
ARQ worker (`handle_change_job`).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from dinematch.application.collaboration.changes import ChangeEvent, ChangeKind
from dinematch.application.collaboration.message_schema import new_trace_id
from dinematch.bootstrap import Services

from .deps import get_queue, get_services

logger = logging.getLogger(__name__)

router = APIRouter()


class ChangeRequest(BaseModel):
    collection: str = Field(..., description="users | dining_plans | ratings")
    doc_id: str
    kind: ChangeKind
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    trace_id: Optional[str] = None
    enqueue: bool = Field(False, description="Hand the event to the ARQ worker instead of routing inline")


@router.post("/changes")
async def post_change(req: ChangeRequest, services: Services = Depends(get_services)):
    event = ChangeEvent(
        collection=req.collection,
        doc_id=req.doc_id,
        kind=req.kind,
        before=req.before,
        after=req.after,
        trace_id=req.trace_id or new_trace_id(),
    )

    if req.enqueue:
        try:
            redis = await get_queue(services)
            job = await redis.enqueue_job("handle_change_job", event.to_dict())
        except Exception as e:
            logger.error(f"Enqueue failed for {event.collection}/{event.doc_id}: {e}")
            raise HTTPException(status_code=503, detail=f"Queue unavailable: {e}")
        return {"job_id": job.job_id if job else None, "trace_id": event.trace_id}

    reports = await services.router.route(event)
    return {"trace_id": event.trace_id, "reports": [r.to_dict() for r in reports]}
