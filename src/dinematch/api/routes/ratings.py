"""
Rating submission.

Stores the rating and routes its creation to the trust score aggregator. The
SQLAlchemy store has no change feed of its own, so this route is the feed for
new ratings. A store that publishes its own writes has already routed the
rating by the time `add` returns.
"""

from __future__ import annotations

from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from dinematch.application.collaboration.changes import RATINGS, ChangeEvent, ChangeKind
from dinematch.bootstrap import Services
from dinematch.domain import Rating
from dinematch.domain.timeutil import utcnow

from .deps import get_services

router = APIRouter()


class RatingRequest(BaseModel):
    rating_id: str = Field(..., min_length=1)
    rated_user_id: str = Field(..., min_length=1)
    rating: Union[int, float]
    rater_id: Optional[str] = None


@router.post("/ratings")
async def post_rating(req: RatingRequest, services: Services = Depends(get_services)):
    rating = Rating(
        rating_id=req.rating_id,
        rated_user_id=req.rated_user_id,
        value=req.rating,
        rater_id=req.rater_id,
        created_at=utcnow(),
    )
    try:
        await services.ratings.add(rating)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if services.has_change_feed:
        return {"rating_id": rating.rating_id, "routed_by": "change_feed", "reports": []}

    event = ChangeEvent(
        collection=RATINGS,
        doc_id=rating.rating_id,
        kind=ChangeKind.CREATE,
        before=None,
        after=rating.to_dict(),
    )
    reports = await services.router.route(event)
    return {"rating_id": rating.rating_id, "reports": [r.to_dict() for r in reports]}
