"""
Store change events and the router that maps them onto handlers.

The record store's change feed (or the in-memory store, in tests) delivers
ChangeEvents here. Delivery is assumed at-least-once and possibly out of
order; the handlers carry their own idempotency guards.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from dinematch.application.collaboration.message_schema import new_trace_id
from dinematch.application.workflows.arrival_codes import ArrivalCodeIssuer
from dinematch.application.workflows.base import HandlerReport
from dinematch.application.workflows.plan_matcher import PlanMatcher
from dinematch.application.workflows.trust_score import TrustScoreAggregator
from dinematch.domain.plan import DiningPlan
from dinematch.domain.rating import Rating

logger = logging.getLogger(__name__)

USERS = "users"
DINING_PLANS = "dining_plans"
RATINGS = "ratings"


class ChangeKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class ChangeEvent:
    """One write to one record, with before/after snapshots."""

    collection: str
    doc_id: str
    kind: ChangeKind
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    trace_id: str = field(default_factory=new_trace_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection": self.collection,
            "doc_id": self.doc_id,
            "kind": self.kind.value,
            "before": self.before,
            "after": self.after,
            "trace_id": self.trace_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangeEvent":
        return cls(
            collection=str(data["collection"]),
            doc_id=str(data["doc_id"]),
            kind=ChangeKind(str(data["kind"])),
            before=data.get("before"),
            after=data.get("after"),
            trace_id=str(data.get("trace_id") or new_trace_id()),
        )


class ChangeRouter:
    """
    Route store changes:

    - dining_plans create/update -> PlanMatcher
    - dining_plans update        -> ArrivalCodeIssuer (needs before + after)
    - ratings create             -> TrustScoreAggregator

    Anything else, deletes included, is ignored. `route` never raises.
    """

    def __init__(
        self,
        plan_matcher: PlanMatcher,
        code_issuer: ArrivalCodeIssuer,
        trust_aggregator: TrustScoreAggregator,
    ):
        self.plan_matcher = plan_matcher
        self.code_issuer = code_issuer
        self.trust_aggregator = trust_aggregator

    async def route(self, change: ChangeEvent) -> List[HandlerReport]:
        try:
            if change.collection == DINING_PLANS:
                return await self._route_plan(change)
            if change.collection == RATINGS:
                return await self._route_rating(change)
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Ignoring malformed {change.collection}/{change.doc_id} change: {e}")
            return []
        except Exception as e:
            logger.exception(f"Error routing {change.collection}/{change.doc_id} change: {e}")
            return []
        return []

    async def _route_plan(self, change: ChangeEvent) -> List[HandlerReport]:
        if change.kind is ChangeKind.DELETE or change.after is None:
            return []
        after = DiningPlan.from_dict(change.after, plan_id=change.doc_id)

        tasks = [self.plan_matcher.handle(after, trace_id=change.trace_id)]
        if change.kind is ChangeKind.UPDATE and change.before is not None:
            before = DiningPlan.from_dict(change.before, plan_id=change.doc_id)
            tasks.append(self.code_issuer.handle(before, after, trace_id=change.trace_id))
        return list(await asyncio.gather(*tasks))

    async def _route_rating(self, change: ChangeEvent) -> List[HandlerReport]:
        if change.kind is not ChangeKind.CREATE or change.after is None:
            return []
        rating = Rating.from_dict(change.after, rating_id=change.doc_id)
        return [await self.trust_aggregator.handle(rating, trace_id=change.trace_id)]
