"""
In-memory record store (tests, evals, local demos).

Implements the user/plan/rating repositories on plain dicts and behaves like
a document store with a change feed: every write, including the core's own
conditional updates, is published as a ChangeEvent to the subscribers.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import replace
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from dinematch.application.collaboration.changes import (
    DINING_PLANS,
    RATINGS,
    USERS,
    ChangeEvent,
    ChangeKind,
)
from dinematch.domain import DiningPlan, PlanStatus, Rating, UNCONFIRMED, User
from dinematch.domain.timeutil import ensure_utc

logger = logging.getLogger(__name__)

Subscriber = Callable[[ChangeEvent], Awaitable[object]]


class InMemoryStore:
    def __init__(self) -> None:
        self._users: Dict[str, User] = {}
        self._plans: Dict[str, DiningPlan] = {}
        self._ratings: Dict[str, Rating] = {}
        self._lock = asyncio.Lock()
        self._subscribers: List[Subscriber] = []
        self.changes: List[ChangeEvent] = []

        self.users = InMemoryUserRepository(self)
        self.plans = InMemoryPlanRepository(self)
        self.ratings = InMemoryRatingRepository(self)

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    async def _publish(self, collection: str, doc_id: str, before, after) -> None:
        if before is None:
            kind = ChangeKind.CREATE
        elif after is None:
            kind = ChangeKind.DELETE
        else:
            kind = ChangeKind.UPDATE
        event = ChangeEvent(
            collection=collection,
            doc_id=doc_id,
            kind=kind,
            before=before.to_dict() if before is not None else None,
            after=after.to_dict() if after is not None else None,
        )
        self.changes.append(event)
        for subscriber in list(self._subscribers):
            try:
                await subscriber(event)
            except Exception as e:
                logger.error(f"Change subscriber failed for {collection}/{doc_id}: {e}")

    # ---- external writes (profile edits, plan joins, new ratings) ----

    async def put_user(self, user: User) -> None:
        async with self._lock:
            before = self._users.get(user.user_id)
            self._users[user.user_id] = copy.deepcopy(user)
        await self._publish(USERS, user.user_id, before, user)

    async def put_plan(self, plan: DiningPlan) -> None:
        if len(plan.member_ids) > plan.max_members:
            raise ValueError(f"plan {plan.plan_id} has more members than max_members")
        if plan.planned_time is not None:
            plan = replace(plan, planned_time=ensure_utc(plan.planned_time))
        async with self._lock:
            before = self._plans.get(plan.plan_id)
            if before is not None and before.status != plan.status and not before.status.can_transition(plan.status):
                raise ValueError(f"plan {plan.plan_id} cannot move from {before.status.value} to {plan.status.value}")
            self._plans[plan.plan_id] = copy.deepcopy(plan)
        await self._publish(DINING_PLANS, plan.plan_id, before, plan)

    async def delete_plan(self, plan_id: str) -> None:
        async with self._lock:
            before = self._plans.pop(plan_id, None)
        if before is not None:
            await self._publish(DINING_PLANS, plan_id, before, None)

    async def add_rating(self, rating: Rating) -> None:
        async with self._lock:
            if rating.rating_id in self._ratings:
                raise ValueError(f"rating {rating.rating_id} already exists")
            self._ratings[rating.rating_id] = rating
        await self._publish(RATINGS, rating.rating_id, None, rating)


class InMemoryUserRepository:
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def get(self, user_id: str) -> Optional[User]:
        user = self._store._users.get(user_id)
        return copy.deepcopy(user) if user is not None else None

    async def list_active(self) -> List[User]:
        return [copy.deepcopy(u) for u in self._store._users.values() if u.is_active]

    async def update_trust(
        self,
        user_id: str,
        *,
        expected_version: int,
        trust_score: float,
        rating_count: int,
        last_rated_at: datetime,
    ) -> bool:
        store = self._store
        async with store._lock:
            before = store._users.get(user_id)
            if before is None or before.version != expected_version:
                return False
            after = replace(
                before,
                trust_score=trust_score,
                rating_count=rating_count,
                last_rated_at=ensure_utc(last_rated_at),
                version=before.version + 1,
            )
            store._users[user_id] = after
        await store._publish(USERS, user_id, before, after)
        return True


class InMemoryPlanRepository:
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def get(self, plan_id: str) -> Optional[DiningPlan]:
        plan = self._store._plans.get(plan_id)
        return copy.deepcopy(plan) if plan is not None else None

    async def confirm_with_codes(
        self,
        plan_id: str,
        *,
        member_ids: Sequence[str],
        arrival_codes: Dict[str, int],
        confirmed_at: datetime,
    ) -> bool:
        store = self._store
        async with store._lock:
            before = store._plans.get(plan_id)
            if (
                before is None
                or before.status not in UNCONFIRMED
                or before.arrival_codes
                or list(before.member_ids) != list(member_ids)
            ):
                return False
            after = replace(
                before,
                arrival_codes=dict(arrival_codes),
                status=PlanStatus.CONFIRMED,
                confirmed_at=ensure_utc(confirmed_at),
            )
            store._plans[plan_id] = after
        await store._publish(DINING_PLANS, plan_id, before, after)
        return True

    async def find_confirmed_starting_between(self, start: datetime, end: datetime) -> List[DiningPlan]:
        start, end = ensure_utc(start), ensure_utc(end)
        return [
            copy.deepcopy(p)
            for p in self._store._plans.values()
            if p.status is PlanStatus.CONFIRMED and p.planned_time is not None and start <= p.planned_time <= end
        ]

    async def find_stale_unconfirmed(self, before: datetime) -> List[DiningPlan]:
        before = ensure_utc(before)
        return [
            copy.deepcopy(p)
            for p in self._store._plans.values()
            if p.status in UNCONFIRMED and p.planned_time is not None and p.planned_time < before
        ]

    async def expire_many(self, plan_ids: Sequence[str], *, expired_at: datetime) -> int:
        store = self._store
        changed = []
        async with store._lock:
            # Build the whole batch first, then swap it in.
            batch = {}
            for plan_id in plan_ids:
                plan = store._plans.get(plan_id)
                if plan is not None and plan.status in UNCONFIRMED:
                    batch[plan_id] = replace(plan, status=PlanStatus.EXPIRED, expired_at=ensure_utc(expired_at))
            for plan_id, after in batch.items():
                changed.append((store._plans[plan_id], after))
            store._plans.update(batch)
        for before, after in changed:
            await store._publish(DINING_PLANS, after.plan_id, before, after)
        return len(changed)

    async def mark_reminded(self, plan_id: str, *, reminded_at: datetime) -> bool:
        store = self._store
        async with store._lock:
            before = store._plans.get(plan_id)
            if before is None or before.reminded_at is not None:
                return False
            after = replace(before, reminded_at=ensure_utc(reminded_at))
            store._plans[plan_id] = after
        await store._publish(DINING_PLANS, plan_id, before, after)
        return True


class InMemoryRatingRepository:
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def get(self, rating_id: str) -> Optional[Rating]:
        return self._store._ratings.get(rating_id)

    async def add(self, rating: Rating) -> Rating:
        await self._store.add_rating(rating)
        return rating

    async def list_for_user(self, user_id: str, limit: int = 100) -> List[Rating]:
        ratings = [r for r in self._store._ratings.values() if r.rated_user_id == user_id]
        return list(reversed(ratings))[:limit]
