"""
Periodic sweeps: arrival reminders and expiry of stale plans.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import List, Optional

from dinematch.application.notifications.dispatcher import (
    DispatchRequest,
    NotificationDispatcher,
    NotificationKind,
)
from dinematch.application.ports.repositories import PlanRepository
from dinematch.application.workflows.base import BaseHandler, HandlerReport
from dinematch.config.models import ExpiryConfig, ReminderConfig
from dinematch.core.errors import StoreError
from dinematch.domain.plan import DiningPlan

logger = logging.getLogger(__name__)


class ReminderSweeper(BaseHandler):
    """
    Remind every member of confirmed plans starting within the window.

    With `dedupe` on, a plan is claimed via `mark_reminded` before any
    message goes out, so overlapping sweeps remind each plan once. With it
    off, a plan that stays inside the rolling window across two sweeps is
    reminded twice.
    """

    name = "reminder_sweeper"

    def __init__(
        self,
        plans: PlanRepository,
        dispatcher: NotificationDispatcher,
        *,
        config: Optional[ReminderConfig] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.plans = plans
        self.dispatcher = dispatcher
        self.config = config or ReminderConfig()

    async def sweep(self, *, trace_id: Optional[str] = None) -> HandlerReport:
        return await self._run("cron", "", self._sweep, trace_id)

    async def _claim(self, plans: List[DiningPlan], now) -> List[DiningPlan]:
        candidates = [p for p in plans if p.reminded_at is None]
        results = await asyncio.gather(
            *(self.plans.mark_reminded(p.plan_id, reminded_at=now) for p in candidates),
            return_exceptions=True,
        )
        claimed = []
        for plan, result in zip(candidates, results):
            if isinstance(result, Exception):
                logger.error(f"Claiming plan {plan.plan_id} for reminders failed: {result}")
            elif result:
                claimed.append(plan)
        return claimed

    async def _sweep(self) -> HandlerReport:
        now = self.clock()
        window_end = now + timedelta(minutes=self.config.window_minutes)
        try:
            upcoming = await self.plans.find_confirmed_starting_between(now, window_end)
            if self.config.dedupe:
                upcoming = await self._claim(upcoming, now)
        except Exception as e:
            raise StoreError(message=f"querying upcoming plans failed: {e}") from e

        outcomes = await self.dispatcher.fan_out(
            DispatchRequest(NotificationKind.ARRIVAL_REMINDER, member_id, plan)
            for plan in upcoming
            for member_id in plan.member_ids
        )

        logger.info(f"Sent {len(outcomes)} arrival reminders for {len(upcoming)} plans")
        report = self.report("ok", plans=[p.plan_id for p in upcoming])
        report.outcomes = outcomes
        return report


class ExpirySweeper(BaseHandler):
    """Expire open/matched plans whose start is older than the grace period, as one batch."""

    name = "expiry_sweeper"

    def __init__(self, plans: PlanRepository, *, config: Optional[ExpiryConfig] = None, **kwargs):
        super().__init__(**kwargs)
        self.plans = plans
        self.config = config or ExpiryConfig()

    async def sweep(self, *, trace_id: Optional[str] = None) -> HandlerReport:
        return await self._run("cron", "", self._sweep, trace_id)

    async def _sweep(self) -> HandlerReport:
        now = self.clock()
        cutoff = now - timedelta(hours=self.config.grace_hours)
        try:
            stale = await self.plans.find_stale_unconfirmed(cutoff)
            expired = await self.plans.expire_many([p.plan_id for p in stale], expired_at=now) if stale else 0
        except Exception as e:
            raise StoreError(message=f"expiring plans failed: {e}") from e

        logger.info(f"Marked {expired} plans as expired")
        return self.report("ok", expired=expired, candidates=[p.plan_id for p in stale])
