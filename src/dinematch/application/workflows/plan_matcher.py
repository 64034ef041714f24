"""
Plan matcher - recommend an open plan to the best-fitting users.

Runs on every create/update of a plan. The whole active-user pool is
rescanned each time; nothing is remembered about users that were not picked.
"""

from __future__ import annotations

import logging
from typing import Optional

from dinematch.application.notifications.dispatcher import (
    DispatchRequest,
    NotificationDispatcher,
    NotificationKind,
)
from dinematch.application.ports.repositories import UserRepository
from dinematch.application.workflows.base import BaseHandler, HandlerReport
from dinematch.core.errors import StoreError
from dinematch.domain.matching.compatibility import CompatibilityScorer
from dinematch.domain.plan import DiningPlan, PlanStatus

logger = logging.getLogger(__name__)


class PlanMatcher(BaseHandler):
    name = "plan_matcher"

    def __init__(
        self,
        users: UserRepository,
        dispatcher: NotificationDispatcher,
        *,
        scorer: Optional[CompatibilityScorer] = None,
        top_k: int = 5,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.users = users
        self.dispatcher = dispatcher
        self.scorer = scorer or CompatibilityScorer()
        self.top_k = top_k

    async def handle(self, plan: DiningPlan, *, trace_id: Optional[str] = None) -> HandlerReport:
        return await self._run("plan_write", plan.plan_id, lambda: self._match(plan), trace_id)

    async def _match(self, plan: DiningPlan) -> HandlerReport:
        if plan.status is not PlanStatus.OPEN:
            return self.report("skipped", plan.plan_id, f"status is {plan.status.value}")
        if plan.is_full:
            return self.report("skipped", plan.plan_id, "plan is full")

        now = self.clock()
        try:
            users = await self.users.list_active()
        except Exception as e:
            raise StoreError(message=f"listing active users failed: {e}", context={"plan_id": plan.plan_id}) from e

        ranked = self.scorer.rank(users, plan, now, limit=self.top_k)
        outcomes = await self.dispatcher.fan_out(
            DispatchRequest(NotificationKind.PLAN_RECOMMENDATION, r.user.user_id, plan) for r in ranked
        )

        logger.info(f"Sent plan recommendations for {plan.plan_id} to {len(ranked)} of {len(users)} active users")
        report = self.report(
            "ok",
            plan.plan_id,
            selected=[{"user_id": r.user.user_id, "score": round(r.score, 4)} for r in ranked],
            active_users=len(users),
        )
        report.outcomes = outcomes
        return report
