"""
Arrival code issuer - hand out one distinct code per member when a plan fills.

Fires only on the update that makes a matched plan full. Codes are written
with a conditional store update, so redelivered or racing updates cannot
issue a second set.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from dinematch.application.notifications.dispatcher import (
    DispatchRequest,
    NotificationDispatcher,
    NotificationKind,
)
from dinematch.application.ports.repositories import PlanRepository
from dinematch.application.workflows.base import BaseHandler, HandlerReport
from dinematch.core.errors import DineMatchError, StoreError
from dinematch.domain.matching.codes import CodeAllocator
from dinematch.domain.plan import DiningPlan, PlanStatus

logger = logging.getLogger(__name__)


def just_filled(before: DiningPlan, after: DiningPlan) -> bool:
    """The plan was below capacity before this write, is exactly full now, and is matched."""
    return (
        len(before.member_ids) < after.max_members
        and len(after.member_ids) == after.max_members
        and after.status is PlanStatus.MATCHED
    )


class ArrivalCodeIssuer(BaseHandler):
    name = "arrival_code_issuer"

    def __init__(
        self,
        plans: PlanRepository,
        dispatcher: NotificationDispatcher,
        *,
        allocator: Optional[CodeAllocator] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.plans = plans
        self.dispatcher = dispatcher
        self.allocator = allocator or CodeAllocator()

    async def handle(
        self,
        before: DiningPlan,
        after: DiningPlan,
        *,
        trace_id: Optional[str] = None,
    ) -> HandlerReport:
        return await self._run("plan_update", after.plan_id, lambda: self._issue(before, after), trace_id)

    async def _issue(self, before: DiningPlan, after: DiningPlan) -> HandlerReport:
        if not just_filled(before, after):
            return self.report("skipped", after.plan_id, "not a fill transition")
        if after.arrival_codes:
            return self.report("skipped", after.plan_id, "codes already issued")
        if len(set(after.member_ids)) != len(after.member_ids):
            logger.warning(f"Plan {after.plan_id} has duplicate member ids; not issuing codes")
            return self.report("skipped", after.plan_id, "duplicate member ids")

        codes = self.allocator.allocate(len(after.member_ids))
        assignments = {member_id: code for member_id, code in zip(after.member_ids, codes)}
        now = self.clock()

        try:
            confirmed = await self.plans.confirm_with_codes(
                after.plan_id,
                member_ids=list(after.member_ids),
                arrival_codes=assignments,
                confirmed_at=now,
            )
        except DineMatchError:
            raise
        except Exception as e:
            raise StoreError(message=f"confirming plan failed: {e}", context={"plan_id": after.plan_id}) from e

        if not confirmed:
            logger.warning(f"Plan {after.plan_id} changed or was already confirmed; codes not issued")
            return self.report("skipped", after.plan_id, "confirm precondition failed")

        plan = replace(after, arrival_codes=assignments, status=PlanStatus.CONFIRMED, confirmed_at=now)
        outcomes = await self.dispatcher.fan_out(
            DispatchRequest(NotificationKind.ARRIVAL_CODE, member_id, plan, arrival_code=code)
            for member_id, code in assignments.items()
        )

        logger.info(f"Generated arrival codes for plan {after.plan_id}")
        report = self.report("ok", after.plan_id, members=len(assignments))
        report.outcomes = outcomes
        return report
