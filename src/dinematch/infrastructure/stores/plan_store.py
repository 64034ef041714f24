from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select, update

from dinematch.domain import DiningPlan, PlanStatus, UNCONFIRMED
from dinematch.domain.timeutil import ensure_utc
from dinematch.infrastructure.stores.models import Base, DiningPlanModel
from dinematch.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url

_UNCONFIRMED_VALUES = [s.value for s in UNCONFIRMED]


class SqlAlchemyPlanStore:
    """
    PlanRepository backed by SQLAlchemy.

    Every state transition is a conditional UPDATE whose WHERE clause restates
    the precondition, so a racing writer makes the update match zero rows
    instead of clobbering the record.
    """

    def __init__(
        self,
        db_url: Optional[str] = None,
        *,
        provider: Optional[SessionProvider] = None,
        auto_create_schema: bool = True,
    ):
        self.db_url = db_url or get_db_url()
        self._provider = provider or SessionProvider(self.db_url)
        if auto_create_schema:
            Base.metadata.create_all(self._provider.engine)

    # ---- PlanRepository ----

    async def get(self, plan_id: str) -> Optional[DiningPlan]:
        return await asyncio.to_thread(self._get, plan_id)

    async def confirm_with_codes(
        self,
        plan_id: str,
        *,
        member_ids: Sequence[str],
        arrival_codes: Dict[str, int],
        confirmed_at: datetime,
    ) -> bool:
        return await asyncio.to_thread(self._confirm_with_codes, plan_id, list(member_ids), dict(arrival_codes), confirmed_at)

    async def find_confirmed_starting_between(self, start: datetime, end: datetime) -> List[DiningPlan]:
        return await asyncio.to_thread(self._find_confirmed_between, start, end)

    async def find_stale_unconfirmed(self, before: datetime) -> List[DiningPlan]:
        return await asyncio.to_thread(self._find_stale_unconfirmed, before)

    async def expire_many(self, plan_ids: Sequence[str], *, expired_at: datetime) -> int:
        return await asyncio.to_thread(self._expire_many, list(plan_ids), expired_at)

    async def mark_reminded(self, plan_id: str, *, reminded_at: datetime) -> bool:
        return await asyncio.to_thread(self._mark_reminded, plan_id, reminded_at)

    # ---- plan writes (outside the core) ----

    async def save(self, plan: DiningPlan) -> DiningPlan:
        return await asyncio.to_thread(self._save, plan)

    # ---- sync implementations ----

    def _get(self, plan_id: str) -> Optional[DiningPlan]:
        with self._provider.session() as session:
            row = session.get(DiningPlanModel, plan_id)
            return row.to_domain() if row is not None else None

    def _confirm_with_codes(
        self,
        plan_id: str,
        member_ids: List[str],
        arrival_codes: Dict[str, int],
        confirmed_at: datetime,
    ) -> bool:
        with self._provider.session() as session:
            row = session.get(DiningPlanModel, plan_id)
            if row is None:
                return False
            if row.status not in _UNCONFIRMED_VALUES or row.get_arrival_codes() or row.get_member_ids() != member_ids:
                return False

            # Compare-and-swap against exactly what was read above.
            result = session.execute(
                update(DiningPlanModel)
                .where(
                    DiningPlanModel.plan_id == plan_id,
                    DiningPlanModel.status == row.status,
                    DiningPlanModel.member_ids_json == row.member_ids_json,
                    DiningPlanModel.arrival_codes_json == row.arrival_codes_json,
                )
                .values(
                    arrival_codes_json=json.dumps(arrival_codes, ensure_ascii=False),
                    status=PlanStatus.CONFIRMED.value,
                    confirmed_at=ensure_utc(confirmed_at),
                )
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return result.rowcount == 1

    def _find_confirmed_between(self, start: datetime, end: datetime) -> List[DiningPlan]:
        with self._provider.session() as session:
            stmt = (
                select(DiningPlanModel)
                .where(
                    DiningPlanModel.status == PlanStatus.CONFIRMED.value,
                    DiningPlanModel.planned_time >= ensure_utc(start),
                    DiningPlanModel.planned_time <= ensure_utc(end),
                )
                .order_by(DiningPlanModel.planned_time)
            )
            return [row.to_domain() for row in session.execute(stmt).scalars()]

    def _find_stale_unconfirmed(self, before: datetime) -> List[DiningPlan]:
        with self._provider.session() as session:
            stmt = (
                select(DiningPlanModel)
                .where(
                    DiningPlanModel.status.in_(_UNCONFIRMED_VALUES),
                    DiningPlanModel.planned_time < ensure_utc(before),
                )
                .order_by(DiningPlanModel.planned_time)
            )
            return [row.to_domain() for row in session.execute(stmt).scalars()]

    def _expire_many(self, plan_ids: List[str], expired_at: datetime) -> int:
        if not plan_ids:
            return 0
        with self._provider.session() as session:
            # One statement, one transaction: all matching plans expire or none do.
            result = session.execute(
                update(DiningPlanModel)
                .where(
                    DiningPlanModel.plan_id.in_(plan_ids),
                    DiningPlanModel.status.in_(_UNCONFIRMED_VALUES),
                )
                .values(status=PlanStatus.EXPIRED.value, expired_at=ensure_utc(expired_at))
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return int(result.rowcount or 0)

    def _mark_reminded(self, plan_id: str, reminded_at: datetime) -> bool:
        with self._provider.session() as session:
            result = session.execute(
                update(DiningPlanModel)
                .where(DiningPlanModel.plan_id == plan_id, DiningPlanModel.reminded_at.is_(None))
                .values(reminded_at=ensure_utc(reminded_at))
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return result.rowcount == 1

    def _save(self, plan: DiningPlan) -> DiningPlan:
        if len(plan.member_ids) > plan.max_members:
            raise ValueError(f"plan {plan.plan_id} has more members than max_members")
        with self._provider.session() as session:
            row = session.get(DiningPlanModel, plan.plan_id)
            if row is None:
                row = DiningPlanModel(plan_id=plan.plan_id)
                session.add(row)
            elif row.status != plan.status.value and not PlanStatus(row.status).can_transition(plan.status):
                raise ValueError(f"plan {plan.plan_id} cannot move from {row.status} to {plan.status.value}")
            row.apply(plan)
            session.commit()
            return row.to_domain()

    def close(self) -> None:
        try:
            self._provider.dispose()
        except Exception:
            pass
