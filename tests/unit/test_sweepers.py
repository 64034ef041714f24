from __future__ import annotations

from datetime import timedelta

import pytest

from dinematch.application.notifications.dispatcher import NotificationDispatcher
from dinematch.application.workflows import ExpirySweeper, ReminderSweeper
from dinematch.config import ReminderConfig
from dinematch.domain import PlanStatus
from dinematch.infrastructure.push import InMemoryPushSender
from dinematch.infrastructure.stores.memory_store import InMemoryStore
from tests.factories import hours, make_plan, make_user


async def _store_with_members(*user_ids):
    store = InMemoryStore()
    for user_id in user_ids:
        await store.put_user(make_user(user_id))
    return store


def _reminder(store, clock, sender, dedupe=True):
    return ReminderSweeper(
        store.plans,
        NotificationDispatcher(store.users, sender),
        config=ReminderConfig(dedupe=dedupe),
        clock=clock,
    )


@pytest.mark.asyncio
async def test_reminds_every_member_of_plans_starting_within_the_hour(clock, now):
    store = await _store_with_members("a", "b", "c")
    await store.put_plan(
        make_plan("soon", members=["a", "b"], max_members=2, status=PlanStatus.CONFIRMED,
                  planned_time=now + timedelta(minutes=45))
    )
    await store.put_plan(
        make_plan("later", members=["c"], max_members=1, status=PlanStatus.CONFIRMED, planned_time=now + hours(2))
    )
    await store.put_plan(
        make_plan("past", members=["c"], max_members=1, status=PlanStatus.CONFIRMED,
                  planned_time=now - timedelta(minutes=10))
    )
    await store.put_plan(
        make_plan("unconfirmed", members=["c"], max_members=2, status=PlanStatus.MATCHED,
                  planned_time=now + timedelta(minutes=30))
    )
    sender = InMemoryPushSender()

    report = await _reminder(store, clock, sender).sweep()

    assert report.status == "ok"
    assert report.details["plans"] == ["soon"]
    reminders = sender.of_type("arrival_reminder")
    assert sorted(m.device_token for m in reminders) == ["tok-a", "tok-b"]
    assert reminders[0].title == "⏰ Dining Plan Reminder"
    assert reminders[0].body == "Your dining plan at Thai Palace starts in 1 hour!"
    assert reminders[0].data == {"type": "arrival_reminder", "planId": "soon", "restaurantName": "Thai Palace"}


@pytest.mark.asyncio
async def test_plan_two_hours_out_gets_nothing(clock, now):
    store = await _store_with_members("a")
    await store.put_plan(
        make_plan("later", members=["a"], max_members=1, status=PlanStatus.CONFIRMED, planned_time=now + hours(2))
    )
    sender = InMemoryPushSender()

    report = await _reminder(store, clock, sender).sweep()

    assert report.details["plans"] == []
    assert sender.sent == []


@pytest.mark.asyncio
async def test_window_edges_are_inclusive(clock, now):
    store = await _store_with_members("a", "b")
    await store.put_plan(make_plan("edge-now", members=["a"], max_members=1, status=PlanStatus.CONFIRMED, planned_time=now))
    await store.put_plan(
        make_plan("edge-hour", members=["b"], max_members=1, status=PlanStatus.CONFIRMED, planned_time=now + hours(1))
    )
    report = await _reminder(store, clock, InMemoryPushSender()).sweep()
    assert sorted(report.details["plans"]) == ["edge-hour", "edge-now"]


@pytest.mark.asyncio
async def test_dedupe_reminds_each_plan_once(clock, now):
    store = await _store_with_members("a")
    await store.put_plan(
        make_plan("soon", members=["a"], max_members=1, status=PlanStatus.CONFIRMED,
                  planned_time=now + timedelta(minutes=45))
    )
    sender = InMemoryPushSender()
    sweeper = _reminder(store, clock, sender)

    await sweeper.sweep()
    second = await sweeper.sweep()

    assert second.details["plans"] == []
    assert len(sender.sent) == 1
    assert (await store.plans.get("soon")).reminded_at == now


@pytest.mark.asyncio
async def test_without_dedupe_overlapping_sweeps_repeat(clock, now):
    store = await _store_with_members("a")
    await store.put_plan(
        make_plan("soon", members=["a"], max_members=1, status=PlanStatus.CONFIRMED,
                  planned_time=now + timedelta(minutes=45))
    )
    sender = InMemoryPushSender()
    sweeper = _reminder(store, clock, sender, dedupe=False)

    await sweeper.sweep()
    await sweeper.sweep()

    assert len(sender.sent) == 2
    assert (await store.plans.get("soon")).reminded_at is None


@pytest.mark.asyncio
async def test_expiry_marks_stale_unconfirmed_plans(clock, now):
    store = InMemoryStore()
    await store.put_plan(make_plan("stale-matched", status=PlanStatus.MATCHED, planned_time=now - hours(25)))
    await store.put_plan(make_plan("stale-open", status=PlanStatus.OPEN, planned_time=now - hours(30)))
    await store.put_plan(
        make_plan("confirmed", members=["a"], max_members=1, status=PlanStatus.CONFIRMED, planned_time=now - hours(25))
    )
    await store.put_plan(make_plan("recent", status=PlanStatus.MATCHED, planned_time=now - hours(23)))

    report = await ExpirySweeper(store.plans, clock=clock).sweep()

    assert report.status == "ok"
    assert report.details["expired"] == 2
    for plan_id in ("stale-matched", "stale-open"):
        plan = await store.plans.get(plan_id)
        assert plan.status is PlanStatus.EXPIRED
        assert plan.expired_at == now
    assert (await store.plans.get("confirmed")).status is PlanStatus.CONFIRMED
    assert (await store.plans.get("recent")).status is PlanStatus.MATCHED


@pytest.mark.asyncio
async def test_expiry_with_nothing_stale(clock, now):
    store = InMemoryStore()
    await store.put_plan(make_plan("future", planned_time=now + hours(5)))
    report = await ExpirySweeper(store.plans, clock=clock).sweep()
    assert report.details == {"expired": 0, "candidates": []}


class _BrokenPlans:
    async def find_stale_unconfirmed(self, before):
        raise RuntimeError("db down")


@pytest.mark.asyncio
async def test_expiry_store_failure_is_reported(clock):
    report = await ExpirySweeper(_BrokenPlans(), clock=clock).sweep()
    assert report.status == "error"
    assert report.details["error_code"] == "STORE_ERROR"


class _FlakyClaimPlans:
    """Wraps the memory plan repository; claiming `bad_id` raises."""

    def __init__(self, plans, bad_id):
        self._plans = plans
        self._bad_id = bad_id

    async def find_confirmed_starting_between(self, start, end):
        return await self._plans.find_confirmed_starting_between(start, end)

    async def mark_reminded(self, plan_id, *, reminded_at):
        if plan_id == self._bad_id:
            raise RuntimeError("write timeout")
        return await self._plans.mark_reminded(plan_id, reminded_at=reminded_at)


@pytest.mark.asyncio
async def test_failed_claim_does_not_block_other_plans(clock, now):
    store = await _store_with_members("a", "b")
    for plan_id, member in (("good", "a"), ("bad", "b")):
        await store.put_plan(
            make_plan(plan_id, members=[member], max_members=1, status=PlanStatus.CONFIRMED,
                      planned_time=now + timedelta(minutes=30))
        )
    sender = InMemoryPushSender()
    sweeper = ReminderSweeper(
        _FlakyClaimPlans(store.plans, "bad"),
        NotificationDispatcher(store.users, sender),
        config=ReminderConfig(dedupe=True),
        clock=clock,
    )

    report = await sweeper.sweep()

    assert report.status == "ok"
    assert report.details["plans"] == ["good"]
    assert [m.device_token for m in sender.of_type("arrival_reminder")] == ["tok-a"]
    assert (await store.plans.get("good")).reminded_at == now
    assert (await store.plans.get("bad")).reminded_at is None
