from __future__ import annotations

import asyncio
import random

import pytest

from dinematch.application.notifications.dispatcher import NotificationDispatcher
from dinematch.application.workflows import ArrivalCodeIssuer, just_filled
from dinematch.domain import PlanStatus
from dinematch.domain.matching import CodeAllocator
from dinematch.infrastructure.push import InMemoryPushSender
from dinematch.infrastructure.stores.memory_store import InMemoryStore
from tests.factories import make_plan, make_user

MEMBERS = ["a", "b", "c", "d"]


async def _setup(
    clock,
    members_before=MEMBERS[:3],
    members_after=MEMBERS,
    status_before=PlanStatus.MATCHED,
    status_after=PlanStatus.MATCHED,
):
    store = InMemoryStore()
    for user_id in MEMBERS:
        await store.put_user(make_user(user_id))
    before = make_plan(members=members_before, max_members=4, status=status_before)
    after = make_plan(members=members_after, max_members=4, status=status_after)
    await store.put_plan(before)
    await store.put_plan(after)

    sender = InMemoryPushSender()
    issuer = ArrivalCodeIssuer(
        store.plans,
        NotificationDispatcher(store.users, sender),
        allocator=CodeAllocator(rng=random.Random(3)),
        clock=clock,
    )
    return store, issuer, sender, before, after


def test_just_filled():
    before = make_plan(members=["a", "b", "c"], max_members=4, status=PlanStatus.MATCHED)
    after = make_plan(members=MEMBERS, max_members=4, status=PlanStatus.MATCHED)
    assert just_filled(before, after)
    assert not just_filled(after, after)
    assert not just_filled(before, make_plan(members=MEMBERS, max_members=4, status=PlanStatus.OPEN))
    assert not just_filled(before, make_plan(members=["a", "b", "c"], max_members=4, status=PlanStatus.MATCHED))


@pytest.mark.asyncio
async def test_issues_one_distinct_code_per_member_and_confirms(clock, now):
    store, issuer, sender, before, after = await _setup(clock)

    report = await issuer.handle(before, after)

    assert report.status == "ok"
    plan = await store.plans.get("p1")
    assert plan.status is PlanStatus.CONFIRMED
    assert plan.confirmed_at == now
    assert sorted(plan.arrival_codes) == sorted(MEMBERS)
    codes = list(plan.arrival_codes.values())
    assert len(set(codes)) == 4
    assert all(10 <= c <= 99 for c in codes)

    messages = sender.of_type("arrival_code")
    assert len(messages) == 4
    for msg in messages:
        member = msg.device_token[len("tok-"):]
        code = plan.arrival_codes[member]
        assert msg.title == "🎉 Your Dining Plan is Confirmed!"
        assert msg.body == f"Your arrival code is {code}. Show this at Thai Palace"
        assert msg.data["arrivalCode"] == str(code)
        assert msg.data["planId"] == "p1"


@pytest.mark.asyncio
async def test_redelivered_update_does_not_reissue(clock):
    store, issuer, sender, before, after = await _setup(clock)

    await issuer.handle(before, after)
    first = (await store.plans.get("p1")).arrival_codes
    again = await issuer.handle(before, after)

    assert again.status == "skipped"
    assert again.reason == "confirm precondition failed"
    assert (await store.plans.get("p1")).arrival_codes == first
    assert len(sender.of_type("arrival_code")) == 4


@pytest.mark.asyncio
async def test_concurrent_deliveries_issue_once(clock):
    store, issuer, sender, before, after = await _setup(clock)

    reports = await asyncio.gather(issuer.handle(before, after), issuer.handle(before, after))

    assert sorted(r.status for r in reports) == ["ok", "skipped"]
    assert len(sender.of_type("arrival_code")) == 4


@pytest.mark.asyncio
async def test_ignores_updates_that_are_not_the_fill(clock):
    store, issuer, sender, before, after = await _setup(clock)

    report = await issuer.handle(after, after)

    assert report.status == "skipped"
    assert report.reason == "not a fill transition"
    assert (await store.plans.get("p1")).status is PlanStatus.MATCHED
    assert sender.sent == []


@pytest.mark.asyncio
async def test_full_but_still_open_is_not_a_fill(clock):
    store, issuer, sender, before, after = await _setup(
        clock, status_before=PlanStatus.OPEN, status_after=PlanStatus.OPEN
    )

    report = await issuer.handle(before, after)

    assert report.status == "skipped"
    assert report.reason == "not a fill transition"
    stored = await store.plans.get("p1")
    assert stored.status is PlanStatus.OPEN
    assert stored.arrival_codes == {}
    assert sender.sent == []


@pytest.mark.asyncio
async def test_snapshot_with_codes_is_skipped(clock):
    store, issuer, sender, before, after = await _setup(clock)
    after.arrival_codes = {"a": 11, "b": 12, "c": 13, "d": 14}

    report = await issuer.handle(before, after)

    assert report.reason == "codes already issued"
    assert sender.sent == []


@pytest.mark.asyncio
async def test_duplicate_member_ids_are_skipped(clock):
    store, issuer, sender, before, after = await _setup(clock, members_after=["a", "b", "c", "c"])
    report = await issuer.handle(before, after)
    assert report.reason == "duplicate member ids"
    assert (await store.plans.get("p1")).arrival_codes == {}


@pytest.mark.asyncio
async def test_plan_changed_since_snapshot(clock):
    store, issuer, sender, before, after = await _setup(clock)
    await store.put_plan(make_plan(members=["a", "b", "c", "e"], max_members=4, status=PlanStatus.MATCHED))

    report = await issuer.handle(before, after)

    assert report.status == "skipped"
    assert (await store.plans.get("p1")).status is PlanStatus.MATCHED
    assert sender.sent == []
