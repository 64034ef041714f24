from __future__ import annotations

import pytest

from dinematch.application.notifications.dispatcher import NotificationDispatcher
from dinematch.application.workflows import PlanMatcher
from dinematch.domain import PlanStatus
from dinematch.infrastructure.event_log import InMemoryEventLog
from dinematch.infrastructure.push import InMemoryPushSender
from dinematch.infrastructure.stores.memory_store import InMemoryStore
from tests.factories import make_plan, make_user


class _BrokenUsers:
    async def list_active(self):
        raise RuntimeError("db down")

    async def get(self, user_id):
        return None


async def _matcher(users, clock, sender=None, event_log=None, timeout_sec=10.0):
    store = InMemoryStore()
    for user in users:
        await store.put_user(user)
    sender = sender or InMemoryPushSender()
    dispatcher = NotificationDispatcher(store.users, sender, timeout_sec=timeout_sec)
    return PlanMatcher(store.users, dispatcher, event_log=event_log, clock=clock), sender


@pytest.mark.asyncio
async def test_recommends_exactly_top_five(clock):
    users = [make_user(f"u{i}", trust=i * 0.5) for i in range(8)]
    matcher, sender = await _matcher(users, clock)

    report = await matcher.handle(make_plan())

    assert report.status == "ok"
    assert [s["user_id"] for s in report.details["selected"]] == ["u7", "u6", "u5", "u4", "u3"]
    assert report.details["active_users"] == 8
    assert report.dispatch_counts == {"sent": 5, "skipped": 0, "failed": 0}
    assert sorted(m.device_token for m in sender.of_type("plan_recommendation")) == [
        "tok-u3", "tok-u4", "tok-u5", "tok-u6", "tok-u7",
    ]


@pytest.mark.asyncio
async def test_message_content(clock):
    matcher, sender = await _matcher([make_user("u1")], clock)

    await matcher.handle(make_plan("p9", cuisines=["thai", "noodles"], restaurant="Thai Palace"))

    [msg] = sender.sent
    assert msg.title == "🍽️ Perfect Dining Match Found!"
    assert msg.body == "Join a dining plan at Thai Palace - thai, noodles"
    assert msg.data == {"type": "plan_recommendation", "planId": "p9", "restaurantName": "Thai Palace"}


@pytest.mark.asyncio
async def test_never_recommends_ineligible_users(clock):
    users = [
        make_user("coworker", company="globex", trust=5.0),
        make_user("member", trust=5.0),
        make_user("inactive", trust=5.0, active=False),
        make_user("picky", prefs=["pizza"], trust=5.0),
        make_user("ok", trust=1.0),
    ]
    matcher, sender = await _matcher(users, clock)

    report = await matcher.handle(make_plan(company="globex", members=["creator", "member"]))

    assert [s["user_id"] for s in report.details["selected"]] == ["ok"]
    assert [m.device_token for m in sender.sent] == ["tok-ok"]


@pytest.mark.asyncio
async def test_fewer_than_five_candidates(clock):
    matcher, sender = await _matcher([make_user("a"), make_user("b")], clock)
    report = await matcher.handle(make_plan())
    assert len(report.details["selected"]) == 2
    assert len(sender.sent) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [PlanStatus.MATCHED, PlanStatus.CONFIRMED, PlanStatus.EXPIRED])
async def test_skips_plans_that_are_not_open(clock, status):
    matcher, sender = await _matcher([make_user("u1")], clock)
    report = await matcher.handle(make_plan(status=status))
    assert report.status == "skipped"
    assert sender.sent == []


@pytest.mark.asyncio
async def test_skips_full_plans(clock):
    matcher, sender = await _matcher([make_user("u1")], clock)
    report = await matcher.handle(make_plan(members=["a", "b"], max_members=2))
    assert report.status == "skipped"
    assert report.reason == "plan is full"
    assert sender.sent == []


@pytest.mark.asyncio
async def test_store_failure_becomes_error_report(clock):
    sender = InMemoryPushSender()
    event_log = InMemoryEventLog()
    matcher = PlanMatcher(
        _BrokenUsers(), NotificationDispatcher(_BrokenUsers(), sender), event_log=event_log, clock=clock
    )

    report = await matcher.handle(make_plan())

    assert report.status == "error"
    assert report.details["error_code"] == "STORE_ERROR"
    assert sender.sent == []
    types = [e["type"] for e in event_log.events]
    assert types == ["job_start", "error", "job_result"]


@pytest.mark.asyncio
async def test_one_failed_recipient_does_not_block_others(clock):
    sender = InMemoryPushSender(fail_tokens={"tok-bad"})
    users = [make_user("good", trust=1.0), make_user("bad", trust=5.0), make_user("silent", trust=3.0, token=None)]
    matcher, _ = await _matcher(users, clock, sender=sender)

    report = await matcher.handle(make_plan())

    assert report.status == "ok"
    assert report.dispatch_counts == {"sent": 1, "skipped": 1, "failed": 1}
    assert [m.device_token for m in sender.sent] == ["tok-good"]


@pytest.mark.asyncio
async def test_records_run_events(clock):
    event_log = InMemoryEventLog()
    matcher, _ = await _matcher([make_user("u1")], clock, event_log=event_log)

    report = await matcher.handle(make_plan(), trace_id="trace-1")

    assert [e["type"] for e in event_log.events] == ["job_start", "dispatch", "job_result"]
    assert {e["trace_id"] for e in event_log.events} == {"trace-1"}
    assert len({e["run_id"] for e in event_log.events}) == 1
    [result] = event_log.of_handler("plan_matcher")
    assert result["payload"]["status"] == report.status
