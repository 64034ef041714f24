from __future__ import annotations

import asyncio
import random

import pytest
from fastapi.testclient import TestClient

from dinematch.api.main import create_app
from dinematch.bootstrap import build_memory_services
from dinematch.domain import PlanStatus
from dinematch.infrastructure.stores.memory_store import InMemoryStore
from tests.factories import hours, make_plan, make_user


@pytest.fixture
def env(clock):
    store = InMemoryStore()
    # The API is the change feed here, so the store does not publish to the router.
    services = build_memory_services(store, clock=clock, rng=random.Random(2), subscribe=False)

    async def _seed():
        await store.put_user(make_user("creator", company="globex"))
        for user_id in ("a", "b"):
            await store.put_user(make_user(user_id, company="acme"))

    asyncio.run(_seed())
    with TestClient(create_app(services)) as client:
        yield client, store, services


def test_health(env):
    client, _, _ = env
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_plan_create_change_sends_recommendations(env):
    client, _, services = env
    plan = make_plan(members=["creator"], max_members=3)

    resp = client.post(
        "/api/changes",
        json={"collection": "dining_plans", "doc_id": "p1", "kind": "create", "after": plan.to_dict(), "trace_id": "t-1"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["trace_id"] == "t-1"
    [report] = body["reports"]
    assert report["handler"] == "plan_matcher"
    assert report["dispatch"] == {"sent": 2, "skipped": 0, "failed": 0}
    assert sorted(m.device_token for m in services.sender.of_type("plan_recommendation")) == ["tok-a", "tok-b"]


def test_fill_change_issues_codes(env, now):
    client, store, services = env
    before = make_plan(members=["creator", "a"], max_members=3, status=PlanStatus.MATCHED)
    after = make_plan(members=["creator", "a", "b"], max_members=3, status=PlanStatus.MATCHED)
    asyncio.run(store.put_plan(after))

    resp = client.post(
        "/api/changes",
        json={
            "collection": "dining_plans",
            "doc_id": "p1",
            "kind": "update",
            "before": before.to_dict(),
            "after": after.to_dict(),
        },
    )

    reports = {r["handler"]: r for r in resp.json()["reports"]}
    assert reports["arrival_code_issuer"]["status"] == "ok"
    assert len(services.sender.of_type("arrival_code")) == 3


def test_rating_submission_updates_trust(env):
    client, store, _ = env

    for i, value in enumerate([4, 5, 3]):
        resp = client.post("/api/ratings", json={"rating_id": f"r{i}", "rated_user_id": "a", "rating": value})
        assert resp.status_code == 200
        assert resp.json()["reports"][0]["status"] == "ok"

    user = asyncio.run(store.users.get("a"))
    assert (user.trust_score, user.rating_count) == (4.0, 3)


def test_duplicate_rating_is_rejected(env):
    client, _, _ = env
    payload = {"rating_id": "r1", "rated_user_id": "a", "rating": 4}
    assert client.post("/api/ratings", json=payload).status_code == 200
    assert client.post("/api/ratings", json=payload).status_code == 409


def test_invalid_change_payload(env):
    client, _, _ = env
    resp = client.post("/api/changes", json={"collection": "dining_plans", "kind": "explode"})
    assert resp.status_code == 422


def test_sweep_endpoints(env, now):
    client, store, _ = env
    asyncio.run(store.put_plan(make_plan("stale", status=PlanStatus.MATCHED, planned_time=now - hours(25))))

    resp = client.post("/api/jobs/sweep/expiry")
    assert resp.status_code == 200
    assert resp.json()["details"]["expired"] == 1

    resp = client.post("/api/jobs/sweep/reminders")
    assert resp.status_code == 200
    assert resp.json()["details"]["plans"] == []

    assert client.post("/api/jobs/sweep/nope").status_code == 404


def test_enqueue_failure_is_service_unavailable(env, monkeypatch):
    client, _, _ = env
    from dinematch.api.routes import changes as changes_routes

    async def _no_queue(services):
        raise ConnectionError("redis unreachable")

    monkeypatch.setattr(changes_routes, "get_queue", _no_queue)
    plan = make_plan(members=["creator"], max_members=3)

    resp = client.post(
        "/api/changes",
        json={"collection": "dining_plans", "doc_id": "p1", "kind": "create", "after": plan.to_dict(), "enqueue": True},
    )

    assert resp.status_code == 503
    assert "redis unreachable" in resp.json()["detail"]


@pytest.fixture
def feed_env(clock):
    store = InMemoryStore()
    services = build_memory_services(store, clock=clock, rng=random.Random(2))
    asyncio.run(store.put_user(make_user("a", company="acme")))
    with TestClient(create_app(services)) as client:
        yield client, store, services


def test_rating_with_store_change_feed_counts_once(feed_env):
    client, store, services = feed_env
    assert services.has_change_feed

    for i, value in enumerate([4, 5]):
        resp = client.post("/api/ratings", json={"rating_id": f"r{i}", "rated_user_id": "a", "rating": value})
        assert resp.status_code == 200
        assert resp.json()["routed_by"] == "change_feed"

    user = asyncio.run(store.users.get("a"))
    assert (user.trust_score, user.rating_count, user.version) == (4.5, 2, 2)
