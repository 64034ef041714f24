from __future__ import annotations

import asyncio
import json

from dinematch.domain import PlanStatus
from dinematch.infrastructure.stores.plan_store import SqlAlchemyPlanStore
from dinematch.infrastructure.stores.user_store import SqlAlchemyUserStore
from dinematch.domain.timeutil import utcnow
from dinematch.presentation.cli.main import create_parser, run_cli
from tests.factories import hours, make_plan, make_user


def test_cli_sweep_flags():
    args = create_parser().parse_args(["sweep", "reminders"])
    assert args.command == "sweep"
    assert args.name == "reminders"


def test_cli_score_flags():
    args = create_parser().parse_args(["--config", "x.yaml", "score", "--user", "u1", "--plan", "p1"])
    assert (args.config, args.user, args.plan) == ("x.yaml", "u1", "p1")


def test_cli_version(capsys):
    assert run_cli(["--version"]) == 0
    assert "DineMatch v" in capsys.readouterr().out


def test_cli_init_db_and_expiry_sweep(tmp_path, monkeypatch, capsys):
    db_url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DINEMATCH_DB_URL", db_url)

    assert run_cli(["init-db"]) == 0
    plans = SqlAlchemyPlanStore(db_url, auto_create_schema=False)
    asyncio.run(plans.save(make_plan("stale", status=PlanStatus.MATCHED, planned_time=utcnow() - hours(30))))
    plans.close()
    capsys.readouterr()

    assert run_cli(["sweep", "expiry"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["handler"] == "expiry_sweeper"
    assert report["details"]["expired"] == 1


def test_cli_score(tmp_path, monkeypatch, capsys):
    db_url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DINEMATCH_DB_URL", db_url)
    users = SqlAlchemyUserStore(db_url)
    plans = SqlAlchemyPlanStore(db_url)
    asyncio.run(users.save(make_user("u1", trust=5.0, premium=True)))
    asyncio.run(plans.save(make_plan("p1")))
    users.close()
    plans.close()

    assert run_cli(["score", "--user", "u1", "--plan", "p1"]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["eligible"] is True
    assert result["cuisine"] == 40.0
    assert result["trust"] == 30.0
    assert result["premium"] == 20.0
    assert result["recency"] == 0.0

    assert run_cli(["score", "--user", "ghost", "--plan", "p1"]) == 1


def test_cli_worker_config(capsys):
    assert run_cli(["worker-config"]) == 0
    config = json.loads(capsys.readouterr().out)
    assert [job["name"] for job in config["cron_jobs"]] == ["cron:cron_send_reminders", "cron:cron_expire_plans"]
    assert config["cron_jobs"][0]["minute"] == [0, 30]
