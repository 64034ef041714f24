"""
CLI entry point

    dinematch init-db
    dinematch sweep reminders|expiry
    dinematch score --user U --plan P
    dinematch worker-config
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from dinematch import __version__
from dinematch.config import AppConfig, create_config


def create_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="dinematch",
        description="DineMatch - group dining matching and plan lifecycle jobs",
    )
    parser.add_argument("--config", "-c", help="YAML config file (default: $DINEMATCH_CONFIG)")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--version", "-v", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser("init-db", help="Create the database schema")
    init_parser.add_argument("--db-url", help="Override the database URL")

    sweep_parser = subparsers.add_parser("sweep", help="Run one sweep now")
    sweep_parser.add_argument("name", choices=["reminders", "expiry"])

    score_parser = subparsers.add_parser("score", help="Score one user against one plan")
    score_parser.add_argument("--user", "-u", required=True, help="User id")
    score_parser.add_argument("--plan", "-p", required=True, help="Plan id")

    subparsers.add_parser("worker-config", help="Show the worker's cron schedule and Redis target")

    return parser


def run_cli(args: Optional[list] = None) -> int:
    """
    Run the CLI.

    Args:
        args: command line arguments (defaults to sys.argv)

    Returns:
        exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.version:
        print(f"DineMatch v{__version__}")
        return 0

    if not parsed.command:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=getattr(logging, str(parsed.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = create_config(parsed.config)
        if parsed.command == "init-db":
            if parsed.db_url:
                config.database.url = parsed.db_url
            _init_db(config)
        elif parsed.command == "sweep":
            print(json.dumps(asyncio.run(_sweep(config, parsed.name)), ensure_ascii=False, indent=2))
        elif parsed.command == "score":
            result = asyncio.run(_score(config, parsed.user, parsed.plan))
            print(json.dumps(result, ensure_ascii=False, indent=2))
            return 0 if "error" not in result else 1
        elif parsed.command == "worker-config":
            print(json.dumps(_worker_config(config), ensure_ascii=False, indent=2))
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _init_db(config: AppConfig) -> None:
    from dinematch.infrastructure.stores.models import Base
    from dinematch.infrastructure.stores.sqlalchemy_db import create_db_engine

    engine = create_db_engine(config.database.url)
    try:
        Base.metadata.create_all(engine)
    finally:
        engine.dispose()
    print(f"Schema ready at {config.database.url}")


async def _sweep(config: AppConfig, name: str) -> dict:
    from dinematch.bootstrap import build_sqlalchemy_services

    services = build_sqlalchemy_services(config)
    try:
        sweeper = services.reminder_sweeper if name == "reminders" else services.expiry_sweeper
        report = await sweeper.sweep()
        return report.to_dict()
    finally:
        await services.close()


async def _score(config: AppConfig, user_id: str, plan_id: str) -> dict:
    """Print the score breakdown; eligibility is reported, not enforced."""
    from dinematch.domain.matching import CompatibilityScorer, is_eligible
    from dinematch.domain.timeutil import utcnow
    from dinematch.infrastructure.stores.plan_store import SqlAlchemyPlanStore
    from dinematch.infrastructure.stores.sqlalchemy_db import SessionProvider
    from dinematch.infrastructure.stores.user_store import SqlAlchemyUserStore

    provider = SessionProvider(config.database.url)
    users = SqlAlchemyUserStore(config.database.url, provider=provider)
    plans = SqlAlchemyPlanStore(config.database.url, provider=provider, auto_create_schema=False)
    try:
        user = await users.get(user_id)
        plan = await plans.get(plan_id)
    finally:
        provider.dispose()

    if user is None:
        return {"error": f"user not found: {user_id}"}
    if plan is None:
        return {"error": f"plan not found: {plan_id}"}

    scorer = CompatibilityScorer(config.matching)
    now = utcnow()
    return {
        "user_id": user_id,
        "plan_id": plan_id,
        "eligible": is_eligible(user, plan),
        "cuisine": scorer.cuisine_component(user, plan),
        "trust": scorer.trust_component(user),
        "premium": scorer.premium_component(user),
        "recency": scorer.recency_component(user, now),
        "score": scorer.score(user, plan, now),
    }


def _worker_config(config: AppConfig) -> dict:
    from dinematch.infrastructure.queue.arq_worker import build_cron_jobs

    jobs = build_cron_jobs(config)
    return {
        "redis": {"host": config.redis.host, "port": config.redis.port, "database": config.redis.database},
        "cron_jobs": [
            {"name": job.name, "hour": job.hour, "minute": sorted(job.minute) if isinstance(job.minute, set) else job.minute}
            for job in jobs
        ],
    }


def main() -> None:
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
