"""
ARQ worker: change-feed jobs and the periodic sweeps.

Run with:
    arq dinematch.infrastructure.queue.arq_worker.WorkerSettings
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List

from arq import cron
from arq.connections import RedisSettings

from dinematch.application.collaboration.changes import ChangeEvent
from dinematch.bootstrap import Services, build_sqlalchemy_services
from dinematch.config import AppConfig, get_config

logger = logging.getLogger(__name__)

_TRUTHY = ("1", "true", "yes", "y")


def build_redis_settings(config: AppConfig) -> RedisSettings:
    return RedisSettings(
        host=config.redis.host,
        port=config.redis.port,
        database=config.redis.database,
        password=config.redis.password,
    )


async def startup(ctx) -> None:
    ctx["services"] = build_sqlalchemy_services(get_config())


async def shutdown(ctx) -> None:
    services = ctx.get("services")
    if services is not None:
        await services.close()


def _services(ctx) -> Services:
    services = ctx.get("services")
    if services is None:
        services = build_sqlalchemy_services(get_config())
        ctx["services"] = services
    return services


async def handle_change_job(ctx, change: Dict[str, Any]) -> Dict[str, Any]:
    """
    ARQ job: route one store change (create/update/delete with snapshots).

    Always completes; handler failures are in the returned reports and the
    event log, never raised, so ARQ does not retry the job.
    """
    try:
        event = ChangeEvent.from_dict(change)
    except (ValueError, TypeError, KeyError) as e:
        logger.warning(f"Ignoring malformed change job payload: {e}")
        return {"ignored": True, "reason": str(e), "reports": []}
    reports = await _services(ctx).router.route(event)
    return {
        "trace_id": event.trace_id,
        "collection": event.collection,
        "doc_id": event.doc_id,
        "reports": [r.to_dict() for r in reports],
    }


async def cron_send_reminders(ctx) -> Dict[str, Any]:
    """Cron entrypoint: remind members of confirmed plans starting soon."""
    report = await _services(ctx).reminder_sweeper.sweep()
    return report.to_dict()


async def cron_expire_plans(ctx) -> Dict[str, Any]:
    """Cron entrypoint: expire stale open/matched plans as one batch."""
    report = await _services(ctx).expiry_sweeper.sweep()
    return report.to_dict()


def build_cron_jobs(config: AppConfig) -> List[Any]:
    """
    Reminder sweep every `reminders.interval_minutes` (minute marks within the
    hour), expiry sweep daily at expiry.cron_hour:cron_minute.

    unique=True keeps a tick from firing twice when several workers run.
    """
    run_at_startup = os.getenv("DINEMATCH_CRON_RUN_AT_STARTUP", "false").lower() in _TRUTHY
    minutes = set(range(0, 60, config.reminders.interval_minutes))
    return [
        cron(cron_send_reminders, minute=minutes, run_at_startup=run_at_startup, unique=True),
        cron(
            cron_expire_plans,
            hour=config.expiry.cron_hour,
            minute=config.expiry.cron_minute,
            run_at_startup=run_at_startup,
            unique=True,
        ),
    ]


class WorkerSettings:
    functions = [handle_change_job]
    cron_jobs = build_cron_jobs(get_config())
    redis_settings = build_redis_settings(get_config())
    on_startup = startup
    on_shutdown = shutdown
