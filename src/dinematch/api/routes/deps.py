from __future__ import annotations

from fastapi import HTTPException, Request
from arq.connections import ArqRedis, create_pool

from dinematch.bootstrap import Services
from dinematch.infrastructure.queue.arq_worker import build_redis_settings


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="services not initialised")
    return services


async def get_queue(services: Services) -> ArqRedis:
    return await create_pool(build_redis_settings(services.config))
