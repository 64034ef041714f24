"""
Wiring: build the handlers and the change router on top of a concrete store,
push sender and event log.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional

from dinematch.application.collaboration.changes import ChangeRouter
from dinematch.application.notifications.dispatcher import NotificationDispatcher
from dinematch.application.ports import (
    EventLogPort,
    PlanRepository,
    PushSender,
    RatingRepository,
    UserRepository,
)
from dinematch.application.workflows import (
    ArrivalCodeIssuer,
    ExpirySweeper,
    PlanMatcher,
    ReminderSweeper,
    TrustScoreAggregator,
)
from dinematch.application.workflows.base import Clock
from dinematch.config import AppConfig, get_config
from dinematch.domain.matching import CodeAllocator, CompatibilityScorer

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: AppConfig
    users: UserRepository
    plans: PlanRepository
    ratings: RatingRepository
    sender: PushSender
    event_log: Optional[EventLogPort]
    dispatcher: NotificationDispatcher
    plan_matcher: PlanMatcher
    code_issuer: ArrivalCodeIssuer
    trust_aggregator: TrustScoreAggregator
    reminder_sweeper: ReminderSweeper
    expiry_sweeper: ExpirySweeper
    router: ChangeRouter
    # True when the store publishes its own writes to `router`.
    has_change_feed: bool = False

    async def close(self) -> None:
        try:
            await self.sender.close()
        except Exception as e:
            logger.debug(f"Push sender close failed: {e}")
        for resource in (self.event_log, self.users, self.plans, self.ratings):
            close = getattr(resource, "close", None)
            if close is None:
                continue
            try:
                close()
            except Exception as e:
                logger.debug(f"Close failed for {type(resource).__name__}: {e}")


def build_services(
    config: AppConfig,
    *,
    users: UserRepository,
    plans: PlanRepository,
    ratings: RatingRepository,
    sender: PushSender,
    event_log: Optional[EventLogPort] = None,
    clock: Optional[Clock] = None,
    rng: Optional[random.Random] = None,
) -> Services:
    common = {"event_log": event_log, "clock": clock}
    dispatcher = NotificationDispatcher(users, sender, timeout_sec=config.push.timeout_sec)

    plan_matcher = PlanMatcher(
        users,
        dispatcher,
        scorer=CompatibilityScorer(config.matching),
        top_k=config.matching.top_k,
        **common,
    )
    code_issuer = ArrivalCodeIssuer(plans, dispatcher, allocator=CodeAllocator(config.codes, rng=rng), **common)
    trust_aggregator = TrustScoreAggregator(users, config=config.trust, **common)

    return Services(
        config=config,
        users=users,
        plans=plans,
        ratings=ratings,
        sender=sender,
        event_log=event_log,
        dispatcher=dispatcher,
        plan_matcher=plan_matcher,
        code_issuer=code_issuer,
        trust_aggregator=trust_aggregator,
        reminder_sweeper=ReminderSweeper(plans, dispatcher, config=config.reminders, **common),
        expiry_sweeper=ExpirySweeper(plans, config=config.expiry, **common),
        router=ChangeRouter(plan_matcher, code_issuer, trust_aggregator),
    )


def build_sqlalchemy_services(config: Optional[AppConfig] = None, *, sender: Optional[PushSender] = None) -> Services:
    """Production wiring: one SQLAlchemy engine shared by all stores, logging + DB event log."""
    from dinematch.infrastructure.event_log import CompositeEventLog, LoggingEventLog
    from dinematch.infrastructure.event_log.sqlalchemy_event_log import SqlAlchemyEventLog
    from dinematch.infrastructure.push import create_push_sender
    from dinematch.infrastructure.stores.plan_store import SqlAlchemyPlanStore
    from dinematch.infrastructure.stores.rating_store import SqlAlchemyRatingStore
    from dinematch.infrastructure.stores.sqlalchemy_db import SessionProvider
    from dinematch.infrastructure.stores.user_store import SqlAlchemyUserStore

    config = config or get_config()
    provider = SessionProvider(config.database.url)
    users = SqlAlchemyUserStore(config.database.url, provider=provider)
    plans = SqlAlchemyPlanStore(config.database.url, provider=provider, auto_create_schema=False)
    ratings = SqlAlchemyRatingStore(config.database.url, provider=provider, auto_create_schema=False)

    try:
        event_log: EventLogPort = CompositeEventLog([LoggingEventLog(), SqlAlchemyEventLog(config.database.url)])
    except Exception as e:
        logger.warning(f"DB event log unavailable, logging only: {e}")
        event_log = LoggingEventLog()

    return build_services(
        config,
        users=users,
        plans=plans,
        ratings=ratings,
        sender=sender or create_push_sender(config.push),
        event_log=event_log,
    )


def build_memory_services(
    store=None,
    *,
    config: Optional[AppConfig] = None,
    sender: Optional[PushSender] = None,
    event_log: Optional[EventLogPort] = None,
    clock: Optional[Clock] = None,
    rng: Optional[random.Random] = None,
    subscribe: bool = True,
) -> Services:
    """In-memory wiring; with `subscribe` the router reacts to every store write."""
    from dinematch.infrastructure.event_log import InMemoryEventLog
    from dinematch.infrastructure.push import InMemoryPushSender
    from dinematch.infrastructure.stores.memory_store import InMemoryStore

    store = store or InMemoryStore()
    services = build_services(
        config or AppConfig(),
        users=store.users,
        plans=store.plans,
        ratings=store.ratings,
        sender=sender or InMemoryPushSender(),
        event_log=event_log if event_log is not None else InMemoryEventLog(),
        clock=clock,
        rng=rng,
    )
    if subscribe:
        store.subscribe(services.router.route)
        services.has_change_feed = True
    return services
