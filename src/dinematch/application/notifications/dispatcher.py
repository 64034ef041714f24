"""
Notification dispatcher - formats and sends one push message per recipient.

Every failure mode (missing user, empty token, sender error, timeout) is
turned into a DispatchOutcome; `dispatch` and `fan_out` never raise.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from dinematch.application.ports.push_port import PushSender
from dinematch.application.ports.repositories import UserRepository
from dinematch.domain.plan import DiningPlan

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    PLAN_RECOMMENDATION = "plan_recommendation"
    ARRIVAL_CODE = "arrival_code"
    ARRIVAL_REMINDER = "arrival_reminder"


@dataclass
class PushMessage:
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)


@dataclass
class DispatchRequest:
    kind: NotificationKind
    user_id: str
    plan: DiningPlan
    arrival_code: Optional[int] = None


@dataclass
class DispatchOutcome:
    user_id: str
    kind: NotificationKind
    status: str  # sent / skipped / failed
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "sent"

    def to_dict(self) -> Dict[str, Any]:
        return {"user_id": self.user_id, "kind": self.kind.value, "status": self.status, "reason": self.reason}


def build_message(kind: NotificationKind, plan: DiningPlan, arrival_code: Optional[int] = None) -> PushMessage:
    restaurant = plan.restaurant_name
    data = {"type": kind.value, "planId": plan.plan_id, "restaurantName": restaurant}

    if kind is NotificationKind.PLAN_RECOMMENDATION:
        cuisines = ", ".join(plan.cuisine_types)
        return PushMessage(
            title="🍽️ Perfect Dining Match Found!",
            body=f"Join a dining plan at {restaurant} - {cuisines}",
            data=data,
        )
    if kind is NotificationKind.ARRIVAL_CODE:
        if arrival_code is None:
            raise ValueError("arrival_code notification requires a code")
        data["arrivalCode"] = str(arrival_code)
        return PushMessage(
            title="🎉 Your Dining Plan is Confirmed!",
            body=f"Your arrival code is {arrival_code}. Show this at {restaurant}",
            data=data,
        )
    return PushMessage(
        title="⏰ Dining Plan Reminder",
        body=f"Your dining plan at {restaurant} starts in 1 hour!",
        data=data,
    )


def summarize(outcomes: Iterable[DispatchOutcome]) -> Dict[str, int]:
    counts = {"sent": 0, "skipped": 0, "failed": 0}
    for outcome in outcomes:
        counts[outcome.status] = counts.get(outcome.status, 0) + 1
    return counts


class NotificationDispatcher:
    """
    Resolve the recipient's device token, then send with a per-message timeout.

    Usage:
        dispatcher = NotificationDispatcher(users, sender, timeout_sec=10)
        outcomes = await dispatcher.fan_out(requests)
    """

    def __init__(self, users: UserRepository, sender: PushSender, *, timeout_sec: float = 10.0):
        self.users = users
        self.sender = sender
        self.timeout_sec = timeout_sec

    async def dispatch(
        self,
        kind: NotificationKind,
        user_id: str,
        plan: DiningPlan,
        arrival_code: Optional[int] = None,
    ) -> DispatchOutcome:
        try:
            user = await self.users.get(user_id)
        except Exception as e:
            logger.error(f"Error loading recipient {user_id} for {kind.value}: {e}")
            return DispatchOutcome(user_id, kind, "failed", f"user lookup failed: {e}")

        if user is None:
            logger.info(f"Skipping {kind.value} for {user_id}: user not found")
            return DispatchOutcome(user_id, kind, "skipped", "user_not_found")
        if not user.device_token:
            logger.info(f"Skipping {kind.value} for {user_id}: no device token")
            return DispatchOutcome(user_id, kind, "skipped", "no_device_token")

        try:
            message = build_message(kind, plan, arrival_code)
            await asyncio.wait_for(
                self.sender.send(user.device_token, message.title, message.body, message.data),
                timeout=self.timeout_sec,
            )
        except asyncio.TimeoutError:
            logger.error(f"Timed out sending {kind.value} to {user_id} after {self.timeout_sec}s")
            return DispatchOutcome(user_id, kind, "failed", "timeout")
        except Exception as e:
            logger.error(f"Error sending {kind.value} to {user_id}: {e}")
            return DispatchOutcome(user_id, kind, "failed", str(e))

        return DispatchOutcome(user_id, kind, "sent")

    async def fan_out(self, requests: Iterable[DispatchRequest]) -> List[DispatchOutcome]:
        """Send all requests concurrently; one failure never cancels the others."""
        requests = list(requests)
        if not requests:
            return []
        results = await asyncio.gather(
            *(self.dispatch(r.kind, r.user_id, r.plan, r.arrival_code) for r in requests),
            return_exceptions=True,
        )
        outcomes: List[DispatchOutcome] = []
        for request, result in zip(requests, results):
            if isinstance(result, BaseException):
                logger.error(f"Unexpected dispatch error for {request.user_id}: {result!r}")
                outcomes.append(DispatchOutcome(request.user_id, request.kind, "failed", repr(result)))
            else:
                outcomes.append(result)
        return outcomes
