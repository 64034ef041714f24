# src/dinematch/domain/plan.py
"""
Dining plan domain model and its status lifecycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from dinematch.domain.timeutil import isoformat, parse_datetime
from dinematch.domain.fields import pick


class PlanStatus(str, Enum):
    OPEN = "open"
    MATCHED = "matched"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"

    def can_transition(self, target: "PlanStatus") -> bool:
        """Forward-only: open -> matched -> confirmed, open/matched -> expired."""
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    PlanStatus.OPEN: {PlanStatus.MATCHED, PlanStatus.CONFIRMED, PlanStatus.EXPIRED},
    PlanStatus.MATCHED: {PlanStatus.CONFIRMED, PlanStatus.EXPIRED},
    PlanStatus.CONFIRMED: set(),
    PlanStatus.EXPIRED: set(),
}

UNCONFIRMED = (PlanStatus.OPEN, PlanStatus.MATCHED)


@dataclass
class DiningPlan:
    """A proposed group dinner with a member cap."""
    plan_id: str
    creator_company: str = ""
    status: PlanStatus = PlanStatus.OPEN
    cuisine_types: List[str] = field(default_factory=list)
    member_ids: List[str] = field(default_factory=list)
    max_members: int = 1
    restaurant_name: str = ""
    planned_time: Optional[datetime] = None
    arrival_codes: Dict[str, int] = field(default_factory=dict)
    confirmed_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    reminded_at: Optional[datetime] = None

    @property
    def is_full(self) -> bool:
        return len(self.member_ids) >= self.max_members

    @property
    def open_slots(self) -> int:
        return max(0, self.max_members - len(self.member_ids))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan_id": self.plan_id,
            "creator_company": self.creator_company,
            "status": self.status.value,
            "cuisine_types": list(self.cuisine_types),
            "member_ids": list(self.member_ids),
            "max_members": self.max_members,
            "restaurant_name": self.restaurant_name,
            "planned_time": isoformat(self.planned_time),
            "arrival_codes": dict(self.arrival_codes),
            "confirmed_at": isoformat(self.confirmed_at),
            "expired_at": isoformat(self.expired_at),
            "reminded_at": isoformat(self.reminded_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], plan_id: Optional[str] = None) -> "DiningPlan":
        codes = pick(data, "arrival_codes", "arrivalCodes", default={}) or {}
        return cls(
            plan_id=str(plan_id or pick(data, "plan_id", "id", default="")),
            creator_company=str(pick(data, "creator_company", "creatorCompany", default="") or ""),
            status=PlanStatus(str(pick(data, "status", default=PlanStatus.OPEN.value))),
            cuisine_types=[str(c) for c in (pick(data, "cuisine_types", "cuisineTypes", default=[]) or [])],
            member_ids=[str(m) for m in (pick(data, "member_ids", "memberIds", default=[]) or [])],
            max_members=int(pick(data, "max_members", "maxMembers", default=1)),
            restaurant_name=str(pick(data, "restaurant_name", "restaurantName", default="") or ""),
            planned_time=parse_datetime(pick(data, "planned_time", "plannedTime")),
            arrival_codes={str(k): int(v) for k, v in codes.items()},
            confirmed_at=parse_datetime(pick(data, "confirmed_at", "confirmedAt")),
            expired_at=parse_datetime(pick(data, "expired_at", "expiredAt")),
            reminded_at=parse_datetime(pick(data, "reminded_at", "remindedAt")),
        )
