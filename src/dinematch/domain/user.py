# src/dinematch/domain/user.py
"""
User domain model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from dinematch.domain.fields import pick
from dinematch.domain.timeutil import isoformat, parse_datetime


@dataclass
class User:
    """A diner who can be recommended plans and rated by peers."""
    user_id: str
    company: str = ""
    food_preferences: List[str] = field(default_factory=list)
    trust_score: float = 0.0
    rating_count: int = 0
    is_premium: bool = False
    last_active_at: Optional[datetime] = None
    is_active: bool = True
    device_token: Optional[str] = None
    last_rated_at: Optional[datetime] = None
    version: int = 0  # bumped on every trust update

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "company": self.company,
            "food_preferences": list(self.food_preferences),
            "trust_score": self.trust_score,
            "rating_count": self.rating_count,
            "is_premium": self.is_premium,
            "last_active_at": isoformat(self.last_active_at),
            "is_active": self.is_active,
            "device_token": self.device_token,
            "last_rated_at": isoformat(self.last_rated_at),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], user_id: Optional[str] = None) -> "User":
        """
        Build from a stored document.

        Both snake_case and the camelCase keys written by the mobile clients
        (foodPreferences, isPremium, lastActiveAt, fcmToken, ...) are accepted.
        """
        prefs = pick(data, "food_preferences", "foodPreferences", default=[]) or []
        return cls(
            user_id=str(user_id or pick(data, "user_id", "id", "uid", default="")),
            company=str(pick(data, "company", default="") or ""),
            food_preferences=[str(p) for p in prefs],
            trust_score=float(pick(data, "trust_score", "trustScore", default=0.0) or 0.0),
            rating_count=int(pick(data, "rating_count", "ratingCount", default=0) or 0),
            is_premium=bool(pick(data, "is_premium", "isPremium", default=False)),
            last_active_at=parse_datetime(pick(data, "last_active_at", "lastActiveAt")),
            is_active=bool(pick(data, "is_active", "isActive", default=True)),
            device_token=pick(data, "device_token", "fcmToken") or None,
            last_rated_at=parse_datetime(pick(data, "last_rated_at", "lastRatedAt")),
            version=int(pick(data, "version", default=0) or 0),
        )
