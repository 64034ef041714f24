# src/dinematch/domain/rating.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from dinematch.domain.timeutil import isoformat, parse_datetime
from dinematch.domain.fields import pick


@dataclass(frozen=True)
class Rating:
    """Peer rating; immutable once created."""
    rating_id: str
    rated_user_id: Optional[str] = None
    value: Any = None  # validated by the aggregator, not here
    rater_id: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rating_id": self.rating_id,
            "rated_user_id": self.rated_user_id,
            "value": self.value,
            "rater_id": self.rater_id,
            "created_at": isoformat(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], rating_id: Optional[str] = None) -> "Rating":
        return cls(
            rating_id=str(rating_id or pick(data, "rating_id", "id", default="")),
            rated_user_id=pick(data, "rated_user_id", "ratedUserId"),
            value=pick(data, "value", "userRating", "rating"),
            rater_id=pick(data, "rater_id", "raterId"),
            created_at=parse_datetime(pick(data, "created_at", "createdAt")),
        )
