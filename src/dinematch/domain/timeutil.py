from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    # Naive values are taken to be UTC (SQLite drops tzinfo on read).
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Accept datetime, ISO-8601 string or epoch seconds; None/garbage -> None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    if isinstance(value, str):
        try:
            return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    if isinstance(value, dict) and "_seconds" in value:
        # Firestore Timestamp serialised by the admin SDK
        return datetime.fromtimestamp(float(value["_seconds"]), tz=timezone.utc)
    return None


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
