from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from dinematch.domain import DiningPlan, Rating, User


@runtime_checkable
class UserRepository(Protocol):
    async def get(self, user_id: str) -> Optional[User]:
        """Point read; None if the user does not exist."""

    async def list_active(self) -> List[User]:
        """All users with is_active set, in stable store order."""

    async def update_trust(
        self,
        user_id: str,
        *,
        expected_version: int,
        trust_score: float,
        rating_count: int,
        last_rated_at: datetime,
    ) -> bool:
        """
        Compare-and-swap on the user's version.

        Returns False (and writes nothing) if the stored version differs
        from `expected_version` or the user is gone.
        """


@runtime_checkable
class PlanRepository(Protocol):
    async def get(self, plan_id: str) -> Optional[DiningPlan]:
        """Point read."""

    async def confirm_with_codes(
        self,
        plan_id: str,
        *,
        member_ids: Sequence[str],
        arrival_codes: Dict[str, int],
        confirmed_at: datetime,
    ) -> bool:
        """
        Atomically store codes and move the plan to confirmed.

        Only succeeds if the stored plan is open/matched, has no codes yet
        and its member list equals `member_ids`.
        """

    async def find_confirmed_starting_between(self, start: datetime, end: datetime) -> List[DiningPlan]:
        """Confirmed plans with start <= planned_time <= end."""

    async def find_stale_unconfirmed(self, before: datetime) -> List[DiningPlan]:
        """Open or matched plans with planned_time < before."""

    async def expire_many(self, plan_ids: Sequence[str], *, expired_at: datetime) -> int:
        """
        All-or-nothing batch transition to expired.

        Plans that are no longer open/matched are left alone. Returns the
        number of plans expired.
        """

    async def mark_reminded(self, plan_id: str, *, reminded_at: datetime) -> bool:
        """Set reminded_at once; False if already set or plan missing."""


@runtime_checkable
class RatingRepository(Protocol):
    async def get(self, rating_id: str) -> Optional[Rating]:
        """Point read."""

    async def add(self, rating: Rating) -> Rating:
        """Insert a rating; ratings are never updated."""

    async def list_for_user(self, user_id: str, limit: int = 100) -> List[Rating]:
        """Most recent ratings received by a user."""
