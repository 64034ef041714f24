# src/dinematch/domain/matching/compatibility.py
"""
Compatibility scoring between a candidate user and a dining plan.

Score = cuisine + trust + premium + recency, with default weights
40 / 30 / 20 / 10 (sum 100):

- cuisine: |user ∩ plan| / max(|user|, 1) * w_cuisine
- trust:   trust_score / max_trust * w_trust   (not clamped)
- premium: w_premium if premium else 0
- recency: max(0, (7 - days_inactive) / 7) * w_recency
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from dinematch.config.models import MatchingConfig
from dinematch.domain.plan import DiningPlan
from dinematch.domain.timeutil import EPOCH, ensure_utc
from dinematch.domain.user import User

_SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class CompatibilityResult:
    """Ephemeral ranking entry for one matching pass."""
    user: User
    score: float


def shared_cuisines(user: User, plan: DiningPlan) -> List[str]:
    plan_cuisines = set(plan.cuisine_types)
    return [c for c in user.food_preferences if c in plan_cuisines]


def is_eligible(user: User, plan: DiningPlan) -> bool:
    """
    Pre-filter applied before scoring.

    A user must be active, not already a member, from a different company
    than the plan creator, and share at least one cuisine tag with the plan.
    """
    if not user.is_active:
        return False
    if user.user_id in plan.member_ids:
        return False
    if user.company == plan.creator_company:
        return False
    return bool(shared_cuisines(user, plan))


class CompatibilityScorer:
    """
    Pure, deterministic scorer (given `now`).

    Trust scores outside [0, max_trust] are not re-clamped, so they yield
    contributions outside the nominal trust band.
    """

    def __init__(self, config: Optional[MatchingConfig] = None):
        self.config = config or MatchingConfig()
        self.weights = self.config.weights

    def cuisine_component(self, user: User, plan: DiningPlan) -> float:
        common = len(set(shared_cuisines(user, plan)))
        return common / max(len(set(user.food_preferences)), 1) * self.weights.cuisine

    def trust_component(self, user: User) -> float:
        return (user.trust_score / self.config.max_trust) * self.weights.trust

    def premium_component(self, user: User) -> float:
        return self.weights.premium if user.is_premium else 0.0

    def recency_component(self, user: User, now: datetime) -> float:
        last_active = ensure_utc(user.last_active_at) if user.last_active_at else EPOCH
        days = (ensure_utc(now) - last_active).total_seconds() / _SECONDS_PER_DAY
        # Clock skew can put last_active in the future; cap at a full score.
        days = max(days, 0.0)
        window = self.config.recency_days
        return max(0.0, (window - days) / window) * self.weights.recency

    def score(self, user: User, plan: DiningPlan, now: datetime) -> float:
        """
        Score a user against a plan.

        Args:
            user: candidate (eligibility is not checked here)
            plan: the plan being filled
            now: reference time for the recency term

        Returns:
            score, in [0, 100] whenever trust_score is in [0, max_trust]
        """
        return (
            self.cuisine_component(user, plan)
            + self.trust_component(user)
            + self.premium_component(user)
            + self.recency_component(user, now)
        )

    def rank(
        self,
        users: Iterable[User],
        plan: DiningPlan,
        now: datetime,
        limit: Optional[int] = None,
    ) -> List[CompatibilityResult]:
        """Filter, score and sort descending. Ties keep enumeration order."""
        results = [
            CompatibilityResult(user=u, score=self.score(u, plan, now))
            for u in users
            if is_eligible(u, plan)
        ]
        # list.sort is stable, so equal scores stay in input order
        results.sort(key=lambda r: r.score, reverse=True)
        return results if limit is None else results[:limit]
