"""
Trust score aggregator - fold one peer rating into the rated user's running mean.

new_score = (old_score * old_count + rating) / (old_count + 1)

The read-compute-write is guarded by the user's version (compare-and-swap)
and retried on conflict.
"""

from __future__ import annotations

import logging
import math
from numbers import Real
from typing import Optional, Tuple

from dinematch.application.ports.repositories import UserRepository
from dinematch.application.workflows.base import BaseHandler, HandlerReport
from dinematch.config.models import TrustConfig
from dinematch.core.errors import ConcurrencyConflict, StoreError
from dinematch.domain.rating import Rating

logger = logging.getLogger(__name__)


def next_trust(score: float, count: int, value: float) -> Tuple[float, int]:
    return (score * count + value) / (count + 1), count + 1


class TrustScoreAggregator(BaseHandler):
    name = "trust_score_aggregator"

    def __init__(self, users: UserRepository, *, config: Optional[TrustConfig] = None, **kwargs):
        super().__init__(**kwargs)
        self.users = users
        self.config = config or TrustConfig()

    async def handle(self, rating: Rating, *, trace_id: Optional[str] = None) -> HandlerReport:
        subject = rating.rated_user_id or rating.rating_id
        return await self._run("rating_create", subject, lambda: self._apply(rating), trace_id)

    def _validate(self, rating: Rating) -> Optional[str]:
        if not rating.rated_user_id or rating.value is None:
            return "missing rated user or value"
        value = rating.value
        if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
            return f"non-numeric rating {value!r}"
        if not self.config.min_rating <= value <= self.config.max_rating:
            return f"rating {value} outside [{self.config.min_rating}, {self.config.max_rating}]"
        return None

    async def _apply(self, rating: Rating) -> HandlerReport:
        problem = self._validate(rating)
        if problem:
            logger.info(f"Ignoring rating {rating.rating_id}: {problem}")
            return self.report("skipped", rating.rated_user_id or "", problem)

        user_id = str(rating.rated_user_id)
        value = float(rating.value)

        for attempt in range(1, self.config.max_attempts + 1):
            try:
                user = await self.users.get(user_id)
            except Exception as e:
                raise StoreError(message=f"loading user failed: {e}", context={"user_id": user_id}) from e
            if user is None:
                logger.info(f"Ignoring rating {rating.rating_id}: user {user_id} not found")
                return self.report("skipped", user_id, "rated user not found")

            score, count = next_trust(user.trust_score, user.rating_count, value)
            try:
                written = await self.users.update_trust(
                    user_id,
                    expected_version=user.version,
                    trust_score=score,
                    rating_count=count,
                    last_rated_at=self.clock(),
                )
            except Exception as e:
                raise StoreError(message=f"updating trust failed: {e}", context={"user_id": user_id}) from e

            if written:
                logger.info(f"Updated trust score for user {user_id}: {score}")
                return self.report("ok", user_id, trust_score=score, rating_count=count, attempts=attempt)
            logger.info(f"Trust update for {user_id} lost a race (attempt {attempt}); retrying")

        raise ConcurrencyConflict(
            message=f"gave up updating trust for {user_id} after {self.config.max_attempts} attempts",
            context={"user_id": user_id, "rating_id": rating.rating_id},
        )
