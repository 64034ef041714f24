# src/dinematch/domain/matching/codes.py
"""
Arrival code allocation.

Codes are short numbers read aloud at the restaurant, not secrets, so the
stdlib PRNG is fine. The default space 10-99 holds 90 codes.
"""

from __future__ import annotations

import random
from typing import List, Optional

from dinematch.config.models import CodeConfig
from dinematch.core.errors import CodeCapacityError


class CodeAllocator:
    """Rejection sampling with an attempt bound and a shuffle fallback."""

    def __init__(self, config: Optional[CodeConfig] = None, rng: Optional[random.Random] = None):
        self.config = config or CodeConfig()
        self.rng = rng or random.Random()

    @property
    def capacity(self) -> int:
        return self.config.high - self.config.low + 1

    def allocate(self, count: int) -> List[int]:
        """
        Return `count` pairwise-distinct codes in [low, high].

        Raises:
            CodeCapacityError: count is negative or exceeds the code space
        """
        if count < 0 or count > self.capacity:
            raise CodeCapacityError(
                message=f"cannot allocate {count} distinct codes from a space of {self.capacity}",
                context={"count": count, "capacity": self.capacity},
            )

        codes: List[int] = []
        seen = set()
        attempts = 0
        while len(codes) < count and attempts < self.config.max_attempts:
            attempts += 1
            code = self.rng.randint(self.config.low, self.config.high)
            if code not in seen:
                seen.add(code)
                codes.append(code)

        if len(codes) < count:
            # Near capacity the rejection loop stalls; draw the rest without replacement.
            remaining = [c for c in range(self.config.low, self.config.high + 1) if c not in seen]
            codes.extend(self.rng.sample(remaining, count - len(codes)))
        return codes
