from .codes import CodeAllocator
from .compatibility import CompatibilityResult, CompatibilityScorer, is_eligible, shared_cuisines

__all__ = [
    "CodeAllocator",
    "CompatibilityResult",
    "CompatibilityScorer",
    "is_eligible",
    "shared_cuisines",
]
