from .arrival_codes import ArrivalCodeIssuer, just_filled
from .base import BaseHandler, HandlerReport
from .plan_matcher import PlanMatcher
from .sweepers import ExpirySweeper, ReminderSweeper
from .trust_score import TrustScoreAggregator, next_trust

__all__ = [
    "ArrivalCodeIssuer",
    "BaseHandler",
    "ExpirySweeper",
    "HandlerReport",
    "PlanMatcher",
    "ReminderSweeper",
    "TrustScoreAggregator",
    "just_filled",
    "next_trust",
]
