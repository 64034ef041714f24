from .event_log_port import EventLogPort
from .push_port import PushSender
from .repositories import PlanRepository, RatingRepository, UserRepository

__all__ = ["EventLogPort", "PushSender", "PlanRepository", "RatingRepository", "UserRepository"]
