from .plan import DiningPlan, PlanStatus, UNCONFIRMED
from .rating import Rating
from .user import User

__all__ = ["DiningPlan", "PlanStatus", "UNCONFIRMED", "Rating", "User"]
