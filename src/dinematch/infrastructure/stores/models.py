from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from dinematch.domain import DiningPlan, PlanStatus, Rating, User
from dinematch.domain.timeutil import ensure_utc


class Base(DeclarativeBase):
    pass


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(value) if value else None


def _loads(raw: Optional[str], default: Any) -> Any:
    try:
        value = json.loads(raw or "null")
    except Exception:
        return default
    return value if isinstance(value, type(default)) else default


class UserModel(Base):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    company: Mapped[str] = mapped_column(String(128), default="", index=True)
    food_preferences_json: Mapped[str] = mapped_column(Text, default="[]")

    trust_score: Mapped[float] = mapped_column(Float, default=0.0)
    rating_count: Mapped[int] = mapped_column(Integer, default=0)
    last_rated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    is_premium: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    last_active_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    device_token: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    # Optimistic concurrency counter for trust updates
    version: Mapped[int] = mapped_column(Integer, default=0)

    def set_food_preferences(self, prefs: List[str]) -> None:
        self.food_preferences_json = json.dumps(list(prefs or []), ensure_ascii=False)

    def get_food_preferences(self) -> List[str]:
        return [str(p) for p in _loads(self.food_preferences_json, [])]

    def to_domain(self) -> User:
        return User(
            user_id=self.user_id,
            company=self.company or "",
            food_preferences=self.get_food_preferences(),
            trust_score=float(self.trust_score or 0.0),
            rating_count=int(self.rating_count or 0),
            is_premium=bool(self.is_premium),
            last_active_at=_utc(self.last_active_at),
            is_active=bool(self.is_active),
            device_token=self.device_token,
            last_rated_at=_utc(self.last_rated_at),
            version=int(self.version or 0),
        )

    def apply(self, user: User) -> None:
        self.company = user.company
        self.set_food_preferences(user.food_preferences)
        self.trust_score = user.trust_score
        self.rating_count = user.rating_count
        self.last_rated_at = _utc(user.last_rated_at)
        self.is_premium = user.is_premium
        self.is_active = user.is_active
        self.last_active_at = _utc(user.last_active_at)
        self.device_token = user.device_token
        self.version = user.version


class DiningPlanModel(Base):
    __tablename__ = "dining_plans"

    plan_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    creator_company: Mapped[str] = mapped_column(String(128), default="")
    status: Mapped[str] = mapped_column(String(16), default=PlanStatus.OPEN.value, index=True)

    cuisine_types_json: Mapped[str] = mapped_column(Text, default="[]")
    member_ids_json: Mapped[str] = mapped_column(Text, default="[]")
    max_members: Mapped[int] = mapped_column(Integer, default=1)
    restaurant_name: Mapped[str] = mapped_column(String(256), default="")
    planned_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    arrival_codes_json: Mapped[str] = mapped_column(Text, default="{}")
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    expired_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reminded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def get_member_ids(self) -> List[str]:
        return [str(m) for m in _loads(self.member_ids_json, [])]

    def get_arrival_codes(self) -> Dict[str, int]:
        return {str(k): int(v) for k, v in _loads(self.arrival_codes_json, {}).items()}

    def to_domain(self) -> DiningPlan:
        return DiningPlan(
            plan_id=self.plan_id,
            creator_company=self.creator_company or "",
            status=PlanStatus(self.status),
            cuisine_types=[str(c) for c in _loads(self.cuisine_types_json, [])],
            member_ids=self.get_member_ids(),
            max_members=int(self.max_members),
            restaurant_name=self.restaurant_name or "",
            planned_time=_utc(self.planned_time),
            arrival_codes=self.get_arrival_codes(),
            confirmed_at=_utc(self.confirmed_at),
            expired_at=_utc(self.expired_at),
            reminded_at=_utc(self.reminded_at),
        )

    def apply(self, plan: DiningPlan) -> None:
        self.creator_company = plan.creator_company
        self.status = plan.status.value
        self.cuisine_types_json = json.dumps(list(plan.cuisine_types), ensure_ascii=False)
        self.member_ids_json = json.dumps(list(plan.member_ids), ensure_ascii=False)
        self.max_members = plan.max_members
        self.restaurant_name = plan.restaurant_name
        self.planned_time = _utc(plan.planned_time)
        self.arrival_codes_json = json.dumps(dict(plan.arrival_codes), ensure_ascii=False)
        self.confirmed_at = _utc(plan.confirmed_at)
        self.expired_at = _utc(plan.expired_at)
        self.reminded_at = _utc(plan.reminded_at)


class RatingModel(Base):
    __tablename__ = "ratings"

    rating_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    rated_user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    rater_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    def to_domain(self) -> Rating:
        return Rating(
            rating_id=self.rating_id,
            rated_user_id=self.rated_user_id,
            value=self.value,
            rater_id=self.rater_id,
            created_at=_utc(self.created_at),
        )


class HandlerRunModel(Base):
    __tablename__ = "handler_runs"

    run_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    trace_id: Mapped[str] = mapped_column(String(64), default="", index=True)
    handler: Mapped[str] = mapped_column(String(64), default="", index=True)
    trigger: Mapped[str] = mapped_column(String(32), default="")
    subject_id: Mapped[str] = mapped_column(String(64), default="")

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="running")

    events = relationship("HandlerEventModel", back_populates="run", cascade="all, delete-orphan")


class HandlerEventModel(Base):
    __tablename__ = "handler_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(String(64), ForeignKey("handler_runs.run_id"), index=True)
    trace_id: Mapped[str] = mapped_column(String(64), default="", index=True)

    handler: Mapped[str] = mapped_column(String(64), default="")
    trigger: Mapped[str] = mapped_column(String(32), default="")
    type: Mapped[str] = mapped_column(String(32), default="")
    subject_id: Mapped[str] = mapped_column(String(64), default="")

    payload_json: Mapped[str] = mapped_column(Text, default="{}")
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    run = relationship("HandlerRunModel", back_populates="events")

    def set_payload(self, payload: Dict[str, Any]) -> None:
        self.payload_json = json.dumps(payload or {}, ensure_ascii=False, default=str)

    def get_payload(self) -> Dict[str, Any]:
        return _loads(self.payload_json, {})
