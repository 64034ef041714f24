"""
Pydantic configuration models with YAML loading.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator


class ScoringWeights(BaseModel):
    cuisine: float = Field(default=40.0, ge=0)
    trust: float = Field(default=30.0, ge=0)
    premium: float = Field(default=20.0, ge=0)
    recency: float = Field(default=10.0, ge=0)

    @model_validator(mode="after")
    def _sum_to_100(self) -> "ScoringWeights":
        total = self.cuisine + self.trust + self.premium + self.recency
        if abs(total - 100.0) > 1e-6:
            raise ValueError(f"scoring weights must sum to 100, got {total}")
        return self


class MatchingConfig(BaseModel):
    top_k: int = Field(default=5, ge=1)
    max_trust: float = Field(default=5.0, gt=0)
    recency_days: float = Field(default=7.0, gt=0)
    weights: ScoringWeights = Field(default_factory=ScoringWeights)


class CodeConfig(BaseModel):
    low: int = 10
    high: int = 99
    max_attempts: int = Field(default=1000, ge=1)

    @model_validator(mode="after")
    def _range(self) -> "CodeConfig":
        if self.high < self.low:
            raise ValueError("codes.high must be >= codes.low")
        return self


class TrustConfig(BaseModel):
    min_rating: float = 1.0
    max_rating: float = 5.0
    max_attempts: int = Field(default=5, ge=1)


class ReminderConfig(BaseModel):
    interval_minutes: int = Field(default=30, ge=1, le=60)
    window_minutes: int = Field(default=60, ge=1)
    # Persist reminded_at and skip plans already reminded.
    dedupe: bool = True


class ExpiryConfig(BaseModel):
    grace_hours: float = Field(default=24.0, ge=0)
    cron_hour: int = Field(default=3, ge=0, le=23)
    cron_minute: int = Field(default=0, ge=0, le=59)


class PushConfig(BaseModel):
    provider: Literal["fcm", "log"] = "log"
    fcm_project_id: Optional[str] = None
    fcm_access_token: Optional[str] = None
    fcm_base_url: str = "https://fcm.googleapis.com/v1"
    timeout_sec: float = Field(default=10.0, gt=0)


class DatabaseConfig(BaseModel):
    url: str = "sqlite:///data/dinematch.db"


class RedisConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 6379
    database: int = 0
    password: Optional[str] = None


class AppConfig(BaseModel):
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    codes: CodeConfig = Field(default_factory=CodeConfig)
    trust: TrustConfig = Field(default_factory=TrustConfig)
    reminders: ReminderConfig = Field(default_factory=ReminderConfig)
    expiry: ExpiryConfig = Field(default_factory=ExpiryConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    raw: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AppConfig":
        file_path = Path(path).expanduser()
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {file_path}")
        data = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
        return cls(**data, raw=data)
