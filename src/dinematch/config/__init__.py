from .models import (
    AppConfig,
    CodeConfig,
    DatabaseConfig,
    ExpiryConfig,
    MatchingConfig,
    PushConfig,
    RedisConfig,
    ReminderConfig,
    ScoringWeights,
    TrustConfig,
)
from .settings import create_config, get_config, reset_config

__all__ = [
    "AppConfig",
    "CodeConfig",
    "DatabaseConfig",
    "ExpiryConfig",
    "MatchingConfig",
    "PushConfig",
    "RedisConfig",
    "ReminderConfig",
    "ScoringWeights",
    "TrustConfig",
    "create_config",
    "get_config",
    "reset_config",
]
