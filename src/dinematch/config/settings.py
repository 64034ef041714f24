"""
Config loading: YAML file (optional) + DINEMATCH_* environment overrides.
"""

from __future__ import annotations

import os
from typing import Optional

from dinematch.config.models import AppConfig

_TRUTHY = ("1", "true", "yes", "y", "on")

_config: Optional[AppConfig] = None


def _apply_env(config: AppConfig) -> AppConfig:
    db_url = os.getenv("DINEMATCH_DB_URL")
    if db_url:
        config.database.url = db_url

    redis_host = os.getenv("DINEMATCH_REDIS_HOST")
    if redis_host:
        config.redis.host = redis_host
    redis_port = os.getenv("DINEMATCH_REDIS_PORT")
    if redis_port:
        config.redis.port = int(redis_port)
    redis_db = os.getenv("DINEMATCH_REDIS_DB")
    if redis_db:
        config.redis.database = int(redis_db)
    redis_password = os.getenv("DINEMATCH_REDIS_PASSWORD")
    if redis_password:
        config.redis.password = redis_password

    provider = os.getenv("DINEMATCH_PUSH_PROVIDER")
    if provider:
        config.push.provider = provider  # type: ignore[assignment]
    project_id = os.getenv("DINEMATCH_FCM_PROJECT_ID")
    if project_id:
        config.push.fcm_project_id = project_id
    token = os.getenv("DINEMATCH_FCM_ACCESS_TOKEN")
    if token:
        config.push.fcm_access_token = token

    dedupe = os.getenv("DINEMATCH_REMINDER_DEDUPE")
    if dedupe is not None:
        config.reminders.dedupe = dedupe.lower() in _TRUTHY
    return config


def create_config(config_path: Optional[str] = None) -> AppConfig:
    """Build a fresh AppConfig. Path falls back to DINEMATCH_CONFIG."""
    path = config_path or os.getenv("DINEMATCH_CONFIG")
    config = AppConfig.from_yaml(path) if path else AppConfig()
    return _apply_env(config)


def get_config() -> AppConfig:
    """Process-wide config, loaded on first use."""
    global _config
    if _config is None:
        _config = create_config()
    return _config


def reset_config() -> None:
    global _config
    _config = None
