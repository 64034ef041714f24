# tests/conftest.py
"""
Pytest configuration and fixtures.
Adds src/ to sys.path so `import dinematch` works without installing.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
src_root = project_root / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    for key in (
        "DINEMATCH_CONFIG",
        "DINEMATCH_DB_URL",
        "DINEMATCH_PUSH_PROVIDER",
        "DINEMATCH_REMINDER_DEDUPE",
    ):
        monkeypatch.delenv(key, raising=False)
    from dinematch.config import reset_config

    reset_config()
    yield
    reset_config()
