from __future__ import annotations

from pathlib import Path

from dinematch.infrastructure.stores.sqlalchemy_db import create_db_engine


def test_create_db_engine_creates_parent_dir_for_relative_sqlite(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    assert not (tmp_path / "data").exists()

    engine = create_db_engine("sqlite:///data/test.db")
    try:
        assert (tmp_path / "data").is_dir()
        with engine.connect() as conn:
            conn.exec_driver_sql("select 1")
    finally:
        engine.dispose()


def test_create_db_engine_creates_parent_dir_for_absolute_sqlite(tmp_path: Path):
    target = tmp_path / "nested" / "deeper" / "test.db"
    engine = create_db_engine(f"sqlite:///{target}")
    try:
        assert target.parent.is_dir()
    finally:
        engine.dispose()


def test_memory_sqlite_needs_no_directory():
    engine = create_db_engine("sqlite:///:memory:")
    try:
        with engine.connect() as conn:
            conn.exec_driver_sql("select 1")
    finally:
        engine.dispose()
