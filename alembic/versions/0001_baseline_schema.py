"""baseline schema

Revision ID: 0001_baseline_schema
Revises: None
Create Date: 2026-10-19

Tables for users, dining plans, ratings and the handler run/event log.

The online upgrade skips tables and indexes that already exist, so a local
database created with `dinematch init-db` can be stamped forward safely.
"""

from __future__ import annotations

from alembic import context, op
import sqlalchemy as sa


revision = "0001_baseline_schema"
down_revision = None
branch_labels = None
depends_on = None


def _is_offline() -> bool:
    try:
        return bool(context.is_offline_mode())
    except Exception:
        return False


def _has_table(name: str) -> bool:
    return sa.inspect(op.get_bind()).has_table(name)


def _create_index(name: str, table: str, cols: list[str]) -> None:
    if not _is_offline():
        existing = {str(i.get("name") or "") for i in sa.inspect(op.get_bind()).get_indexes(table)}
        if name in existing:
            return
    op.create_index(name, table, cols)


def upgrade() -> None:
    if _is_offline() or not _has_table("users"):
        op.create_table(
            "users",
            sa.Column("user_id", sa.String(length=64), primary_key=True),
            sa.Column("company", sa.String(length=128), server_default="", nullable=False),
            sa.Column("food_preferences_json", sa.Text(), server_default="[]", nullable=False),
            sa.Column("trust_score", sa.Float(), server_default="0", nullable=False),
            sa.Column("rating_count", sa.Integer(), server_default="0", nullable=False),
            sa.Column("last_rated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("is_premium", sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("device_token", sa.String(length=512), nullable=True),
            sa.Column("version", sa.Integer(), server_default="0", nullable=False),
        )
    _create_index("ix_users_company", "users", ["company"])
    _create_index("ix_users_is_active", "users", ["is_active"])

    if _is_offline() or not _has_table("dining_plans"):
        op.create_table(
            "dining_plans",
            sa.Column("plan_id", sa.String(length=64), primary_key=True),
            sa.Column("creator_company", sa.String(length=128), server_default="", nullable=False),
            sa.Column("status", sa.String(length=16), server_default="open", nullable=False),
            sa.Column("cuisine_types_json", sa.Text(), server_default="[]", nullable=False),
            sa.Column("member_ids_json", sa.Text(), server_default="[]", nullable=False),
            sa.Column("max_members", sa.Integer(), server_default="1", nullable=False),
            sa.Column("restaurant_name", sa.String(length=256), server_default="", nullable=False),
            sa.Column("planned_time", sa.DateTime(timezone=True), nullable=True),
            sa.Column("arrival_codes_json", sa.Text(), server_default="{}", nullable=False),
            sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("expired_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("reminded_at", sa.DateTime(timezone=True), nullable=True),
        )
    _create_index("ix_dining_plans_status", "dining_plans", ["status"])
    _create_index("ix_dining_plans_planned_time", "dining_plans", ["planned_time"])

    if _is_offline() or not _has_table("ratings"):
        op.create_table(
            "ratings",
            sa.Column("rating_id", sa.String(length=64), primary_key=True),
            sa.Column("rated_user_id", sa.String(length=64), nullable=True),
            sa.Column("rater_id", sa.String(length=64), nullable=True),
            sa.Column("value", sa.Float(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        )
    _create_index("ix_ratings_rated_user_id", "ratings", ["rated_user_id"])
    _create_index("ix_ratings_created_at", "ratings", ["created_at"])

    if _is_offline() or not _has_table("handler_runs"):
        op.create_table(
            "handler_runs",
            sa.Column("run_id", sa.String(length=64), primary_key=True),
            sa.Column("trace_id", sa.String(length=64), server_default="", nullable=False),
            sa.Column("handler", sa.String(length=64), server_default="", nullable=False),
            sa.Column("trigger", sa.String(length=32), server_default="", nullable=False),
            sa.Column("subject_id", sa.String(length=64), server_default="", nullable=False),
            sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("status", sa.String(length=16), server_default="running", nullable=False),
        )
    _create_index("ix_handler_runs_trace_id", "handler_runs", ["trace_id"])
    _create_index("ix_handler_runs_handler", "handler_runs", ["handler"])
    _create_index("ix_handler_runs_started_at", "handler_runs", ["started_at"])

    if _is_offline() or not _has_table("handler_events"):
        op.create_table(
            "handler_events",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("run_id", sa.String(length=64), sa.ForeignKey("handler_runs.run_id"), nullable=False),
            sa.Column("trace_id", sa.String(length=64), server_default="", nullable=False),
            sa.Column("handler", sa.String(length=64), server_default="", nullable=False),
            sa.Column("trigger", sa.String(length=32), server_default="", nullable=False),
            sa.Column("type", sa.String(length=32), server_default="", nullable=False),
            sa.Column("subject_id", sa.String(length=64), server_default="", nullable=False),
            sa.Column("payload_json", sa.Text(), server_default="{}", nullable=False),
            sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        )
    _create_index("ix_handler_events_run_id", "handler_events", ["run_id"])
    _create_index("ix_handler_events_trace_id", "handler_events", ["trace_id"])


def downgrade() -> None:
    op.drop_table("handler_events")
    op.drop_table("handler_runs")
    op.drop_table("ratings")
    op.drop_table("dining_plans")
    op.drop_table("users")
