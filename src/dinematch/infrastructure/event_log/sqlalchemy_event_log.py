from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import asc, desc, select

from dinematch.application.collaboration.message_schema import HandlerEvent
from dinematch.domain.timeutil import ensure_utc, parse_datetime, utcnow
from dinematch.infrastructure.stores.models import Base, HandlerEventModel, HandlerRunModel
from dinematch.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url

logger = logging.getLogger(__name__)


def _row_to_dict(row: HandlerEventModel) -> Dict[str, Any]:
    return {
        "run_id": row.run_id,
        "trace_id": row.trace_id,
        "handler": row.handler,
        "trigger": row.trigger,
        "type": row.type,
        "subject_id": row.subject_id,
        "payload": row.get_payload(),
        "ts": ensure_utc(row.ts).isoformat(),
    }


class SqlAlchemyEventLog:
    """
    Persist handler events via SQLAlchemy.

    - append(): upsert the run row (closing it on job_result), insert the event
    - stream(run_id): events of one run ordered by ts
    """

    def __init__(self, db_url: Optional[str] = None, *, auto_create_schema: bool = True):
        self.db_url = db_url or get_db_url()
        self._provider = SessionProvider(self.db_url)
        if auto_create_schema:
            # Local dev/tests. In production, prefer Alembic migrations.
            Base.metadata.create_all(self._provider.engine)

    def append(self, event: Union[HandlerEvent, dict]) -> None:
        evt = event.to_dict() if isinstance(event, HandlerEvent) else dict(event)

        run_id = str(evt.get("run_id") or "")
        if not run_id:
            raise ValueError("Event missing run_id")
        ts: datetime = parse_datetime(evt.get("ts")) or utcnow()
        event_type = str(evt.get("type") or "")

        with self._provider.session() as session:
            run = session.get(HandlerRunModel, run_id)
            if run is None:
                run = HandlerRunModel(
                    run_id=run_id,
                    trace_id=str(evt.get("trace_id") or ""),
                    handler=str(evt.get("handler") or ""),
                    trigger=str(evt.get("trigger") or ""),
                    subject_id=str(evt.get("subject_id") or ""),
                    started_at=ts,
                    status="running",
                )
                session.add(run)
            if event_type == "job_result":
                run.ended_at = ts
                run.status = str((evt.get("payload") or {}).get("status") or "ok")

            row = HandlerEventModel(
                run_id=run_id,
                trace_id=str(evt.get("trace_id") or ""),
                handler=str(evt.get("handler") or ""),
                trigger=str(evt.get("trigger") or ""),
                type=event_type,
                subject_id=str(evt.get("subject_id") or ""),
                ts=ts,
            )
            row.set_payload(evt.get("payload") or {})
            session.add(row)
            session.commit()

    def stream(self, run_id: str) -> Iterable[dict]:
        with self._provider.session() as session:
            stmt = (
                select(HandlerEventModel)
                .where(HandlerEventModel.run_id == run_id)
                .order_by(asc(HandlerEventModel.ts), asc(HandlerEventModel.id))
            )
            for row in session.execute(stmt).scalars():
                yield _row_to_dict(row)

    def list_runs(self, limit: int = 50, *, handler: Optional[str] = None) -> List[dict]:
        with self._provider.session() as session:
            stmt = select(HandlerRunModel)
            if handler:
                stmt = stmt.where(HandlerRunModel.handler == handler)
            rows = session.execute(stmt.order_by(desc(HandlerRunModel.started_at)).limit(limit)).scalars()
            return [
                {
                    "run_id": r.run_id,
                    "trace_id": r.trace_id,
                    "handler": r.handler,
                    "trigger": r.trigger,
                    "subject_id": r.subject_id,
                    "started_at": ensure_utc(r.started_at).isoformat() if r.started_at else None,
                    "ended_at": ensure_utc(r.ended_at).isoformat() if r.ended_at else None,
                    "status": r.status,
                }
                for r in rows
            ]

    def list_events(self, run_id: str, *, limit: int = 1000) -> List[dict]:
        with self._provider.session() as session:
            stmt = (
                select(HandlerEventModel)
                .where(HandlerEventModel.run_id == run_id)
                .order_by(asc(HandlerEventModel.ts), asc(HandlerEventModel.id))
                .limit(limit)
            )
            return [_row_to_dict(row) for row in session.execute(stmt).scalars()]

    def close(self) -> None:
        try:
            self._provider.dispose()
        except Exception:
            pass
