from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from dinematch.domain.timeutil import utcnow


def new_run_id() -> str:
    return uuid.uuid4().hex


def new_trace_id() -> str:
    return uuid.uuid4().hex


@dataclass
class HandlerEvent:
    """
    One structured event emitted while a handler runs.

    A run is one handler invocation; a trace ties together the runs caused
    by the same store change or timer tick.
    """

    run_id: str
    trace_id: str
    handler: str = ""     # plan_matcher / arrival_code_issuer / ...
    trigger: str = ""     # plan_write / plan_update / rating_create / cron
    type: str = ""        # job_start / job_result / dispatch / error
    subject_id: str = ""  # plan or user id the run is about
    payload: Dict[str, Any] = field(default_factory=dict)
    ts: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "trace_id": self.trace_id,
            "handler": self.handler,
            "trigger": self.trigger,
            "type": self.type,
            "subject_id": self.subject_id,
            "payload": self.payload,
            "ts": self.ts.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


def make_event(
    *,
    run_id: str,
    trace_id: str,
    handler: str,
    trigger: str,
    type: str,
    subject_id: str = "",
    payload: Optional[Dict[str, Any]] = None,
) -> HandlerEvent:
    return HandlerEvent(
        run_id=run_id,
        trace_id=trace_id,
        handler=handler,
        trigger=trigger,
        type=type,
        subject_id=subject_id,
        payload=dict(payload or {}),
    )
