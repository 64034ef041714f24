"""
Shared handler plumbing: run/trace ids, event log records, and the
"never raise into the host" boundary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from dinematch.application.collaboration.message_schema import make_event, new_run_id, new_trace_id
from dinematch.application.notifications.dispatcher import DispatchOutcome, summarize
from dinematch.application.ports.event_log_port import EventLogPort
from dinematch.core.errors import DineMatchError, ErrorSeverity
from dinematch.domain.timeutil import utcnow

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass
class HandlerReport:
    """Neutral completion of one handler run."""
    handler: str
    status: str  # ok / skipped / error
    subject_id: str = ""
    reason: str = ""
    outcomes: List[DispatchOutcome] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def dispatch_counts(self) -> Dict[str, int]:
        return summarize(self.outcomes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "handler": self.handler,
            "status": self.status,
            "subject_id": self.subject_id,
            "reason": self.reason,
            "dispatch": self.dispatch_counts,
            "details": self.details,
        }


class BaseHandler:
    """
    Base class for trigger handlers.

    Subclasses implement the work as a coroutine returning a HandlerReport and
    call `_run`, which records job_start/job_result events and converts any
    exception into an error report.
    """

    name = "handler"

    def __init__(self, *, event_log: Optional[EventLogPort] = None, clock: Optional[Clock] = None):
        self.event_log = event_log
        self.clock: Clock = clock or utcnow

    def report(self, status: str, subject_id: str = "", reason: str = "", **details: Any) -> HandlerReport:
        return HandlerReport(handler=self.name, status=status, subject_id=subject_id, reason=reason, details=details)

    def _emit(self, run_id: str, trace_id: str, trigger: str, type: str, subject_id: str, payload: Dict[str, Any]) -> None:
        if self.event_log is None:
            return
        try:
            self.event_log.append(
                make_event(
                    run_id=run_id,
                    trace_id=trace_id,
                    handler=self.name,
                    trigger=trigger,
                    type=type,
                    subject_id=subject_id,
                    payload=payload,
                )
            )
        except Exception as e:
            logger.warning(f"Event log append failed for {self.name}: {e}")

    async def _run(
        self,
        trigger: str,
        subject_id: str,
        work: Callable[[], Awaitable[HandlerReport]],
        trace_id: Optional[str] = None,
    ) -> HandlerReport:
        run_id = new_run_id()
        trace_id = trace_id or new_trace_id()
        self._emit(run_id, trace_id, trigger, "job_start", subject_id, {})

        try:
            report = await work()
        except DineMatchError as e:
            log = logger.warning if e.severity is ErrorSeverity.WARNING else logger.error
            log(f"Error in {self.name} for {subject_id or trigger}: {e}")
            report = self.report("error", subject_id, str(e), error_code=e.code)
            self._emit(run_id, trace_id, trigger, "error", subject_id, {"code": e.code, "message": e.message})
        except Exception as e:
            logger.exception(f"Error in {self.name} for {subject_id or trigger}: {e}")
            report = self.report("error", subject_id, repr(e))
            self._emit(run_id, trace_id, trigger, "error", subject_id, {"message": repr(e)})

        if report.outcomes:
            self._emit(
                run_id,
                trace_id,
                trigger,
                "dispatch",
                subject_id,
                {"outcomes": [o.to_dict() for o in report.outcomes]},
            )
        self._emit(run_id, trace_id, trigger, "job_result", subject_id, report.to_dict())
        return report
