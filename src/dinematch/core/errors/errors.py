"""
Error taxonomy shared by handlers, adapters and the runtime.

Handlers catch these at their boundary and turn them into a neutral
HandlerReport; nothing here is meant to reach the host trigger platform.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class ErrorSeverity(Enum):
    WARNING = "warning"      # skipped, data problem
    ERROR = "error"          # event handled, work lost
    CRITICAL = "critical"    # misconfiguration


@dataclass(eq=False)
class DineMatchError(Exception):
    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    code: str = "UNKNOWN"
    context: Dict[str, Any] | None = None

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


@dataclass(eq=False)
class StoreError(DineMatchError):
    """Record store unreachable or a write failed."""

    code: str = "STORE_ERROR"


@dataclass(eq=False)
class DispatchError(DineMatchError):
    """Push sender rejected or failed a message."""

    code: str = "DISPATCH_ERROR"


@dataclass(eq=False)
class ConcurrencyConflict(DineMatchError):
    """A conditional write kept losing against concurrent writers."""

    severity: ErrorSeverity = ErrorSeverity.WARNING
    code: str = "CONFLICT"


@dataclass(eq=False)
class ValidationError(DineMatchError):
    severity: ErrorSeverity = ErrorSeverity.WARNING
    code: str = "VALIDATION_ERROR"


@dataclass(eq=False)
class CodeCapacityError(ValidationError):
    code: str = "CODE_CAPACITY"
