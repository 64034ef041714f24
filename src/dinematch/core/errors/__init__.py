"""
Unified error types.
"""

from .errors import (
    ErrorSeverity,
    DineMatchError,
    StoreError,
    DispatchError,
    ConcurrencyConflict,
    ValidationError,
    CodeCapacityError,
)

__all__ = [
    "ErrorSeverity",
    "DineMatchError",
    "StoreError",
    "DispatchError",
    "ConcurrencyConflict",
    "ValidationError",
    "CodeCapacityError",
]
