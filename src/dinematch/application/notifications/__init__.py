from .dispatcher import (
    DispatchOutcome,
    DispatchRequest,
    NotificationDispatcher,
    NotificationKind,
    PushMessage,
    build_message,
    summarize,
)

__all__ = [
    "DispatchOutcome",
    "DispatchRequest",
    "NotificationDispatcher",
    "NotificationKind",
    "PushMessage",
    "build_message",
    "summarize",
]
