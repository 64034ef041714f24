from dinematch.config.models import PushConfig

from .fcm_sender import FcmPushSender
from .logging_sender import LoggingPushSender
from .memory_sender import InMemoryPushSender, SentMessage


def create_push_sender(config: PushConfig):
    """Pick the sender for the configured provider."""
    if config.provider == "fcm":
        return FcmPushSender(
            config.fcm_project_id or "",
            config.fcm_access_token or "",
            base_url=config.fcm_base_url,
            timeout=config.timeout_sec,
        )
    return LoggingPushSender()


__all__ = ["FcmPushSender", "InMemoryPushSender", "LoggingPushSender", "SentMessage", "create_push_sender"]
