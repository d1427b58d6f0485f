"""
Shared infrastructure for the change notifier.

This package contains:
- Configuration (provider credentials, watched path, notification text)
- Wire models for the push provider
- The realtime data store that reports writes to triggers
- The push channel that talks HTTP to the provider
"""

from shared.config import ConfigError, NotifierConfig, PushInitMode, load_config
from shared.models import NotificationRequest, NotificationResponse
from shared.data_store import RealtimeDataStore
from shared.channels import DeliveryErrorKind, NotificationResult, PushChannel

__all__ = [
    "ConfigError",
    "NotifierConfig",
    "PushInitMode",
    "load_config",
    "NotificationRequest",
    "NotificationResponse",
    "RealtimeDataStore",
    "DeliveryErrorKind",
    "NotificationResult",
    "PushChannel",
]
