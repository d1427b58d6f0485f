"""
ChangeNotifier: push a notification to every subscriber when watched data changes.

This function is registered on one data path pattern with one wildcard
segment (e.g. "/yourDataPath/{childId}"). Every create, update or delete at
or below a matching node produces one invocation, and each invocation sends
exactly one fixed notification to the provider.

Design decisions:
- The notification is the same for every event; before/after state is
  never inspected
- One request per event: no batching, no deduplication
- No retries; transport and provider failures are logged and swallowed so
  the invocation still completes normally
- on_mutation() returns only after the HTTP call has settled and the outcome
  is logged; the runtime marks the invocation complete after that
- No state is kept between invocations
"""

import logging
from enum import Enum
from typing import Optional

import httpx

from shared.channels import NotificationResult, PushChannel
from shared.config import NotifierConfig
from shared.models import NotificationRequest
from triggers.events import MutationEvent
from triggers.runtime import TriggerRegistration, TriggerRuntime

logger = logging.getLogger("change_notifier")


FUNCTION_NAME = "notifyAllUsers"


class NotifierState(str, Enum):
    """Per-invocation states. Nothing carries over between invocations."""
    IDLE = "idle"
    SENDING = "sending"
    LOGGED_SUCCESS = "logged_success"
    LOGGED_ERROR = "logged_error"


class ChangeNotifier:
    """
    Bridges one database trigger to one push notification provider.

    Example:
        config = load_config()
        notifier = ChangeNotifier(config)
        notifier.register(runtime)

        # Any write under the watched path now sends one notification
        store.set("/yourDataPath/abc", {"title": "new"})
    """

    def __init__(
        self,
        config: NotifierConfig,
        channel: Optional[PushChannel] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the notifier.

        Args:
            config: Provider credentials, watched path and notification text
            channel: Push channel to send through (defaults to one built from config)
            transport: httpx transport for the default channel (tests only)
        """
        self.config = config
        self.channel = channel or PushChannel.from_config(config, transport=transport)

    def build_request(self) -> NotificationRequest:
        """Build the fixed notification. Called fresh for every event."""
        return NotificationRequest.from_config(self.config)

    async def on_mutation(self, event: MutationEvent) -> NotificationResult:
        """
        Handle one mutation event by sending one notification.

        Never raises for delivery failures.
        """
        logger.info(
            f"Handling {event}: {NotifierState.SENDING.value} notification "
            f"to {self.config.included_segments}"
        )

        result = await self.channel.send(self.build_request())

        state = NotifierState.LOGGED_SUCCESS if result.success else NotifierState.LOGGED_ERROR
        logger.debug(f"Notification for {event.path} settled: {state.value}")
        return result

    def register(self, runtime: TriggerRuntime, name: str = FUNCTION_NAME) -> TriggerRegistration:
        """Register on_mutation with a trigger runtime for the watched path."""
        return runtime.register(self.config.watched_path, self.on_mutation, name=name)
