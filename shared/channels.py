"""
Push notification channel.

Sends a NotificationRequest to the provider's create-notification endpoint
(OneSignal REST API v1 by default) with httpx, and reports what happened as a
NotificationResult.

Design decisions:
- One POST per send, no retries
- A fresh AsyncClient per send, so concurrent sends share no connection state
- The raw response text is logged for every reply, 2xx or not
- Transport failures (DNS, connect, TLS, timeouts, unusable URLs) are logged
  and returned as a failed result; they are never raised
- Only the most recent results are kept in sent_messages
- The transport is injectable so tests can swap in httpx.MockTransport
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

import httpx

from shared.config import NotifierConfig
from shared.models import NotificationRequest, NotificationResponse

logger = logging.getLogger("push_channel")


CONTENT_TYPE = "application/json; charset=utf-8"

DEFAULT_HISTORY_LIMIT = 100


class DeliveryErrorKind(str, Enum):
    """
    Why a send did not succeed.

    TRANSPORT: the provider could not be reached
    PROVIDER: the provider answered with a non-2xx status
    """
    TRANSPORT = "transport"
    PROVIDER = "provider"


@dataclass
class NotificationResult:
    """
    Result of a notification send attempt.

    Captures success/failure and the raw reply for debugging and testing.
    """
    success: bool
    request: NotificationRequest
    response: Optional[NotificationResponse] = None
    error_kind: Optional[DeliveryErrorKind] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def __str__(self) -> str:
        status = "✓" if self.success else "✗"
        if self.response is not None:
            return f"{status} PUSH {self.response.status_code}: {self.response.text[:50]}"
        return f"{status} PUSH failed: {self.error}"


class PushChannel:
    """
    HTTP channel to the push notification provider.

    Tracks recent sends for test assertions.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        """
        Initialize the push channel.

        Args:
            api_url: Create-notification endpoint
            api_key: Sent verbatim as the Authorization header
            timeout: Seconds before giving up; None means no client-side timeout
            transport: Optional httpx transport (tests use httpx.MockTransport)
            history_limit: How many recent results sent_messages keeps
        """
        self.api_url = api_url
        self._api_key = api_key
        self.timeout = timeout
        self.transport = transport
        self.sent_messages: deque[NotificationResult] = deque(maxlen=history_limit)

    @classmethod
    def from_config(
        cls,
        config: NotifierConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "PushChannel":
        return cls(
            api_url=str(config.api_url),
            api_key=config.api_key.get_secret_value(),
            timeout=config.timeout_seconds,
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": CONTENT_TYPE,
            "Authorization": self._api_key,
        }

    async def send(self, request: NotificationRequest) -> NotificationResult:
        """
        POST a notification to the provider.

        Returns only after the request/response cycle has settled and the
        outcome has been logged.
        """
        body = request.to_json().encode("utf-8")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                reply = await client.post(self.api_url, content=body, headers=self._headers())
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"OneSignal Error: {type(e).__name__}: {e}")
            result = NotificationResult(
                success=False,
                request=request,
                error_kind=DeliveryErrorKind.TRANSPORT,
                error=f"{type(e).__name__}: {e}",
            )
        else:
            response = NotificationResponse(status_code=reply.status_code, text=reply.text)
            logger.info(f"OneSignal Response: {response.text}")
            if response.is_success:
                result = NotificationResult(success=True, request=request, response=response)
            else:
                result = NotificationResult(
                    success=False,
                    request=request,
                    response=response,
                    error_kind=DeliveryErrorKind.PROVIDER,
                    error=f"HTTP {response.status_code}",
                )

        self.sent_messages.append(result)
        return result

    def get_sent_count(self) -> int:
        """Get the number of sends attempted (for testing)."""
        return len(self.sent_messages)

    def clear_history(self):
        """Clear sent message history (useful between tests)."""
        self.sent_messages.clear()
