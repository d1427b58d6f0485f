"""
Shared pytest fixtures for the change notifier tests.

The push provider is faked with httpx.MockTransport so no network is used.
Every fixture builds fresh instances so tests don't interfere with each other.
"""

import asyncio
import json
from typing import Optional

import httpx
import pytest

from functions.change_notifier import ChangeNotifier
from shared.channels import PushChannel
from shared.config import NotifierConfig
from shared.data_store import RealtimeDataStore
from triggers.runtime import TriggerRuntime


class FakeProvider:
    """
    Stand-in for the push provider's REST endpoint.

    Records every request. Can answer with a fixed status/body, raise a
    transport error, or hold each reply until a gate is opened.
    """

    def __init__(
        self,
        status_code: int = 200,
        text: str = "ok",
        error: Optional[Exception] = None,
    ):
        self.status_code = status_code
        self.text = text
        self.error = error
        self.gate: Optional[asyncio.Event] = None
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, text=self.text)

    def payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]

    @property
    def call_count(self) -> int:
        return len(self.requests)


@pytest.fixture
def config() -> NotifierConfig:
    """Notifier config watching /messages/{messageId}."""
    return NotifierConfig(
        app_id="4d56fe0b-test-app",
        api_key="test-rest-api-key",
        watched_path="/messages/{messageId}",
    )


@pytest.fixture
def provider() -> FakeProvider:
    """Provider that answers 200 "ok"."""
    return FakeProvider()


@pytest.fixture
def transport(provider: FakeProvider) -> httpx.MockTransport:
    return httpx.MockTransport(provider)


@pytest.fixture
def channel(config: NotifierConfig, transport: httpx.MockTransport) -> PushChannel:
    """Push channel wired to the fake provider."""
    return PushChannel.from_config(config, transport=transport)


@pytest.fixture
def runtime() -> TriggerRuntime:
    """Fresh trigger runtime for each test."""
    return TriggerRuntime()


@pytest.fixture
def data_store(runtime: TriggerRuntime) -> RealtimeDataStore:
    """Empty data store whose writes go to the runtime."""
    store = RealtimeDataStore()
    store.add_listener(runtime.notify_write)
    return store


@pytest.fixture
def notifier(
    config: NotifierConfig,
    channel: PushChannel,
    runtime: TriggerRuntime,
) -> ChangeNotifier:
    """ChangeNotifier registered on the runtime, sending to the fake provider."""
    notifier = ChangeNotifier(config, channel=channel)
    notifier.register(runtime)
    return notifier


# =============================================================================
# Path Fixtures
# =============================================================================

@pytest.fixture
def watched_path() -> str:
    """A concrete path under the watched pattern."""
    return "/messages/msg-001"


@pytest.fixture
def unwatched_path() -> str:
    """A path outside the watched pattern."""
    return "/users/user-001"
