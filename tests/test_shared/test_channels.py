"""
Tests for the push channel.

These tests verify the HTTP contract with the provider and that failures
are logged and reported instead of raised.
"""

import json
import logging

import httpx
import pytest
from conftest import FakeProvider
from shared.channels import CONTENT_TYPE, DeliveryErrorKind, PushChannel
from shared.config import NotifierConfig
from shared.models import NotificationRequest


@pytest.fixture
def request_body(config: NotifierConfig) -> NotificationRequest:
    return NotificationRequest.from_config(config)


class TestPushChannelRequest:
    """Tests for what the channel sends."""
    
    async def test_posts_to_endpoint(self, channel: PushChannel, provider: FakeProvider, request_body):
        await channel.send(request_body)
        
        assert provider.call_count == 1
        sent = provider.requests[0]
        assert sent.method == "POST"
        assert str(sent.url) == "https://onesignal.com/api/v1/notifications"
    
    async def test_headers(self, channel: PushChannel, provider: FakeProvider, request_body):
        """Test content type and the verbatim Authorization header."""
        await channel.send(request_body)
        
        headers = provider.requests[0].headers
        assert headers["Content-Type"] == CONTENT_TYPE
        assert headers["Authorization"] == "test-rest-api-key"
    
    async def test_body(self, channel: PushChannel, provider: FakeProvider, request_body):
        await channel.send(request_body)
        
        assert json.loads(provider.requests[0].content) == {
            "app_id": "4d56fe0b-test-app",
            "included_segments": ["All"],
            "headings": {"en": "Database Updated"},
            "contents": {"en": "There's new content in your app!"},
        }
    
    async def test_custom_api_url(self, provider: FakeProvider, request_body):
        config = NotifierConfig(app_id="a", api_key="k", api_url="https://push.example.com/api/v1/notifications")
        channel = PushChannel.from_config(config, transport=httpx.MockTransport(provider))
        
        await channel.send(request_body)
        
        assert provider.requests[0].url.host == "push.example.com"


class TestPushChannelOutcomes:
    """Tests for success and failure handling."""
    
    async def test_success_logs_raw_response(self, channel: PushChannel, request_body, caplog):
        """Test that a 200 "ok" reply is logged with its body."""
        caplog.set_level(logging.INFO, logger="push_channel")
        
        result = await channel.send(request_body)
        
        assert result.success is True
        assert result.response.status_code == 200
        assert result.response.text == "ok"
        assert result.error_kind is None
        assert any("OneSignal Response: ok" in r.getMessage() for r in caplog.records)
    
    async def test_transport_error_is_reported_not_raised(self, config, request_body, caplog):
        provider = FakeProvider(error=httpx.ConnectError("connection refused"))
        channel = PushChannel.from_config(config, transport=httpx.MockTransport(provider))
        caplog.set_level(logging.INFO, logger="push_channel")
        
        result = await channel.send(request_body)
        
        assert result.success is False
        assert result.error_kind == DeliveryErrorKind.TRANSPORT
        assert "connection refused" in result.error
        assert result.response is None
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "OneSignal Error" in errors[0].getMessage()
    
    async def test_timeout_is_a_transport_error(self, config, request_body):
        provider = FakeProvider(error=httpx.ReadTimeout("timed out"))
        channel = PushChannel.from_config(config, transport=httpx.MockTransport(provider))
        
        result = await channel.send(request_body)
        
        assert result.error_kind == DeliveryErrorKind.TRANSPORT
    
    async def test_invalid_url_is_a_transport_error(self, provider: FakeProvider, request_body, caplog):
        """Test that a URL httpx cannot use is logged and reported, not raised."""
        channel = PushChannel(
            api_url="https://exa mple.com:abc/x",
            api_key="k",
            transport=httpx.MockTransport(provider),
        )
        caplog.set_level(logging.INFO, logger="push_channel")
        
        result = await channel.send(request_body)
        
        assert result.success is False
        assert result.error_kind == DeliveryErrorKind.TRANSPORT
        assert provider.call_count == 0
        assert any("OneSignal Error" in r.getMessage() for r in caplog.records)
    
    async def test_provider_error_logs_raw_text(self, config, request_body, caplog):
        """Test that a non-2xx reply is logged the same way as a success."""
        provider = FakeProvider(status_code=400, text='{"errors": ["Invalid app_id"]}')
        channel = PushChannel.from_config(config, transport=httpx.MockTransport(provider))
        caplog.set_level(logging.INFO, logger="push_channel")
        
        result = await channel.send(request_body)
        
        assert result.success is False
        assert result.error_kind == DeliveryErrorKind.PROVIDER
        assert result.response.text == '{"errors": ["Invalid app_id"]}'
        assert any(
            r.getMessage() == 'OneSignal Response: {"errors": ["Invalid app_id"]}'
            for r in caplog.records
        )
    
    async def test_tracks_sent_messages(self, channel: PushChannel, request_body):
        await channel.send(request_body)
        await channel.send(request_body)
        
        assert channel.get_sent_count() == 2
        assert all(m.success for m in channel.sent_messages)
        
        channel.clear_history()
        assert channel.get_sent_count() == 0
    
    async def test_history_is_bounded(self, transport, request_body):
        bounded = PushChannel(
            api_url="https://onesignal.com/api/v1/notifications",
            api_key="k",
            transport=transport,
            history_limit=2,
        )
        
        for _ in range(5):
            await bounded.send(request_body)
        
        assert bounded.get_sent_count() == 2
    
    def test_result_str(self):
        from shared.channels import NotificationResult
        from shared.models import NotificationResponse
        
        request = NotificationRequest(app_id="a", headings={"en": "t"}, contents={"en": "b"})
        ok = NotificationResult(success=True, request=request, response=NotificationResponse(status_code=200, text="ok"))
        failed = NotificationResult(success=False, request=request, error="ConnectError: boom")
        
        assert "✓" in str(ok)
        assert "✗" in str(failed)
        assert "boom" in str(failed)
