"""
Tests for the FastAPI host.

These tests verify the data and invocation endpoints with a fake push
provider behind the notifier.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import FakeProvider
import api.main as api_main
from api.bootstrap import start_app
from api.main import app, reset_api_state
from shared.config import NotifierConfig
from triggers.runtime import TriggerRuntime


@pytest.fixture
def context(config: NotifierConfig, transport):
    return start_app(config, transport=transport)


@pytest.fixture
def api_client(context):
    """Create a test client with a started notifier."""
    reset_api_state(context)
    with TestClient(app) as client:
        yield client
    reset_api_state(None)


class TestHealthEndpoint:
    
    def test_health_check(self, api_client):
        response = api_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
    
    def test_startup_steps(self, api_client):
        response = api_client.get("/startup")
        
        assert [s["name"] for s in response.json()] == [
            "data_store", "trigger_runtime", "push_sdk", "functions",
        ]
    
    def test_not_started(self):
        """Test that data endpoints refuse to work without a context."""
        reset_api_state(None)
        client = TestClient(app)
        
        response = client.get("/data/messages")
        
        assert response.status_code == 503


class TestDataEndpoints:
    """Tests for writes through the HTTP surface."""
    
    def test_put_triggers_notification(self, api_client, provider: FakeProvider):
        response = api_client.put("/data/messages/msg-001?wait=true", json={"text": "hi"})
        
        assert response.status_code == 200
        data = response.json()
        assert data["path"] == "/messages/msg-001"
        assert data["waited"] is True
        assert len(data["invocations"]) == 1
        assert provider.call_count == 1
    
    def test_read_back(self, api_client):
        api_client.put("/data/messages/msg-001?wait=true", json={"text": "hi"})
        
        response = api_client.get("/data/messages/msg-001")
        
        assert response.json() == {"text": "hi"}
    
    def test_read_missing(self, api_client):
        response = api_client.get("/data/messages/nothing")
        
        assert response.status_code == 200
        assert response.json() is None
    
    def test_patch_and_delete(self, api_client, provider: FakeProvider):
        api_client.put("/data/messages/msg-001?wait=true", json={"text": "hi"})
        api_client.patch("/data/messages/msg-001?wait=true", json={"read": True})
        response = api_client.delete("/data/messages/msg-001?wait=true")
        
        assert response.status_code == 200
        assert provider.call_count == 3
        
        invocations = api_client.get("/invocations").json()
        assert [i["change_type"] for i in invocations] == ["create", "update", "delete"]
        assert all(i["status"] == "completed" for i in invocations)
        assert all(i["function_name"] == "notifyAllUsers" for i in invocations)
    
    def test_unwatched_write(self, api_client, provider: FakeProvider):
        response = api_client.put("/data/users/u1?wait=true", json={"name": "Ada"})
        
        assert response.json()["invocations"] == []
        assert provider.call_count == 0
    
    def test_invalid_path(self, api_client):
        response = api_client.put("/data/messages/bad$id", json=1)
        
        assert response.status_code == 400
    
    def test_invalid_value(self, api_client):
        response = api_client.patch("/data/messages/msg-001", json={"a": {"": 1}})
        
        assert response.status_code == 400
    
    def test_wait_without_history(self, config, transport, provider: FakeProvider):
        """Test that wait=true waits on the write's own invocations, not the history."""
        reset_api_state(start_app(config, runtime=TriggerRuntime(history_limit=0), transport=transport))
        try:
            with TestClient(app) as client:
                response = client.put("/data/messages/msg-001?wait=true", json={"text": "hi"})
                
                assert len(response.json()["invocations"]) == 1
                assert provider.call_count == 1
                assert client.get("/invocations").json() == []
        finally:
            reset_api_state(None)


class TestLifespan:
    """Tests for starting and stopping the host more than once."""
    
    def test_adopted_context_survives_restart(self, context, provider: FakeProvider):
        reset_api_state(context)
        try:
            for expected_calls in (1, 2):
                with TestClient(app) as client:
                    response = client.put("/data/messages/msg-001?wait=true", json={"count": expected_calls})
                    
                    assert len(response.json()["invocations"]) == 1
                    assert provider.call_count == expected_calls
            
            assert api_main._context is context
            assert context.runtime.get_registration_count() == 1
        finally:
            reset_api_state(None)
    
    def test_owned_context_is_dropped_on_shutdown(self, monkeypatch):
        monkeypatch.setenv("NOTIFIER_APP_ID", "lifespan-app")
        monkeypatch.setenv("NOTIFIER_API_KEY", "lifespan-key")
        monkeypatch.delenv("NOTIFIER_CONFIG", raising=False)
        reset_api_state(None)
        
        contexts = []
        for _ in range(2):
            with TestClient(app) as client:
                assert client.get("/health").status_code == 200
                contexts.append(api_main._context)
            assert api_main._context is None
        
        first, second = contexts
        assert first is not None and second is not None
        assert first is not second
        assert first.config.app_id == "lifespan-app"
