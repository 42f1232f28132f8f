"""
Tests for the webhook server

The app is driven through FastAPI's TestClient without the lifespan, so
components are wired explicitly per test.
"""

import hashlib
import hmac
import json
import time

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, Mock

from sagasu.bot import server
from sagasu.common.config import SagasuConfig


SECRET = "test-secret"


def _signed_headers(body: bytes, secret: str = SECRET):
    ts = str(int(time.time()))
    base = b"v0:" + ts.encode() + b":" + body
    signature = "v0=" + hmac.new(secret.encode(), base, hashlib.sha256).hexdigest()
    return {
        "X-Slack-Signature": signature,
        "X-Slack-Request-Timestamp": ts,
        "Content-Type": "application/json",
    }


@pytest.fixture
def assistant(monkeypatch):
    cfg = SagasuConfig()
    cfg.slack.signing_secret = SECRET
    cfg.slack.user_token = "xoxp-user"
    server.init_components(cfg)

    fake = Mock()
    fake.handle = AsyncMock()
    monkeypatch.setattr(server, "assistant", fake)
    return fake


@pytest.fixture
def client():
    return TestClient(server.app)


MESSAGE_EVENT = {
    "type": "event_callback",
    "event": {
        "type": "message",
        "channel_type": "im",
        "channel": "D1",
        "user": "U1",
        "text": "Fuzzy search: progress report",
        "ts": "2.0",
        "thread_ts": "1.0",
    },
}


class TestHealth:
    def test_health_reports_components(self, assistant, client):
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["initialized"] is True
        assert data["llm_available"] is False
        assert data["llm_provider"] == "openai"
        assert data["search_enabled"] is True


class TestSlackEvents:
    def test_uninitialized_returns_503(self, client, monkeypatch):
        monkeypatch.setattr(server, "slack_handler", None)
        monkeypatch.setattr(server, "assistant", None)

        assert client.post("/slack/events", content=b"{}").status_code == 503

    def test_bad_signature_rejected(self, assistant, client):
        body = json.dumps(MESSAGE_EVENT).encode()

        response = client.post("/slack/events", content=body, headers=_signed_headers(body, "wrong"))

        assert response.status_code == 401
        assistant.handle.assert_not_called()

    def test_invalid_json_rejected(self, assistant, client):
        body = b"{oops"

        response = client.post("/slack/events", content=body, headers=_signed_headers(body))

        assert response.status_code == 400

    def test_url_verification_challenge(self, assistant, client):
        body = json.dumps({"type": "url_verification", "challenge": "abc123"}).encode()

        response = client.post("/slack/events", content=body, headers=_signed_headers(body))

        assert response.json() == {"challenge": "abc123"}

    def test_message_event_handled_in_background(self, assistant, client):
        body = json.dumps(MESSAGE_EVENT).encode()

        response = client.post("/slack/events", content=body, headers=_signed_headers(body))

        assert response.json() == {"ok": True}
        assistant.handle.assert_awaited_once()
        event = assistant.handle.await_args.args[0]
        assert event.text == "Fuzzy search: progress report"
        assert event.thread_ts == "1.0"

    def test_retries_are_acknowledged_not_handled(self, assistant, client):
        body = json.dumps(MESSAGE_EVENT).encode()
        headers = {**_signed_headers(body), "X-Slack-Retry-Num": "1"}

        response = client.post("/slack/events", content=body, headers=headers)

        assert response.json() == {"ok": True}
        assistant.handle.assert_not_called()

    def test_ignored_events_are_acknowledged(self, assistant, client):
        body = json.dumps({"type": "event_callback", "event": {"type": "reaction_added"}}).encode()

        response = client.post("/slack/events", content=body, headers=_signed_headers(body))

        assert response.json() == {"ok": True}
        assistant.handle.assert_not_called()
