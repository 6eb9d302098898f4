"""
Tests for Slack API endpoints.
"""

import hashlib
import hmac
import json
import time
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, Mock

from teampilot.api.main import create_app
from teampilot.api.slack import verify_slack_signature
from teampilot.models.events import ButtonClickEvent, MentionEvent


@pytest.fixture
def mock_pipeline():
    pipeline = Mock()
    pipeline.handle = AsyncMock(return_value=None)
    return pipeline


@pytest.fixture
def slack_client(test_config, kv_store, fake_im, mock_pipeline):
    app = create_app(test_config, store=kv_store, im_service=fake_im, pipeline=mock_pipeline)
    return TestClient(app)


def _sign(secret: str, body: bytes, timestamp: int) -> str:
    basestring = f"v0:{timestamp}:".encode() + body
    return "v0=" + hmac.new(secret.encode(), basestring, hashlib.sha256).hexdigest()


def test_slack_webhook_challenge(slack_client: TestClient, mock_pipeline):
    """Test Slack webhook challenge."""
    response = slack_client.post("/api/slack/webhook", json={"type": "url_verification", "challenge": "test_challenge_123"})

    assert response.status_code == 200
    assert response.json()["challenge"] == "test_challenge_123"
    mock_pipeline.handle.assert_not_awaited()


def test_slack_webhook_dispatches_mention(slack_client: TestClient, mock_pipeline):
    """Test mentions are acknowledged and handed to the pipeline."""
    envelope = {
        "type": "event_callback",
        "team_id": "T1",
        "event": {"type": "app_mention", "user": "U1", "channel": "C1", "ts": "100.0", "text": "<@UBOT> hi"},
    }

    response = slack_client.post("/api/slack/webhook", json=envelope)

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    mock_pipeline.handle.assert_awaited_once()
    event = mock_pipeline.handle.call_args.args[0]
    assert isinstance(event, MentionEvent)
    assert event.clean_text == "hi"


def test_slack_webhook_ignores_bot_messages(slack_client: TestClient, mock_pipeline):
    """Test the bot's own messages never reach the pipeline."""
    envelope = {
        "type": "event_callback",
        "team_id": "T1",
        "event": {"type": "message", "channel_type": "im", "user": "UBOT", "channel": "D1", "ts": "100.0", "text": "echo"},
    }

    response = slack_client.post("/api/slack/webhook", json=envelope)

    assert response.json() == {"status": "ignored"}
    mock_pipeline.handle.assert_not_awaited()


def test_slack_webhook_ignores_retries(slack_client: TestClient, mock_pipeline):
    """Test redelivered events are acknowledged without processing."""
    envelope = {
        "type": "event_callback",
        "team_id": "T1",
        "event": {"type": "app_mention", "user": "U1", "channel": "C1", "ts": "100.0", "text": "<@UBOT> hi"},
    }

    response = slack_client.post("/api/slack/webhook", json=envelope, headers={"X-Slack-Retry-Num": "1"})

    assert response.json() == {"status": "ignored"}
    mock_pipeline.handle.assert_not_awaited()


def test_slack_webhook_invalid_json(slack_client: TestClient):
    response = slack_client.post("/api/slack/webhook", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400


def test_slack_webhook_empty_body(slack_client: TestClient):
    response = slack_client.post("/api/slack/webhook", json={})
    assert response.json() == {"status": "empty_request"}


def test_slack_webhook_rejects_bad_signature(test_config, kv_store, fake_im, mock_pipeline):
    """Test signed deployments reject requests with a wrong signature."""
    slack = test_config.slack.model_copy(update={"signing_secret": "shh"})
    app = create_app(test_config.model_copy(update={"slack": slack}), store=kv_store, im_service=fake_im, pipeline=mock_pipeline)
    client = TestClient(app)
    body = json.dumps({"type": "url_verification", "challenge": "abc"}).encode()
    timestamp = int(time.time())

    rejected = client.post("/api/slack/webhook", content=body, headers={
        "Content-Type": "application/json",
        "X-Slack-Request-Timestamp": str(timestamp),
        "X-Slack-Signature": _sign("wrong", body, timestamp),
    })
    accepted = client.post("/api/slack/webhook", content=body, headers={
        "Content-Type": "application/json",
        "X-Slack-Request-Timestamp": str(timestamp),
        "X-Slack-Signature": _sign("shh", body, timestamp),
    })

    assert rejected.status_code == 401
    assert accepted.status_code == 200
    assert accepted.json()["challenge"] == "abc"


def test_verify_slack_signature_rejects_stale_requests():
    body = b"{}"
    signature = _sign("shh", body, 1000)
    headers = {"X-Slack-Request-Timestamp": "1000", "X-Slack-Signature": signature}

    assert verify_slack_signature("shh", headers, body, now=1000 + 60) is True
    assert verify_slack_signature("shh", headers, body, now=1000 + 600) is False
    assert verify_slack_signature("shh", {}, body) is False
    assert verify_slack_signature(None, {}, body) is True


def test_slack_interactivity_button(slack_client: TestClient, mock_pipeline):
    """Test button clicks are parsed from the form payload."""
    payload = {
        "type": "block_actions",
        "team": {"id": "T1"},
        "user": {"id": "U1"},
        "channel": {"id": "C1"},
        "response_url": "https://hooks.slack.com/actions/1",
        "actions": [{"action_id": "help_button"}],
    }

    response = slack_client.post("/api/slack/interactivity", data={"payload": json.dumps(payload)})

    assert response.status_code == 200
    event = mock_pipeline.handle.call_args.args[0]
    assert isinstance(event, ButtonClickEvent)
    assert event.action_id == "help_button"


def test_slack_interactivity_requires_payload(slack_client: TestClient):
    assert slack_client.post("/api/slack/interactivity", data={}).status_code == 400
    assert slack_client.post("/api/slack/interactivity", data={"payload": "{broken"}).status_code == 400


def test_shutdown_closes_pipeline(test_config, kv_store, fake_im, mock_pipeline, jira_service):
    """Test the application lifespan releases the pipeline's clients on shutdown."""
    mock_pipeline.close = AsyncMock()
    app = create_app(test_config, store=kv_store, im_service=fake_im, pipeline=mock_pipeline, jira=jira_service)

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
        mock_pipeline.close.assert_not_awaited()

    mock_pipeline.close.assert_awaited_once()


def test_startup_resolves_missing_bot_user_id(test_config, kv_store, fake_im, mock_pipeline, jira_service):
    """Test a missing bot user id is looked up so channel mentions are not handled twice."""
    mock_pipeline.close = AsyncMock()
    fake_im.resolve_bot_user_id = AsyncMock(return_value="UBOT")
    slack = test_config.slack.model_copy(update={"bot_user_id": None})
    app = create_app(test_config.model_copy(update={"slack": slack}), store=kv_store, im_service=fake_im, pipeline=mock_pipeline, jira=jira_service)
    envelope = {
        "type": "event_callback",
        "team_id": "T1",
        "event": {"type": "message", "channel_type": "channel", "user": "U1", "channel": "C1", "ts": "100.0", "text": "<@UBOT> hi"},
    }

    with TestClient(app) as client:
        response = client.post("/api/slack/webhook", json=envelope)

    fake_im.resolve_bot_user_id.assert_awaited_once()
    assert response.json() == {"status": "ignored"}
    mock_pipeline.handle.assert_not_awaited()
