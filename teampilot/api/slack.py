"""
Slack-specific API endpoints.

This module provides endpoints for Slack integration:
- Event subscriptions at /webhook
- Interactive components (button clicks) at /interactivity

Events are parsed into typed BotEvents and handed to the turn pipeline as
background tasks so Slack gets its acknowledgement within three seconds.
"""

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from typing import Mapping, Optional
import hashlib
import hmac
import json
import logging
import time

from ..models.events import parse_slack_event, parse_slack_interaction

logger = logging.getLogger(__name__)

SIGNATURE_VERSION = "v0"
MAX_REQUEST_AGE = 60 * 5

slack_router = APIRouter()


def verify_slack_signature(signing_secret: Optional[str], headers: Mapping[str, str], body: bytes, now: Optional[float] = None) -> bool:
    """
    Verify Slack's request signature.

    Requests are accepted unsigned when no signing secret is configured.
    """
    if not signing_secret:
        return True

    timestamp = headers.get("X-Slack-Request-Timestamp")
    signature = headers.get("X-Slack-Signature")
    if not timestamp or not signature:
        return False

    try:
        if abs((now or time.time()) - int(timestamp)) > MAX_REQUEST_AGE:
            logger.warning(f"Rejecting stale Slack request with timestamp {timestamp}")
            return False
    except ValueError:
        return False

    basestring = f"{SIGNATURE_VERSION}:{timestamp}:".encode() + body
    expected = f"{SIGNATURE_VERSION}=" + hmac.new(signing_secret.encode(), basestring, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


async def _verified_body(request: Request) -> bytes:
    body = await request.body()
    config = request.app.state.config
    if not verify_slack_signature(config.slack.signing_secret, request.headers, body):
        raise HTTPException(status_code=401, detail="Invalid request signature")
    return body


@slack_router.post("/webhook")
async def handle_slack_webhook(request: Request, background_tasks: BackgroundTasks):
    """Handle Slack Events API requests."""
    body = await _verified_body(request)

    try:
        request_data = json.loads(body)
    except ValueError as e:
        logger.warning(f"Failed to parse JSON from Slack request: {e}")
        raise HTTPException(status_code=400, detail="Invalid JSON in request body")

    if not isinstance(request_data, dict) or not request_data:
        logger.warning("Empty request data received")
        return {"status": "empty_request"}

    if request_data.get("type") == "url_verification":
        logger.info("Handling Slack challenge request")
        return {"challenge": request_data.get("challenge")}

    if request.headers.get("X-Slack-Retry-Num"):
        logger.info(f"Ignoring Slack retry #{request.headers.get('X-Slack-Retry-Num')}")
        return {"status": "ignored"}

    slack_config = request.app.state.config.slack
    event = parse_slack_event(request_data, bot_user_id=slack_config.bot_user_id, app_id=slack_config.app_id)
    if event is None:
        logger.debug("Ignoring inactionable Slack event")
        return {"status": "ignored"}

    logger.info(f"Dispatching {event.kind} event from team {event.team_id}")
    background_tasks.add_task(request.app.state.pipeline.handle, event)
    return {"status": "ok"}


@slack_router.post("/interactivity")
async def handle_slack_interactivity(request: Request, background_tasks: BackgroundTasks):
    """Handle Slack interactivity (button clicks)."""
    await _verified_body(request)

    form_data = await request.form()
    payload_str = form_data.get("payload")
    if not payload_str:
        logger.error("No payload in Slack interactivity request")
        raise HTTPException(status_code=400, detail="No payload provided")

    try:
        payload = json.loads(payload_str)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in Slack interactivity payload: {e}")
        raise HTTPException(status_code=400, detail="Invalid payload format")

    event = parse_slack_interaction(payload)
    if event is None:
        logger.info(f"Ignoring interactivity payload of type {payload.get('type')}")
        return {"status": "ignored"}

    background_tasks.add_task(request.app.state.pipeline.handle, event)
    return {"status": "ok"}
