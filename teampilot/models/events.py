"""
Tagged event model for inbound chat-platform events.
"""

import logging
import re
from typing import Annotated, Any, Dict, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"<@[^>]+>")


class MessageEventBase(BaseModel):
    """Fields shared by every message-carrying event."""
    team_id: str
    user_id: str
    channel_id: str
    text: str = ""
    ts: str
    thread_ts: Optional[str] = None

    @property
    def clean_text(self) -> str:
        """Message text with user-mention markup removed."""
        return MENTION_PATTERN.sub("", self.text or "").strip()

    @property
    def is_threaded(self) -> bool:
        return bool(self.thread_ts)


class MentionEvent(MessageEventBase):
    """The bot was @-mentioned in a channel."""
    kind: Literal["mention"] = "mention"


class DirectMessageEvent(MessageEventBase):
    """A message in a direct-message conversation with the bot."""
    kind: Literal["direct_message"] = "direct_message"


class ThreadReplyEvent(MessageEventBase):
    """A reply inside a channel thread that does not mention the bot."""
    kind: Literal["thread_reply"] = "thread_reply"


class ChannelMessageEvent(MessageEventBase):
    """A top-level channel message that does not mention the bot."""
    kind: Literal["channel_message"] = "channel_message"


class ButtonClickEvent(BaseModel):
    """An interactive button was clicked."""
    kind: Literal["button_click"] = "button_click"
    team_id: str
    user_id: str
    action_id: str
    value: Optional[str] = None
    channel_id: Optional[str] = None
    message_ts: Optional[str] = None
    response_url: Optional[str] = None


BotEvent = Annotated[
    Union[MentionEvent, DirectMessageEvent, ThreadReplyEvent, ChannelMessageEvent, ButtonClickEvent],
    Field(discriminator="kind"),
]

bot_event_adapter = TypeAdapter(BotEvent)


def parse_slack_event(envelope: Dict[str, Any], bot_user_id: Optional[str] = None, app_id: Optional[str] = None) -> Optional[BotEvent]:
    """
    Map a Slack ``event_callback`` envelope to a typed event.

    Returns None for events the bot does not act on: bot-authored messages,
    message subtypes (edits, joins, ...), and unsupported event types.
    """
    if envelope.get("type") != "event_callback":
        return None

    event = envelope.get("event") or {}
    event_type = event.get("type")

    if event.get("bot_id") or event.get("subtype"):
        return None
    if app_id and event.get("app_id") == app_id:
        return None
    if bot_user_id and event.get("user") == bot_user_id:
        return None
    if not event.get("user") or not event.get("channel"):
        return None

    fields = {
        "team_id": envelope.get("team_id") or event.get("team") or "",
        "user_id": event["user"],
        "channel_id": event["channel"],
        "text": event.get("text") or "",
        "ts": event.get("ts"),
        "thread_ts": event.get("thread_ts"),
    }

    if event_type == "app_mention":
        return MentionEvent(**fields)

    if event_type != "message":
        logger.debug(f"Ignoring unsupported event type: {event_type}")
        return None

    if event.get("channel_type") == "im":
        return DirectMessageEvent(**fields)

    # Channel messages that mention the bot also arrive as app_mention events
    if bot_user_id and f"<@{bot_user_id}>" in fields["text"]:
        return None

    if fields["thread_ts"] and fields["thread_ts"] != fields["ts"]:
        return ThreadReplyEvent(**fields)
    return ChannelMessageEvent(**fields)


def parse_slack_interaction(payload: Dict[str, Any]) -> Optional[ButtonClickEvent]:
    """Map a Slack ``block_actions`` payload to a button-click event."""
    if payload.get("type") != "block_actions":
        return None

    actions = payload.get("actions") or []
    if not actions:
        return None

    action = actions[0]
    team = payload.get("team") or {}
    user = payload.get("user") or {}
    channel = payload.get("channel") or {}
    container = payload.get("container") or {}

    return ButtonClickEvent(
        team_id=team.get("id", ""),
        user_id=user.get("id", ""),
        action_id=action.get("action_id", ""),
        value=action.get("value"),
        channel_id=channel.get("id") or container.get("channel_id"),
        message_ts=container.get("message_ts"),
        response_url=payload.get("response_url"),
    )
