"""
Data models for TeamPilot.
"""

from .records import Message, ConversationWindow, CannedResponse, ChannelMonitorConfig, UserBehaviorProfile, JiraCredential, TokenPair
from .events import BotEvent, MentionEvent, DirectMessageEvent, ThreadReplyEvent, ChannelMessageEvent, ButtonClickEvent, parse_slack_event, parse_slack_interaction
from .kv_record import KeyValueRecord

__all__ = [
    "Message", "ConversationWindow", "CannedResponse", "ChannelMonitorConfig", "UserBehaviorProfile", "JiraCredential", "TokenPair",
    "BotEvent", "MentionEvent", "DirectMessageEvent", "ThreadReplyEvent", "ChannelMessageEvent", "ButtonClickEvent",
    "parse_slack_event", "parse_slack_interaction", "KeyValueRecord",
]
