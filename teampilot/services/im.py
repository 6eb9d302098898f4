"""
Abstract base class for instant messaging services.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import logging

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ThreadRef(BaseModel):
    """Opaque pointer to a conversation: a channel, optionally narrowed to one thread."""
    channel_id: str
    thread_ts: Optional[str] = None
    trigger_ts: Optional[str] = None

    @property
    def is_thread(self) -> bool:
        return bool(self.thread_ts)


class PlatformMessage(BaseModel):
    """A message as returned by the platform's history APIs."""
    author: Optional[str] = None
    text: str = ""
    timestamp: str
    is_bot: bool = False

    @property
    def sort_key(self) -> float:
        try:
            return float(self.timestamp)
        except ValueError:
            return 0.0


class IMService(ABC):
    """Abstract base class for instant messaging services."""

    @abstractmethod
    async def fetch_recent_messages(self, thread: ThreadRef, limit: int) -> List[PlatformMessage]:
        """Fetch up to limit of the most recent messages of a channel or thread."""
        pass

    @abstractmethod
    async def send_reply(
        self,
        channel: str,
        content: str,
        thread_ts: Optional[str] = None,
        blocks: Optional[List[Dict[str, Any]]] = None
    ) -> bool:
        """Send a reply, threaded when thread_ts is given."""
        pass

    @abstractmethod
    async def respond_to_interaction(self, response_url: str, content: str) -> bool:
        """Answer an interactive component through its response URL."""
        pass

    async def resolve_bot_user_id(self) -> Optional[str]:
        """Look up the bot's own user id on the platform, when it supports that."""
        return None

    async def close(self) -> None:
        """Release transport resources."""
        pass


class IMServiceFactory:
    """Factory for creating IM services."""

    @staticmethod
    def create_service(platform: str, config: Dict[str, Any]) -> IMService:
        """Create IM service based on platform."""
        if platform.lower() == "slack":
            from .slack import SlackService
            return SlackService(
                bot_token=config["bot_token"],
                bot_user_id=config.get("bot_user_id"),
                api_url=config.get("api_url", "https://slack.com/api"),
            )
        else:
            raise ValueError(f"Unsupported platform: {platform}")
