"""
Slack integration service.
"""

from typing import Dict, Any, Optional, List
import logging
import httpx

from .im import IMService, PlatformMessage, ThreadRef

logger = logging.getLogger(__name__)

MAX_REPLY_PAGES = 5


class SlackAPIError(Exception):
    """Slack answered with ``ok: false``."""


class SlackService(IMService):
    """Slack Web API client."""

    def __init__(
        self,
        bot_token: str,
        bot_user_id: Optional[str] = None,
        api_url: str = "https://slack.com/api",
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.bot_token = bot_token
        self.bot_user_id = bot_user_id
        self.api_url = api_url.rstrip("/")
        self.http_client = http_client or httpx.AsyncClient(timeout=10)

    async def _call(self, method: str, payload: Dict[str, Any], http_method: str = "POST") -> Dict[str, Any]:
        """Call a Slack Web API method and return the decoded body."""
        headers = {"Authorization": f"Bearer {self.bot_token}"}
        url = f"{self.api_url}/{method}"
        if http_method == "GET":
            response = await self.http_client.get(url, params=payload, headers=headers)
        else:
            response = await self.http_client.post(url, json=payload, headers=headers)
        response.raise_for_status()
        result = response.json()
        if not result.get("ok"):
            raise SlackAPIError(f"{method}: {result.get('error', 'unknown_error')}")
        return result

    def _to_platform_message(self, message: Dict[str, Any]) -> PlatformMessage:
        author = message.get("user")
        is_bot = bool(message.get("bot_id")) or (self.bot_user_id is not None and author == self.bot_user_id)
        return PlatformMessage(
            author=author or message.get("bot_id"),
            text=message.get("text") or "",
            timestamp=message.get("ts", "0"),
            is_bot=is_bot
        )

    async def fetch_recent_messages(self, thread: ThreadRef, limit: int) -> List[PlatformMessage]:
        """Fetch the most recent messages of a thread (replies) or a flat channel (history)."""
        if thread.is_thread:
            raw_messages = await self._fetch_thread_replies(thread.channel_id, thread.thread_ts)
            raw_messages = raw_messages[-limit:]
        else:
            result = await self._call(
                "conversations.history",
                {"channel": thread.channel_id, "limit": limit},
                http_method="GET"
            )
            raw_messages = result.get("messages", [])

        logger.debug(f"Fetched {len(raw_messages)} messages for {thread.channel_id}/{thread.thread_ts}")
        return [self._to_platform_message(message) for message in raw_messages]

    async def _fetch_thread_replies(self, channel: str, thread_ts: str) -> List[Dict[str, Any]]:
        """Replies come back oldest first, so page through to reach the newest ones."""
        messages = []
        cursor = None
        for _ in range(MAX_REPLY_PAGES):
            params = {"channel": channel, "ts": thread_ts, "limit": 200}
            if cursor:
                params["cursor"] = cursor
            result = await self._call("conversations.replies", params, http_method="GET")
            messages.extend(result.get("messages", []))
            cursor = (result.get("response_metadata") or {}).get("next_cursor")
            if not result.get("has_more") or not cursor:
                break
        return messages

    async def send_reply(
        self,
        channel: str,
        content: str,
        thread_ts: Optional[str] = None,
        blocks: Optional[List[Dict[str, Any]]] = None
    ) -> bool:
        """Send message to a Slack channel, as a threaded reply when thread_ts is given."""
        payload = {
            "channel": channel,
            "text": content
        }
        if thread_ts:
            payload["thread_ts"] = thread_ts
        if blocks:
            payload["blocks"] = blocks

        try:
            logger.debug(f"Sending message to Slack channel {channel}: {payload}")
            await self._call("chat.postMessage", payload)
            logger.info(f"Successfully sent message to Slack channel {channel}")
            return True
        except SlackAPIError as e:
            logger.error(f"Slack API error: {e}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"HTTP error sending Slack message: {e}")
            return False

    async def respond_to_interaction(self, response_url: str, content: str) -> bool:
        """Post a message back through an interaction response URL."""
        try:
            response = await self.http_client.post(
                response_url,
                json={"text": content, "replace_original": False}
            )
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.error(f"Failed to respond to Slack interaction: {e}")
            return False

    async def resolve_bot_user_id(self) -> Optional[str]:
        """Ask Slack who this token belongs to and remember the bot user id."""
        try:
            result = await self._call("auth.test", {})
        except (SlackAPIError, httpx.HTTPError) as e:
            logger.error(f"Failed to resolve the bot user id with auth.test: {e}")
            return None

        self.bot_user_id = result.get("user_id") or self.bot_user_id
        logger.info(f"Resolved bot user id {self.bot_user_id}")
        return self.bot_user_id

    async def close(self) -> None:
        await self.http_client.aclose()
