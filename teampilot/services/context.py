"""
Conversation context assembly from platform history.
"""

from typing import List, Optional
import logging

from .im import IMService, PlatformMessage, ThreadRef
from ..models.records import ConversationWindow, Message

logger = logging.getLogger(__name__)


class ContextAssembler:
    """Builds the per-turn conversation window from the messaging platform.

    The window is rebuilt on every turn and never cached.
    """

    def __init__(self, im_service: IMService):
        self.im_service = im_service

    async def build_context(self, thread: ThreadRef, max_messages: int) -> ConversationWindow:
        """
        Fetch recent history for a thread and classify it by authorship.

        Args:
            thread: Channel/thread to read, with the triggering message timestamp
            max_messages: Upper bound on the number of returned messages

        Returns:
            Chronological window excluding the triggering message. Empty when
            the platform fetch fails.
        """
        if max_messages <= 0:
            return ConversationWindow(cap=max(max_messages, 0))

        try:
            raw_messages = await self.im_service.fetch_recent_messages(thread, max_messages)
        except Exception as e:
            logger.warning(f"Failed to fetch conversation history for {thread.channel_id}: {e}")
            return ConversationWindow(cap=max_messages)

        messages = self._classify(raw_messages, thread.trigger_ts)
        return ConversationWindow(messages=messages[-max_messages:], cap=max_messages)

    def _classify(self, raw_messages: List[PlatformMessage], trigger_ts: Optional[str] = None) -> List[Message]:
        ordered = sorted(raw_messages, key=lambda message: message.sort_key)
        messages = []
        for raw in ordered:
            if trigger_ts and raw.timestamp == trigger_ts:
                continue
            content = (raw.text or "").strip()
            if not content:
                continue
            role = "assistant" if raw.is_bot else "user"
            messages.append(Message(role=role, content=content))
        return messages
