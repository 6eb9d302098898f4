"""
Completion client for OpenAI-compatible chat-completion endpoints.
"""

import openai
from typing import List, Dict, Any, Optional
import logging

from ..config import LLMConfig
from ..errors import UpstreamError
from ..models.records import ConversationWindow

logger = logging.getLogger(__name__)

TRUNCATION_NOTICE = "[Response was truncated due to length limits. Consider asking for a shorter response or breaking your question into smaller parts.]"


class CompletionClient:
    """Issues exactly one chat-completion request per turn."""

    def __init__(self, config: LLMConfig, client: Optional[openai.AsyncOpenAI] = None):
        self.config = config
        self.client = client or openai.AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=0
        )

    def format_messages(
        self,
        system_instruction: str,
        history: ConversationWindow,
        user_message: str
    ) -> List[Dict[str, str]]:
        """Ordered message list: system, then history, then the current user message."""
        messages = [{"role": "system", "content": system_instruction}]
        messages.extend(history.to_openai())
        messages.append({"role": "user", "content": user_message})
        return messages

    async def complete(self, system_instruction: str, history: ConversationWindow, user_message: str) -> str:
        """Send a chat completion request and return the generated text."""
        kwargs = {
            "model": self.config.model,
            "messages": self.format_messages(system_instruction, history, user_message),
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.APIStatusError as e:
            logger.error(f"Completion endpoint returned {e.status_code}: {e.body}")
            raise UpstreamError(f"Completion request failed with status {e.status_code}", body=e.body, status_code=e.status_code) from e
        except openai.APIError as e:
            logger.error(f"Completion request failed: {e}")
            raise UpstreamError(f"Completion request failed: {e}", body=getattr(e, "body", None)) from e

        return self._extract_content(response)

    def _extract_content(self, response: Any) -> str:
        """Pull ``choices[0].message.content`` out of a response."""
        choices = getattr(response, "choices", None)
        if not choices:
            raise UpstreamError("Completion response contained no choices", body=_dump(response))

        choice = choices[0]
        content = getattr(getattr(choice, "message", None), "content", None) or ""

        if choice.finish_reason == "length":
            if content.strip():
                if not content.rstrip().endswith(('.', '!', '?', ':', ';')):
                    content = content.rstrip() + "..."
                return f"{content}\n\n{TRUNCATION_NOTICE}"
            return TRUNCATION_NOTICE

        if not content.strip():
            raise UpstreamError("Completion response contained no text", body=_dump(response))

        return content

    async def close(self) -> None:
        await self.client.close()

    def get_error_message(self, error: Exception) -> str:
        """Get user-friendly apology for a failed completion."""
        text = str(error).lower()
        body = str(getattr(error, "body", "") or "").lower()
        if "rate_limit" in text or "rate limit" in body or getattr(error, "status_code", None) == 429:
            return "Sorry, the AI service is currently busy. Please try again in a moment."
        elif getattr(error, "status_code", None) in (401, 403) or "authentication" in body:
            return "Sorry, there was an authentication issue with the AI service."
        elif "quota" in body:
            return "Sorry, the AI service quota has been exceeded. Please contact support."
        else:
            return "Sorry, I encountered an error processing your request. Please try again."


def _dump(response: Any) -> Any:
    dump = getattr(response, "model_dump", None)
    return dump() if callable(dump) else response
