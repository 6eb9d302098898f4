"""
Tests for the completion client.
"""

import httpx
import openai
import pytest
from unittest.mock import AsyncMock, Mock, patch

from teampilot.config import LLMConfig
from teampilot.errors import UpstreamError
from teampilot.models.records import ConversationWindow, Message
from teampilot.services.llm import CompletionClient, TRUNCATION_NOTICE

REQUEST = httpx.Request("POST", "https://api.x.ai/v1/chat/completions")


def _response(content, finish_reason="stop"):
    response = Mock()
    response.choices = [Mock()]
    response.choices[0].message.content = content
    response.choices[0].finish_reason = finish_reason
    return response


def _client(create):
    client = Mock()
    client.chat.completions.create = create
    return CompletionClient(LLMConfig(api_key="test-key"), client=client)


@patch('teampilot.services.llm.openai.AsyncOpenAI')
def test_client_initialization(mock_openai):
    """Test the SDK client is built from config with retries disabled."""
    config = LLMConfig(api_key="test-key", base_url="https://llm.example.com/v1", timeout=15)

    CompletionClient(config)

    mock_openai.assert_called_once_with(
        api_key="test-key",
        base_url="https://llm.example.com/v1",
        timeout=15,
        max_retries=0
    )


def test_default_config():
    """Test default model and sampling parameters."""
    config = LLMConfig(api_key="test-key")

    assert config.model == "grok-2"
    assert config.base_url == "https://api.x.ai/v1"
    assert config.max_tokens == 1000
    assert config.temperature == 0.7


def test_format_messages_order():
    """Test the request is system, then history, then the user message."""
    client = _client(AsyncMock())
    history = ConversationWindow(messages=[
        Message(role="user", content="Hi"),
        Message(role="assistant", content="Hello!"),
    ])

    messages = client.format_messages("Be helpful.", history, "What's new?")

    assert messages == [
        {"role": "system", "content": "Be helpful."},
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Hello!"},
        {"role": "user", "content": "What's new?"},
    ]


@pytest.mark.asyncio
async def test_complete_success():
    """Test a single request with fixed sampling parameters."""
    create = AsyncMock(return_value=_response("Paris."))
    client = _client(create)

    result = await client.complete("Be helpful.", ConversationWindow(), "Capital of France?")

    assert result == "Paris."
    create.assert_awaited_once()
    kwargs = create.call_args.kwargs
    assert kwargs["model"] == "grok-2"
    assert kwargs["max_tokens"] == 1000
    assert kwargs["temperature"] == 0.7
    assert kwargs["messages"][-1] == {"role": "user", "content": "Capital of France?"}


@pytest.mark.asyncio
async def test_complete_truncated_appends_notice():
    """Test length-truncated completions carry a notice."""
    client = _client(AsyncMock(return_value=_response("A long answer", finish_reason="length")))

    result = await client.complete("Be helpful.", ConversationWindow(), "Explain everything")

    assert result.startswith("A long answer...")
    assert result.endswith(TRUNCATION_NOTICE)


@pytest.mark.asyncio
async def test_complete_status_error_carries_body():
    """Test non-2xx responses become UpstreamError with the provider body."""
    body = {"error": {"message": "Rate limit reached", "type": "rate_limit"}}
    error = openai.RateLimitError("rate limited", response=httpx.Response(429, request=REQUEST), body=body)
    create = AsyncMock(side_effect=error)
    client = _client(create)

    with pytest.raises(UpstreamError) as exc_info:
        await client.complete("Be helpful.", ConversationWindow(), "Hi")

    assert exc_info.value.body == body
    assert exc_info.value.status_code == 429
    assert create.await_count == 1
    assert client.get_error_message(exc_info.value).startswith("Sorry, the AI service is currently busy")


@pytest.mark.asyncio
async def test_complete_transport_error():
    """Test transport failures become UpstreamError."""
    client = _client(AsyncMock(side_effect=openai.APIConnectionError(request=REQUEST)))

    with pytest.raises(UpstreamError):
        await client.complete("Be helpful.", ConversationWindow(), "Hi")


@pytest.mark.asyncio
async def test_complete_empty_choices():
    """Test a response without choices is an error."""
    response = Mock()
    response.choices = []
    client = _client(AsyncMock(return_value=response))

    with pytest.raises(UpstreamError):
        await client.complete("Be helpful.", ConversationWindow(), "Hi")


@pytest.mark.asyncio
async def test_complete_empty_content():
    """Test a response without text is an error."""
    client = _client(AsyncMock(return_value=_response(None)))

    with pytest.raises(UpstreamError):
        await client.complete("Be helpful.", ConversationWindow(), "Hi")


def test_error_messages():
    """Test apology texts for common failures."""
    client = _client(AsyncMock())

    assert "authentication" in client.get_error_message(UpstreamError("denied", status_code=401))
    assert "quota" in client.get_error_message(UpstreamError("failed", body={"error": "quota exceeded"}))
    assert client.get_error_message(UpstreamError("boom")) == "Sorry, I encountered an error processing your request. Please try again."
