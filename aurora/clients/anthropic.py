"""Anthropic API client with rate limiting, streaming and error handling."""

import asyncio
import json
import os
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import tiktoken
from anthropic import APIError, APIStatusError, AsyncAnthropic
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from pydantic import ValidationError

from aurora.models.llm import (
    ContentBlock,
    LLMMessage,
    LLMResponse,
    LLMToolDefinition,
    LLMUsage,
    StreamEnd,
    StreamError,
    StreamEvent,
    StreamMessage,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    UnknownBlock,
)
from aurora.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Event types that carry incremental content; everything else (content_block_stop, ping) is dropped
FORWARDED_STREAM_EVENTS = frozenset(
    {"message_start", "content_block_start", "content_block_delta", "message_delta", "message_stop"}
)


class LLMClientError(Exception):
    """Transport or API failure talking to the model."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class AnthropicConfig:
    """Configuration for Anthropic API client."""

    model: str = "claude-sonnet-4-20250514"
    fast_model: str = "claude-3-5-haiku-20241022"
    max_tokens: int = 4096
    classifier_max_tokens: int = 10
    request_timeout: float = 120.0
    classifier_timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0

    # Token limits for validation and truncation
    max_message_tokens: int = 2000  # Maximum tokens per individual user message
    max_conversation_tokens: int = 200000
    token_headroom: int = 4096  # Reserve tokens for response

    @classmethod
    def from_env(cls) -> "AnthropicConfig":
        """Build a config, letting ANTHROPIC_* environment variables override the defaults."""
        config = cls()
        config.model = os.getenv("ANTHROPIC_MODEL", config.model)
        config.fast_model = os.getenv("ANTHROPIC_FAST_MODEL", config.fast_model)
        config.max_tokens = int(os.getenv("ANTHROPIC_MAX_TOKENS", config.max_tokens))
        return config


class AnthropicRateLimiter:
    """Moving-window rate limiter for requests and tokens."""

    def __init__(self, requests_per_minute: int = 50, tokens_per_minute: int = 40_000):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per minute
            tokens_per_minute: Maximum tokens per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)

        self.request_limit = parse(f"{requests_per_minute}/minute")
        self.token_limit = parse(f"{tokens_per_minute}/minute")

    async def check_rate_limit(self, estimated_tokens: int, identifier: str = "anthropic") -> None:
        """Wait until the request fits within both rate limits."""
        logger.debug(f"Checking rate limit for {estimated_tokens} tokens, identifier: {identifier}")

        if not self.limiter.hit(self.request_limit, identifier):
            await self._wait_for_window(self.request_limit, identifier, "Request")

        token_identifier = f"{identifier}_tokens"
        if not self.limiter.hit(self.token_limit, token_identifier, cost=max(estimated_tokens, 1)):
            await self._wait_for_window(self.token_limit, token_identifier, "Token")

    async def _wait_for_window(self, limit: Any, identifier: str, label: str) -> None:
        window_stats = self.limiter.get_window_stats(limit, identifier)
        if window_stats:
            # reset_time is epoch seconds
            wait_time = max(0.0, window_stats.reset_time - time.time())
            if wait_time > 0:
                logger.warning(f"{label} rate limit exceeded, waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)


@dataclass
class StreamHandle:
    """Mailbox and producer task of one streaming call.

    The producer only ever talks to the owner through ``events``; closing the handle cancels
    the producer so it stops emitting.
    """

    events: asyncio.Queue[StreamMessage]
    task: asyncio.Task[None]

    def close(self) -> None:
        if not self.task.done():
            self.task.cancel()

    async def iter_messages(self) -> AsyncIterator[StreamMessage]:
        """Yield mailbox messages up to and including the terminal one."""
        while True:
            message = await self.events.get()
            yield message
            if isinstance(message, StreamEnd | StreamError):
                return


def extract_error_message(body: Any) -> str:
    """Best-effort human message from an error response body."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
    if body is None or body == "":
        return "unknown error"
    return str(body)


def parse_content_blocks(content: list[dict[str, Any]] | None) -> list[ContentBlock]:
    """Convert raw content blocks to typed blocks, preserving order."""
    converted: list[ContentBlock] = []
    for block in content or []:
        block_type = block.get("type")
        try:
            if block_type == "text":
                converted.append(TextBlock.model_validate(block))
            elif block_type == "tool_use":
                converted.append(ToolUseBlock.model_validate(block))
            else:
                converted.append(UnknownBlock(raw=block))
        except ValidationError as e:
            logger.warning(f"Malformed {block_type} content block kept as unknown: {e}")
            converted.append(UnknownBlock(raw=block))
    return converted


def parse_response(raw: dict[str, Any]) -> LLMResponse:
    """Normalize a non-streaming messages response."""
    usage = raw.get("usage") or {}
    return LLMResponse(
        id=raw.get("id"),
        content=parse_content_blocks(raw.get("content")),
        stop_reason=raw.get("stop_reason"),
        usage=LLMUsage(
            input_tokens=usage.get("input_tokens") or 0,
            output_tokens=usage.get("output_tokens") or 0,
        ),
        model=raw.get("model"),
    )


def parse_sse_line(line: str) -> StreamEvent | None:
    """Decode one server-sent-event line, or None if it should be skipped."""
    if not line.startswith("data:"):
        return None

    try:
        data = json.loads(line[len("data:") :].strip())
    except json.JSONDecodeError:
        return None

    if not isinstance(data, dict):
        return None

    event_type = data.get("type")
    if event_type not in FORWARDED_STREAM_EVENTS:
        return None
    if event_type == "message_stop":
        return StreamEvent(type=event_type, data={"type": "message_stop"})
    return StreamEvent(type=event_type, data=data)


class AnthropicClient:
    """Low-level Anthropic messages client with rate limiting and error mapping."""

    tokenizer: tiktoken.Encoding | None = None
    client: AsyncAnthropic
    config: AnthropicConfig
    rate_limiter: AnthropicRateLimiter = AnthropicRateLimiter()

    def __init__(
        self,
        api_key: str | None = None,
        config: AnthropicConfig | None = None,
        client: AsyncAnthropic | None = None,
    ):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY env var)
            config: Client configuration
            client: Preconfigured SDK client, mainly for tests
        """
        anthropic_api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if client is None and not anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable is required")

        # Retries are handled here so they can be logged and bounded per call
        self.client = client or AsyncAnthropic(api_key=anthropic_api_key, max_retries=0)
        self.config = config or AnthropicConfig.from_env()

        try:
            # Close approximation for Claude
            self.tokenizer = tiktoken.encoding_for_model("gpt-4")
        except Exception:
            self.tokenizer = None

    def build_request(
        self,
        messages: list[LLMMessage],
        system_prompt: str | None = None,
        tools: list[LLMToolDefinition] | None = None,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
        stream: bool = False,
    ) -> dict[str, Any]:
        """Build the request body; ``system`` and ``tools`` are omitted entirely when empty."""
        body: dict[str, Any] = {
            "model": model or self.config.model,
            "max_tokens": max_tokens or self.config.max_tokens,
            "messages": [message.to_wire() for message in messages],
        }
        if system_prompt:
            body["system"] = system_prompt
        if tools:
            body["tools"] = [tool.model_dump() for tool in tools]
        if stream:
            body["stream"] = True
        return body

    async def send(
        self,
        messages: list[LLMMessage],
        system_prompt: str | None = None,
        tools: list[LLMToolDefinition] | None = None,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
        retries: int | None = None,
    ) -> LLMResponse:
        """Create a message and wait for the complete response.

        ``timeout`` bounds the whole call, retries included; ``retries`` is the number of
        attempts (defaults to ``config.max_retries``).

        Raises:
            LLMClientError: On non-2xx responses, transport failures and timeouts
        """
        body = self.build_request(messages, system_prompt, tools, model=model, max_tokens=max_tokens)
        await self.rate_limiter.check_rate_limit(self._estimate_tokens(messages, system_prompt or ""))

        logger.debug(f"Creating message with {len(messages)} messages, {len(tools) if tools else 0} tools")
        deadline = timeout or self.config.request_timeout
        request_client = self.client.with_options(timeout=deadline)

        try:
            async with asyncio.timeout(deadline):
                response = await self._request_with_retries(
                    lambda: request_client.messages.create(**body), retries or self.config.max_retries
                )
        except TimeoutError as e:
            logger.error(f"Anthropic API request timed out after {deadline}s")
            raise LLMClientError(f"Request failed: timed out after {deadline}s") from e
        except APIStatusError as e:
            logger.error(f"Anthropic API error: status={e.status_code} body={e.body}")
            raise LLMClientError(
                f"API error {e.status_code}: {extract_error_message(e.body)}", status_code=e.status_code
            ) from e
        except APIError as e:
            logger.error(f"Anthropic API request failed: {e}")
            raise LLMClientError(f"Request failed: {e}") from e

        normalized = parse_response(response.model_dump())
        logger.debug(
            f"Response received - Stop reason: {normalized.stop_reason}, Content blocks: {len(normalized.content)}"
        )
        return normalized

    def stream(
        self,
        messages: list[LLMMessage],
        system_prompt: str | None = None,
        tools: list[LLMToolDefinition] | None = None,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
        mailbox: asyncio.Queue[StreamMessage] | None = None,
    ) -> StreamHandle:
        """Start a streaming call on its own task and return the mailbox it reports into.

        Must be called from a running event loop.
        """
        body = self.build_request(messages, system_prompt, tools, model=model, max_tokens=max_tokens, stream=True)
        events: asyncio.Queue[StreamMessage] = mailbox if mailbox is not None else asyncio.Queue()
        task = asyncio.create_task(self._stream_into(body, events, timeout or self.config.request_timeout))
        return StreamHandle(events=events, task=task)

    async def _stream_into(self, body: dict[str, Any], events: asyncio.Queue[StreamMessage], timeout: float) -> None:
        try:
            await self.rate_limiter.check_rate_limit(len(json.dumps(body["messages"])) // 4)
            request_client = self.client.with_options(timeout=timeout)
            async with request_client.messages.with_streaming_response.create(**body) as response:
                async for line in response.iter_lines():
                    event = parse_sse_line(line)
                    if event is not None:
                        await events.put(event)
        except APIStatusError as e:
            logger.error(f"Anthropic streaming error: status={e.status_code}")
            await events.put(StreamError(f"API error {e.status_code}", status_code=e.status_code))
            return
        except APIError as e:
            logger.error(f"Anthropic streaming request failed: {e}")
            await events.put(StreamError(f"Request failed: {e}"))
            return
        except Exception as e:
            # Body read errors surface as raw httpx exceptions; the owner still needs a terminal message
            logger.error(f"Anthropic stream interrupted: {e}", exc_info=True)
            await events.put(StreamError(f"Request failed: {e}"))
            return

        await events.put(StreamEnd())

    async def _request_with_retries(self, call: Callable[[], Awaitable[T]], attempts: int) -> T:
        """Execute Anthropic API request with retry logic."""
        for attempt in range(attempts):
            try:
                return await call()

            except APIStatusError as e:
                last_attempt = attempt >= attempts - 1
                if e.status_code == 429 and not last_attempt:
                    retry_after = int(e.response.headers.get("retry-after", 60))
                    if retry_after < 120:
                        logger.warning(f"Rate limited by API, retrying in {retry_after}s")
                        await asyncio.sleep(retry_after)
                        continue

                elif e.status_code >= 500 and not last_attempt:
                    await asyncio.sleep(self.config.retry_delay * (2**attempt))
                    continue

                raise

        raise LLMClientError(f"Failed to complete request after {attempts} attempts")

    @staticmethod
    def _opens_conversation(message: LLMMessage) -> bool:
        if message.role != "user":
            return False
        if isinstance(message.content, str):
            return True
        return not any(isinstance(block, ToolResultBlock) for block in message.content)

    def _message_text(self, message: LLMMessage) -> str:
        if isinstance(message.content, str):
            return message.content

        parts: list[str] = []
        for block in message.content:
            if isinstance(block, TextBlock):
                parts.append(block.text)
            elif isinstance(block, ToolResultBlock):
                parts.append(block.content)
            elif isinstance(block, ToolUseBlock):
                parts.append(block.name + json.dumps(block.input))
        return "".join(parts)

    def _estimate_tokens(self, messages: list[LLMMessage], system_prompt: str) -> int:
        """Estimate token count for rate limiting."""
        text_content = system_prompt + "".join(self._message_text(message) for message in messages)
        return self.estimate_message_tokens(text_content)

    def estimate_message_tokens(self, message: str) -> int:
        """Estimate token count for a single message.

        Args:
            message: Message content

        Returns:
            Estimated token count
        """
        try:
            return len(self.tokenizer.encode(message)) if self.tokenizer else len(message) // 4
        except Exception:
            # Fallback: roughly 4 characters per token
            return len(message) // 4

    def validate_message_tokens(self, message: str) -> None:
        """Validate that a message doesn't exceed token limits.

        Raises:
            ValueError: If message exceeds token limit
        """
        token_count = self.estimate_message_tokens(message)
        if token_count > self.config.max_message_tokens:
            raise ValueError(
                f"Message exceeds token limit: {token_count} tokens > {self.config.max_message_tokens} limit"
            )

    def truncate_conversation(
        self,
        messages: list[LLMMessage],
        system_prompt: str,
        tools: list[LLMToolDefinition] | None = None,
    ) -> list[LLMMessage]:
        """Drop the oldest messages until the conversation fits within token limits.

        The result always starts with a user message.
        """
        if not messages:
            return messages

        available_tokens = self.config.max_conversation_tokens - self.config.token_headroom
        available_tokens -= self.estimate_message_tokens(system_prompt)
        if tools:
            tool_content = "".join(tool.name + tool.description + json.dumps(tool.input_schema) for tool in tools)
            available_tokens -= self.estimate_message_tokens(tool_content)

        truncated_messages: list[LLMMessage] = []
        current_tokens = 0

        for message in reversed(messages):
            message_tokens = self.estimate_message_tokens(self._message_text(message))
            if current_tokens + message_tokens > available_tokens:
                break
            truncated_messages.insert(0, message)
            current_tokens += message_tokens

        # A leading tool result has lost its tool_use, so it goes with the assistant turn before it
        while truncated_messages and not self._opens_conversation(truncated_messages[0]):
            truncated_messages.pop(0)

        if len(truncated_messages) < len(messages):
            logger.warning(
                f"Truncated conversation from {len(messages)} to {len(truncated_messages)} messages "
                f"to fit within {available_tokens} token limit"
            )

        return truncated_messages


_anthropic_client: AnthropicClient | None = None


def get_anthropic_client() -> AnthropicClient:
    """Get or create Anthropic client instance."""
    global _anthropic_client
    if _anthropic_client is None:
        _anthropic_client = AnthropicClient()
    return _anthropic_client
