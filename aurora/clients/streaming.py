"""Rebuild a complete response from forwarded stream events."""

import json
from typing import Any

from aurora.clients.anthropic import parse_content_blocks
from aurora.models.llm import LLMResponse, LLMUsage, StreamEvent
from aurora.utils.logging import get_logger

logger = get_logger(__name__)


class StreamAccumulator:
    """Folds stream events into content blocks, usage and stop reason."""

    def __init__(self) -> None:
        self.id: str | None = None
        self.model: str | None = None
        self.stop_reason: str | None = None
        self.usage = LLMUsage()
        self._blocks: dict[int, dict[str, Any]] = {}
        self._partial_json: dict[int, list[str]] = {}

    def feed(self, event: StreamEvent) -> str | None:
        """Apply one event; returns the text delta it carried, if any."""
        data = event.data

        if event.type == "message_start":
            message = data.get("message") or {}
            self.id = message.get("id")
            self.model = message.get("model")
            usage = message.get("usage") or {}
            self.usage.input_tokens = usage.get("input_tokens") or 0
            self.usage.output_tokens = usage.get("output_tokens") or 0

        elif event.type == "content_block_start":
            index = data.get("index", len(self._blocks))
            self._blocks[index] = dict(data.get("content_block") or {})

        elif event.type == "content_block_delta":
            index = data.get("index", 0)
            delta = data.get("delta") or {}
            block = self._blocks.setdefault(index, {"type": "text", "text": ""})

            if delta.get("type") == "text_delta":
                text = delta.get("text", "")
                block["text"] = block.get("text", "") + text
                return text
            if delta.get("type") == "input_json_delta":
                self._partial_json.setdefault(index, []).append(delta.get("partial_json", ""))

        elif event.type == "message_delta":
            self.stop_reason = (data.get("delta") or {}).get("stop_reason", self.stop_reason)
            usage = data.get("usage") or {}
            if "output_tokens" in usage:
                self.usage.output_tokens = usage["output_tokens"] or 0

        return None

    def build(self) -> LLMResponse:
        raw_blocks: list[dict[str, Any]] = []
        for index in sorted(self._blocks):
            block = self._blocks[index]
            if block.get("type") == "tool_use":
                block = {**block, "input": self._decode_input(index)}
            raw_blocks.append(block)

        return LLMResponse(
            id=self.id,
            content=parse_content_blocks(raw_blocks),
            stop_reason=self.stop_reason,
            usage=self.usage,
            model=self.model,
        )

    def _decode_input(self, index: int) -> dict[str, Any]:
        payload = "".join(self._partial_json.get(index, []))
        if not payload.strip():
            return {}
        try:
            decoded = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning(f"Could not decode streamed tool input for block {index}")
            return {}
        return decoded if isinstance(decoded, dict) else {}
