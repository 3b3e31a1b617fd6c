"""Anthropic (Claude) provider adapter."""

from __future__ import annotations

import json
import logging
from typing import Any

import anthropic

from buildgraph.config import ANTHROPIC_API_KEY, DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from buildgraph.models import ModelResponse, TokenUsage
from buildgraph.providers.base import ProviderAdapter

logger = logging.getLogger(__name__)


class AnthropicAdapter(ProviderAdapter):
    def __init__(self, model: str = "claude-sonnet-4-5"):
        self.model = model
        self.client = anthropic.AsyncAnthropic(api_key=ANTHROPIC_API_KEY)

    async def generate(
        self,
        messages: list[dict],
        system: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> ModelResponse:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": self._format_messages(messages),
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        if system:
            kwargs["system"] = system

        try:
            raw = await self.client.messages.create(**kwargs)
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise

        return self._parse_response(raw)

    def count_tokens(self, messages: list[dict]) -> int:
        # Rough estimate: 4 chars per token
        total = sum(len(json.dumps(m)) for m in messages)
        return total // 4

    def _format_messages(self, messages: list[dict]) -> list[dict]:
        """Convert to Anthropic's format: no system role, consecutive same-role turns merged."""
        formatted: list[dict] = []
        for msg in messages:
            role = msg.get("role", "user")
            if role == "system":
                continue  # system messages go via the system parameter
            role = "assistant" if role == "assistant" else "user"
            content = str(msg.get("content", ""))
            if formatted and formatted[-1]["role"] == role:
                formatted[-1]["content"] += "\n\n" + content
            else:
                formatted.append({"role": role, "content": content})
        return formatted

    def _parse_response(self, raw: Any) -> ModelResponse:
        text_parts = [block.text for block in raw.content if block.type == "text"]
        return ModelResponse(
            text="\n".join(text_parts) if text_parts else None,
            usage=TokenUsage(raw.usage.input_tokens, raw.usage.output_tokens),
            raw=raw,
        )
