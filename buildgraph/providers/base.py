"""Base provider adapter: abstract interface for all LLM providers."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

from buildgraph.config import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from buildgraph.models import GenerationRequest, ModelResponse

logger = logging.getLogger(__name__)


class ProviderAdapter(ABC):
    """Translates role-tagged messages into one provider's API call."""

    model: str

    @abstractmethod
    async def generate(
        self,
        messages: list[dict],
        system: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> ModelResponse:
        """Call the model and return a unified ModelResponse."""

    @abstractmethod
    def count_tokens(self, messages: list[dict]) -> int:
        """Estimate token count for messages."""


class ModelProvider:
    """Unified interface: wraps a ProviderAdapter and exposes the text generation capability."""

    def __init__(self, adapter: ProviderAdapter):
        self.adapter = adapter

    async def generate(
        self,
        messages: list[dict],
        system: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> ModelResponse:
        return await self.adapter.generate(
            messages=messages,
            system=system,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    async def chat(self, request: GenerationRequest, purpose: str = "generate") -> str:
        """Run a GenerationRequest and return the response text ('' when the model returned none)."""
        messages = request.to_messages()
        system_parts = [m.get("content", "") for m in messages if m.get("role") == "system"]
        conversation = [m for m in messages if m.get("role") != "system"]
        if not conversation:
            # Some APIs reject a request that only carries a system prompt
            conversation = [{"role": "user", "content": "Proceed."}]

        start = time.monotonic()
        response = await self.generate(
            messages=conversation,
            system="\n\n".join(system_parts) if system_parts else None,
        )
        elapsed = time.monotonic() - start
        logger.info(
            f"[{purpose}] {self.adapter.model} responded in {elapsed:.2f}s "
            f"({response.usage.input_tokens} in / {response.usage.output_tokens} out tokens)"
        )
        return response.text or ""

    def count_tokens(self, messages: list[dict]) -> int:
        return self.adapter.count_tokens(messages)
