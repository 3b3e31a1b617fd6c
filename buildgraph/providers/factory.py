"""Provider factory: create the right adapter based on model string."""

from __future__ import annotations

from functools import lru_cache

from buildgraph.models import GenerationRequest
from buildgraph.providers.base import ModelProvider, ProviderAdapter


def parse_model_string(model: str) -> tuple[str, str]:
    """Parse 'provider/model-name' into (provider, model)."""
    if "/" in model:
        provider, model_name = model.split("/", 1)
        return provider.lower(), model_name
    # Infer provider from model name
    if model.startswith("claude"):
        return "anthropic", model
    if model.startswith("gpt") or model.startswith("o1") or model.startswith("o3"):
        return "openai", model
    # Default to openai
    return "openai", model


def create_adapter(model: str) -> ProviderAdapter:
    """Create a provider adapter for the given model string."""
    provider, model_name = parse_model_string(model)

    if provider == "anthropic":
        from buildgraph.providers.anthropic_provider import AnthropicAdapter
        return AnthropicAdapter(model=model_name)
    elif provider == "openai":
        from buildgraph.providers.openai_provider import OpenAIAdapter
        return OpenAIAdapter(model=model_name)
    else:
        raise ValueError(f"Unknown provider: {provider}. Use 'anthropic/model' or 'openai/model'.")


def create_provider(model: str) -> ModelProvider:
    """Create a ModelProvider wrapping the appropriate adapter."""
    adapter = create_adapter(model)
    return ModelProvider(adapter)


@lru_cache(maxsize=None)
def get_provider(model: str) -> ModelProvider:
    """Shared provider per model string, so concurrent requests reuse one client."""
    return create_provider(model)


async def chat(request: GenerationRequest) -> str:
    """Default content generation capability: route the request by its model string."""
    return await get_provider(request.model).chat(request)
