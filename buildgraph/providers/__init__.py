"""Provider adapter layer: model-agnostic text generation."""

from buildgraph.providers.base import ModelProvider, ProviderAdapter
from buildgraph.providers.factory import chat, create_provider, get_provider

__all__ = ["ModelProvider", "ProviderAdapter", "chat", "create_provider", "get_provider"]
