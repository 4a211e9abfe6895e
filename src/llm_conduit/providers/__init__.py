from .anthropic import AnthropicProvider, AnthropicRequestAdapter
from .base import BaseProvider
from .openai import OpenAIProvider, OpenAIRequestAdapter
from .voyageai import VoyageAIProvider

__all__ = [
    "BaseProvider",
    "OpenAIProvider",
    "OpenAIRequestAdapter",
    "AnthropicProvider",
    "AnthropicRequestAdapter",
    "VoyageAIProvider",
]
