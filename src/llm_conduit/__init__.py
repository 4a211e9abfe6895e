"""
LLM Conduit - fluent, provider-agnostic requests and tool calling for LLMs.
"""

import logging

from .conduit import Conduit
from .config import Provider, get_api_key, provider_config
from .dispatch import call_tools, resolve_tool
from .errors import (
    AmbiguousToolError,
    ConduitError,
    ConfigurationError,
    MissingRequiredFieldError,
    MutuallyExclusiveInputError,
    ProviderNotFoundError,
    ProviderRequestError,
    RateLimitedError,
    StructuredDecodingError,
    ToolCallError,
    ToolNotFoundError,
    ToolResolutionError,
    UnsupportedProviderActionError,
)
from .events import Telemetry
from .pending import (
    PendingEmbeddingsRequest,
    PendingRerankRequest,
    PendingStructuredRequest,
    PendingTextRequest,
)
from .providers import AnthropicProvider, BaseProvider, OpenAIProvider, VoyageAIProvider
from .registry import ProviderRegistry
from .tool import Tool, ToolParameter

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Conduit",
    "Provider",
    "get_api_key",
    "provider_config",
    "call_tools",
    "resolve_tool",
    "Telemetry",
    "ProviderRegistry",
    "Tool",
    "ToolParameter",
    "PendingTextRequest",
    "PendingStructuredRequest",
    "PendingEmbeddingsRequest",
    "PendingRerankRequest",
    "BaseProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "VoyageAIProvider",
    "ConduitError",
    "ConfigurationError",
    "ProviderNotFoundError",
    "MutuallyExclusiveInputError",
    "MissingRequiredFieldError",
    "ToolResolutionError",
    "ToolNotFoundError",
    "AmbiguousToolError",
    "ToolCallError",
    "UnsupportedProviderActionError",
    "ProviderRequestError",
    "RateLimitedError",
    "StructuredDecodingError",
]
