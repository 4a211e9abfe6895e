"""
Immutable, fully-resolved parameters for one provider invocation.

Requests are produced by the pending builders in `llm_conduit.pending` and
consumed by a provider. They expose read-only fields and never validate;
validation happens when the builder finalizes.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Union

from llm_conduit.config import DEFAULT_MAX_STEPS
from llm_conduit.tool import Tool
from llm_conduit.types.messages import Message, SystemMessage
from llm_conduit.types.tool import ToolChoice

__all__ = [
    "ClientRetry",
    "TextRequest",
    "StructuredRequest",
    "EmbeddingsRequest",
    "RerankRequest",
]

# (times, sleep_ms, when, throw)
ClientRetry = tuple[Any, ...]


def _lookup(options: dict[str, Any], path: Optional[str], default: Any) -> Any:
    if path is None:
        return options
    current: Any = options
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return default
    return current


class _RequestOptions:
    """Accessors shared by every request type."""

    provider_options: dict[str, Any]

    def provider_option(self, path: Optional[str] = None, default: Any = None) -> Any:
        """
        Read a provider option by dot-notation path.

        Args:
            path: Path like ``"thinking.budget"``. ``None`` returns every option.
            default: Returned when the path does not exist.
        """
        return _lookup(self.provider_options, path, default)


@dataclass(frozen=True)
class TextRequest(_RequestOptions):
    model: str
    provider_key: str = ""
    system_prompts: tuple[SystemMessage, ...] = ()
    prompt: Optional[str] = None
    messages: tuple[Message, ...] = ()
    tools: tuple[Tool, ...] = ()
    tool_choice: Optional[Union[ToolChoice, str]] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_steps: int = DEFAULT_MAX_STEPS
    client_options: dict[str, Any] = field(default_factory=dict)
    client_retry: ClientRetry = ()
    provider_options: dict[str, Any] = field(default_factory=dict)

    def with_messages(self, messages: Sequence[Message]) -> "TextRequest":
        return dataclasses.replace(self, messages=tuple(messages))


@dataclass(frozen=True)
class StructuredRequest(_RequestOptions):
    model: str
    schema: dict[str, Any]
    schema_name: str = "output"
    provider_key: str = ""
    system_prompts: tuple[SystemMessage, ...] = ()
    prompt: Optional[str] = None
    messages: tuple[Message, ...] = ()
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    client_options: dict[str, Any] = field(default_factory=dict)
    client_retry: ClientRetry = ()
    provider_options: dict[str, Any] = field(default_factory=dict)

    def with_messages(self, messages: Sequence[Message]) -> "StructuredRequest":
        return dataclasses.replace(self, messages=tuple(messages))


@dataclass(frozen=True)
class EmbeddingsRequest(_RequestOptions):
    model: str
    inputs: tuple[str, ...]
    provider_key: str = ""
    client_options: dict[str, Any] = field(default_factory=dict)
    client_retry: ClientRetry = ()
    provider_options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RerankRequest(_RequestOptions):
    model: str
    query: str
    documents: tuple[str, ...]
    provider_key: str = ""
    top_k: Optional[int] = None
    client_options: dict[str, Any] = field(default_factory=dict)
    client_retry: ClientRetry = ()
    provider_options: dict[str, Any] = field(default_factory=dict)
