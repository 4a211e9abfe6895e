"""
Exception hierarchy for llm-conduit.

Every error the library raises on purpose derives from `ConduitError`, so
callers (and the tool dispatcher) can tell domain errors apart from anything
a tool handler or SDK throws. Noisy provider tracebacks are translated into
`ProviderRequestError` by `classify_error`, preserving the original exception.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final, Optional, Sequence, Type

import anthropic
import httpx
import openai

if TYPE_CHECKING:
    from llm_conduit.types.tool import ToolCall

__all__: tuple[str, ...] = (
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
    "classify_error",
)


class ConduitError(RuntimeError):
    """Base class for every error defined by llm-conduit.

    Attributes:
        original_exc: The underlying exception, when one exists.
    """

    original_exc: Optional[BaseException]

    def __init__(self, message: str, original_exc: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.original_exc = original_exc
        if original_exc is not None:
            self.__cause__ = original_exc


# --- configuration ---------------------------------------------------------


class ConfigurationError(ConduitError):
    """Raised at build/finalization time for invalid builder configuration."""


class ProviderNotFoundError(ConfigurationError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"Provider [{provider}] is not supported or not configured")
        self.provider = provider


class MutuallyExclusiveInputError(ConfigurationError):
    def __init__(self, fields: Sequence[str]) -> None:
        names = " or ".join(f"`{f}`" for f in fields)
        super().__init__(f"You can only use {names}")
        self.fields = tuple(fields)


class MissingRequiredFieldError(ConfigurationError):
    def __init__(self, field: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"`{field}` is required")
        self.field = field


# --- tool resolution / execution -------------------------------------------


class ToolResolutionError(ConduitError):
    def __init__(self, message: str, tool_name: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class ToolNotFoundError(ToolResolutionError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool ({tool_name}) not found", tool_name)


class AmbiguousToolError(ToolResolutionError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Multiple tools with the name {tool_name} found", tool_name)


class ToolCallError(ConduitError):
    """A tool handler raised a non-domain exception."""

    def __init__(self, tool_call: "ToolCall", original_exc: BaseException) -> None:
        super().__init__(
            f"Calling {tool_call.name} tool failed: {original_exc}", original_exc
        )
        self.tool_call = tool_call


class UnsupportedProviderActionError(ConduitError):
    def __init__(self, action: str, provider: str) -> None:
        super().__init__(f"{action} is not supported by {provider}")
        self.action = action
        self.provider = provider


# --- provider / transport --------------------------------------------------


class ProviderRequestError(ConduitError):
    """A provider call failed in the SDK or transport layer."""

    def __init__(
        self,
        message: str,
        original_exc: Optional[BaseException] = None,
        *,
        provider: str = "",
    ) -> None:
        super().__init__(message, original_exc)
        self.provider = provider


class RateLimitedError(ProviderRequestError):
    pass


class StructuredDecodingError(ConduitError):
    def __init__(self, message: str, text: str, original_exc: Optional[BaseException] = None) -> None:
        super().__init__(message, original_exc)
        self.text = text


# --- classification --------------------------------------------------------


API_ERRORS: Final[tuple[Type[BaseException], ...]] = (
    openai.APIError,
    anthropic.APIError,
    httpx.HTTPStatusError,
)

CONN_ERRORS: Final[tuple[Type[BaseException], ...]] = (
    openai.APIConnectionError,
    anthropic.APIConnectionError,
    httpx.TransportError,
    TimeoutError,
    ConnectionError,
)

RATE_LIMIT_ERRORS: Final[tuple[Type[BaseException], ...]] = (
    openai.RateLimitError,
    anthropic.RateLimitError,
)


def _status_code(exc: BaseException) -> Any:
    status = getattr(exc, "status_code", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    return status


def classify_error(
    exc: BaseException,
    provider: str = "",
    logger: Optional[logging.Logger] = None,
) -> ConduitError:
    """Wrap an SDK exception in a `ProviderRequestError` with a friendly, concise message.

    Errors that are already a `ConduitError` are returned unchanged.
    """
    if isinstance(exc, ConduitError):
        return exc

    log = logger or logging.getLogger("llm_conduit.errors")

    if isinstance(exc, RATE_LIMIT_ERRORS) or _status_code(exc) == 429:
        log.warning("Wrapping provider exception", extra={"exc": exc})
        return RateLimitedError(
            f"Rate-limit exceeded - please retry later: {exc}", exc, provider=provider
        )

    if isinstance(exc, CONN_ERRORS):
        msg = "Connection problem - unable to reach the LLM provider"
    elif isinstance(exc, API_ERRORS):
        msg = f"Provider reported an error ({_status_code(exc) or 'unknown'})"
    else:
        msg = exc.__class__.__name__

    log.warning("Wrapping provider exception", extra={"exc": exc})
    return ProviderRequestError(f"{msg}: {exc}", exc, provider=provider)
