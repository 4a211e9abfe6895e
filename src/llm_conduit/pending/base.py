"""
Shared machinery for the fluent pending-request builders.

Setters store their argument and return the builder; they only check the
shape of their own argument. Cross-field rules (prompt vs messages, required
fields) are enforced when the builder is finalized, so the order in which
setters are called never matters.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import (
    Any,
    Callable,
    Iterator,
    Mapping,
    Optional,
    Protocol,
    Self,
    Sequence,
    Union,
    runtime_checkable,
)

from llm_conduit.errors import ConfigurationError, MissingRequiredFieldError, MutuallyExclusiveInputError
from llm_conduit.events import Telemetry
from llm_conduit.providers.base import BaseProvider
from llm_conduit.registry import ProviderRegistry
from llm_conduit.requests import ClientRetry, _lookup
from llm_conduit.types.messages import Content, Message, SystemMessage, UserMessage

__all__ = ["Renderable", "BasePendingRequest", "PromptingPendingRequest"]


@runtime_checkable
class Renderable(Protocol):
    """Anything that renders to prompt text, such as a template view."""

    def render(self) -> str:
        ...


PromptSource = Union[str, Renderable]


def _render(source: PromptSource) -> str:
    if isinstance(source, str):
        return source
    return source.render()


def _is_non_negative_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


class BasePendingRequest:
    """Provider selection, client settings and provider options."""

    def __init__(
        self,
        *,
        registry: Optional[ProviderRegistry] = None,
        telemetry: Optional[Telemetry] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.telemetry = telemetry or (registry.telemetry if registry is not None else Telemetry())
        self._registry = registry or ProviderRegistry(telemetry=self.telemetry, logger=self.logger)

        self._provider_key: str = ""
        self._provider: Optional[BaseProvider] = None
        self._provider_config: dict[str, Any] = {}
        self._model: str = ""
        self._client_options: dict[str, Any] = {}
        self._client_retry: ClientRetry = ()
        self._provider_options: dict[str, Any] = {}

    # --- provider selection -------------------------------------------------

    def using(
        self,
        provider: Union[str, BaseProvider],
        model: str,
        config: Optional[Mapping[str, Any]] = None,
    ) -> Self:
        """
        Select the provider and model.

        *provider* is a registry key (``"openai"``, ``Provider.ANTHROPIC``, a
        custom key) or an already-built provider instance. Resolution builds
        the provider object but never touches the network.

        Raises:
            ProviderNotFoundError: *provider* is not a registered key.
        """
        self._model = model
        self._provider_config = dict(config or {})

        if isinstance(provider, BaseProvider):
            self._provider_key = provider.name
            self._provider = provider
        else:
            self._provider_key = str(provider)
            self._provider = self._registry.resolve(self._provider_key, self._provider_config)
        return self

    def using_provider_config(self, config: Mapping[str, Any]) -> Self:
        """Layer *config* over the current provider config and rebuild the provider."""
        if not self._provider_key or self._provider is None:
            raise MissingRequiredFieldError(
                "provider", "Call using() before using_provider_config()"
            )
        self._provider_config = {**self._provider_config, **dict(config)}
        self._provider = self._registry.resolve(self._provider_key, self._provider_config)
        return self

    # --- client / provider options ----------------------------------------

    def with_client_options(self, options: Mapping[str, Any]) -> Self:
        self._client_options = dict(options)
        return self

    def with_client_retry(
        self,
        times: Union[int, Sequence[int]],
        sleep_ms: Union[int, Callable[..., int]] = 0,
        when: Optional[Callable[..., bool]] = None,
        throw: bool = True,
    ) -> Self:
        """
        Configure client retries as ``(times, sleep_ms, when, throw)``.

        ``times`` may be a count or a list of per-attempt delays in ms.
        """
        if isinstance(times, (list, tuple)):
            if not all(_is_non_negative_int(t) for t in times):
                raise ConfigurationError("Retry delays must be non-negative integers")
            times = list(times)
        elif not _is_non_negative_int(times):
            raise ConfigurationError("Retry times must be a non-negative integer or a list of delays")

        if not (callable(sleep_ms) or _is_non_negative_int(sleep_ms)):
            raise ConfigurationError("Retry sleep must be a non-negative integer or a callable")
        if when is not None and not callable(when):
            raise ConfigurationError("Retry condition must be callable")
        if not isinstance(throw, bool):
            raise ConfigurationError("Retry throw flag must be a boolean")

        self._client_retry = (times, sleep_ms, when, throw)
        return self

    def with_provider_options(self, options: Mapping[str, Any]) -> Self:
        self._provider_options = dict(options)
        return self

    # --- accessors --------------------------------------------------------

    @property
    def model(self) -> str:
        return self._model

    @property
    def provider_key(self) -> str:
        return self._provider_key

    @property
    def provider_options(self) -> dict[str, Any]:
        return dict(self._provider_options)

    def provider(self) -> Optional[BaseProvider]:
        return self._provider

    def provider_option(self, path: Optional[str] = None, default: Any = None) -> Any:
        return _lookup(self._provider_options, path, default)

    # --- finalization helpers -------------------------------------------

    def _require_provider(self) -> BaseProvider:
        if self._provider is None:
            raise MissingRequiredFieldError("provider", "No provider selected; call using() first")
        return self._provider

    def _common_fields(self) -> dict[str, Any]:
        return {
            "model": self._model,
            "provider_key": self._provider_key,
            "client_options": dict(self._client_options),
            "client_retry": self._client_retry,
            "provider_options": dict(self._provider_options),
        }

    @contextmanager
    def _span(self, request: Any) -> Iterator[dict[str, Any]]:
        """Bracket a provider call with ProviderRequestStarted/Completed events."""
        with self.telemetry.span(self._provider_key, {"request": request}) as completed:
            yield completed


class PromptingPendingRequest(BasePendingRequest):
    """Adds prompt, system prompt, message and sampling setters."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._prompt: Optional[PromptSource] = None
        self._additional_content: tuple[Content, ...] = ()
        self._system_prompts: list[Union[PromptSource, SystemMessage]] = []
        self._messages: Optional[tuple[Message, ...]] = None
        self._max_tokens: Optional[int] = None
        self._temperature: Optional[float] = None
        self._top_p: Optional[float] = None

    def with_prompt(self, prompt: PromptSource, additional_content: Sequence[Content] = ()) -> Self:
        """Set a single user prompt, optionally with media (images) attached."""
        if not isinstance(prompt, (str, Renderable)):
            raise ConfigurationError("Prompt must be a string or have a render() method")
        self._prompt = prompt
        self._additional_content = tuple(additional_content)
        return self

    def with_system_prompt(self, prompt: Union[PromptSource, SystemMessage]) -> Self:
        self._system_prompts = [prompt]
        return self

    def with_system_prompts(self, prompts: Sequence[Union[PromptSource, SystemMessage]]) -> Self:
        self._system_prompts = list(prompts)
        return self

    def with_messages(self, messages: Sequence[Message]) -> Self:
        self._messages = tuple(messages)
        return self

    def with_max_tokens(self, max_tokens: int) -> Self:
        if not _is_non_negative_int(max_tokens) or max_tokens == 0:
            raise ConfigurationError("max_tokens must be a positive integer")
        self._max_tokens = max_tokens
        return self

    def using_temperature(self, temperature: float) -> Self:
        self._temperature = temperature
        return self

    def using_top_p(self, top_p: float) -> Self:
        self._top_p = top_p
        return self

    def _resolve_prompting(self) -> dict[str, Any]:
        """Render prompts, enforce prompt/messages exclusivity and build the message list."""
        if self._prompt is not None and self._messages is not None:
            raise MutuallyExclusiveInputError(("prompt", "messages"))

        system_prompts = tuple(
            p if isinstance(p, SystemMessage) else SystemMessage(_render(p))
            for p in self._system_prompts
        )

        prompt: Optional[str] = None
        messages: tuple[Message, ...] = self._messages or ()
        if self._prompt is not None:
            prompt = _render(self._prompt)
            messages = (UserMessage(prompt, self._additional_content),)

        return {
            "system_prompts": system_prompts,
            "prompt": prompt,
            "messages": messages,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "top_p": self._top_p,
        }
