"""
Resolve provider keys ("openai", "anthropic", ...) to configured providers.

A registry is an ordinary object: create one, ``extend`` it with custom
factories, and hand it to the builders that should see them. There is no
process-wide instance.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from llm_conduit.config import Provider, provider_config
from llm_conduit.errors import ProviderNotFoundError
from llm_conduit.events import Telemetry
from llm_conduit.providers.anthropic import AnthropicProvider
from llm_conduit.providers.base import BaseProvider
from llm_conduit.providers.openai import OpenAIProvider
from llm_conduit.providers.voyageai import VoyageAIProvider

__all__ = ["ProviderFactory", "ProviderRegistry"]

# factory(config) -> provider; config holds at least "api_key" and "url"
ProviderFactory = Callable[[dict[str, Any]], BaseProvider]


class ProviderRegistry:
    """Maps provider keys to factories. Later ``extend`` calls win."""

    def __init__(
        self,
        telemetry: Optional[Telemetry] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.telemetry = telemetry or Telemetry()
        self.logger = logger or logging.getLogger(__name__)
        self._factories: dict[str, ProviderFactory] = {}

        self._factories[Provider.OPENAI] = self._openai_compatible(Provider.OPENAI)
        self._factories[Provider.GEMINI] = self._openai_compatible(Provider.GEMINI)
        self._factories[Provider.GROQ] = self._openai_compatible(Provider.GROQ)
        self._factories[Provider.ANTHROPIC] = lambda config: AnthropicProvider(
            api_key=config.get("api_key", ""),
            url=config.get("url"),
            telemetry=self.telemetry,
            logger=self.logger,
            name=Provider.ANTHROPIC,
        )
        self._factories[Provider.VOYAGEAI] = lambda config: VoyageAIProvider(
            api_key=config.get("api_key", ""),
            url=config.get("url"),
            telemetry=self.telemetry,
            logger=self.logger,
            name=Provider.VOYAGEAI,
        )

    def _openai_compatible(self, key: Provider) -> ProviderFactory:
        def factory(config: dict[str, Any]) -> BaseProvider:
            return OpenAIProvider(
                api_key=config.get("api_key", ""),
                url=config.get("url"),
                organization=config.get("organization"),
                telemetry=self.telemetry,
                logger=self.logger,
                name=key,
            )

        return factory

    def extend(self, key: str, factory: ProviderFactory) -> "ProviderRegistry":
        """Register (or replace) the factory for *key*."""
        self._factories[str(key)] = factory
        self.logger.debug(f"Registered provider factory for {key}")
        return self

    def providers(self) -> list[str]:
        return [str(key) for key in self._factories]

    def has(self, key: str) -> bool:
        return str(key) in self._factories

    def resolve(self, key: str, config: Optional[Mapping[str, Any]] = None) -> BaseProvider:
        """
        Build the provider for *key*.

        Inline *config* is layered over the persisted (environment) config.

        Raises:
            ProviderNotFoundError: no factory is registered under *key*.
        """
        key = str(key)
        factory = self._factories.get(key)
        if factory is None:
            raise ProviderNotFoundError(key)

        merged = {**provider_config(key), **dict(config or {})}
        return factory(merged)
