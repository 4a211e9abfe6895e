"""
Entry point that hands out pending requests sharing one registry and one
telemetry observer list.
"""

from __future__ import annotations

import logging
from typing import Optional

from llm_conduit.events import Observer, Telemetry
from llm_conduit.pending import (
    PendingEmbeddingsRequest,
    PendingRerankRequest,
    PendingStructuredRequest,
    PendingTextRequest,
)
from llm_conduit.registry import ProviderFactory, ProviderRegistry

__all__ = ["Conduit"]


class Conduit:
    """
    Usage::

        conduit = Conduit()
        conduit.subscribe(print)
        response = await conduit.text().using("anthropic", "claude-sonnet-4-0").with_prompt("Hi").as_text()
    """

    def __init__(
        self,
        registry: Optional[ProviderRegistry] = None,
        telemetry: Optional[Telemetry] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        if registry is not None:
            self.telemetry = telemetry or registry.telemetry
            self.registry = registry
        else:
            self.telemetry = telemetry or Telemetry()
            self.registry = ProviderRegistry(telemetry=self.telemetry, logger=self.logger)

    def _kwargs(self) -> dict:
        return {"registry": self.registry, "telemetry": self.telemetry, "logger": self.logger}

    def text(self) -> PendingTextRequest:
        return PendingTextRequest(**self._kwargs())

    def structured(self) -> PendingStructuredRequest:
        return PendingStructuredRequest(**self._kwargs())

    def embeddings(self) -> PendingEmbeddingsRequest:
        return PendingEmbeddingsRequest(**self._kwargs())

    def reranks(self) -> PendingRerankRequest:
        return PendingRerankRequest(**self._kwargs())

    def subscribe(self, observer: Observer) -> None:
        self.telemetry.subscribe(observer)

    def extend(self, key: str, factory: ProviderFactory) -> "Conduit":
        """Register a custom provider factory on the shared registry."""
        self.registry.extend(key, factory)
        return self
