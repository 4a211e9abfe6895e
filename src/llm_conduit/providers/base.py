"""Base class for provider implementations."""
from __future__ import annotations

import logging
from abc import ABC
from contextlib import aclosing
from typing import AsyncGenerator, AsyncIterator, Awaitable, Callable, Optional, TypeVar

from llm_conduit.errors import ConduitError, UnsupportedProviderActionError, classify_error
from llm_conduit.events import Telemetry
from llm_conduit.requests import EmbeddingsRequest, RerankRequest, StructuredRequest, TextRequest
from llm_conduit.types.response import (
    Chunk,
    EmbeddingsResponse,
    RerankResponse,
    Step,
    StructuredResponse,
)

__all__ = ["BaseProvider"]

T = TypeVar("T")


class BaseProvider(ABC):
    """
    One LLM vendor integration. Every capability is a coroutine (``stream``
    is an async generator); a capability the vendor lacks raises
    `UnsupportedProviderActionError` instead of returning something empty.

    ``text`` performs exactly one model turn. Running tools and looping over
    steps is the caller's job (see `PendingTextRequest.as_text`).
    """

    def __init__(
        self,
        *,
        url: Optional[str] = None,
        telemetry: Optional[Telemetry] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        """
        Args:
            url: Base URL of the vendor API.
            telemetry: Receives HTTP events from clients this provider builds.
            logger: Optional logger instance. If None, a logger named after
                    this module will be used.
            name: Optional name for this component, used in logging and
                  errors. If None, defaults to the concrete class's name.
        """
        self.url = url
        self.telemetry = telemetry or Telemetry()
        self.logger = logger or logging.getLogger(__name__)
        self.name = name if name is not None else self.__class__.__name__

    async def text(self, request: TextRequest) -> Step:
        raise self._unsupported("text")

    async def structured(self, request: StructuredRequest) -> StructuredResponse:
        raise self._unsupported("structured")

    async def embeddings(self, request: EmbeddingsRequest) -> EmbeddingsResponse:
        raise self._unsupported("embeddings")

    async def rerank(self, request: RerankRequest) -> RerankResponse:
        raise self._unsupported("rerank")

    def stream(self, request: TextRequest) -> AsyncIterator[Chunk]:
        raise self._unsupported("stream")

    def _unsupported(self, action: str) -> UnsupportedProviderActionError:
        return UnsupportedProviderActionError(f"{self.__class__.__name__}.{action}", self.name)

    async def _call(self, make_call: Callable[[], Awaitable[T]]) -> T:
        """Await an SDK call, translating foreign exceptions into domain errors."""
        try:
            return await make_call()
        except ConduitError:
            raise
        except Exception as exc:
            raise classify_error(exc, self.name, self.logger) from exc

    async def _guard_stream(self, chunks: AsyncGenerator[T, None]) -> AsyncIterator[T]:
        """Translate errors raised mid-stream; closing this generator closes ``chunks``."""
        try:
            async with aclosing(chunks):
                async for chunk in chunks:
                    yield chunk
        except ConduitError:
            raise
        except Exception as exc:
            raise classify_error(exc, self.name, self.logger) from exc

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")
