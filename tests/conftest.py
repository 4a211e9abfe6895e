"""Shared fixtures: a scripted provider and a recording telemetry observer."""

from typing import Any, AsyncIterator, Sequence

import pytest

from llm_conduit.events import Telemetry, TelemetryEvent
from llm_conduit.providers.base import BaseProvider
from llm_conduit.registry import ProviderRegistry
from llm_conduit.requests import (
    EmbeddingsRequest,
    RerankRequest,
    StructuredRequest,
    TextRequest,
)
from llm_conduit.types.response import (
    Chunk,
    Embedding,
    EmbeddingsResponse,
    Rerank,
    RerankResponse,
    Step,
    StructuredResponse,
)


class FakeProvider(BaseProvider):
    """Replays scripted steps and records every request it receives."""

    def __init__(
        self,
        steps: Sequence[Step] = (),
        streams: Sequence[Sequence[Chunk]] = (),
        structured: Any = None,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("name", "fake")
        super().__init__(**kwargs)
        self.steps = list(steps)
        self.streams = [list(s) for s in streams]
        self.structured_payload = structured
        self.requests: list[Any] = []
        self.stream_closed = False

    async def text(self, request: TextRequest) -> Step:
        self.requests.append(request)
        return self.steps.pop(0)

    async def structured(self, request: StructuredRequest) -> StructuredResponse:
        self.requests.append(request)
        return StructuredResponse(text=str(self.structured_payload), structured=self.structured_payload)

    async def embeddings(self, request: EmbeddingsRequest) -> EmbeddingsResponse:
        self.requests.append(request)
        return EmbeddingsResponse(
            embeddings=[Embedding(embedding=[float(len(text))]) for text in request.inputs]
        )

    async def rerank(self, request: RerankRequest) -> RerankResponse:
        self.requests.append(request)
        # score by word overlap with the query
        words = set(request.query.split())
        items = [
            {"index": i, "relevance_score": float(len(words & set(doc.split())))}
            for i, doc in enumerate(request.documents)
        ]
        items.sort(key=lambda item: item["relevance_score"], reverse=True)
        return RerankResponse(reranks=[Rerank.from_dict(item, request) for item in items])

    async def stream(self, request: TextRequest) -> AsyncIterator[Chunk]:
        self.requests.append(request)
        try:
            for chunk in self.streams.pop(0):
                yield chunk
        finally:
            self.stream_closed = True


class RerankOnlyProvider(BaseProvider):
    async def rerank(self, request: RerankRequest) -> RerankResponse:
        return RerankResponse(reranks=[])


@pytest.fixture
def events() -> list[TelemetryEvent]:
    return []


@pytest.fixture
def telemetry(events: list[TelemetryEvent]) -> Telemetry:
    return Telemetry([events.append])


@pytest.fixture
def registry(telemetry: Telemetry) -> ProviderRegistry:
    return ProviderRegistry(telemetry=telemetry)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()
