from __future__ import annotations

from typing import Any, Self, Sequence

from llm_conduit.errors import MissingRequiredFieldError
from llm_conduit.pending.base import BasePendingRequest
from llm_conduit.requests import EmbeddingsRequest
from llm_conduit.types.response import EmbeddingsResponse

__all__ = ["PendingEmbeddingsRequest"]


class PendingEmbeddingsRequest(BasePendingRequest):
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._inputs: list[str] = []

    def from_input(self, text: str) -> Self:
        """Add one input; may be called repeatedly."""
        self._inputs.append(text)
        return self

    def from_inputs(self, texts: Sequence[str]) -> Self:
        self._inputs.extend(texts)
        return self

    def to_request(self) -> EmbeddingsRequest:
        inputs = tuple(text for text in self._inputs if text)
        if not inputs:
            raise MissingRequiredFieldError("inputs", "At least one input is required for embeddings")
        return EmbeddingsRequest(**self._common_fields(), inputs=inputs)

    async def as_embeddings(self) -> EmbeddingsResponse:
        request = self.to_request()
        provider = self._require_provider()

        with self._span(request) as completed:
            response = await provider.embeddings(request)
            completed["response"] = response
        return response
