from __future__ import annotations

from typing import Any, Optional, Self, Sequence

from llm_conduit.errors import ConfigurationError, MissingRequiredFieldError
from llm_conduit.pending.base import BasePendingRequest
from llm_conduit.requests import RerankRequest
from llm_conduit.types.response import RerankResponse

__all__ = ["PendingRerankRequest"]


class PendingRerankRequest(BasePendingRequest):
    """
    Builder for reranking documents against a query.

    Example::

        response = await (
            PendingRerankRequest()
            .using("voyageai", "rerank-2")
            .with_query("find cats")
            .with_documents(["dogs bark", "cats purr"])
            .as_rerank()
        )
        response.reranks[0].document  # "cats purr"
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._query: str = ""
        self._documents: list[str] = []
        self._top_k: Optional[int] = None

    def with_query(self, query: str) -> Self:
        self._query = query
        return self

    def with_documents(self, documents: Sequence[str]) -> Self:
        self._documents = list(documents)
        return self

    def with_top_k(self, top_k: int) -> Self:
        if not isinstance(top_k, int) or isinstance(top_k, bool) or top_k < 1:
            raise ConfigurationError("top_k must be a positive integer")
        self._top_k = top_k
        return self

    def to_request(self) -> RerankRequest:
        return RerankRequest(
            **self._common_fields(),
            query=self._query,
            documents=tuple(self._documents),
            top_k=self._top_k,
        )

    def _validate(self, request: RerankRequest) -> None:
        # query is checked before documents
        if not request.query:
            raise MissingRequiredFieldError("query", "Query is required for reranking")
        if not request.documents:
            raise MissingRequiredFieldError(
                "documents", "At least one document is required for reranking"
            )

    async def as_rerank(self) -> RerankResponse:
        request = self.to_request()
        self._validate(request)
        provider = self._require_provider()

        with self._span(request) as completed:
            response = await provider.rerank(request)
            completed["response"] = response
        return response
