from __future__ import annotations

import logging
from typing import Any, Callable, Optional, TypeVar

import httpx

from llm_conduit.events import Telemetry
from llm_conduit.http import build_http_client
from llm_conduit.providers.base import BaseProvider
from llm_conduit.requests import ClientRetry, EmbeddingsRequest, RerankRequest
from llm_conduit.types.response import (
    Embedding,
    EmbeddingsResponse,
    EmbeddingsUsage,
    Meta,
    Rerank,
    RerankResponse,
    RerankUsage,
)

__all__ = ["VoyageAIProvider"]

T = TypeVar("T")


class VoyageAIProvider(BaseProvider):
    """
    Voyage AI provider for embeddings and reranking.

    Voyage has no chat models, so ``text``, ``structured`` and ``stream``
    raise `UnsupportedProviderActionError`.
    """

    def __init__(
        self,
        api_key: str = "",
        url: Optional[str] = None,
        *,
        telemetry: Optional[Telemetry] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(url=url, telemetry=telemetry, logger=logger, name=name)
        self.api_key = api_key
        self._transport = transport

    def _client(self, client_options: dict[str, Any], client_retry: ClientRetry) -> httpx.AsyncClient:
        return build_http_client(
            base_url=self.url,
            token=self.api_key,
            client_options=client_options,
            client_retry=client_retry,
            telemetry=self.telemetry,
            transport=self._transport,
        )

    async def _post(
        self,
        path: str,
        payload: dict[str, Any],
        client_options: dict[str, Any],
        client_retry: ClientRetry,
        parse: Callable[[dict[str, Any]], T],
    ) -> T:
        """POST ``payload`` and hand the decoded body to ``parse``; errors from either are translated."""
        async with self._client(client_options, client_retry) as client:

            async def send() -> T:
                response = await client.post(path, json=payload)
                response.raise_for_status()
                return parse(response.json())

            return await self._call(send)

    async def embeddings(self, request: EmbeddingsRequest) -> EmbeddingsResponse:
        self._log(f"Embedding {len(request.inputs)} input(s) with {request.model}", logging.DEBUG)

        def parse(data: dict[str, Any]) -> EmbeddingsResponse:
            return EmbeddingsResponse(
                embeddings=[Embedding(embedding=list(item["embedding"])) for item in data.get("data", [])],
                usage=EmbeddingsUsage(tokens=(data.get("usage") or {}).get("total_tokens")),
                meta=Meta(model=data.get("model", request.model)),
            )

        return await self._post(
            "embeddings",
            {"input": list(request.inputs), "model": request.model, **request.provider_options},
            request.client_options,
            request.client_retry,
            parse,
        )

    async def rerank(self, request: RerankRequest) -> RerankResponse:
        self._log(f"Reranking {len(request.documents)} document(s) with {request.model}", logging.DEBUG)
        payload: dict[str, Any] = {
            "query": request.query,
            "documents": list(request.documents),
            "model": request.model,
        }
        if request.top_k is not None:
            payload["top_k"] = request.top_k
        for key, value in request.provider_options.items():
            payload.setdefault(key, value)

        def parse(data: dict[str, Any]) -> RerankResponse:
            return RerankResponse(
                reranks=[Rerank.from_dict(item, request) for item in data.get("data", [])],
                usage=RerankUsage(tokens=(data.get("usage") or {}).get("total_tokens")),
                meta=Meta(model=data.get("model", request.model)),
            )

        return await self._post("rerank", payload, request.client_options, request.client_retry, parse)
