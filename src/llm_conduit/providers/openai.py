from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Self, Sequence, Union

import httpx
from openai import AsyncOpenAI
from openai.types.chat import ChatCompletion, ChatCompletionChunk

from llm_conduit._json import parse_json, validate_json
from llm_conduit.config import DEFAULT_TIMEOUT
from llm_conduit.events import Telemetry
from llm_conduit.http import build_http_client, retry_times
from llm_conduit.providers.base import BaseProvider
from llm_conduit.requests import EmbeddingsRequest, StructuredRequest, TextRequest
from llm_conduit.tool import Tool
from llm_conduit.types.messages import (
    AssistantMessage,
    Image,
    Message,
    SystemMessage,
    Text,
    ToolResultMessage,
    UserMessage,
)
from llm_conduit.types.response import (
    Chunk,
    ChunkType,
    Embedding,
    EmbeddingsResponse,
    EmbeddingsUsage,
    FinishReason,
    Meta,
    Step,
    StructuredResponse,
    Usage,
)
from llm_conduit.types.tool import ToolCall, ToolChoice

__all__ = ["OpenAIRequestAdapter", "OpenAIProvider"]

_FINISH_REASONS: dict[str, FinishReason] = {
    "stop": FinishReason.STOP,
    "length": FinishReason.LENGTH,
    "tool_calls": FinishReason.TOOL_CALLS,
    "function_call": FinishReason.TOOL_CALLS,
    "content_filter": FinishReason.CONTENT_FILTER,
}

# provider options consumed by the adapter instead of being forwarded
_CONSUMED_OPTIONS = ("strict",)


class OpenAIRequestAdapter:
    """Adapter for converting core requests to OpenAI format and responses back."""

    def build_messages(
        self,
        system_prompts: Sequence[SystemMessage],
        messages: Sequence[Message],
    ) -> list[dict[str, Any]]:
        """Convert core messages to OpenAI's expected format."""
        openai_messages: list[dict[str, Any]] = [
            {"role": "system", "content": prompt.content} for prompt in system_prompts
        ]

        for msg in messages:
            if isinstance(msg, SystemMessage):
                openai_messages.append({"role": "system", "content": msg.content})
            elif isinstance(msg, UserMessage):
                openai_messages.append({"role": "user", "content": self._user_content(msg)})
            elif isinstance(msg, AssistantMessage):
                openai_msg: dict[str, Any] = {"role": "assistant", "content": msg.content}
                if msg.tool_calls:
                    openai_msg["tool_calls"] = [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.name,
                                "arguments": json.dumps(call.arguments),
                            },
                        }
                        for call in msg.tool_calls
                    ]
                    # OpenAI API: content should be null when tool_calls is present
                    if not msg.content:
                        openai_msg["content"] = None
                openai_messages.append(openai_msg)
            elif isinstance(msg, ToolResultMessage):
                for result in msg.tool_results:
                    openai_messages.append(
                        {
                            "role": "tool",
                            "tool_call_id": result.tool_call_id,
                            "content": result.content(),
                        }
                    )

        return openai_messages

    def _user_content(self, msg: UserMessage) -> Union[str, list[dict[str, Any]]]:
        if not msg.images():
            return msg.content
        parts: list[dict[str, Any]] = []
        for part in msg.additional_content:
            if isinstance(part, Text):
                parts.append({"type": "text", "text": part.text})
            elif isinstance(part, Image):
                parts.append({"type": "image_url", "image_url": {"url": part.data_url()}})
        return parts

    def build_tools(self, tools: Sequence[Tool]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name(),
                    "description": tool.description(),
                    "parameters": tool.parameters_schema(),
                },
            }
            for tool in tools
        ]

    def build_tool_choice(self, choice: Union[ToolChoice, str]) -> Union[str, dict[str, Any]]:
        if choice == ToolChoice.AUTO:
            return "auto"
        if choice == ToolChoice.ANY:
            return "required"
        if choice == ToolChoice.NONE:
            return "none"
        return {"type": "function", "function": {"name": str(choice)}}

    def build_params(self, request: TextRequest) -> dict[str, Any]:
        """Convert a TextRequest to chat.completions.create keyword arguments."""
        params: dict[str, Any] = {
            "model": request.model,
            "messages": self.build_messages(request.system_prompts, request.messages),
        }
        self._sampling(params, request)

        if request.tools:
            params["tools"] = self.build_tools(request.tools)
        if request.tool_choice is not None:
            params["tool_choice"] = self.build_tool_choice(request.tool_choice)

        self._extras(params, request.provider_options)
        return params

    def build_structured_params(self, request: StructuredRequest) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": request.model,
            "messages": self.build_messages(request.system_prompts, request.messages),
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": request.schema_name,
                    "schema": request.schema,
                    "strict": bool(request.provider_option("strict", True)),
                },
            },
        }
        self._sampling(params, request)
        self._extras(params, request.provider_options)
        return params

    def _sampling(self, params: dict[str, Any], request: Union[TextRequest, StructuredRequest]) -> None:
        if request.max_tokens is not None:
            # Models that require max_completion_tokens instead of max_tokens
            key = "max_completion_tokens" if self._requires_max_completion_tokens(request.model) else "max_tokens"
            params[key] = request.max_tokens
        if request.temperature is not None:
            params["temperature"] = request.temperature
        if request.top_p is not None:
            params["top_p"] = request.top_p

    def _extras(self, params: dict[str, Any], provider_options: dict[str, Any]) -> None:
        for k, v in provider_options.items():
            if k not in _CONSUMED_OPTIONS:
                params.setdefault(k, v)

    def _requires_max_completion_tokens(self, model: str) -> bool:
        """Check if model requires max_completion_tokens instead of max_tokens."""
        newer_models = ("gpt-5", "o1", "o3", "o4")
        return model.startswith(newer_models)

    # --- responses --------------------------------------------------------

    def finish_reason(self, raw: Optional[str]) -> FinishReason:
        if raw is None:
            return FinishReason.UNKNOWN
        return _FINISH_REASONS.get(raw, FinishReason.OTHER)

    def tool_calls_from(self, raw: ChatCompletion) -> tuple[ToolCall, ...]:
        if not raw.choices or not raw.choices[0].message.tool_calls:
            return ()
        calls = []
        for tc in raw.choices[0].message.tool_calls:
            function = getattr(tc, "function", None)
            if function is None:
                continue
            calls.append(ToolCall.from_raw(tc.id, function.name, function.arguments))
        return tuple(calls)

    def usage_from(self, raw: Any) -> Usage:
        usage = getattr(raw, "usage", None)
        if usage is None:
            return Usage()
        return Usage(
            prompt_tokens=usage.prompt_tokens or 0,
            completion_tokens=usage.completion_tokens or 0,
        )

    def step_from(self, raw: ChatCompletion) -> Step:
        """Convert an OpenAI completion to one Step."""
        text = ""
        finish = FinishReason.UNKNOWN
        if raw.choices:
            choice = raw.choices[0]
            text = choice.message.content or ""
            finish = self.finish_reason(choice.finish_reason)
        return Step(
            text=text,
            finish_reason=finish,
            tool_calls=self.tool_calls_from(raw),
            usage=self.usage_from(raw),
            meta=Meta(id=raw.id, model=raw.model),
        )


class _ToolCallAccumulator:
    """Reassembles tool calls whose fragments arrive across stream chunks."""

    def __init__(self) -> None:
        self._calls: dict[int, dict[str, str]] = {}

    def add(self, chunk: ChatCompletionChunk) -> None:
        if not chunk.choices or not chunk.choices[0].delta.tool_calls:
            return
        for delta in chunk.choices[0].delta.tool_calls:
            entry = self._calls.setdefault(delta.index, {"id": "", "name": "", "arguments": ""})
            if delta.id:
                entry["id"] = delta.id
            if delta.function is not None:
                if delta.function.name:
                    entry["name"] += delta.function.name
                if delta.function.arguments:
                    entry["arguments"] += delta.function.arguments

    def tool_calls(self) -> tuple[ToolCall, ...]:
        return tuple(
            ToolCall.from_raw(entry["id"], entry["name"], entry["arguments"])
            for _, entry in sorted(self._calls.items())
        )


class OpenAIProvider(BaseProvider):
    """
    OpenAI provider (async-only), also used for OpenAI-compatible endpoints
    such as Gemini and Groq.

    Use ``OpenAIProvider.from_client`` when you already have an ``AsyncOpenAI`` instance.
    """

    def __init__(
        self,
        api_key: str = "",
        url: Optional[str] = None,
        *,
        organization: Optional[str] = None,
        telemetry: Optional[Telemetry] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(url=url, telemetry=telemetry, logger=logger, name=name)
        self.api_key = api_key
        self.organization = organization
        self._transport = transport
        self._client: Optional[AsyncOpenAI] = None
        self._adapter = OpenAIRequestAdapter()

    # Alternate constructor
    @classmethod
    def from_client(
        cls,
        client: AsyncOpenAI,
        *,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> Self:
        """
        Build an ``OpenAIProvider`` around an already-configured ``AsyncOpenAI`` client.

        The client is used verbatim; per-request client options and retry
        settings are ignored.
        """
        if not isinstance(client, AsyncOpenAI):
            raise TypeError(
                f"OpenAIProvider.from_client expects AsyncOpenAI; got {type(client).__name__}"
            )

        self = cls(api_key=client.api_key, url=str(client.base_url), logger=logger, name=name)
        self._client = client
        return self

    @property
    def adapter(self) -> OpenAIRequestAdapter:
        return self._adapter

    @asynccontextmanager
    async def _open_client(
        self, client_options: dict[str, Any], client_retry: tuple[Any, ...]
    ) -> AsyncIterator[AsyncOpenAI]:
        if self._client is not None:  # use caller-supplied client verbatim
            yield self._client
            return

        options = dict(client_options)
        timeout = options.pop("timeout", DEFAULT_TIMEOUT)
        client = AsyncOpenAI(
            api_key=self.api_key,
            organization=self.organization,
            base_url=self.url,
            timeout=timeout,
            max_retries=retry_times(client_retry) if client_retry else 2,
            http_client=build_http_client(
                client_options=options,
                telemetry=self.telemetry,
                transport=self._transport,
            ),
        )
        try:
            yield client
        finally:
            await client.close()

    async def text(self, request: TextRequest) -> Step:
        args = self._adapter.build_params(request)
        self._log(f"Sending request to model {request.model} (Stream: False)", logging.DEBUG)

        async with self._open_client(request.client_options, request.client_retry) as client:
            response: ChatCompletion = await self._call(
                lambda: client.chat.completions.create(**args)
            )
        return self._adapter.step_from(response)

    async def structured(self, request: StructuredRequest) -> StructuredResponse:
        args = self._adapter.build_structured_params(request)
        self._log(f"Sending structured request to model {request.model}", logging.DEBUG)

        async with self._open_client(request.client_options, request.client_retry) as client:
            response: ChatCompletion = await self._call(
                lambda: client.chat.completions.create(**args)
            )

        step = self._adapter.step_from(response)
        structured = parse_json(step.text)
        validate_json(structured, request.schema, step.text)
        return StructuredResponse(
            text=step.text,
            structured=structured,
            finish_reason=step.finish_reason,
            usage=step.usage,
            meta=step.meta,
        )

    async def embeddings(self, request: EmbeddingsRequest) -> EmbeddingsResponse:
        self._log(f"Embedding {len(request.inputs)} input(s) with {request.model}", logging.DEBUG)

        async with self._open_client(request.client_options, request.client_retry) as client:
            response = await self._call(
                lambda: client.embeddings.create(
                    model=request.model,
                    input=list(request.inputs),
                    **request.provider_options,
                )
            )

        return EmbeddingsResponse(
            embeddings=[Embedding(embedding=list(item.embedding)) for item in response.data],
            usage=EmbeddingsUsage(tokens=response.usage.total_tokens if response.usage else None),
            meta=Meta(model=response.model),
        )

    def stream(self, request: TextRequest) -> AsyncIterator[Chunk]:
        return self._guard_stream(self._stream(request))

    async def _stream(self, request: TextRequest) -> AsyncIterator[Chunk]:
        args = {
            **self._adapter.build_params(request),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        self._log(f"Sending request to model {request.model} (Stream: True)", logging.DEBUG)

        accumulator = _ToolCallAccumulator()
        finish: Optional[FinishReason] = None
        usage: Optional[Usage] = None
        meta: Optional[Meta] = None

        async with self._open_client(request.client_options, request.client_retry) as client:
            raw_stream = await self._call(lambda: client.chat.completions.create(**args))
            async for raw_chunk in raw_stream:
                if meta is None and raw_chunk.id:
                    meta = Meta(id=raw_chunk.id, model=raw_chunk.model)
                if raw_chunk.usage is not None:
                    usage = self._adapter.usage_from(raw_chunk)
                if not raw_chunk.choices:
                    continue

                choice = raw_chunk.choices[0]
                accumulator.add(raw_chunk)
                if choice.finish_reason:
                    finish = self._adapter.finish_reason(choice.finish_reason)
                if choice.delta.content:
                    yield Chunk(text=choice.delta.content)

        tool_calls = accumulator.tool_calls()
        if tool_calls:
            yield Chunk(tool_calls=tool_calls, chunk_type=ChunkType.TOOL_CALL)
        yield Chunk(
            finish_reason=finish or FinishReason.UNKNOWN,
            chunk_type=ChunkType.META,
            meta=meta,
            usage=usage,
        )
