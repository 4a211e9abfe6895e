from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Self, Sequence, Union

import httpx
from anthropic import AsyncAnthropic
from anthropic.types import Message as AnthropicMessage

from llm_conduit._json import parse_json, validate_json
from llm_conduit.config import DEFAULT_MAX_TOKENS, DEFAULT_TIMEOUT
from llm_conduit.events import Telemetry
from llm_conduit.http import build_http_client, retry_times
from llm_conduit.providers.base import BaseProvider
from llm_conduit.requests import StructuredRequest, TextRequest
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
    FinishReason,
    Meta,
    Step,
    StructuredResponse,
    Usage,
)
from llm_conduit.types.tool import ToolCall, ToolChoice

__all__ = ["AnthropicRequestAdapter", "AnthropicProvider"]

_STOP_REASONS: dict[str, FinishReason] = {
    "end_turn": FinishReason.STOP,
    "stop_sequence": FinishReason.STOP,
    "max_tokens": FinishReason.LENGTH,
    "tool_use": FinishReason.TOOL_CALLS,
    "refusal": FinishReason.CONTENT_FILTER,
}

_STRUCTURED_INSTRUCTION = (
    "Respond with only a JSON object, no prose and no markdown, "
    "that matches this JSON schema:\n{schema}"
)


class AnthropicRequestAdapter:
    """Adapter for converting core requests to Anthropic format and responses back."""

    def build_system(self, system_prompts: Sequence[SystemMessage]) -> list[dict[str, Any]]:
        return [{"type": "text", "text": prompt.content} for prompt in system_prompts]

    def build_messages(self, messages: Sequence[Message]) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        """
        Convert core messages to Anthropic's format.

        Returns the messages plus any system blocks found inline, since
        Anthropic takes the system prompt as a separate parameter.
        """
        anthropic_messages: list[dict[str, Any]] = []
        inline_system: list[dict[str, Any]] = []

        for msg in messages:
            if isinstance(msg, SystemMessage):
                inline_system.append({"type": "text", "text": msg.content})
            elif isinstance(msg, UserMessage):
                anthropic_messages.append({"role": "user", "content": self._user_content(msg)})
            elif isinstance(msg, AssistantMessage):
                blocks: list[dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for call in msg.tool_calls:
                    blocks.append(
                        {"type": "tool_use", "id": call.id, "name": call.name, "input": call.arguments}
                    )
                anthropic_messages.append({"role": "assistant", "content": blocks or msg.content})
            elif isinstance(msg, ToolResultMessage):
                # Anthropic mandates 'user' here
                anthropic_messages.append(
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "tool_result",
                                "tool_use_id": result.tool_call_id,
                                "content": result.content(),
                            }
                            for result in msg.tool_results
                        ],
                    }
                )

        return anthropic_messages, inline_system

    def _user_content(self, msg: UserMessage) -> Union[str, list[dict[str, Any]]]:
        if not msg.images():
            return msg.content
        blocks: list[dict[str, Any]] = []
        for part in msg.additional_content:
            if isinstance(part, Text):
                blocks.append({"type": "text", "text": part.text})
            elif isinstance(part, Image):
                if part.is_url():
                    source = {"type": "url", "url": part.url}
                else:
                    source = {
                        "type": "base64",
                        "media_type": part.mime_type or "image/png",
                        "data": part.base64,
                    }
                blocks.append({"type": "image", "source": source})
        return blocks

    def build_tools(self, tools: Sequence[Tool]) -> list[dict[str, Any]]:
        return [
            {
                "name": tool.name(),
                "description": tool.description(),
                "input_schema": tool.parameters_schema(),
            }
            for tool in tools
        ]

    def build_tool_choice(self, choice: Union[ToolChoice, str]) -> dict[str, Any]:
        if choice in (ToolChoice.AUTO, ToolChoice.ANY, ToolChoice.NONE):
            return {"type": str(choice)}
        return {"type": "tool", "name": str(choice)}

    def _base_params(
        self,
        request: Union[TextRequest, StructuredRequest],
        extra_system: Sequence[dict[str, Any]] = (),
    ) -> dict[str, Any]:
        messages, inline_system = self.build_messages(request.messages)
        system = [*self.build_system(request.system_prompts), *inline_system, *extra_system]

        params: dict[str, Any] = {
            "model": request.model,
            "messages": messages,
            # Anthropic requires max_tokens
            "max_tokens": request.max_tokens if request.max_tokens is not None else DEFAULT_MAX_TOKENS,
        }
        if system:
            params["system"] = system
        if request.temperature is not None:
            params["temperature"] = request.temperature
        if request.top_p is not None:
            params["top_p"] = request.top_p
        return params

    def build_params(self, request: TextRequest) -> dict[str, Any]:
        """Convert a TextRequest to messages.create keyword arguments."""
        params = self._base_params(request)
        if request.tools:
            params["tools"] = self.build_tools(request.tools)
        if request.tool_choice is not None:
            params["tool_choice"] = self.build_tool_choice(request.tool_choice)

        # Add any provider options (thinking, metadata, ...) without overriding
        for key, value in request.provider_options.items():
            params.setdefault(key, value)
        return params

    def build_structured_params(self, request: StructuredRequest) -> dict[str, Any]:
        instruction = _STRUCTURED_INSTRUCTION.format(schema=json.dumps(request.schema))
        params = self._base_params(request, [{"type": "text", "text": instruction}])
        for key, value in request.provider_options.items():
            params.setdefault(key, value)
        return params

    # --- responses --------------------------------------------------------

    def finish_reason(self, raw: Optional[str]) -> FinishReason:
        if raw is None:
            return FinishReason.UNKNOWN
        return _STOP_REASONS.get(raw, FinishReason.OTHER)

    def step_from(self, raw: AnthropicMessage) -> Step:
        """Convert an Anthropic message to one Step."""
        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []

        for block in raw.content or []:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall.from_raw(
                        block.id,
                        block.name,
                        dict(block.input) if hasattr(block.input, "items") else {},
                    )
                )

        usage = Usage()
        if raw.usage is not None:
            usage = Usage(
                prompt_tokens=raw.usage.input_tokens or 0,
                completion_tokens=raw.usage.output_tokens or 0,
            )

        return Step(
            text="".join(text_parts),
            finish_reason=self.finish_reason(raw.stop_reason),
            tool_calls=tuple(tool_calls),
            usage=usage,
            meta=Meta(id=raw.id, model=raw.model),
        )


class AnthropicProvider(BaseProvider):
    """
    Anthropic provider (async-only).

    Use ``AnthropicProvider.from_client`` when you already have an ``AsyncAnthropic`` instance.
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
        self._client: Optional[AsyncAnthropic] = None
        self._adapter = AnthropicRequestAdapter()

    @classmethod
    def from_client(
        cls,
        client: AsyncAnthropic,
        *,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> Self:
        """
        Wrap an existing ``AsyncAnthropic`` client.
        """
        if not isinstance(client, AsyncAnthropic):
            raise TypeError(
                f"AnthropicProvider.from_client expects AsyncAnthropic; got {type(client).__name__}"
            )

        self = cls(api_key=client.api_key or "", url=str(client.base_url), logger=logger, name=name)
        self._client = client
        return self

    @property
    def adapter(self) -> AnthropicRequestAdapter:
        return self._adapter

    @asynccontextmanager
    async def _open_client(
        self, client_options: dict[str, Any], client_retry: tuple[Any, ...]
    ) -> AsyncIterator[AsyncAnthropic]:
        if self._client is not None:
            yield self._client
            return

        options = dict(client_options)
        timeout = options.pop("timeout", DEFAULT_TIMEOUT)
        client = AsyncAnthropic(
            api_key=self.api_key,
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
            response: AnthropicMessage = await self._call(lambda: client.messages.create(**args))
        return self._adapter.step_from(response)

    async def structured(self, request: StructuredRequest) -> StructuredResponse:
        args = self._adapter.build_structured_params(request)
        self._log(f"Sending structured request to model {request.model}", logging.DEBUG)

        async with self._open_client(request.client_options, request.client_retry) as client:
            response: AnthropicMessage = await self._call(lambda: client.messages.create(**args))

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

    def stream(self, request: TextRequest) -> AsyncIterator[Chunk]:
        return self._guard_stream(self._stream(request))

    async def _stream(self, request: TextRequest) -> AsyncIterator[Chunk]:
        """Handle Anthropic-specific streaming with context manager."""
        args = self._adapter.build_params(request)
        self._log(f"Sending request to model {request.model} (Stream: True)", logging.DEBUG)

        async with self._open_client(request.client_options, request.client_retry) as client:
            async with client.messages.stream(**args) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield Chunk(text=text)
                final = await stream.get_final_message()

        step = self._adapter.step_from(final)
        if step.tool_calls:
            yield Chunk(tool_calls=step.tool_calls, chunk_type=ChunkType.TOOL_CALL)
        yield Chunk(
            finish_reason=step.finish_reason,
            chunk_type=ChunkType.META,
            meta=step.meta,
            usage=step.usage,
        )
