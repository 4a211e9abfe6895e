from __future__ import annotations

import dataclasses
from contextlib import aclosing
from typing import Any, AsyncIterator, Self, Sequence, Union

from llm_conduit.config import DEFAULT_MAX_STEPS
from llm_conduit.dispatch import call_tools
from llm_conduit.errors import ConfigurationError
from llm_conduit.pending.base import PromptingPendingRequest
from llm_conduit.providers.base import BaseProvider
from llm_conduit.requests import TextRequest
from llm_conduit.tool import Tool
from llm_conduit.types.messages import AssistantMessage, Message, ToolResultMessage
from llm_conduit.types.response import Chunk, ChunkType, Step, TextResponse
from llm_conduit.types.tool import ToolCall, ToolChoice, ToolResult

__all__ = ["PendingTextRequest"]


class PendingTextRequest(PromptingPendingRequest):
    """
    Builder for text generation, with optional tool use.

    Example::

        response = await (
            PendingTextRequest()
            .using("openai", "gpt-4o-mini")
            .with_prompt("What's the weather in Paris?")
            .with_tools([weather])
            .with_max_steps(3)
            .as_text()
        )
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._tools: list[Tool] = []
        self._tool_choice: Union[ToolChoice, str, None] = None
        self._max_steps: int = DEFAULT_MAX_STEPS

    def with_tools(self, tools: Sequence[Tool]) -> Self:
        if not all(isinstance(tool, Tool) for tool in tools):
            raise ConfigurationError("with_tools() expects Tool instances")
        self._tools = list(tools)
        return self

    def with_tool_choice(self, choice: Union[ToolChoice, str]) -> Self:
        self._tool_choice = choice
        return self

    def with_max_steps(self, steps: int) -> Self:
        if not isinstance(steps, int) or isinstance(steps, bool) or steps < 1:
            raise ConfigurationError("max_steps must be a positive integer")
        self._max_steps = steps
        return self

    def to_request(self) -> TextRequest:
        """
        Snapshot the builder into an immutable `TextRequest`.

        Safe to call repeatedly; renderable prompts are rendered on each call.

        Raises:
            MutuallyExclusiveInputError: both a prompt and messages were set.
        """
        request = TextRequest(
            **self._common_fields(),
            **self._resolve_prompting(),
            tools=tuple(self._tools),
            tool_choice=self._tool_choice,
            max_steps=self._max_steps,
        )
        self.logger.debug(
            f"Built text request for {request.provider_key}/{request.model} "
            f"({len(request.messages)} message(s), {len(request.tools)} tool(s))"
        )
        return request

    # --- terminal operations ------------------------------------------------

    async def as_text(self) -> TextResponse:
        """
        Run the request, calling tools between steps until the model stops
        asking for them or ``max_steps`` turns have run.
        """
        request = self.to_request()
        provider = self._require_provider()

        with self._span(request) as completed:
            response = await self._run_steps(provider, request)
            completed["response"] = response
        return response

    async def _run_steps(self, provider: BaseProvider, request: TextRequest) -> TextResponse:
        steps: list[Step] = []
        messages: list[Message] = list(request.messages)

        while True:
            sent = tuple(messages)
            step = await provider.text(request.with_messages(sent))

            results: tuple[ToolResult, ...] = ()
            if step.tool_calls:
                results = await self._call_tools(request, step.tool_calls)

            steps.append(
                dataclasses.replace(
                    step,
                    tool_results=results,
                    messages=sent,
                    system_prompts=request.system_prompts,
                )
            )

            messages.append(AssistantMessage(step.text, step.tool_calls))
            if results:
                messages.append(ToolResultMessage(results))

            if not step.tool_calls or len(steps) >= request.max_steps:
                break

        return TextResponse.from_steps(steps, messages)

    def as_stream(self) -> AsyncIterator[Chunk]:
        """
        Stream the response as `Chunk` objects.

        The request is validated immediately; the provider is only contacted
        once iteration starts. After each batch of tool calls a
        ``ChunkType.TOOL_RESULT`` chunk carries the results.
        """
        request = self.to_request()
        provider = self._require_provider()
        return self._stream_steps(provider, request)

    async def _stream_steps(self, provider: BaseProvider, request: TextRequest) -> AsyncIterator[Chunk]:
        with self._span(request):
            messages: list[Message] = list(request.messages)
            step_count = 0

            while True:
                step_count += 1
                text_parts: list[str] = []
                tool_calls: list[ToolCall] = []

                async with aclosing(provider.stream(request.with_messages(messages))) as chunks:
                    async for chunk in chunks:
                        if chunk.chunk_type == ChunkType.TEXT:
                            text_parts.append(chunk.text)
                        elif chunk.chunk_type == ChunkType.TOOL_CALL:
                            tool_calls.extend(chunk.tool_calls)
                        yield chunk

                if not tool_calls:
                    return

                results = await self._call_tools(request, tool_calls)
                yield Chunk(tool_results=results, chunk_type=ChunkType.TOOL_RESULT)

                if step_count >= request.max_steps:
                    return

                messages.append(AssistantMessage("".join(text_parts), tuple(tool_calls)))
                messages.append(ToolResultMessage(results))

    async def _call_tools(
        self, request: TextRequest, tool_calls: Sequence[ToolCall]
    ) -> tuple[ToolResult, ...]:
        results = await call_tools(
            request.tools, tool_calls, telemetry=self.telemetry, logger=self.logger
        )
        return tuple(results)
