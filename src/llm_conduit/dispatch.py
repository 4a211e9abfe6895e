"""Resolve model-requested tool calls against registered tools and run them."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from llm_conduit.errors import (
    AmbiguousToolError,
    ConduitError,
    ToolCallError,
    ToolNotFoundError,
)
from llm_conduit.events import Telemetry, ToolCallStarted
from llm_conduit.tool import Tool
from llm_conduit.types.tool import ToolCall, ToolResult

__all__ = ["resolve_tool", "call_tools"]

_logger = logging.getLogger(__name__)


def resolve_tool(name: str, tools: Sequence[Tool]) -> Tool:
    """
    Return the one tool called *name*.

    Raises:
        ToolNotFoundError: no tool has that name.
        AmbiguousToolError: more than one tool has that name.
    """
    matches = [tool for tool in tools if tool.name() == name]
    if not matches:
        raise ToolNotFoundError(name)
    if len(matches) > 1:
        raise AmbiguousToolError(name)
    return matches[0]


async def call_tools(
    tools: Sequence[Tool],
    tool_calls: Sequence[ToolCall],
    *,
    telemetry: Optional[Telemetry] = None,
    logger: Optional[logging.Logger] = None,
) -> list[ToolResult]:
    """
    Run *tool_calls* one after another and return their results in call order.

    A failing call aborts the batch. Errors from this library propagate
    unchanged; anything else a handler raises is wrapped once in
    `ToolCallError`.
    """
    log = logger or _logger
    results: list[ToolResult] = []

    for tool_call in tool_calls:
        tool = resolve_tool(tool_call.name, tools)

        if telemetry is not None:
            telemetry.emit(
                ToolCallStarted(tool_name=tool_call.name, attributes={"tool_call": tool_call})
            )
        log.debug("Calling tool %s (%s)", tool_call.name, tool_call.id)

        try:
            result = await tool.handle(**tool_call.arguments)
        except ConduitError:
            raise
        except Exception as exc:
            log.warning("Tool %s failed: %s", tool_call.name, exc)
            raise ToolCallError(tool_call, exc) from exc

        results.append(
            ToolResult(
                tool_call_id=tool_call.id,
                tool_call_result_id=tool_call.result_id,
                tool_name=tool_call.name,
                args=dict(tool_call.arguments),
                result=result,
            )
        )

    return results
