"""
Provider-neutral dataclasses for client-side tool use.

They are intentionally minimal: everything provider-specific lives in adapters.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Optional

__all__ = ["ToolCall", "ToolResult", "ToolChoice"]

_logger = logging.getLogger(__name__)


class ToolChoice(StrEnum):
    AUTO = "auto"
    ANY = "any"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A model-agnostic request emitted by the LLM to call a local tool."""
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    result_id: Optional[str] = None

    @classmethod
    def from_raw(
        cls,
        id: str,
        name: str,
        raw_arguments: Any,
        result_id: Optional[str] = None,
    ) -> "ToolCall":
        """Build a call from SDK output whose arguments may be a JSON string."""
        arguments: dict[str, Any] = {}
        if isinstance(raw_arguments, dict):
            arguments = dict(raw_arguments)
        elif isinstance(raw_arguments, str) and raw_arguments.strip():
            try:
                decoded = json.loads(raw_arguments)
            except json.JSONDecodeError as exc:
                _logger.warning(f"Bad JSON in tool call {name}: {raw_arguments}", exc_info=exc)
            else:
                if isinstance(decoded, dict):
                    arguments = decoded
                else:
                    _logger.warning(f"Tool call {name} arguments are not a JSON object: {raw_arguments}")
        return cls(id=id, name=name, arguments=arguments, result_id=result_id)


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Outcome of one tool call, sent back to the LLM on the next step."""
    tool_call_id: str           # matches ToolCall.id
    tool_call_result_id: Optional[str]
    tool_name: str
    args: dict[str, Any]
    result: Any

    def content(self) -> str:
        if isinstance(self.result, str):
            return self.result
        return json.dumps(self.result, default=str)
