"""Response value objects shared by every capability."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence

from llm_conduit.types.messages import Message, SystemMessage
from llm_conduit.types.tool import ToolCall, ToolResult

if TYPE_CHECKING:
    from llm_conduit.requests import RerankRequest

__all__ = [
    "FinishReason",
    "Usage",
    "Meta",
    "Step",
    "TextResponse",
    "ChunkType",
    "Chunk",
    "StructuredResponse",
    "Embedding",
    "EmbeddingsUsage",
    "EmbeddingsResponse",
    "Rerank",
    "RerankUsage",
    "RerankResponse",
]


class FinishReason(StrEnum):
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"
    ERROR = "error"
    OTHER = "other"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
        )

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass(frozen=True)
class Meta:
    id: str = ""
    model: str = ""


@dataclass(frozen=True)
class Step:
    """One model turn, plus the results of any tools it asked for."""

    text: str = ""
    finish_reason: FinishReason = FinishReason.UNKNOWN
    tool_calls: tuple[ToolCall, ...] = ()
    tool_results: tuple[ToolResult, ...] = ()
    usage: Usage = field(default_factory=Usage)
    meta: Meta = field(default_factory=Meta)
    messages: tuple[Message, ...] = ()
    system_prompts: tuple[SystemMessage, ...] = ()
    additional_content: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TextResponse:
    text: str
    finish_reason: FinishReason
    tool_calls: tuple[ToolCall, ...]
    tool_results: tuple[ToolResult, ...]
    steps: tuple[Step, ...]
    messages: tuple[Message, ...]
    usage: Usage
    meta: Meta

    @classmethod
    def from_steps(cls, steps: Sequence[Step], messages: Sequence[Message]) -> "TextResponse":
        if not steps:
            raise ValueError("A text response needs at least one step")
        last = steps[-1]
        usage = Usage()
        for step in steps:
            usage = usage + step.usage
        return cls(
            text=last.text,
            finish_reason=last.finish_reason,
            tool_calls=last.tool_calls,
            tool_results=last.tool_results,
            steps=tuple(steps),
            messages=tuple(messages),
            usage=usage,
            meta=last.meta,
        )


class ChunkType(StrEnum):
    TEXT = "text"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    META = "meta"


@dataclass(frozen=True)
class Chunk:
    """One piece of a streamed response."""

    text: str = ""
    finish_reason: Optional[FinishReason] = None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_results: tuple[ToolResult, ...] = ()
    chunk_type: ChunkType = ChunkType.TEXT
    meta: Optional[Meta] = None
    usage: Optional[Usage] = None


@dataclass(frozen=True)
class StructuredResponse:
    text: str
    structured: Any
    parsed: Any = None
    finish_reason: FinishReason = FinishReason.UNKNOWN
    usage: Usage = field(default_factory=Usage)
    meta: Meta = field(default_factory=Meta)


@dataclass(frozen=True)
class Embedding:
    embedding: list[float]


@dataclass(frozen=True)
class EmbeddingsUsage:
    tokens: Optional[int] = None


@dataclass(frozen=True)
class EmbeddingsResponse:
    embeddings: list[Embedding]
    usage: EmbeddingsUsage = field(default_factory=EmbeddingsUsage)
    meta: Meta = field(default_factory=Meta)


@dataclass(frozen=True)
class Rerank:
    score: float
    index: int
    document: str

    @classmethod
    def from_dict(cls, item: Mapping[str, Any], request: "RerankRequest") -> "Rerank":
        """
        Build from a provider item carrying ``index`` and ``relevance_score``.

        The document text is looked up in the request's own document list;
        a ``document`` field in the payload is only used if the index does
        not resolve.

        Raises:
            ValueError: The item lacks ``index`` or ``relevance_score``, or
                its index matches no document.
        """
        if "index" not in item or "relevance_score" not in item:
            raise ValueError(f"Rerank item needs index and relevance_score, got {dict(item)}")
        index = int(item["index"])
        if 0 <= index < len(request.documents):
            document = request.documents[index]
        elif "document" in item:
            document = item["document"]
        else:
            raise ValueError(
                f"Rerank item references document index {index} but only "
                f"{len(request.documents)} document(s) were sent"
            )
        return cls(score=float(item["relevance_score"]), index=index, document=document)


@dataclass(frozen=True)
class RerankUsage:
    tokens: Optional[int] = None


@dataclass(frozen=True)
class RerankResponse:
    reranks: list[Rerank]
    usage: RerankUsage = field(default_factory=RerankUsage)
    meta: Meta = field(default_factory=Meta)
