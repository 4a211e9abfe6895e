from .messages import (
    AssistantMessage,
    Content,
    Image,
    Message,
    SystemMessage,
    Text,
    ToolResultMessage,
    UserMessage,
)
from .response import (
    Chunk,
    ChunkType,
    Embedding,
    EmbeddingsResponse,
    EmbeddingsUsage,
    FinishReason,
    Meta,
    Rerank,
    RerankResponse,
    RerankUsage,
    Step,
    StructuredResponse,
    TextResponse,
    Usage,
)
from .tool import ToolCall, ToolChoice, ToolResult

__all__ = [
    "AssistantMessage",
    "Content",
    "Image",
    "Message",
    "SystemMessage",
    "Text",
    "ToolResultMessage",
    "UserMessage",
    "Chunk",
    "ChunkType",
    "Embedding",
    "EmbeddingsResponse",
    "EmbeddingsUsage",
    "FinishReason",
    "Meta",
    "Rerank",
    "RerankResponse",
    "RerankUsage",
    "Step",
    "StructuredResponse",
    "TextResponse",
    "Usage",
    "ToolCall",
    "ToolChoice",
    "ToolResult",
]
