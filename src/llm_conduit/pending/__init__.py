from .base import BasePendingRequest, PromptingPendingRequest, Renderable
from .embeddings import PendingEmbeddingsRequest
from .rerank import PendingRerankRequest
from .structured import PendingStructuredRequest
from .text import PendingTextRequest

__all__ = [
    "BasePendingRequest",
    "PromptingPendingRequest",
    "Renderable",
    "PendingTextRequest",
    "PendingStructuredRequest",
    "PendingEmbeddingsRequest",
    "PendingRerankRequest",
]
