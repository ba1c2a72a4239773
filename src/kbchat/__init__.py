"""kbchat: a retrieval-augmented knowledge base chat backend."""

__version__ = "0.1.0"

from kbchat.chat import SSE_DONE, ChatService, sse_event
from kbchat.exceptions import (
    DimensionMismatch,
    EmbeddingFailure,
    KnowledgeBaseError,
    LLMError,
    StoreError,
    StoreUnavailable,
)
from kbchat.knowledge import KnowledgeBase, build_knowledge_base

__all__ = [
    "__version__",
    "ChatService",
    "KnowledgeBase",
    "build_knowledge_base",
    "sse_event",
    "SSE_DONE",
    "KnowledgeBaseError",
    "EmbeddingFailure",
    "StoreError",
    "StoreUnavailable",
    "DimensionMismatch",
    "LLMError",
]
