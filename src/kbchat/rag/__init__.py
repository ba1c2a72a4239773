"""Retrieval components for kbchat.

This module provides:
- Document and search result data structures
- Embedding providers (OpenAI-compatible, local, fake)
- Vector stores (Qdrant, ChromaDB, memory)
- Hybrid retrieval with result fusion
- Search hooks for observability
- Prompt context formatting

Example:
    ```python
    from kbchat.rag import (
        HybridRetriever,
        OpenAIEmbedding,
        QdrantVectorStore,
        format_context,
    )

    embedding = OpenAIEmbedding()
    vectorstore = QdrantVectorStore(url="http://localhost:6333")
    await vectorstore.ensure_collection("knowledge-base", embedding.dimension)

    retriever = HybridRetriever(embedding, vectorstore, "knowledge-base")
    results = await retriever.retrieve("What is Qdrant?")
    context = format_context(results)
    ```
"""

# Data structures
from .document import Document, Metadata, SearchResult, TextFilter

# Base classes
from .base import (
    BaseEmbedding,
    BaseVectorStore,
    BaseRetriever,
)

# Embedding providers
from .embeddings import (
    FakeEmbedding,
    OpenAIEmbedding,
    LocalEmbedding,
)

# Vector stores
from .vectorstore import (
    MemoryVectorStore,
    QdrantVectorStore,
    ChromaVectorStore,
    cosine_similarity,
)

# Hooks
from .hooks import (
    SearchEvent,
    SearchEventContext,
    BaseSearchHook,
    LoggingSearchHook,
)

# Retrieval
from .retriever import (
    DEFAULT_LIMIT,
    TEXT_WEIGHT,
    HybridRetriever,
    fuse_results,
)

# Formatting
from .formatting import build_system_prompt, format_context

__all__ = [
    # Data structures
    "Document",
    "Metadata",
    "SearchResult",
    "TextFilter",
    # Base classes
    "BaseEmbedding",
    "BaseVectorStore",
    "BaseRetriever",
    # Embeddings
    "FakeEmbedding",
    "OpenAIEmbedding",
    "LocalEmbedding",
    # Vector stores
    "MemoryVectorStore",
    "QdrantVectorStore",
    "ChromaVectorStore",
    "cosine_similarity",
    # Hooks
    "SearchEvent",
    "SearchEventContext",
    "BaseSearchHook",
    "LoggingSearchHook",
    # Retrieval
    "DEFAULT_LIMIT",
    "TEXT_WEIGHT",
    "HybridRetriever",
    "fuse_results",
    # Formatting
    "build_system_prompt",
    "format_context",
]
