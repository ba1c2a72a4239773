"""
Test configuration and fixtures.
"""

from typing import Any, AsyncIterator, Optional

import pytest

from kbchat.exceptions import EmbeddingFailure
from kbchat.providers.base import LLMProvider
from kbchat.rag import (
    BaseEmbedding,
    BaseSearchHook,
    BaseVectorStore,
    Document,
    SearchResult,
    SearchEventContext,
    TextFilter,
)


def hits(*pairs: tuple[str, float]) -> list[SearchResult]:
    """Build search results from (id, score) pairs."""
    return [
        SearchResult(id=id, score=score, content=f"content {id}")
        for id, score in pairs
    ]


class StubEmbedding(BaseEmbedding):
    """Embedding returning a fixed vector and counting calls."""

    def __init__(self, vector: Optional[list[float]] = None, error: Optional[Exception] = None):
        self.vector = vector or [0.1, 0.2, 0.3]
        self.error = error
        self.calls: list[str] = []

    @property
    def dimension(self) -> int:
        return len(self.vector)

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error:
            raise self.error
        return list(self.vector)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(text) for text in texts]


class StubVectorStore(BaseVectorStore):
    """Store answering vector and text-filtered queries with canned hits."""

    def __init__(
        self,
        vector_results: Optional[list[SearchResult]] = None,
        text_results: Optional[list[SearchResult]] = None,
        vector_error: Optional[Exception] = None,
        text_error: Optional[Exception] = None,
    ):
        self.vector_results = vector_results or []
        self.text_results = text_results or []
        self.vector_error = vector_error
        self.text_error = text_error
        self.queries: list[dict[str, Any]] = []
        self.closed = False

    async def ensure_collection(self, name, dimension, distance="cosine") -> bool:
        return False

    async def query(self, name, vector, limit=10, filter: Optional[TextFilter] = None):
        self.queries.append({"name": name, "vector": vector, "limit": limit, "filter": filter})
        if filter is None:
            if self.vector_error:
                raise self.vector_error
            return list(self.vector_results[:limit])
        if self.text_error:
            raise self.text_error
        return list(self.text_results[:limit])

    async def upsert(self, name, id, vector, payload) -> None:
        pass

    async def delete(self, name, id) -> None:
        pass

    async def scroll(self, name, limit=100, offset=0) -> list[Document]:
        return []

    async def list_collections(self) -> list[str]:
        return ["knowledge-base"]

    async def close(self) -> None:
        self.closed = True


class RecordingHook(BaseSearchHook):
    """Hook collecting every event it receives."""

    def __init__(self):
        self.received: list[SearchEventContext] = []

    async def handle(self, context: SearchEventContext) -> None:
        self.received.append(context)


class FakeLLM(LLMProvider):
    """LLM streaming canned tokens."""

    def __init__(self, tokens: Optional[list[str]] = None, error: Optional[Exception] = None):
        self.tokens = tokens if tokens is not None else ["Hello", " world"]
        self.error = error
        self.messages: list[list[dict[str, Any]]] = []
        self.stream_closed = False
        self.closed = False

    async def complete(self, messages, *, model="fake", temperature=0.7, max_tokens=2000, **kwargs) -> str:
        self.messages.append(messages)
        return "".join(self.tokens)

    async def stream(self, messages, *, model="fake", temperature=0.7, max_tokens=2000, **kwargs) -> AsyncIterator[str]:
        self.messages.append(messages)
        try:
            for token in self.tokens:
                yield token
            if self.error:
                raise self.error
        finally:
            self.stream_closed = True

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def embedding_failure():
    return EmbeddingFailure("provider rejected input")
