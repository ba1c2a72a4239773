"""Hybrid retrieval: vector search fused with a text-filtered search."""

import asyncio
import logging
from typing import Optional

from kbchat.exceptions import StoreError

from .base import BaseEmbedding, BaseRetriever, BaseVectorStore
from .document import SearchResult, TextFilter
from .hooks import BaseSearchHook, LoggingSearchHook, SearchEvent, SearchEventContext, emit

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
TEXT_WEIGHT = 0.8


def fuse_results(
    vector_results: list[SearchResult],
    text_results: list[SearchResult],
    limit: int = DEFAULT_LIMIT,
    text_weight: float = TEXT_WEIGHT,
) -> list[SearchResult]:
    """Merge vector and text hits into one ranked, deduplicated list.

    Vector hits are taken as-is. A text hit is only added when its id was not
    already seen, with its score multiplied by ``text_weight``. The merged
    list is sorted by descending score (stable, so ties keep insertion order)
    and cut to ``limit``. Discounted text hits may push weaker vector hits
    out of the result.

    Args:
        vector_results: Hits from the unfiltered vector query
        text_results: Hits from the text-filtered query
        limit: Maximum number of results
        text_weight: Multiplier applied to text-only hits

    Returns:
        At most ``limit`` results, best first
    """
    merged: dict[str, SearchResult] = {}

    for result in vector_results:
        if result.id not in merged:
            merged[result.id] = result

    for result in text_results:
        if result.id not in merged:
            merged[result.id] = result.model_copy(update={"score": result.score * text_weight})

    ranked = sorted(merged.values(), key=lambda r: r.score, reverse=True)
    return ranked[:limit]


class HybridRetriever(BaseRetriever):
    """Hybrid retriever combining vector and text-filtered search.

    Both channels run a vector query with the same query embedding; the
    text channel additionally restricts candidates to documents whose
    content contains the query text. Results are fused with
    :func:`fuse_results`.

    A failure of the text channel is not fatal: the search falls back to
    the vector results alone. Embedding failures and vector channel
    failures propagate to the caller.

    Example:
        ```python
        retriever = HybridRetriever(
            embedding=OpenAIEmbedding(),
            vectorstore=QdrantVectorStore(),
            collection="knowledge-base",
        )
        results = await retriever.retrieve("What is Qdrant?", limit=5)
        ```
    """

    def __init__(
        self,
        embedding: BaseEmbedding,
        vectorstore: BaseVectorStore,
        collection: str = "knowledge-base",
        text_weight: float = TEXT_WEIGHT,
        hooks: Optional[list[BaseSearchHook]] = None,
        concurrent: bool = False,
    ):
        """Initialize the hybrid retriever.

        Args:
            embedding: Embedding model for queries
            vectorstore: Vector store to search
            collection: Collection name
            text_weight: Score multiplier for text-only hits
            hooks: Search hooks (default: a single LoggingSearchHook)
            concurrent: Issue the two store queries concurrently
        """
        self.embedding = embedding
        self.vectorstore = vectorstore
        self.collection = collection
        self.text_weight = text_weight
        self.hooks = hooks if hooks is not None else [LoggingSearchHook()]
        self.concurrent = concurrent

    async def _emit(self, event: SearchEvent, query: str, limit: int, **kwargs) -> None:
        await emit(self.hooks, SearchEventContext(event=event, query=query, limit=limit, **kwargs))

    async def _text_query(self, query: str, query_vector: list[float], limit: int) -> list[SearchResult]:
        return await self.vectorstore.query(
            self.collection,
            query_vector,
            limit,
            filter=TextFilter(text=query),
        )

    async def _query_channels(
        self,
        query: str,
        query_vector: list[float],
        limit: int,
    ) -> tuple[list[SearchResult], list[SearchResult] | StoreError]:
        if self.concurrent:
            vector_results, text_results = await asyncio.gather(
                self.vectorstore.query(self.collection, query_vector, limit),
                self._text_query(query, query_vector, limit),
                return_exceptions=True,
            )
            if isinstance(vector_results, BaseException):
                raise vector_results
            if isinstance(text_results, BaseException) and not isinstance(text_results, StoreError):
                raise text_results
            return vector_results, text_results

        vector_results = await self.vectorstore.query(self.collection, query_vector, limit)
        try:
            text_results = await self._text_query(query, query_vector, limit)
        except StoreError as e:
            return vector_results, e
        return vector_results, text_results

    async def retrieve(
        self,
        query: str,
        limit: int = DEFAULT_LIMIT,
    ) -> list[SearchResult]:
        """Retrieve documents using hybrid search.

        Args:
            query: Query string, passed to the embedding provider unchanged
            limit: Maximum number of results (positive)

        Returns:
            Ranked list of at most ``limit`` unique results

        Raises:
            ValueError: If limit is not a positive integer
            EmbeddingFailure: If the query cannot be embedded
            StoreError: If the vector query fails
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValueError(f"limit must be a positive integer, got {limit!r}")

        await self._emit(SearchEvent.QUERY_ISSUED, query, limit)

        query_vector = await self.embedding.embed(query)

        vector_results, text_results = await self._query_channels(query, query_vector, limit)
        await self._emit(
            SearchEvent.CHANNEL_RESULTS, query, limit,
            channel="vector", result_count=len(vector_results),
        )

        if isinstance(text_results, StoreError):
            logger.warning(f"Text search failed, using vector results only: {text_results}")
            await self._emit(
                SearchEvent.TEXT_CHANNEL_FAILED, query, limit,
                channel="text", error=text_results,
            )
            text_results = []
        else:
            await self._emit(
                SearchEvent.CHANNEL_RESULTS, query, limit,
                channel="text", result_count=len(text_results),
            )

        vector_ids = {r.id for r in vector_results}
        text_only = {r.id for r in text_results} - vector_ids

        results = fuse_results(vector_results, text_results, limit, self.text_weight)

        await self._emit(
            SearchEvent.FUSION_COMPLETE, query, limit,
            result_count=len(results),
            candidate_count=len(vector_ids | text_only),
            text_only_count=len(text_only),
        )
        return results
