"""Knowledge base service: ingestion, listing and hybrid search over one collection."""

import logging
import uuid
from typing import Any, Optional

from kbchat.exceptions import KnowledgeBaseError
from kbchat.rag.base import BaseEmbedding, BaseVectorStore
from kbchat.rag.document import Document, Metadata, SearchResult, payload_for, utc_timestamp
from kbchat.rag.embeddings import FakeEmbedding, LocalEmbedding, OpenAIEmbedding
from kbchat.rag.formatting import format_context
from kbchat.rag.hooks import BaseSearchHook
from kbchat.rag.retriever import DEFAULT_LIMIT, TEXT_WEIGHT, HybridRetriever
from kbchat.rag.vectorstore import ChromaVectorStore, MemoryVectorStore, QdrantVectorStore
from kbchat.utils.config import Settings

logger = logging.getLogger(__name__)


class KnowledgeBase:
    """A knowledge base backed by a single vector store collection.

    Owns the embedding and vector store clients it is given: ``close()``
    releases both. Call ``initialize()`` once at startup to create the
    collection.

    Example:
        ```python
        async with KnowledgeBase(OpenAIEmbedding(), QdrantVectorStore()) as kb:
            await kb.initialize()
            doc_id = await kb.add_document("Qdrant is a vector database.")
            results = await kb.search("vector database")
            context = kb.format_context(results)
        ```
    """

    def __init__(
        self,
        embedding: BaseEmbedding,
        vectorstore: BaseVectorStore,
        collection: str = "knowledge-base",
        distance: str = "cosine",
        text_weight: float = TEXT_WEIGHT,
        hooks: Optional[list[BaseSearchHook]] = None,
        concurrent_search: bool = False,
        store_url: Optional[str] = None,
    ):
        """Initialize the knowledge base.

        Args:
            embedding: Embedding model for documents and queries
            vectorstore: Vector store holding the collection
            collection: Collection name
            distance: Similarity metric used when creating the collection
            text_weight: Score multiplier for text-only search hits
            hooks: Search hooks passed to the retriever
            concurrent_search: Run the two search queries concurrently
            store_url: Store location reported by health()
        """
        self.embedding = embedding
        self.vectorstore = vectorstore
        self.collection = collection
        self.distance = distance
        self.store_url = store_url
        self.retriever = HybridRetriever(
            embedding,
            vectorstore,
            collection=collection,
            text_weight=text_weight,
            hooks=hooks,
            concurrent=concurrent_search,
        )

    async def initialize(self) -> bool:
        """Create the collection if needed.

        Returns:
            True if the collection was created

        Raises:
            DimensionMismatch: If the collection exists with another dimension
        """
        created = await self.vectorstore.ensure_collection(
            self.collection,
            self.embedding.dimension,
            self.distance,
        )
        logger.info(
            f"Collection '{self.collection}' {'created' if created else 'ready'} "
            f"(dim={self.embedding.dimension}, distance={self.distance})"
        )
        return created

    async def add_document(self, content: str, metadata: Optional[Metadata] = None) -> str:
        """Embed and store a piece of knowledge.

        Args:
            content: Text content
            metadata: Optional metadata

        Returns:
            The new document ID
        """
        if not content:
            raise ValueError("content must not be empty")

        doc_id = str(uuid.uuid4())
        vector = await self.embedding.embed(content)
        await self.vectorstore.upsert(
            self.collection,
            doc_id,
            vector,
            payload_for(content, metadata, utc_timestamp()),
        )

        logger.debug(f"Added document {doc_id}")
        return doc_id

    async def add_documents(self, items: list[tuple[str, Optional[Metadata]]]) -> list[str]:
        """Embed and store several pieces of knowledge with one embedding call.

        Args:
            items: (content, metadata) pairs

        Returns:
            The new document IDs, in input order
        """
        if any(not content for content, _ in items):
            raise ValueError("content must not be empty")
        if not items:
            return []

        vectors = await self.embedding.embed_batch([content for content, _ in items])
        timestamp = utc_timestamp()

        ids = []
        for (content, metadata), vector in zip(items, vectors):
            doc_id = str(uuid.uuid4())
            await self.vectorstore.upsert(
                self.collection,
                doc_id,
                vector,
                payload_for(content, metadata, timestamp),
            )
            ids.append(doc_id)

        logger.info(f"Added {len(ids)} documents to '{self.collection}'")
        return ids

    async def delete_document(self, doc_id: str) -> None:
        """Delete a document by ID."""
        await self.vectorstore.delete(self.collection, doc_id)
        logger.debug(f"Deleted document {doc_id}")

    async def list_documents(self, limit: int = 100, offset: int = 0) -> list[Document]:
        """List stored documents, paginated by offset."""
        return await self.vectorstore.scroll(self.collection, limit, offset)

    async def search(self, query: str, limit: int = DEFAULT_LIMIT) -> list[SearchResult]:
        """Run a hybrid search over the collection."""
        return await self.retriever.retrieve(query, limit)

    def format_context(self, results: list[SearchResult]) -> str:
        return format_context(results)

    async def health(self) -> dict[str, Any]:
        """Report the store connection state. Never raises for store errors."""
        info: dict[str, Any] = {
            "database": type(self.vectorstore).__name__.replace("VectorStore", ""),
            "url": self.store_url,
        }
        try:
            collections = await self.vectorstore.list_collections()
        except KnowledgeBaseError as e:
            logger.warning(f"Vector store health check failed: {e}")
            info.update(status="disconnected", collections=0, health="unhealthy")
        else:
            info.update(status="connected", collections=len(collections), health="healthy")
        return info

    async def close(self) -> None:
        """Close the store and embedding clients."""
        await self.vectorstore.close()
        close = getattr(self.embedding, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "KnowledgeBase":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def build_embedding(settings: Settings) -> BaseEmbedding:
    """Create the embedding model described by the settings."""
    if settings.embedding_model.startswith("local:"):
        return LocalEmbedding(model_name=settings.embedding_model.removeprefix("local:"))
    if settings.embedding_model == "fake":
        return FakeEmbedding(dimension=settings.embedding_dimension or 384)
    return OpenAIEmbedding(
        model=settings.embedding_model,
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        dimension=settings.embedding_dimension,
    )


def build_vectorstore(settings: Settings) -> BaseVectorStore:
    """Create the vector store described by the settings."""
    if settings.vector_store == "memory":
        return MemoryVectorStore()
    if settings.vector_store == "chroma":
        return ChromaVectorStore(persist_directory=settings.chroma_path)
    return QdrantVectorStore(url=settings.qdrant_url, api_key=settings.qdrant_api_key)


def build_knowledge_base(settings: Settings, hooks: Optional[list[BaseSearchHook]] = None) -> KnowledgeBase:
    """Create a knowledge base from settings."""
    store_url = {
        "qdrant": settings.qdrant_url,
        "chroma": settings.chroma_path,
    }.get(settings.vector_store)

    return KnowledgeBase(
        build_embedding(settings),
        build_vectorstore(settings),
        collection=settings.collection_name,
        distance=settings.distance,
        text_weight=settings.text_weight,
        hooks=hooks,
        concurrent_search=settings.concurrent_search,
        store_url=store_url,
    )
