"""Base classes and abstract interfaces for retrieval components."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .document import Document, SearchResult, TextFilter


class BaseEmbedding(ABC):
    """Abstract base class for embedding models.

    Embedding models convert text into dense vector representations.
    Implementations raise EmbeddingFailure on any provider-side error.
    """

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector
        """
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed a list of texts.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors, in input order
        """
        pass

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the dimension of the embedding vectors."""
        pass


class BaseVectorStore(ABC):
    """Abstract base class for vector stores.

    A vector store holds named collections of points. Each point has an id,
    a vector and a payload of the form {content, metadata, timestamp}.
    Implementations raise StoreUnavailable when the backend cannot be
    reached and DimensionMismatch when a vector does not fit a collection.
    """

    @abstractmethod
    async def ensure_collection(
        self,
        name: str,
        dimension: int,
        distance: str = "cosine",
    ) -> bool:
        """Create the collection if it does not exist.

        Args:
            name: Collection name
            dimension: Vector dimension
            distance: Similarity metric

        Returns:
            True if the collection was created, False if it already existed

        Raises:
            DimensionMismatch: If the existing collection has another dimension
        """
        pass

    @abstractmethod
    async def query(
        self,
        name: str,
        vector: list[float],
        limit: int = 10,
        filter: Optional["TextFilter"] = None,
    ) -> list["SearchResult"]:
        """Search for the nearest points.

        Args:
            name: Collection name
            vector: Query vector
            limit: Maximum number of hits
            filter: Optional payload text filter narrowing the candidates

        Returns:
            Hits sorted by descending score
        """
        pass

    @abstractmethod
    async def upsert(
        self,
        name: str,
        id: str,
        vector: list[float],
        payload: dict[str, Any],
    ) -> None:
        """Insert or replace a single point."""
        pass

    @abstractmethod
    async def delete(self, name: str, id: str) -> None:
        """Delete a point by its ID."""
        pass

    @abstractmethod
    async def scroll(
        self,
        name: str,
        limit: int = 100,
        offset: int = 0,
    ) -> list["Document"]:
        """List stored documents.

        The offset is a plain position, not a stable cursor, so pages can
        shift under concurrent writes.
        """
        pass

    @abstractmethod
    async def list_collections(self) -> list[str]:
        """Return the names of all collections."""
        pass

    async def close(self) -> None:
        """Release the underlying client."""
        pass


class BaseRetriever(ABC):
    """Abstract base class for retrievers.

    Retrievers find relevant documents for a given query.
    """

    @abstractmethod
    async def retrieve(
        self,
        query: str,
        limit: int = 10,
    ) -> list["SearchResult"]:
        """Retrieve relevant documents for a query.

        Args:
            query: Query string
            limit: Maximum number of results

        Returns:
            List of search results
        """
        pass
