"""Vector store implementations."""

import asyncio
import json
import logging
import math
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Optional

from kbchat.exceptions import DimensionMismatch, StoreError, StoreUnavailable

from .base import BaseVectorStore
from .document import Document, SearchResult, TextFilter

logger = logging.getLogger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Calculate cosine similarity between two vectors."""
    if len(a) != len(b):
        raise ValueError("Vectors must have the same dimension")

    dot_product = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot_product / (norm_a * norm_b)


def _document_from_payload(id: Any, payload: Optional[dict[str, Any]]) -> Document:
    payload = payload or {}
    return Document(
        id=str(id),
        content=payload.get("content") or "",
        metadata=payload.get("metadata") or {},
        timestamp=payload.get("timestamp"),
    )


def _result_from_payload(id: Any, score: float, payload: Optional[dict[str, Any]]) -> SearchResult:
    payload = payload or {}
    return SearchResult(
        id=str(id),
        score=score,
        content=payload.get("content") or "",
        metadata=payload.get("metadata") or {},
    )


def _check_dimension(dimensions: dict[str, int], name: str, vector: list[float]) -> None:
    expected = dimensions.get(name)
    if expected is not None and len(vector) != expected:
        raise DimensionMismatch(expected, len(vector), collection=name)


@dataclass
class _MemoryCollection:
    dimension: int
    distance: str
    points: dict[str, tuple[list[float], dict[str, Any]]] = field(default_factory=dict)


class MemoryVectorStore(BaseVectorStore):
    """In-memory vector store for testing and small datasets.

    Stores all vectors in memory and performs exact similarity search.
    Not suitable for large-scale production use.
    """

    DISTANCES = ("cosine", "dot", "euclid")

    def __init__(self) -> None:
        self._collections: dict[str, _MemoryCollection] = {}

    def _get(self, name: str) -> _MemoryCollection:
        collection = self._collections.get(name)
        if collection is None:
            raise StoreError(f"Collection '{name}' not found", code="collection_not_found")
        return collection

    def _score(self, distance: str, a: list[float], b: list[float]) -> float:
        if distance == "dot":
            return sum(x * y for x, y in zip(a, b))
        if distance == "euclid":
            return -math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b)))
        return cosine_similarity(a, b)

    async def ensure_collection(
        self,
        name: str,
        dimension: int,
        distance: str = "cosine",
    ) -> bool:
        if distance not in self.DISTANCES:
            raise ValueError(f"Unsupported distance: {distance}")

        existing = self._collections.get(name)
        if existing is not None:
            if existing.dimension != dimension:
                raise DimensionMismatch(existing.dimension, dimension, collection=name)
            return False

        self._collections[name] = _MemoryCollection(dimension=dimension, distance=distance)
        logger.debug(f"Created memory collection '{name}' (dim={dimension}, distance={distance})")
        return True

    async def query(
        self,
        name: str,
        vector: list[float],
        limit: int = 10,
        filter: Optional[TextFilter] = None,
    ) -> list[SearchResult]:
        """Search for similar points using exact scoring."""
        collection = self._get(name)
        if len(vector) != collection.dimension:
            raise DimensionMismatch(collection.dimension, len(vector), collection=name)

        scored = []
        for id, (embedding, payload) in collection.points.items():
            if filter and not filter.matches(payload):
                continue
            scored.append((id, self._score(collection.distance, vector, embedding), payload))

        # Stable: equal scores keep insertion order
        scored.sort(key=lambda x: x[1], reverse=True)

        return [
            _result_from_payload(id, score, payload)
            for id, score, payload in scored[:limit]
        ]

    async def upsert(
        self,
        name: str,
        id: str,
        vector: list[float],
        payload: dict[str, Any],
    ) -> None:
        collection = self._get(name)
        if len(vector) != collection.dimension:
            raise DimensionMismatch(collection.dimension, len(vector), collection=name)
        collection.points[id] = (list(vector), dict(payload))

    async def delete(self, name: str, id: str) -> None:
        self._get(name).points.pop(id, None)

    async def scroll(
        self,
        name: str,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Document]:
        items = list(self._get(name).points.items())[offset : offset + limit]
        return [_document_from_payload(id, payload) for id, (_, payload) in items]

    async def list_collections(self) -> list[str]:
        return list(self._collections)

    async def count(self, name: str) -> int:
        """Return the number of points in a collection."""
        return len(self._get(name).points)


class QdrantVectorStore(BaseVectorStore):
    """Qdrant vector store implementation.

    Uses the async Qdrant client. The text filter is translated to a
    ``MatchText`` condition on the payload field, combined with the vector
    query so that only matching points are ranked.
    """

    DISTANCES = {
        "cosine": "Cosine",
        "dot": "Dot",
        "euclid": "Euclid",
        "manhattan": "Manhattan",
    }

    _DIMENSION_ERROR = re.compile(r"expected dim: (\d+), got (\d+)")

    def __init__(
        self,
        url: str = "http://localhost:6333",
        api_key: Optional[str] = None,
        client: Any = None,
        timeout: Optional[int] = None,
    ):
        """Initialize the Qdrant vector store.

        Args:
            url: Qdrant server URL
            api_key: Optional API key
            client: Pre-built AsyncQdrantClient
            timeout: Request timeout in seconds
        """
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        self._dimensions: dict[str, int] = {}

    def _get_client(self):
        """Get or create the Qdrant client."""
        if self._client is None:
            try:
                from qdrant_client import AsyncQdrantClient
            except ImportError:
                raise ImportError(
                    "Qdrant vector store requires 'qdrant-client'. "
                    "Install it with: pip install qdrant-client"
                )

            self._client = AsyncQdrantClient(
                url=self.url,
                api_key=self.api_key,
                timeout=self.timeout,
            )
        return self._client

    @contextmanager
    def _errors(self, name: Optional[str] = None):
        """Translate Qdrant client errors into store errors."""
        from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

        try:
            yield
        except ResponseHandlingException as e:
            raise StoreUnavailable(f"Qdrant at {self.url} is unreachable: {e}") from e
        except UnexpectedResponse as e:
            detail = e.content.decode(errors="replace") if e.content else str(e)
            match = self._DIMENSION_ERROR.search(detail)
            if match:
                raise DimensionMismatch(
                    int(match.group(1)), int(match.group(2)), collection=name
                ) from e
            raise StoreError(
                f"Qdrant request failed ({e.status_code}): {detail}",
                code="store_error",
            ) from e

    async def ensure_collection(
        self,
        name: str,
        dimension: int,
        distance: str = "cosine",
    ) -> bool:
        from qdrant_client import models

        if distance not in self.DISTANCES:
            raise ValueError(f"Unsupported distance: {distance}")

        client = self._get_client()

        with self._errors(name):
            exists = await client.collection_exists(collection_name=name)

            if exists:
                info = await client.get_collection(collection_name=name)
                vectors = info.config.params.vectors
                if isinstance(vectors, models.VectorParams) and vectors.size != dimension:
                    raise DimensionMismatch(vectors.size, dimension, collection=name)
                self._dimensions[name] = dimension
                logger.info(f"Collection '{name}' exists ({info.points_count or 0} points, status={info.status})")
                return False

            await client.create_collection(
                collection_name=name,
                vectors_config=models.VectorParams(
                    size=dimension,
                    distance=models.Distance(self.DISTANCES[distance]),
                ),
            )

        self._dimensions[name] = dimension
        logger.info(f"Created collection '{name}' (dim={dimension}, distance={distance})")
        return True

    async def query(
        self,
        name: str,
        vector: list[float],
        limit: int = 10,
        filter: Optional[TextFilter] = None,
    ) -> list[SearchResult]:
        """Search for similar points in Qdrant."""
        from qdrant_client import models

        _check_dimension(self._dimensions, name, vector)
        client = self._get_client()

        query_filter = None
        if filter is not None and filter.text:
            query_filter = models.Filter(
                should=[
                    models.FieldCondition(
                        key=filter.key,
                        match=models.MatchText(text=filter.text),
                    )
                ]
            )

        with self._errors(name):
            response = await client.query_points(
                collection_name=name,
                query=vector,
                limit=limit,
                query_filter=query_filter,
                with_payload=True,
            )

        return [
            _result_from_payload(point.id, point.score, point.payload)
            for point in response.points
        ]

    async def upsert(
        self,
        name: str,
        id: str,
        vector: list[float],
        payload: dict[str, Any],
    ) -> None:
        from qdrant_client import models

        _check_dimension(self._dimensions, name, vector)
        client = self._get_client()

        with self._errors(name):
            await client.upsert(
                collection_name=name,
                points=[models.PointStruct(id=id, vector=vector, payload=payload)],
                wait=True,
            )

    async def delete(self, name: str, id: str) -> None:
        from qdrant_client import models

        client = self._get_client()

        with self._errors(name):
            await client.delete(
                collection_name=name,
                points_selector=models.PointIdsList(points=[id]),
                wait=True,
            )

    async def scroll(
        self,
        name: str,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Document]:
        # Qdrant's scroll offset is a point id, so a positional offset is
        # served by reading the leading page and slicing it.
        client = self._get_client()

        with self._errors(name):
            points, _ = await client.scroll(
                collection_name=name,
                limit=offset + limit,
                with_payload=True,
                with_vectors=False,
            )

        return [_document_from_payload(point.id, point.payload) for point in points[offset:]]

    async def list_collections(self) -> list[str]:
        client = self._get_client()

        with self._errors():
            response = await client.get_collections()

        return [collection.name for collection in response.collections]

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class ChromaVectorStore(BaseVectorStore):
    """ChromaDB vector store implementation.

    Uses ChromaDB for persistent vector storage. The text filter is only
    supported on the ``content`` field, where it maps to ``$contains`` on
    the stored document.
    """

    DISTANCES = {
        "cosine": "cosine",
        "dot": "ip",
        "euclid": "l2",
    }

    def __init__(
        self,
        persist_directory: Optional[str] = None,
        host: Optional[str] = None,
        port: int = 8000,
        client: Any = None,
    ):
        """Initialize the ChromaDB vector store.

        Args:
            persist_directory: Directory for persistent storage (None for in-memory)
            host: Host of a Chroma server; takes precedence over persist_directory
            port: Port of the Chroma server
            client: Pre-built Chroma client
        """
        self.persist_directory = persist_directory
        self.host = host
        self.port = port
        self._client = client
        self._collections: dict[str, Any] = {}
        self._dimensions: dict[str, int] = {}

    def _get_client(self):
        """Get or create the ChromaDB client."""
        if self._client is None:
            try:
                import chromadb
            except ImportError:
                raise ImportError(
                    "ChromaDB vector store requires 'chromadb'. "
                    "Install it with: pip install chromadb"
                )

            if self.host:
                self._client = chromadb.HttpClient(host=self.host, port=self.port)
            elif self.persist_directory:
                self._client = chromadb.PersistentClient(path=self.persist_directory)
            else:
                self._client = chromadb.Client()
        return self._client

    async def _run(self, func, name: Optional[str] = None):
        """Run a blocking Chroma call in a thread, translating its errors."""
        import httpx
        from chromadb.errors import ChromaError, NotFoundError

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, func)
        except (ConnectionError, httpx.TransportError) as e:
            raise StoreUnavailable(f"ChromaDB is unreachable: {e}") from e
        except NotFoundError as e:
            raise StoreError(f"Collection '{name}' not found: {e}", code="collection_not_found") from e
        except (ChromaError, ValueError) as e:
            raise StoreError(f"ChromaDB request failed: {e}", code="store_error") from e

    def _get_collection(self, name: str):
        collection = self._collections.get(name)
        if collection is None:
            raise StoreError(f"Collection '{name}' not found", code="collection_not_found")
        return collection

    async def ensure_collection(
        self,
        name: str,
        dimension: int,
        distance: str = "cosine",
    ) -> bool:
        if distance not in self.DISTANCES:
            raise ValueError(f"Unsupported distance: {distance}")

        client = self._get_client()

        listed = await self._run(client.list_collections)
        names = [c if isinstance(c, str) else c.name for c in listed]

        if name in names:
            collection = await self._run(lambda: client.get_collection(name=name), name)
            existing = (collection.metadata or {}).get("dimension")
            if existing is not None and existing != dimension:
                raise DimensionMismatch(existing, dimension, collection=name)
            created = False
        else:
            collection = await self._run(
                lambda: client.create_collection(
                    name=name,
                    metadata={
                        "hnsw:space": self.DISTANCES[distance],
                        "dimension": dimension,
                    },
                )
            )
            created = True
            logger.info(f"Created Chroma collection '{name}' (dim={dimension}, distance={distance})")

        self._collections[name] = collection
        self._dimensions[name] = dimension
        return created

    def _score(self, collection, distance: float) -> float:
        space = (collection.metadata or {}).get("hnsw:space", "cosine")
        if space == "l2":
            return -distance
        return 1 - distance

    async def query(
        self,
        name: str,
        vector: list[float],
        limit: int = 10,
        filter: Optional[TextFilter] = None,
    ) -> list[SearchResult]:
        """Search for similar documents in ChromaDB."""
        collection = self._get_collection(name)
        _check_dimension(self._dimensions, name, vector)

        where_document = None
        if filter is not None:
            if filter.key != "content":
                raise ValueError("ChromaDB only supports text filters on 'content'")
            # Chroma rejects an empty $contains operand
            if filter.text:
                where_document = {"$contains": filter.text}

        results = await self._run(
            lambda: collection.query(
                query_embeddings=[vector],
                n_results=limit,
                where_document=where_document,
                include=["documents", "metadatas", "distances"],
            ),
            name,
        )

        search_results = []
        if results and results["ids"] and results["ids"][0]:
            for i, id in enumerate(results["ids"][0]):
                stored = results["metadatas"][0][i] if results["metadatas"] else {}
                distance = results["distances"][0][i] if results["distances"] else 0
                payload = self._payload(results["documents"][0][i], stored)
                search_results.append(
                    _result_from_payload(id, self._score(collection, distance), payload)
                )

        return search_results

    def _payload(self, document: Optional[str], stored: Optional[dict[str, Any]]) -> dict[str, Any]:
        stored = stored or {}
        return {
            "content": document or "",
            "metadata": json.loads(stored.get("metadata") or "{}"),
            "timestamp": stored.get("timestamp") or None,
        }

    async def upsert(
        self,
        name: str,
        id: str,
        vector: list[float],
        payload: dict[str, Any],
    ) -> None:
        collection = self._get_collection(name)
        _check_dimension(self._dimensions, name, vector)

        # Chroma metadata values must be scalars
        stored = {
            "metadata": json.dumps(payload.get("metadata") or {}, ensure_ascii=False),
            "timestamp": payload.get("timestamp") or "",
        }

        await self._run(
            lambda: collection.upsert(
                ids=[id],
                embeddings=[vector],
                documents=[payload.get("content") or ""],
                metadatas=[stored],
            ),
            name,
        )

    async def delete(self, name: str, id: str) -> None:
        collection = self._get_collection(name)
        await self._run(lambda: collection.delete(ids=[id]), name)

    async def scroll(
        self,
        name: str,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Document]:
        collection = self._get_collection(name)

        results = await self._run(
            lambda: collection.get(
                limit=limit,
                offset=offset,
                include=["documents", "metadatas"],
            ),
            name,
        )

        documents = []
        for i, id in enumerate(results["ids"]):
            stored = results["metadatas"][i] if results["metadatas"] else {}
            document = results["documents"][i] if results["documents"] else ""
            documents.append(_document_from_payload(id, self._payload(document, stored)))
        return documents

    async def list_collections(self) -> list[str]:
        client = self._get_client()
        listed = await self._run(client.list_collections)
        return [c if isinstance(c, str) else c.name for c in listed]
