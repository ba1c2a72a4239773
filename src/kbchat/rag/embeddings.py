"""Embedding model implementations."""

import asyncio
import hashlib
import logging
from typing import Any, Optional

from kbchat.exceptions import EmbeddingFailure

from .base import BaseEmbedding

logger = logging.getLogger(__name__)


class OpenAIEmbedding(BaseEmbedding):
    """OpenAI-compatible embedding model.

    Works with OpenAI's embedding API and any compatible endpoint reachable
    through ``base_url`` (DashScope, vLLM, ...). Errors raised by the SDK are
    re-raised as EmbeddingFailure; nothing is retried.
    """

    # Known model dimensions
    MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
        "multimodal-embedding-v1": 1024,
    }

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        batch_size: int = 100,
        dimension: Optional[int] = None,
        client: Any = None,
    ):
        """Initialize the OpenAI embedding model.

        Args:
            model: Model name
            api_key: API key (optional, uses env var if not provided)
            base_url: Optional base URL for API
            batch_size: Maximum number of texts per request in embed_batch
            dimension: Vector size, required for models not in MODEL_DIMENSIONS
            client: Pre-built AsyncOpenAI client
        """
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.batch_size = batch_size
        self._dimension = dimension
        self._client = client

    @property
    def dimension(self) -> int:
        if self._dimension is not None:
            return self._dimension
        return self.MODEL_DIMENSIONS.get(self.model, 1536)

    def _get_client(self):
        """Get or create the OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError:
                raise ImportError(
                    "OpenAI embedding requires the 'openai' package. "
                    "Install it with: pip install openai"
                )

            kwargs = {}
            if self.api_key:
                kwargs["api_key"] = self.api_key
            if self.base_url:
                kwargs["base_url"] = self.base_url

            self._client = AsyncOpenAI(**kwargs)
        return self._client

    async def _create(self, input: str | list[str]) -> list[list[float]]:
        from openai import OpenAIError

        client = self._get_client()
        try:
            response = await client.embeddings.create(
                model=self.model,
                input=input,
            )
        except OpenAIError as e:
            raise EmbeddingFailure(f"Embedding request to '{self.model}' failed: {e}") from e

        return [item.embedding for item in response.data]

    async def embed(self, text: str) -> list[float]:
        """Embed a single text using the embeddings API."""
        embeddings = await self._create(text)
        if not embeddings:
            raise EmbeddingFailure(f"Model '{self.model}' returned no embedding")
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed a list of texts using the embeddings API."""
        all_embeddings = []

        # Process in batches
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            batch_embeddings = await self._create(batch)

            if len(batch_embeddings) != len(batch):
                raise EmbeddingFailure(
                    f"Model '{self.model}' returned {len(batch_embeddings)} "
                    f"embeddings for {len(batch)} inputs"
                )
            all_embeddings.extend(batch_embeddings)

        return all_embeddings

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class LocalEmbedding(BaseEmbedding):
    """Local embedding model using sentence-transformers.

    Runs a HuggingFace sentence-transformers model on the local machine.

    Note: Requires the 'vector' extra to be installed.
    """

    # Known model dimensions
    MODEL_DIMENSIONS = {
        "all-MiniLM-L6-v2": 384,
        "all-mpnet-base-v2": 768,
        "paraphrase-multilingual-MiniLM-L12-v2": 384,
        "BAAI/bge-m3": 1024,
    }

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        device: Optional[str] = None,
        normalize: bool = True,
    ):
        """Initialize the local embedding model.

        Args:
            model_name: Name of the sentence-transformers model
            device: Device to run on (cuda, cpu, mps). Auto-detected if None.
            normalize: Whether to normalize embeddings
        """
        self.model_name = model_name
        self.device = device
        self.normalize = normalize
        self._model = None

    @property
    def dimension(self) -> int:
        if self._model is None and self.model_name in self.MODEL_DIMENSIONS:
            return self.MODEL_DIMENSIONS[self.model_name]
        # Unknown models report their size once loaded
        return self._get_model().get_sentence_embedding_dimension()

    def _get_model(self):
        """Get or load the sentence-transformers model."""
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError:
                raise ImportError(
                    "Local embedding requires 'sentence-transformers'. "
                    "Install it with: pip install sentence-transformers"
                )

            try:
                self._model = SentenceTransformer(self.model_name, device=self.device)
            except OSError as e:
                raise EmbeddingFailure(f"Could not load model '{self.model_name}': {e}") from e
            logger.info(f"Loaded embedding model: {self.model_name}")
        return self._model

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed a list of texts using the local model."""
        model = self._get_model()

        # Run in thread pool to avoid blocking
        loop = asyncio.get_running_loop()
        try:
            embeddings = await loop.run_in_executor(
                None,
                lambda: model.encode(
                    texts,
                    normalize_embeddings=self.normalize,
                    convert_to_numpy=True,
                ),
            )
        except (RuntimeError, ValueError) as e:
            raise EmbeddingFailure(f"Local embedding failed: {e}") from e

        return embeddings.tolist()

    async def embed(self, text: str) -> list[float]:
        """Embed a single text using the local model."""
        embeddings = await self.embed_batch([text])
        return embeddings[0]


class FakeEmbedding(BaseEmbedding):
    """Fake embedding that generates deterministic embeddings from text.

    Useful for testing and demos when no provider is configured. The
    embedding is derived from a SHA-256 hash of the text, so equal texts
    always map to equal vectors.
    """

    def __init__(self, dimension: int = 384, seed: int = 42):
        """Initialize the fake embedding.

        Args:
            dimension: Dimension of the embedding vectors
            seed: Seed mixed into the hash for reproducibility
        """
        self._dimension = dimension
        self.seed = seed

    @property
    def dimension(self) -> int:
        return self._dimension

    def _hash_text(self, text: str) -> list[float]:
        """Generate a deterministic embedding in [-1, 1] from the text hash."""
        embedding: list[float] = []
        counter = 0
        while len(embedding) < self._dimension:
            digest = hashlib.sha256(f"{self.seed}:{counter}:{text}".encode()).digest()
            embedding.extend(byte / 127.5 - 1.0 for byte in digest)
            counter += 1
        return embedding[: self._dimension]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self._hash_text(text) for text in texts]

    async def embed(self, text: str) -> list[float]:
        return self._hash_text(text)
