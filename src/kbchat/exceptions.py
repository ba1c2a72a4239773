"""
Knowledge base exceptions.
"""


class KnowledgeBaseError(Exception):
    """Base exception for knowledge base errors."""

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code
        super().__init__(self.message)


class EmbeddingFailure(KnowledgeBaseError):
    """Raised when the embedding provider is unreachable or rejects the input."""

    def __init__(self, message: str = "Embedding request failed"):
        super().__init__(message, code="embedding_failure")


class StoreError(KnowledgeBaseError):
    """Base exception for vector store errors."""


class StoreUnavailable(StoreError):
    """Raised when the vector store cannot be reached."""

    def __init__(self, message: str = "Vector store is unavailable"):
        super().__init__(message, code="store_unavailable")


class DimensionMismatch(StoreError):
    """Raised when a vector length does not match the collection dimension."""

    def __init__(self, expected: int, actual: int, collection: str | None = None):
        self.expected = expected
        self.actual = actual
        self.collection = collection
        where = f" for collection '{collection}'" if collection else ""
        super().__init__(
            f"Vector dimension mismatch{where}: expected {expected}, got {actual}",
            code="dimension_mismatch",
        )


class LLMError(KnowledgeBaseError):
    """Raised when the chat completion provider fails."""

    def __init__(self, message: str = "LLM request failed"):
        super().__init__(message, code="llm_error")
