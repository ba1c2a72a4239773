"""Document and search result data structures."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, JsonValue

# Open, schemaless metadata: string keys to JSON-compatible values.
Metadata = dict[str, JsonValue]


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Document(BaseModel):
    """A piece of knowledge stored in the vector store.

    Attributes:
        id: Unique identifier assigned at ingestion
        content: The text content, the unit of retrieval
        metadata: Free-form metadata (category, tags, priority, ...)
        timestamp: ISO-8601 creation time, set once at ingestion
    """

    id: str
    content: str
    metadata: Metadata = Field(default_factory=dict)
    timestamp: Optional[str] = None

    def __repr__(self) -> str:
        content_preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        return f"Document(id={self.id!r}, content={content_preview!r})"


class SearchResult(BaseModel):
    """A single hit returned by a store query or the hybrid search.

    Attributes:
        id: ID of the matching document
        score: Similarity score (higher is better)
        content: Content of the matching document
        metadata: Metadata of the matching document
    """

    id: str
    score: float
    content: str = ""
    metadata: Metadata = Field(default_factory=dict)

    def __repr__(self) -> str:
        return f"SearchResult(id={self.id!r}, score={self.score:.4f})"


class TextFilter(BaseModel):
    """Payload filter keeping points whose field contains the given text.

    An empty text places no restriction.
    """

    text: str
    key: str = "content"

    def matches(self, payload: dict) -> bool:
        if not self.text:
            return True
        value = payload.get(self.key)
        return isinstance(value, str) and self.text in value


def payload_for(content: str, metadata: Optional[Metadata], timestamp: str) -> dict:
    """Build the stored payload for a document."""
    return {
        "content": content,
        "metadata": metadata or {},
        "timestamp": timestamp,
    }
