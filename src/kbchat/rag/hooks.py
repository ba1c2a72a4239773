"""Search hooks: structured observability for the hybrid search."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class SearchEvent(Enum):
    """Points in a hybrid search where hooks are notified."""

    QUERY_ISSUED = "query_issued"                  # Query accepted, before embedding
    CHANNEL_RESULTS = "channel_results"            # A store query returned
    TEXT_CHANNEL_FAILED = "text_channel_failed"    # Text query failed, vector-only fallback
    FUSION_COMPLETE = "fusion_complete"            # Ranked list ready


@dataclass
class SearchEventContext:
    """Data passed to hooks for a single search event.

    Attributes:
        event: The event being reported
        query: The query text
        limit: Requested number of results
        channel: "vector" or "text" for per-channel events
        result_count: Hits returned by the channel, or results returned by the search
        candidate_count: Unique documents before truncation
        text_only_count: Candidates contributed only by the text channel
        error: Exception that triggered the event
        timestamp: When the event was created
    """

    event: SearchEvent
    query: str
    limit: int
    channel: Optional[str] = None
    result_count: Optional[int] = None
    candidate_count: Optional[int] = None
    text_only_count: Optional[int] = None
    error: Optional[Exception] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "event": self.event.value,
            "query": self.query,
            "limit": self.limit,
        }
        for key in ("channel", "result_count", "candidate_count", "text_only_count"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.error is not None:
            data["error"] = f"{type(self.error).__name__}: {self.error}"
        return data


class BaseSearchHook(ABC):
    """Abstract base class for search hooks.

    Attributes:
        events: Events this hook listens to; empty means all events
    """

    events: frozenset[SearchEvent] = frozenset()

    def accepts(self, event: SearchEvent) -> bool:
        return not self.events or event in self.events

    @abstractmethod
    async def handle(self, context: SearchEventContext) -> None:
        """Handle a search event."""
        pass

    def __repr__(self) -> str:
        names = sorted(e.value for e in self.events) or ["*"]
        return f"{self.__class__.__name__}(events={names})"


class LoggingSearchHook(BaseSearchHook):
    """Hook that writes every search event to the logger."""

    def __init__(self, level: str = "DEBUG", include_query: bool = True) -> None:
        """Initialize the logging hook.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR)
            include_query: Include the query text in log records
        """
        self.level = level.upper()
        self.include_query = include_query

    async def handle(self, context: SearchEventContext) -> None:
        log_data = context.to_dict()
        if not self.include_query:
            log_data.pop("query", None)

        log_func = getattr(logger, self.level.lower(), logger.debug)
        log_func(f"[Search] {log_data}")


async def emit(hooks: list[BaseSearchHook], context: SearchEventContext) -> None:
    """Deliver an event to every interested hook.

    Hook failures are logged and never interrupt the search.
    """
    for hook in hooks:
        if not hook.accepts(context.event):
            continue
        try:
            await hook.handle(context)
        except Exception as e:
            logger.error(f"Search hook {hook!r} failed on {context.event.value}: {e}")
