"""Chat service: retrieval-grounded answers streamed as Server-Sent Events."""

import json
import logging
from typing import Any, AsyncIterator

from kbchat.exceptions import KnowledgeBaseError
from kbchat.knowledge import KnowledgeBase
from kbchat.providers.base import LLMProvider, chat_messages
from kbchat.rag.formatting import build_system_prompt, format_context

logger = logging.getLogger(__name__)

SSE_DONE = "data: [DONE]\n\n"


def sse_event(payload: dict[str, Any]) -> str:
    """Frame a payload as a single SSE ``data:`` event."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


class ChatService:
    """Answers queries with an LLM, optionally grounded on the knowledge base.

    The stream produced by :meth:`stream` is:

    - one ``searchResults`` event (only when the knowledge base is used)
    - one ``content`` event per generated token
    - the ``[DONE]`` sentinel

    When retrieval or generation fails, a single ``error`` event with a
    generic message is sent instead and the stream ends.
    """

    ERROR_MESSAGE = "Search failed"

    def __init__(
        self,
        knowledge: KnowledgeBase,
        llm: LLMProvider,
        model: str = "gpt-3.5-turbo",
        temperature: float = 0.7,
        max_tokens: int = 2000,
        search_limit: int = 10,
    ):
        self.knowledge = knowledge
        self.llm = llm
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.search_limit = search_limit

    async def stream(self, query: str, use_knowledge_base: bool = True) -> AsyncIterator[str]:
        """Stream SSE frames answering the query."""
        try:
            context = ""

            if use_knowledge_base:
                results = await self.knowledge.search(query, self.search_limit)
                yield sse_event({
                    "type": "searchResults",
                    "results": [result.model_dump() for result in results],
                })
                context = format_context(results)

            tokens = self.llm.stream(
                chat_messages(build_system_prompt(context), query),
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            try:
                async for token in tokens:
                    yield sse_event({"type": "content", "content": token})
            finally:
                # Stops generation when the client goes away mid-stream
                await tokens.aclose()

            yield SSE_DONE
        except KnowledgeBaseError as e:
            logger.error(f"Chat request failed [{e.code}]: {e.message}")
            yield sse_event({"type": "error", "error": self.ERROR_MESSAGE})
        except Exception:
            logger.exception("Chat request failed with an unexpected error")
            yield sse_event({"type": "error", "error": self.ERROR_MESSAGE})
