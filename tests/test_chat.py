"""Tests for the chat service SSE stream."""

import json
import logging

import pytest

from kbchat.chat import SSE_DONE, ChatService, sse_event
from kbchat.exceptions import LLMError, StoreUnavailable
from kbchat.knowledge import KnowledgeBase

from conftest import FakeLLM, StubEmbedding, StubVectorStore, hits


def parse(frames):
    """Decode the JSON payloads of SSE frames, keeping the [DONE] sentinel."""
    events = []
    for frame in frames:
        assert frame.startswith("data: ") and frame.endswith("\n\n")
        data = frame[len("data: "):-2]
        events.append(data if data == "[DONE]" else json.loads(data))
    return events


async def collect(stream):
    return [frame async for frame in stream]


def make_service(llm=None, **store_kwargs):
    store = StubVectorStore(**store_kwargs)
    knowledge = KnowledgeBase(StubEmbedding(), store, hooks=[])
    return ChatService(knowledge, llm or FakeLLM(), model="test-model", search_limit=3)


class TestSseEvent:
    """Tests for SSE framing."""

    def test_frame_format(self):
        assert sse_event({"type": "content", "content": "hi"}) == (
            'data: {"type": "content", "content": "hi"}\n\n'
        )

    def test_non_ascii_kept(self):
        assert "知识库" in sse_event({"content": "知识库"})

    def test_done(self):
        assert SSE_DONE == "data: [DONE]\n\n"


class TestChatService:
    """Tests for the streamed answer."""

    @pytest.mark.asyncio
    async def test_grounded_answer(self):
        llm = FakeLLM(["Qdrant", " is fast"])
        service = make_service(
            llm,
            vector_results=hits(("1", 0.9)),
            text_results=hits(("2", 0.5)),
        )

        events = parse(await collect(service.stream("what is qdrant")))

        assert events[0]["type"] == "searchResults"
        assert [r["id"] for r in events[0]["results"]] == ["1", "2"]
        assert events[0]["results"][1]["score"] == pytest.approx(0.4)
        assert events[1:] == [
            {"type": "content", "content": "Qdrant"},
            {"type": "content", "content": " is fast"},
            "[DONE]",
        ]

        system, user = llm.messages[0]
        assert system["role"] == "system"
        assert "content 1\n\ncontent 2" in system["content"]
        assert user == {"role": "user", "content": "what is qdrant"}

    @pytest.mark.asyncio
    async def test_search_limit_used(self):
        service = make_service(vector_results=hits(*[(str(i), 1 - i / 10) for i in range(5)]))

        events = parse(await collect(service.stream("q")))

        assert len(events[0]["results"]) == 3
        assert service.knowledge.vectorstore.queries[0]["limit"] == 3

    @pytest.mark.asyncio
    async def test_without_knowledge_base(self):
        llm = FakeLLM(["Hi"])
        service = make_service(llm)

        events = parse(await collect(service.stream("hello", use_knowledge_base=False)))

        assert events == [{"type": "content", "content": "Hi"}, "[DONE]"]
        assert service.knowledge.vectorstore.queries == []
        assert "knowledge base" not in llm.messages[0][0]["content"].lower()

    @pytest.mark.asyncio
    async def test_empty_results_use_generic_prompt(self):
        llm = FakeLLM(["ok"])
        service = make_service(llm)

        events = parse(await collect(service.stream("q")))

        assert events[0] == {"type": "searchResults", "results": []}
        assert "knowledge base" not in llm.messages[0][0]["content"].lower()

    @pytest.mark.asyncio
    async def test_search_failure_sends_error_event(self):
        llm = FakeLLM()
        service = make_service(llm, vector_error=StoreUnavailable("connection refused"))

        events = parse(await collect(service.stream("q")))

        assert events == [{"type": "error", "error": "Search failed"}]
        assert llm.messages == []

    @pytest.mark.asyncio
    async def test_generation_failure_after_tokens(self):
        llm = FakeLLM(["partial"], error=LLMError("stream reset"))
        service = make_service(llm)

        events = parse(await collect(service.stream("q", use_knowledge_base=False)))

        assert events == [
            {"type": "content", "content": "partial"},
            {"type": "error", "error": "Search failed"},
        ]
        assert llm.stream_closed

    @pytest.mark.asyncio
    async def test_client_disconnect_closes_generation(self):
        llm = FakeLLM(["a", "b", "c"])
        service = make_service(llm)

        stream = service.stream("q", use_knowledge_base=False)
        first = await stream.__anext__()
        await stream.aclose()

        assert parse([first]) == [{"type": "content", "content": "a"}]
        assert llm.stream_closed

    @pytest.mark.asyncio
    async def test_unexpected_error_sends_error_event(self, caplog):
        llm = FakeLLM()
        service = make_service(llm, vector_error=ValueError("backend bug"))

        with caplog.at_level(logging.ERROR, logger="kbchat.chat"):
            events = parse(await collect(service.stream("q")))

        assert events == [{"type": "error", "error": "Search failed"}]
        assert "backend bug" in caplog.text
        assert llm.messages == []
