"""Tests for the HTTP API."""

import json

import pytest
from fastapi.testclient import TestClient

from kbchat.api import create_app
from kbchat.exceptions import StoreUnavailable
from kbchat.knowledge import KnowledgeBase
from kbchat.rag import FakeEmbedding, MemoryVectorStore
from kbchat.utils.config import Settings

from conftest import FakeLLM, StubEmbedding, StubVectorStore


def sse_payloads(body: str) -> list:
    frames = [frame for frame in body.split("\n\n") if frame]
    return [
        frame[len("data: "):] if frame == "data: [DONE]" else json.loads(frame[len("data: "):])
        for frame in frames
    ]


@pytest.fixture
def llm():
    return FakeLLM(["Answer"])


@pytest.fixture
def knowledge():
    return KnowledgeBase(FakeEmbedding(dimension=16), MemoryVectorStore(), hooks=[])


@pytest.fixture
def client(knowledge, llm):
    app = create_app(Settings(vector_store="memory"), knowledge=knowledge, llm=llm)
    with TestClient(app) as test_client:
        yield test_client


class TestServiceRoutes:
    """Tests for info and health routes."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client):
        response = client.get("/health")

        body = response.json()
        assert body["status"] == "ok"
        assert body["database"]["database"] == "Memory"
        assert body["database"]["status"] == "connected"
        assert body["database"]["collections"] == 1

    def test_health_when_store_down(self):
        class DownStore(StubVectorStore):
            async def list_collections(self):
                raise StoreUnavailable()

        app = create_app(knowledge=KnowledgeBase(StubEmbedding(), DownStore()), llm=FakeLLM())
        with TestClient(app) as client:
            body = client.get("/health").json()

        assert body["status"] == "ok"
        assert body["database"]["status"] == "disconnected"

    def test_clients_closed_on_shutdown(self, llm):
        store = StubVectorStore()
        app = create_app(knowledge=KnowledgeBase(StubEmbedding(), store), llm=llm)

        with TestClient(app):
            pass

        assert store.closed
        assert llm.closed


class TestKnowledgeRoutes:
    """Tests for knowledge management routes."""

    def test_add_list_delete(self, client):
        response = client.post(
            "/api/knowledge/add",
            json={"content": "Qdrant is a vector database.", "metadata": {"category": "db"}},
        )
        assert response.status_code == 200
        doc_id = response.json()["id"]

        listed = client.get("/api/knowledge/list").json()
        assert listed["success"] is True
        assert listed["data"][0]["id"] == doc_id
        assert listed["data"][0]["metadata"] == {"category": "db"}

        assert client.delete(f"/api/knowledge/{doc_id}").json() == {"success": True}
        assert client.get("/api/knowledge/list").json()["data"] == []

    def test_add_empty_content(self, client):
        response = client.post("/api/knowledge/add", json={"content": ""})

        assert response.status_code == 400
        assert "error" in response.json()

    def test_add_store_failure(self, llm):
        class BrokenStore(StubVectorStore):
            async def upsert(self, name, id, vector, payload):
                raise StoreUnavailable()

        app = create_app(knowledge=KnowledgeBase(StubEmbedding(), BrokenStore()), llm=llm)
        with TestClient(app) as client:
            response = client.post("/api/knowledge/add", json={"content": "x"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to add knowledge"}

    def test_list_pagination(self, client):
        for i in range(3):
            client.post("/api/knowledge/add", json={"content": f"fact {i}"})

        data = client.get("/api/knowledge/list", params={"limit": 1, "offset": 1}).json()["data"]

        assert [d["content"] for d in data] == ["fact 1"]

    def test_list_rejects_bad_limit(self, client):
        assert client.get("/api/knowledge/list", params={"limit": 0}).status_code == 422


class TestSearchRoute:
    """Tests for the streamed search route."""

    def test_empty_query(self, client):
        response = client.post("/api/search", json={"query": ""})

        assert response.status_code == 400

    def test_stream(self, client):
        client.post("/api/knowledge/add", json={"content": "Qdrant is a vector database."})

        response = client.post("/api/search", json={"query": "Qdrant is a vector database."})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")

        events = sse_payloads(response.text)
        assert events[0]["type"] == "searchResults"
        assert events[0]["results"][0]["content"] == "Qdrant is a vector database."
        assert events[1] == {"type": "content", "content": "Answer"}
        assert events[-1] == "[DONE]"

    def test_stream_without_knowledge_base(self, client):
        response = client.post("/api/search", json={"query": "hi", "useKnowledgeBase": False})

        events = sse_payloads(response.text)
        assert events == [{"type": "content", "content": "Answer"}, "[DONE]"]
