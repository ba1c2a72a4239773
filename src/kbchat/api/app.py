"""FastAPI application for the knowledge base chat service.

Endpoints:
- GET /                          - Service information
- GET /health                    - Service and vector store health
- POST /api/search               - Chat over the knowledge base (SSE stream)
- POST /api/knowledge/add        - Add a piece of knowledge
- DELETE /api/knowledge/{doc_id} - Delete a piece of knowledge
- GET /api/knowledge/list        - List knowledge (limit/offset)

Usage:
    python -m kbchat.api
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, JsonValue

from kbchat import __version__
from kbchat.chat import ChatService
from kbchat.exceptions import KnowledgeBaseError
from kbchat.knowledge import KnowledgeBase, build_knowledge_base
from kbchat.providers.base import LLMProvider
from kbchat.providers.openai import OpenAIProvider
from kbchat.utils.config import Settings

logger = logging.getLogger(__name__)


class SearchRequest(BaseModel):
    """Request body for /api/search."""
    model_config = ConfigDict(populate_by_name=True)

    query: str = ""
    use_knowledge_base: bool = Field(default=True, alias="useKnowledgeBase")


class AddKnowledgeRequest(BaseModel):
    """Request body for /api/knowledge/add."""
    content: str = ""
    metadata: dict[str, JsonValue] = Field(default_factory=dict)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(
    settings: Optional[Settings] = None,
    knowledge: Optional[KnowledgeBase] = None,
    llm: Optional[LLMProvider] = None,
) -> FastAPI:
    """Create the application.

    Clients that are not injected are built from the settings at startup.
    All clients are closed at shutdown.
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        kb = knowledge or build_knowledge_base(settings)
        provider = llm or OpenAIProvider(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
        )

        logger.info(f"Starting knowledge base service (store={settings.vector_store})")
        await kb.initialize()

        app.state.knowledge = kb
        app.state.chat = ChatService(
            kb,
            provider,
            model=settings.llm_model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            search_limit=settings.search_limit,
        )
        try:
            yield
        finally:
            await kb.close()
            await provider.close()
            logger.info("Knowledge base service stopped")

    app = FastAPI(title="kbchat", version=__version__, lifespan=lifespan)

    @app.get("/")
    async def root():
        return {
            "message": "Knowledge base API service",
            "version": __version__,
            "endpoints": {
                "search": "POST /api/search - search the knowledge base",
                "knowledge": "POST /api/knowledge/add, DELETE /api/knowledge/{id}, GET /api/knowledge/list",
                "health": "GET /health - health check",
            },
            "status": "running",
            "timestamp": _now(),
        }

    @app.get("/health")
    async def health(request: Request):
        return {
            "status": "ok",
            "timestamp": _now(),
            "database": await request.app.state.knowledge.health(),
        }

    @app.post("/api/search")
    async def search(body: SearchRequest, request: Request):
        if not body.query:
            return _error(400, "Query must not be empty")

        chat: ChatService = request.app.state.chat
        return StreamingResponse(
            chat.stream(body.query, use_knowledge_base=body.use_knowledge_base),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.post("/api/knowledge/add")
    async def add_knowledge(body: AddKnowledgeRequest, request: Request):
        if not body.content:
            return _error(400, "Content must not be empty")

        try:
            doc_id = await request.app.state.knowledge.add_document(body.content, body.metadata)
        except KnowledgeBaseError as e:
            logger.error(f"Adding knowledge failed [{e.code}]: {e.message}")
            return _error(500, "Failed to add knowledge")
        return {"success": True, "id": doc_id}

    @app.delete("/api/knowledge/{doc_id}")
    async def delete_knowledge(doc_id: str, request: Request):
        try:
            await request.app.state.knowledge.delete_document(doc_id)
        except KnowledgeBaseError as e:
            logger.error(f"Deleting knowledge {doc_id} failed [{e.code}]: {e.message}")
            return _error(500, "Failed to delete knowledge")
        return {"success": True}

    @app.get("/api/knowledge/list")
    async def list_knowledge(
        request: Request,
        limit: int = Query(default=100, ge=1, le=1000),
        offset: int = Query(default=0, ge=0),
    ):
        try:
            documents = await request.app.state.knowledge.list_documents(limit, offset)
        except KnowledgeBaseError as e:
            logger.error(f"Listing knowledge failed [{e.code}]: {e.message}")
            return _error(500, "Failed to list knowledge")
        return {"success": True, "data": [doc.model_dump() for doc in documents]}

    return app
