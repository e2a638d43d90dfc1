"""
HTTP server for a Parley agent.

Exposes one agent over a small REST API so that it can be driven from any
HTTP client.

Endpoints
---------
GET    /health       Health / readiness check.
POST   /chat         Run one chat turn (tool-calling loop for enhanced agents).
POST   /stream       Stream a reply as newline-delimited JSON chunks.
GET    /statistics   Agent statistics.
DELETE /history      Reset history to the system prompt.
DELETE /context      Clear the persistent context.

Usage (standalone)::

    from parley.conversation import AssistantAgent, AgentConfig, OpenAICompatibleProvider
    from parley.server import create_agent_app
    import uvicorn

    agent = AssistantAgent()
    agent.initialize(AgentConfig(), OpenAICompatibleProvider(api_key="..."))
    uvicorn.run(create_agent_app(agent), host="0.0.0.0", port=8765)
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator

from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from parley.conversation.agent import NOT_READY_ERROR, BaseAgent

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------


class ChatBody(BaseModel):
    """Body for POST /chat and POST /stream."""

    message: str = Field(..., min_length=1, description="User message text.")


class ChatResponse(BaseModel):
    """Response body for POST /chat."""

    content: str = Field(..., description="Final assistant reply.")
    agent_type: str
    tokens_used: int = 0
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra details (rounds, function calls executed, ...).",
    )


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: str
    agent_type: str
    is_ready: bool


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_agent_app(agent: BaseAgent) -> FastAPI:
    """Create a FastAPI application wrapping *agent*.

    Args:
        agent: An agent, normally already initialised. Requests to an agent
            that is not ready get a 503.

    Returns:
        A configured ``FastAPI`` application ready to be served or used in
        tests via ``httpx.AsyncClient(transport=ASGITransport(app=app))``.
    """
    app = FastAPI(
        title="Parley Agent API",
        description="REST interface for a single Parley conversational agent.",
        version="0.1.0",
    )

    def _require_ready() -> None:
        if not agent.is_ready:
            raise HTTPException(status_code=503, detail=NOT_READY_ERROR)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Return server health and agent status."""
        return HealthResponse(
            status="ok" if agent.is_ready else "not_ready",
            agent_type=agent.agent_type.value,
            is_ready=agent.is_ready,
        )

    @app.post("/chat", response_model=ChatResponse)
    async def chat(body: ChatBody) -> ChatResponse:
        """Run one chat turn.

        Raises:
            HTTPException 503: If the agent is not initialised.
            HTTPException 502: If the provider call failed.
        """
        _require_ready()
        logger.info("POST /chat: message=%r", body.message)

        response = await agent.chat(body.message)
        if not response.success:
            logger.warning("POST /chat failed: %s", response.error)
            raise HTTPException(status_code=502, detail=response.error)

        return ChatResponse(
            content=response.content,
            agent_type=agent.agent_type.value,
            tokens_used=response.tokens_used,
            metadata=response.metadata,
        )

    @app.post("/stream")
    async def stream(body: ChatBody) -> StreamingResponse:
        """Stream a reply.

        Each line is a JSON object ``{"content": str, "done": bool}``; the
        last line has ``done`` set (its content is an error message on
        failure).
        """
        _require_ready()
        logger.info("POST /stream: message=%r", body.message)
        return StreamingResponse(
            _stream_lines(agent, body.message), media_type="application/x-ndjson"
        )

    @app.get("/statistics")
    async def statistics() -> dict[str, Any]:
        """Return the agent's statistics."""
        return agent.get_statistics()

    @app.delete("/history", status_code=204)
    async def clear_history() -> None:
        """Reset history to its initial state."""
        logger.info("DELETE /history")
        agent.clear_history()

    @app.delete("/context", status_code=204)
    async def clear_context() -> None:
        """Clear the persistent context."""
        logger.info("DELETE /context")
        agent.clear_context()

    return app


async def _stream_lines(agent: BaseAgent, message: str) -> AsyncIterator[str]:
    """Bridge the agent's chunk callback to an async iterator of NDJSON lines."""
    queue: asyncio.Queue[tuple[str, bool]] = asyncio.Queue()

    async def on_chunk(content: str, done: bool) -> None:
        await queue.put((content, done))

    def on_task_done(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Stream task failed: %s", task.exception())
            queue.put_nowait((f"Error: {task.exception()}", True))

    task = asyncio.create_task(agent.stream(message, on_chunk=on_chunk))
    task.add_done_callback(on_task_done)
    try:
        while True:
            content, done = await queue.get()
            yield json.dumps({"content": content, "done": done}) + "\n"
            if done:
                break
        # let the agent record the reply before the response completes
        await asyncio.wait({task})
    finally:
        if not task.done():
            task.cancel()
