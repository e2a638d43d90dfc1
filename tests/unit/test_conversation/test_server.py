"""Unit tests for parley.server.

Tests use httpx.AsyncClient against the ASGI app (no real HTTP server).
Agents are wired to a mocked provider so no real LLM is needed.
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from parley.conversation.archetypes import AssistantAgent
from parley.conversation.enhanced import EnhancedAgent
from parley.conversation.extensions import CalculatorExtension
from parley.conversation.models import (
    AgentConfig,
    AIResponse,
    ChatRequest,
    EnhancedAgentConfig,
    Message,
    StreamChunk,
)
from parley.conversation.providers import AIProvider, LLMConnectionError
from parley.server import create_agent_app


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_provider(*responses: Any, chunks: tuple[str, ...] = ()) -> MagicMock:
    provider = MagicMock(spec=AIProvider)
    provider.is_initialized = True
    provider.get_model_name.side_effect = lambda model: model
    provider.chat = AsyncMock(side_effect=list(responses))

    async def _stream(request: ChatRequest) -> AsyncIterator[StreamChunk]:
        for text in chunks:
            yield StreamChunk(content=text)
        yield StreamChunk(is_complete=True, finish_reason="stop")

    provider.stream = _stream
    return provider


def _make_agent(*responses: Any, chunks: tuple[str, ...] = ()) -> AssistantAgent:
    agent = AssistantAgent()
    agent.initialize(AgentConfig(system_prompt="sys"), _make_provider(*responses, chunks=chunks))
    return agent


async def _client(agent: Any) -> AsyncClient:
    """Return an AsyncClient bound to the app for *agent*."""
    app = create_agent_app(agent)
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def _ndjson(text: str) -> list[dict[str, Any]]:
    return [json.loads(line) for line in text.splitlines() if line]


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_health_ok() -> None:
    async with await _client(_make_agent()) as client:
        resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "agent_type": "assistant", "is_ready": True}


@pytest.mark.anyio
async def test_health_not_ready() -> None:
    async with await _client(AssistantAgent()) as client:
        resp = await client.get("/health")
    assert resp.json()["status"] == "not_ready"
    assert resp.json()["is_ready"] is False


# ---------------------------------------------------------------------------
# POST /chat
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_chat_returns_reply() -> None:
    agent = _make_agent(AIResponse(success=True, content="Hi!", tokens_used=4))
    async with await _client(agent) as client:
        resp = await client.post("/chat", json={"message": "Hello"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["content"] == "Hi!"
    assert body["agent_type"] == "assistant"
    assert body["tokens_used"] == 4
    assert agent.history[-1] == Message("assistant", "Hi!")


@pytest.mark.anyio
async def test_chat_enhanced_agent_metadata() -> None:
    provider = _make_provider(
        AIResponse(success=True, content='FUNCTION_CALL: {"name": "add", "arguments": {"a": 1, "b": 2}}'),
        AIResponse(success=True, content="It is 3."),
    )
    agent = EnhancedAgent()
    agent.initialize(EnhancedAgentConfig(), provider)
    agent.add_function_extension(CalculatorExtension())

    async with await _client(agent) as client:
        resp = await client.post("/chat", json={"message": "1+2?"})

    body = resp.json()
    assert body["content"] == "It is 3."
    assert body["metadata"]["function_calls_executed"] == 1
    assert body["metadata"]["rounds"] == 2


@pytest.mark.anyio
async def test_chat_provider_failure_is_502() -> None:
    agent = _make_agent(LLMConnectionError("LLM unreachable"))
    async with await _client(agent) as client:
        resp = await client.post("/chat", json={"message": "Hello"})
    assert resp.status_code == 502
    assert resp.json()["detail"] == "LLM unreachable"


@pytest.mark.anyio
async def test_chat_not_ready_is_503() -> None:
    async with await _client(AssistantAgent()) as client:
        resp = await client.post("/chat", json={"message": "Hello"})
    assert resp.status_code == 503


@pytest.mark.anyio
async def test_chat_requires_message() -> None:
    async with await _client(_make_agent()) as client:
        resp = await client.post("/chat", json={})
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# POST /stream
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_stream_returns_ndjson_chunks() -> None:
    agent = _make_agent(chunks=("Hel", "lo"))
    async with await _client(agent) as client:
        resp = await client.post("/stream", json={"message": "Hi"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/x-ndjson")
    assert _ndjson(resp.text) == [
        {"content": "Hel", "done": False},
        {"content": "lo", "done": False},
        {"content": "", "done": True},
    ]
    assert agent.history[-1] == Message("assistant", "Hello")


@pytest.mark.anyio
async def test_stream_not_ready_is_503() -> None:
    async with await _client(AssistantAgent()) as client:
        resp = await client.post("/stream", json={"message": "Hi"})
    assert resp.status_code == 503


# ---------------------------------------------------------------------------
# GET /statistics, DELETE /history, DELETE /context
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_statistics() -> None:
    agent = _make_agent(AIResponse(success=True, content="ok", tokens_used=3))
    async with await _client(agent) as client:
        await client.post("/chat", json={"message": "Hello"})
        resp = await client.get("/statistics")

    body = resp.json()
    assert body["agent_type"] == "assistant"
    assert body["total_messages"] == 2
    assert body["total_tokens"] == 3
    assert body["history_count"] == 3


@pytest.mark.anyio
async def test_clear_history() -> None:
    agent = _make_agent()
    agent.add_message("user", "remember me")
    async with await _client(agent) as client:
        resp = await client.delete("/history")
    assert resp.status_code == 204
    assert agent.history == [Message("system", "sys")]


@pytest.mark.anyio
async def test_clear_context() -> None:
    agent = _make_agent()
    agent.set_context("persistent fact")
    async with await _client(agent) as client:
        resp = await client.delete("/context")
    assert resp.status_code == 204
    assert agent.context == []
