"""
BaseAgent: conversation state and the single-shot / streaming round-trip.

An agent owns its History (ordered messages, first entry is the system
prompt when one is set), a persistent-context list that is re-sent with every
request, and an `AgentStatistics` record. ``chat`` and ``stream`` each drive
exactly one provider round-trip; `EnhancedAgent` overrides the chat turn with
the multi-round tool-calling loop.

Failures are never raised across the async boundary: an agent used before
``initialize`` or a provider error yields a failed `AIResponse` (or a terminal
stream chunk), and the completion callback still fires exactly once.

Typical usage::

    agent = AnalyticalAgent()
    agent.initialize(AgentConfig(temperature=0.2), provider)
    response = await agent.chat("Summarise the Q3 numbers.")
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import replace
from typing import Any, AsyncIterator, Awaitable, Callable, Sequence, Union

from parley.conversation.models import (
    AgentConfig,
    AgentStatistics,
    AgentType,
    AIResponse,
    ChatRequest,
    Message,
)
from parley.conversation.policy import ArchetypePolicy, get_policy
from parley.conversation.providers import AIProvider, LLMError

logger = logging.getLogger(__name__)

NOT_READY_ERROR = "Agent not ready"
NO_RESPONSE_ERROR = "No response received from provider"
UNKNOWN_PROVIDER_ERROR = "Unknown error from provider"

MessageInput = Union[str, Message, Sequence[Message]]
CompletionCallback = Callable[[AIResponse], Union[None, Awaitable[None]]]
ChunkCallback = Callable[[str, bool], Union[None, Awaitable[None]]]


class ProviderNotInitializedError(RuntimeError):
    """Raised by ``initialize`` when the provider is not ready for requests."""


async def _notify(callback: Callable[..., Any] | None, *args: Any) -> None:
    """Invoke a sync or async callback, if one was given."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def _as_messages(messages: MessageInput) -> list[Message]:
    """Normalise a caller's input to a list of messages (``None`` entries dropped)."""
    if isinstance(messages, str):
        return [Message("user", messages)]
    if isinstance(messages, Message):
        return [messages]
    return [m for m in messages if m is not None]


def build_request(
    config: AgentConfig,
    context: Sequence[Message],
    messages: Sequence[Message],
    model_name: str,
    request_cls: type[ChatRequest] = ChatRequest,
    **extra: Any,
) -> ChatRequest:
    """Assemble a provider-agnostic request.

    Persistent context comes first (system-role entries are skipped), then
    *messages* in order. Model, temperature, max tokens and system prompt are
    stamped from *config*. Neither input sequence is modified.

    Args:
        config: The agent's configuration.
        context: Persistent context messages.
        messages: The working messages for this round.
        model_name: Provider-resolved model identifier.
        request_cls: ``ChatRequest`` or a subclass.
        **extra: Additional fields for *request_cls*.
    """
    request_messages = [m for m in context if m.role != "system"]
    request_messages.extend(m for m in messages if m is not None)
    return request_cls(
        model=model_name,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        system_prompt=config.system_prompt,
        messages=request_messages,
        stream=False,
        **extra,
    )


class BaseAgent:
    """Policy-bearing wrapper around one conversation and one provider.

    Attributes:
        agent_type: Archetype; selects the request policy.
        config: Active configuration (a default until ``initialize``).
        provider: The bound provider, ``None`` until ``initialize``.
        history: Conversation history. ``history[0]`` is the system prompt
            whenever one is set.
        statistics: Message and token counters.
    """

    agent_type: AgentType = AgentType.CUSTOM

    def __init__(self, agent_type: AgentType | None = None) -> None:
        if agent_type is not None:
            self.agent_type = agent_type
        self.config = AgentConfig(agent_type=self.agent_type)
        self.provider: AIProvider | None = None
        self.history: list[Message] = []
        self.statistics = AgentStatistics()
        self._context: list[Message] = []
        self._ready = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def policy(self) -> ArchetypePolicy:
        return get_policy(self.agent_type)

    @property
    def context(self) -> list[Message]:
        """A copy of the persistent context."""
        return list(self._context)

    def initialize(self, config: AgentConfig, provider: AIProvider) -> None:
        """Bind a copy of *config* and *provider* and mark the agent ready.

        History is reset to the configured system prompt. The caller's
        *config* is never modified, so one config can seed several agents.

        Raises:
            ValueError: If *config* or *provider* is ``None``.
            ProviderNotInitializedError: If the provider is not initialized.
        """
        if config is None:
            raise ValueError("config is required")
        if provider is None:
            raise ValueError("provider is required")
        if not provider.is_initialized:
            raise ProviderNotInitializedError(
                "Provider must be initialized before creating agent"
            )

        self.config = replace(config)
        self.provider = provider
        self.history = []
        if self.config.system_prompt:
            self.history.append(Message("system", self.config.system_prompt))
        self.statistics.start()
        self._ready = True
        logger.debug("%s Initialized with model %r", self._log_prefix, config.model)

    # ------------------------------------------------------------------
    # State management
    # ------------------------------------------------------------------

    def set_system_prompt(self, system_prompt: str | None) -> None:
        """Replace the system prompt and the system message at ``history[0]``."""
        self.config.system_prompt = system_prompt or ""
        self.history = [m for m in self.history if m.role != "system"]
        if self.config.system_prompt:
            self.history.insert(0, Message("system", self.config.system_prompt))

    def set_context(self, context: str | Sequence[Message] | None) -> None:
        """Replace the persistent context.

        A string becomes a single user message; empty strings clear it.
        """
        self._context.clear()
        if isinstance(context, str):
            if context:
                self._context.append(Message("user", context))
        elif context is not None:
            self._context.extend(m for m in context if m is not None)

    def clear_context(self) -> None:
        self._context.clear()

    def add_message(self, role: str, content: str) -> None:
        """Append a message to history. Empty content is ignored.

        A ``"system"`` message replaces the system prompt instead of being
        appended.
        """
        if not content:
            return
        if role == "system":
            self.set_system_prompt(content)
            return
        self.history.append(Message(role, content))
        self.statistics.record_messages()

    def clear_history(self) -> None:
        """Reset history to its initial state (just the system prompt, if set)."""
        self.history.clear()
        if self.config.system_prompt:
            self.history.append(Message("system", self.config.system_prompt))

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _model_name(self) -> str:
        if self.provider is None:
            return self.config.model
        return self.provider.get_model_name(self.config.model)

    def build_request(self, messages: Sequence[Message]) -> ChatRequest:
        """Build the request for *messages* and apply the archetype policy."""
        request = build_request(self.config, self._context, messages, self._model_name())
        return self.policy.apply(request)

    async def _request_completion(self, request: ChatRequest) -> AIResponse:
        """Run one provider call, converting every failure into a failed response."""
        assert self.provider is not None
        timeout = self.config.provider_timeout
        try:
            response = await asyncio.wait_for(self.provider.chat(request), timeout=timeout)
        except asyncio.TimeoutError:
            error = f"Provider timed out after {timeout}s"
        except LLMError as exc:
            error = str(exc) or UNKNOWN_PROVIDER_ERROR
        except Exception as exc:
            logger.error("%s Unexpected provider failure", self._log_prefix, exc_info=True)
            error = f"{type(exc).__name__}: {exc}"
        else:
            if response is None:
                error = NO_RESPONSE_ERROR
            elif not response.success:
                error = response.error or UNKNOWN_PROVIDER_ERROR
            else:
                return response

        logger.error("%s Chat error: %s", self._log_prefix, error)
        return AIResponse.failure(error, self.agent_type)

    def _record_inputs(self, messages: Sequence[Message]) -> None:
        self.history.extend(messages)
        self.statistics.record_messages(len(messages))

    def _record_reply(self, content: str) -> None:
        self.history.append(Message("assistant", content))
        self.statistics.record_messages()

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(
        self,
        messages: MessageInput,
        on_complete: CompletionCallback | None = None,
    ) -> AIResponse:
        """Send *messages* and return the response.

        Input messages are recorded in history before the provider is called
        and stay there if the call fails. *on_complete* is invoked exactly
        once with the returned response.
        """
        if not self.is_ready:
            response = AIResponse.failure(NOT_READY_ERROR, self.agent_type)
            await _notify(on_complete, response)
            return response

        batch = _as_messages(messages)
        self._record_inputs(batch)
        response = await self._run_chat(batch)
        await _notify(on_complete, response)
        return response

    async def _run_chat(self, messages: list[Message]) -> AIResponse:
        response = await self._request_completion(self.build_request(messages))
        if not response.success:
            return response

        self._record_reply(response.content)
        self.statistics.record_tokens(response.tokens_used)
        return response

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def stream(
        self,
        messages: MessageInput,
        on_chunk: ChunkCallback | None = None,
    ) -> str:
        """Stream a reply to *messages*.

        *on_chunk* receives ``(content, False)`` for every partial chunk and
        exactly one terminal call with ``done=True``: ``("", True)`` on
        success, ``("Agent not ready", True)`` or ``("Error: ...", True)`` on
        failure. On success the concatenated text is recorded as one assistant
        message (if non-empty) and returned.
        """
        if not self.is_ready:
            await _notify(on_chunk, NOT_READY_ERROR, True)
            return ""

        batch = _as_messages(messages)
        self._record_inputs(batch)
        request = self.build_request(batch)
        request.stream = True

        assert self.provider is not None
        parts: list[str] = []
        iterator: AsyncIterator[Any] | None = None
        try:
            iterator = self.provider.stream(request).__aiter__()
            while True:
                try:
                    chunk = await asyncio.wait_for(
                        iterator.__anext__(), timeout=self.config.provider_timeout
                    )
                except StopAsyncIteration:
                    break
                if chunk.content:
                    parts.append(chunk.content)
                    await _notify(on_chunk, chunk.content, False)
                if chunk.is_complete:
                    break
        except asyncio.TimeoutError:
            error = f"Provider timed out after {self.config.provider_timeout}s"
        except LLMError as exc:
            error = str(exc) or UNKNOWN_PROVIDER_ERROR
        except Exception as exc:
            logger.error("%s Unexpected stream failure", self._log_prefix, exc_info=True)
            error = f"{type(exc).__name__}: {exc}"
        else:
            error = ""
        finally:
            if iterator is not None:
                await _aclose(iterator)

        if error:
            logger.error("%s Stream error: %s", self._log_prefix, error)
            await _notify(on_chunk, f"Error: {error}", True)
            return ""

        await _notify(on_chunk, "", True)
        full_response = "".join(parts)
        if full_response:
            self._record_reply(full_response)
        return full_response

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_statistics(self) -> dict[str, Any]:
        return {
            "agent_type": self.agent_type.value,
            "history_count": len(self.history),
            "context_count": len(self._context),
            "is_ready": self.is_ready,
            "total_messages": self.statistics.total_messages,
            "total_tokens": self.statistics.total_tokens,
            "initialized_at": self.statistics.initialized_at,
        }

    @property
    def _log_prefix(self) -> str:
        return f"[{self.agent_type.value}]"


async def _aclose(iterator: AsyncIterator[Any]) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await aclose()
