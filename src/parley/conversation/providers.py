"""
Provider abstractions for the Parley conversation package.

Defines the `AIProvider` Protocol so agents can work with any chat backend
without being tied to a specific vendor or SDK. A provider offers two
operations: a single-shot ``chat`` coroutine and a ``stream`` async
iterator of `StreamChunk` objects terminated by a completion chunk.

The concrete implementation, `OpenAICompatibleProvider`, uses
`openai.AsyncOpenAI`, which supports any OpenAI-compatible base URL (OpenAI,
Ollama, Claude via LiteLLM proxy, ...).

Also provides the exception hierarchy for backend errors. Agents convert
these into failed `AIResponse` objects; they never reach the caller.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Protocol, runtime_checkable

from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI, RateLimitError

from parley.conversation.models import (
    AIResponse,
    ChatRequest,
    EnhancedChatRequest,
    FunctionCall,
    StreamChunk,
    UsageStats,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Custom exception hierarchy
# ---------------------------------------------------------------------------


class LLMError(Exception):
    """Base exception for all provider errors."""


class LLMRateLimitError(LLMError):
    """Raised when the backend returns a rate-limit (429) response."""


class LLMConnectionError(LLMError):
    """Raised when the backend endpoint cannot be reached."""


class LLMAPIError(LLMError):
    """Raised for other backend errors (e.g., 5xx, authentication failures).

    Attributes:
        status_code: HTTP status code from the API, or ``None`` if unavailable.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# ---------------------------------------------------------------------------
# AIProvider Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class AIProvider(Protocol):
    """Protocol for chat backends used by agents.

    Any object implementing this Protocol can serve as an agent's backend.
    The default implementation is `OpenAICompatibleProvider`.
    """

    @property
    def is_initialized(self) -> bool:
        """Whether the provider is ready to accept requests."""
        ...

    def get_model_name(self, model: str) -> str:
        """Resolve a logical model name to the provider's model identifier."""
        ...

    async def chat(self, request: ChatRequest) -> AIResponse | None:
        """Send a single-shot completion request.

        Returns:
            The normalised response. ``None`` or ``success=False`` are both
            treated as provider errors by the agent.

        Raises:
            LLMError: For transport or API failures.
        """
        ...

    def stream(self, request: ChatRequest) -> AsyncIterator[StreamChunk]:
        """Stream a completion as partial-content chunks.

        The final chunk has ``is_complete=True`` and empty content.

        Raises:
            LLMError: For transport or API failures.
        """
        ...


# ---------------------------------------------------------------------------
# Concrete provider implementation
# ---------------------------------------------------------------------------

# Logical model names -> OpenAI-compatible model identifiers.
_MODEL_NAMES: dict[str, str] = {
    "gpt-4": "gpt-4",
    "gpt-4-turbo": "gpt-4-turbo-preview",
    "gpt-3.5-turbo": "gpt-3.5-turbo",
    "gpt-4o": "gpt-4o",
    "gpt-4o-mini": "gpt-4o-mini",
    "claude-3-opus": "claude-3-opus-20240229",
    "claude-3-sonnet": "claude-3-sonnet-20240229",
    "claude-3-haiku": "claude-3-haiku-20240307",
    "deepseek-chat": "deepseek-chat",
    "deepseek-coder": "deepseek-coder",
}


def _translate_error(exc: Exception) -> LLMError:
    """Map an ``openai`` SDK exception onto the ``LLMError`` hierarchy."""
    if isinstance(exc, RateLimitError):
        logger.warning("LLM rate limit exceeded: %s", exc)
        return LLMRateLimitError(f"Rate limit exceeded: {exc}")
    if isinstance(exc, APIConnectionError):
        logger.error("LLM connection failed: %s", exc)
        return LLMConnectionError(f"Could not connect to LLM endpoint: {exc}")
    if isinstance(exc, APIStatusError):
        logger.error("LLM API error %d: %s", exc.status_code, exc)
        return LLMAPIError(
            f"LLM API returned status {exc.status_code}: {exc}",
            status_code=exc.status_code,
        )
    logger.error("LLM response rejected: %s", exc)
    return LLMError(f"Invalid response from LLM endpoint: {exc}")


class OpenAICompatibleProvider:
    """Provider backed by any OpenAI-compatible endpoint.

    Works with:
    - OpenAI (``https://api.openai.com/v1``)
    - Ollama (``http://localhost:11434/v1``)
    - Claude via LiteLLM proxy
    - Any other OpenAI-compatible API

    ``EnhancedChatRequest`` function tables are sent as OpenAI tools, and any
    native tool calls in the reply are returned on ``AIResponse.tool_calls``
    so a `NativeToolCallParser` can pick them up.

    Attributes:
        base_url: The API base URL.
        model_names: Logical -> provider model mapping used by
            ``get_model_name``. Unknown names pass through unchanged.
    """

    def __init__(
        self,
        base_url: str = "https://api.openai.com/v1",
        api_key: str = "",
        model_names: dict[str, str] | None = None,
    ) -> None:
        self.base_url = base_url
        self.model_names = dict(_MODEL_NAMES)
        if model_names:
            self.model_names.update(model_names)
        self._client = AsyncOpenAI(base_url=base_url, api_key=api_key or "not-needed")

    @property
    def is_initialized(self) -> bool:
        return self._client is not None

    def get_model_name(self, model: str) -> str:
        return self.model_names.get(model, model)

    def _build_kwargs(self, request: ChatRequest) -> dict[str, Any]:
        messages: list[dict[str, Any]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.extend(m.to_dict() for m in request.messages)

        kwargs: dict[str, Any] = {
            "model": request.model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if (
            isinstance(request, EnhancedChatRequest)
            and request.supports_function_calling
            and request.functions
        ):
            kwargs["tools"] = [f.to_openai_format() for f in request.functions]

        logger.debug(
            "LLM request: model=%s, messages=%d, tools=%d, stream=%s",
            request.model,
            len(messages),
            len(kwargs.get("tools", [])),
            request.stream,
        )
        return kwargs

    async def chat(self, request: ChatRequest) -> AIResponse:
        """Call the backend and return a normalised `AIResponse`.

        Raises:
            LLMRateLimitError: If the API returns a 429 response.
            LLMConnectionError: If the API endpoint cannot be reached.
            LLMAPIError: For other API-level failures (e.g. 4xx/5xx) and
                replies without any choices.
            LLMError: For responses the SDK could not validate.
        """
        kwargs = self._build_kwargs(request)
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except APIError as exc:
            raise _translate_error(exc) from exc

        if not response.choices:
            raise LLMAPIError("LLM response contained no choices")
        choice = response.choices[0]
        message = choice.message

        tool_calls: list[FunctionCall] = []
        for tc in message.tool_calls or []:
            try:
                args = json.loads(tc.function.arguments or "{}")
            except json.JSONDecodeError:
                logger.warning("Discarding unparseable arguments for tool %r", tc.function.name)
                args = {}
            tool_calls.append(FunctionCall(name=tc.function.name, arguments=args, id=tc.id))

        usage: UsageStats | None = None
        if response.usage is not None:
            usage = UsageStats(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        logger.debug(
            "LLM response: finish_reason=%s, tool_calls=%d, tokens=%s",
            choice.finish_reason,
            len(tool_calls),
            usage.total_tokens if usage else "n/a",
        )

        return AIResponse(
            success=True,
            content=message.content or "",
            tokens_used=usage.total_tokens if usage else 0,
            usage=usage,
            tool_calls=tool_calls,
            metadata={"finish_reason": choice.finish_reason, "model": response.model},
        )

    async def stream(self, request: ChatRequest) -> AsyncIterator[StreamChunk]:
        """Stream the completion, ending with an ``is_complete`` chunk."""
        kwargs = self._build_kwargs(request)
        kwargs["stream"] = True
        try:
            response_stream = await self._client.chat.completions.create(**kwargs)
            finish_reason: str | None = None
            async for chunk in response_stream:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
                if choice.delta.content:
                    yield StreamChunk(content=choice.delta.content)
        except APIError as exc:
            raise _translate_error(exc) from exc

        yield StreamChunk(is_complete=True, finish_reason=finish_reason or "stop")
