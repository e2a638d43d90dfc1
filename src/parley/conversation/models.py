"""
Core data types for the Parley conversation package.

Everything that crosses the boundary between an agent, its provider, and its
function extensions is defined here as a plain dataclass:

- ``Message``: one entry of a conversation.
- ``ChatRequest`` / ``EnhancedChatRequest``: provider-agnostic requests,
  built fresh for every provider round-trip.
- ``AIResponse`` / ``StreamChunk``: normalised provider output.
- ``FunctionDefinition`` / ``FunctionCall`` / ``FunctionResult``: the
  function-calling round-trip.
- ``AgentConfig`` / ``EnhancedAgentConfig`` / ``Personality``: agent policy.
- ``AgentStatistics``: monotonic counters kept by each agent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class AgentType(str, Enum):
    """Named agent archetypes. Each one maps to an entry in the policy table."""

    ASSISTANT = "assistant"
    CREATIVE = "creative"
    TECHNICAL = "technical"
    ANALYTICAL = "analytical"
    CONVERSATIONAL = "conversational"
    CUSTOM = "custom"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Message:
    """A single conversation message.

    Attributes:
        role: ``"system"``, ``"user"`` or ``"assistant"``.
        content: The message text.
        timestamp: Creation time (UTC). Not part of equality.
    """

    role: str
    content: str
    timestamp: datetime = field(default_factory=_utcnow, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to OpenAI chat message format."""
        return {"role": self.role, "content": self.content}


# ---------------------------------------------------------------------------
# Function calling
# ---------------------------------------------------------------------------


@dataclass
class FunctionDefinition:
    """Describes a function an extension exposes to the model.

    Attributes:
        name: Unique name within an agent's registry.
        description: Human-readable description shown in the prompt catalog.
        parameters: JSON Schema dict describing the arguments.
        extension_name: Name of the extension that owns this function.
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)
    extension_name: str = ""

    @property
    def required_parameters(self) -> list[str]:
        return list(self.parameters.get("required", []))

    def to_openai_format(self) -> dict[str, Any]:
        """Serialise to OpenAI tool definition format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters or {"type": "object", "properties": {}},
            },
        }


@dataclass
class FunctionCall:
    """A function invocation requested by the model.

    Attributes:
        name: Name of the function to invoke.
        arguments: Decoded JSON arguments.
        extension_name: Owning extension, resolved by the agent at dispatch.
        id: Provider call ID for native tool calls, ``None`` for text markers.
    """

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    extension_name: str = ""
    id: str | None = None


@dataclass
class FunctionResult:
    """Outcome of one function execution."""

    function_name: str
    success: bool
    result: str = ""
    error: str = ""
    extension_name: str = ""

    @classmethod
    def ok(cls, function_name: str, result: str, extension_name: str = "") -> FunctionResult:
        return cls(function_name, True, result=result, extension_name=extension_name)

    @classmethod
    def failure(
        cls, function_name: str, error: str, extension_name: str = ""
    ) -> FunctionResult:
        return cls(function_name, False, error=error, extension_name=extension_name)


# ---------------------------------------------------------------------------
# Requests and responses
# ---------------------------------------------------------------------------


@dataclass
class ChatRequest:
    """Provider-agnostic chat request. Built per round and never persisted."""

    model: str = ""
    temperature: float = 0.7
    max_tokens: int = 1000
    system_prompt: str = ""
    messages: list[Message] = field(default_factory=list)
    stream: bool = False


@dataclass
class EnhancedChatRequest(ChatRequest):
    """``ChatRequest`` carrying the function table of an ``EnhancedAgent``."""

    supports_function_calling: bool = True
    functions: list[FunctionDefinition] = field(default_factory=list)
    enabled_extensions: list[str] = field(default_factory=list)


@dataclass
class UsageStats:
    """Token usage reported by the backend for one completion call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class AIResponse:
    """Normalised result of a single-shot provider call or an agent turn.

    Attributes:
        success: ``False`` when the provider or agent reports an error.
        content: Response text (empty on failure).
        error: Error text (empty on success).
        agent_type: Archetype of the agent that produced the response.
        tokens_used: Total tokens reported by the backend.
        usage: Detailed token usage, if the backend reported it.
        tool_calls: Native tool calls returned by the backend.
        metadata: Free-form extras (finish reason, function call counts, ...).
    """

    success: bool
    content: str = ""
    error: str = ""
    agent_type: AgentType | None = None
    tokens_used: int = 0
    usage: UsageStats | None = None
    tool_calls: list[FunctionCall] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, error: str, agent_type: AgentType | None = None) -> AIResponse:
        return cls(success=False, error=error, agent_type=agent_type)


@dataclass
class StreamChunk:
    """One partial-content notification from a streaming provider call."""

    content: str = ""
    is_complete: bool = False
    finish_reason: str | None = None


# ---------------------------------------------------------------------------
# Agent configuration
# ---------------------------------------------------------------------------


@dataclass
class Personality:
    """Persona composed into an enhanced agent's system prompt.

    Attributes:
        name: Display name, reported in response metadata.
        system_prompt: Base prompt fragment.
        description: Free-form description (not sent to the model).
        traits: Trait strings appended to the prompt.
    """

    name: str
    system_prompt: str = ""
    description: str = ""
    traits: list[str] = field(default_factory=list)


@dataclass
class AgentConfig:
    """Per-agent request policy.

    Attributes:
        agent_type: Archetype used to pick the agent class and policy.
        system_prompt: Prompt stored as the first History entry.
        temperature: Sampling temperature before archetype clamping.
        max_tokens: Completion token limit.
        model: Logical model name, resolved through the provider.
        provider_timeout: Seconds to wait for a provider call or stream chunk.
            ``None`` waits forever.
    """

    agent_type: AgentType = AgentType.ASSISTANT
    system_prompt: str = ""
    temperature: float = 0.7
    max_tokens: int = 1000
    model: str = "gpt-3.5-turbo"
    provider_timeout: float | None = 60.0


@dataclass
class EnhancedAgentConfig(AgentConfig):
    """``AgentConfig`` plus personality and function-calling settings."""

    personality: Personality | None = None
    enable_function_calling: bool = True
    max_function_calls_per_message: int = 5
    function_timeout: float | None = 30.0


@dataclass
class AgentStatistics:
    """Monotonic counters for one agent. Reset only by re-initialisation."""

    total_messages: int = 0
    total_tokens: int = 0
    initialized_at: datetime | None = None

    def start(self) -> None:
        self.total_messages = 0
        self.total_tokens = 0
        self.initialized_at = _utcnow()

    def record_messages(self, count: int = 1) -> None:
        self.total_messages += count

    def record_tokens(self, count: int) -> None:
        if count > 0:
            self.total_tokens += count
