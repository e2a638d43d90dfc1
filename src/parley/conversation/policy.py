"""
Per-archetype request policy.

Each archetype supplies a default system prompt (used only when the built
request has none) and an optional temperature clamp.
"""

from __future__ import annotations

from dataclasses import dataclass

from parley.conversation.models import AgentType, ChatRequest


@dataclass(frozen=True)
class ArchetypePolicy:
    """Request overrides applied after the request builder runs.

    Attributes:
        default_system_prompt: Prompt used when the request has none.
        min_temperature: Lower clamp, or ``None``.
        max_temperature: Upper clamp, or ``None``.
    """

    default_system_prompt: str = ""
    min_temperature: float | None = None
    max_temperature: float | None = None

    def apply(self, request: ChatRequest) -> ChatRequest:
        if not request.system_prompt and self.default_system_prompt:
            request.system_prompt = self.default_system_prompt
        if self.max_temperature is not None and request.temperature > self.max_temperature:
            request.temperature = self.max_temperature
        if self.min_temperature is not None and request.temperature < self.min_temperature:
            request.temperature = self.min_temperature
        return request


NO_POLICY = ArchetypePolicy()

ARCHETYPE_POLICIES: dict[AgentType, ArchetypePolicy] = {
    AgentType.ASSISTANT: ArchetypePolicy(
        default_system_prompt=(
            "You are a helpful AI assistant. "
            "Provide clear, accurate, and helpful responses."
        ),
    ),
    AgentType.ANALYTICAL: ArchetypePolicy(
        default_system_prompt=(
            "You are an analytical AI focused on data analysis, "
            "logical reasoning, and problem-solving."
        ),
        max_temperature=0.4,
    ),
    AgentType.TECHNICAL: ArchetypePolicy(
        default_system_prompt=(
            "You are a technical AI expert. "
            "Provide precise, detailed technical information and solutions."
        ),
        max_temperature=0.3,
    ),
    AgentType.CREATIVE: ArchetypePolicy(
        default_system_prompt=(
            "You are a creative AI focused on imagination, storytelling, "
            "and artistic expression. Be creative and engaging."
        ),
        min_temperature=0.8,
    ),
    AgentType.CONVERSATIONAL: ArchetypePolicy(
        default_system_prompt=(
            "You are a friendly conversational AI. "
            "Be engaging, empathetic, and personable in your responses."
        ),
        min_temperature=0.7,
    ),
}


def get_policy(agent_type: AgentType) -> ArchetypePolicy:
    """Return the policy for *agent_type* (``NO_POLICY`` for custom agents)."""
    return ARCHETYPE_POLICIES.get(agent_type, NO_POLICY)
