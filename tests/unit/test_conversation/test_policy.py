"""Unit tests for parley.conversation.policy and the archetype registry."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from parley.conversation.agent import BaseAgent
from parley.conversation.archetypes import (
    FALLBACK_SYSTEM_PROMPT,
    AnalyticalAgent,
    AssistantAgent,
    ConversationalAgent,
    CreativeAgent,
    TechnicalAgent,
    create_agent,
    get_default_config,
    get_default_system_prompt,
    get_registered_agents,
    is_agent_registered,
    register_agent,
)
from parley.conversation.models import AgentConfig, AgentType, ChatRequest
from parley.conversation.policy import ARCHETYPE_POLICIES, NO_POLICY, get_policy
from parley.conversation.providers import AIProvider


def _provider() -> MagicMock:
    provider = MagicMock(spec=AIProvider)
    provider.is_initialized = True
    return provider


# ---------------------------------------------------------------------------
# ArchetypePolicy
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("agent_type", "requested", "expected"),
    [
        (AgentType.ANALYTICAL, 0.9, 0.4),
        (AgentType.ANALYTICAL, 0.2, 0.2),
        (AgentType.TECHNICAL, 0.9, 0.3),
        (AgentType.CREATIVE, 0.2, 0.8),
        (AgentType.CREATIVE, 1.2, 1.2),
        (AgentType.CONVERSATIONAL, 0.1, 0.7),
        (AgentType.ASSISTANT, 0.1, 0.1),
        (AgentType.CUSTOM, 1.5, 1.5),
    ],
)
def test_temperature_clamps(agent_type: AgentType, requested: float, expected: float) -> None:
    request = get_policy(agent_type).apply(ChatRequest(temperature=requested))
    assert request.temperature == expected


def test_default_prompt_only_fills_empty_prompt() -> None:
    policy = get_policy(AgentType.TECHNICAL)

    empty = policy.apply(ChatRequest())
    custom = policy.apply(ChatRequest(system_prompt="Be terse."))

    assert empty.system_prompt.startswith("You are a technical AI expert.")
    assert custom.system_prompt == "Be terse."


def test_custom_agents_have_no_policy() -> None:
    assert get_policy(AgentType.CUSTOM) is NO_POLICY
    assert AgentType.CUSTOM not in ARCHETYPE_POLICIES
    assert NO_POLICY.apply(ChatRequest()).system_prompt == ""


# ---------------------------------------------------------------------------
# Archetype registry
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("agent_type", "agent_class"),
    [
        (AgentType.ASSISTANT, AssistantAgent),
        (AgentType.ANALYTICAL, AnalyticalAgent),
        (AgentType.TECHNICAL, TechnicalAgent),
        (AgentType.CREATIVE, CreativeAgent),
        (AgentType.CONVERSATIONAL, ConversationalAgent),
    ],
)
def test_create_agent_uses_registered_class(
    agent_type: AgentType, agent_class: type[BaseAgent]
) -> None:
    agent = create_agent(AgentConfig(agent_type=agent_type), _provider())

    assert type(agent) is agent_class
    assert agent.agent_type is agent_type
    assert agent.is_ready


def test_builtin_archetypes_are_registered() -> None:
    registered = get_registered_agents()
    assert AgentType.CUSTOM not in registered
    assert len(registered) == 5
    assert is_agent_registered(AgentType.CREATIVE)


def test_create_agent_rejects_unregistered_type() -> None:
    with pytest.raises(ValueError, match="not registered"):
        create_agent(AgentConfig(agent_type=AgentType.CUSTOM), _provider())


def test_register_agent_rejects_non_agents() -> None:
    with pytest.raises(TypeError):
        register_agent(AgentType.CUSTOM, dict)  # type: ignore[arg-type]


def test_register_custom_agent() -> None:
    class PirateAgent(BaseAgent):
        agent_type = AgentType.CUSTOM

    register_agent(AgentType.CUSTOM, PirateAgent)
    try:
        agent = create_agent(AgentConfig(agent_type=AgentType.CUSTOM), _provider())
        assert isinstance(agent, PirateAgent)
    finally:
        from parley.conversation import archetypes

        archetypes._agent_classes.pop(AgentType.CUSTOM, None)


@pytest.mark.parametrize(
    ("agent_type", "temperature", "max_tokens"),
    [
        (AgentType.ASSISTANT, 0.7, 1000),
        (AgentType.CREATIVE, 0.9, 1500),
        (AgentType.TECHNICAL, 0.3, 2000),
        (AgentType.ANALYTICAL, 0.4, 1500),
        (AgentType.CONVERSATIONAL, 0.8, 1000),
        (AgentType.CUSTOM, 0.7, 1000),
    ],
)
def test_default_config(agent_type: AgentType, temperature: float, max_tokens: int) -> None:
    config = get_default_config(agent_type)
    assert config.agent_type is agent_type
    assert config.temperature == temperature
    assert config.max_tokens == max_tokens
    assert config.system_prompt == get_default_system_prompt(agent_type)


def test_default_system_prompts() -> None:
    assert get_default_system_prompt(AgentType.CUSTOM) == FALLBACK_SYSTEM_PROMPT
    assert get_default_system_prompt(AgentType.ASSISTANT).startswith("You are a helpful AI assistant.")
