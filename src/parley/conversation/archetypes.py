"""
Built-in agent archetypes and the agent class registry.

Each archetype is a `BaseAgent` subclass that fixes its ``agent_type``; the
request policy for that type (default prompt, temperature clamp) lives in
`parley.conversation.policy`. The registry maps an `AgentType` to the class
``create_agent`` instantiates for it.

Usage::

    config = get_default_config(AgentType.TECHNICAL)
    agent = create_agent(config, provider)
"""

from __future__ import annotations

import logging
from typing import Iterable

from parley.conversation.agent import BaseAgent
from parley.conversation.enhanced import EnhancedAgent
from parley.conversation.extensions.base import FunctionExtension
from parley.conversation.models import AgentConfig, AgentType, EnhancedAgentConfig
from parley.conversation.parsing import FunctionCallParser
from parley.conversation.policy import get_policy
from parley.conversation.providers import AIProvider

logger = logging.getLogger(__name__)

FALLBACK_SYSTEM_PROMPT = "You are a helpful AI assistant."


class AssistantAgent(BaseAgent):
    """General-purpose helper."""

    agent_type = AgentType.ASSISTANT


class AnalyticalAgent(BaseAgent):
    """Data analysis and problem solving; temperature capped at 0.4."""

    agent_type = AgentType.ANALYTICAL


class TechnicalAgent(BaseAgent):
    """Precise technical answers; temperature capped at 0.3."""

    agent_type = AgentType.TECHNICAL


class CreativeAgent(BaseAgent):
    """Storytelling and ideation; temperature raised to at least 0.8."""

    agent_type = AgentType.CREATIVE


class ConversationalAgent(BaseAgent):
    """Friendly small talk; temperature raised to at least 0.7."""

    agent_type = AgentType.CONVERSATIONAL


# (temperature, max_tokens) per archetype
_DEFAULT_SAMPLING: dict[AgentType, tuple[float, int]] = {
    AgentType.ASSISTANT: (0.7, 1000),
    AgentType.CREATIVE: (0.9, 1500),
    AgentType.TECHNICAL: (0.3, 2000),
    AgentType.ANALYTICAL: (0.4, 1500),
    AgentType.CONVERSATIONAL: (0.8, 1000),
}

_agent_classes: dict[AgentType, type[BaseAgent]] = {}


def register_agent(agent_type: AgentType, agent_class: type[BaseAgent]) -> None:
    """Map *agent_type* to *agent_class*, replacing any earlier registration.

    Raises:
        TypeError: If *agent_class* is not a `BaseAgent` subclass.
    """
    if not (isinstance(agent_class, type) and issubclass(agent_class, BaseAgent)):
        raise TypeError(f"{agent_class!r} is not a BaseAgent subclass")
    agent_type = AgentType(agent_type)
    _agent_classes[agent_type] = agent_class
    logger.debug("Registered agent: %s -> %s", agent_type.value, agent_class.__name__)


def get_registered_agents() -> list[AgentType]:
    return list(_agent_classes)


def is_agent_registered(agent_type: AgentType) -> bool:
    return agent_type in _agent_classes


def create_agent(config: AgentConfig, provider: AIProvider) -> BaseAgent:
    """Instantiate and initialise the agent class registered for ``config.agent_type``.

    Raises:
        ValueError: If no class is registered for the type.
        ProviderNotInitializedError: If *provider* is not initialized.
    """
    agent_class = _agent_classes.get(config.agent_type)
    if agent_class is None:
        raise ValueError(f"Agent type {config.agent_type.value!r} not registered")

    agent = agent_class(config.agent_type)
    agent.initialize(config, provider)
    logger.info("Created agent: %s", config.agent_type.value)
    return agent


def create_enhanced_agent(
    config: EnhancedAgentConfig,
    provider: AIProvider,
    extensions: Iterable[FunctionExtension] = (),
    parser: FunctionCallParser | None = None,
) -> EnhancedAgent:
    """Build an initialised `EnhancedAgent` with *extensions* attached."""
    agent = EnhancedAgent(config.agent_type, parser=parser)
    agent.initialize(config, provider)
    for extension in extensions:
        agent.add_function_extension(extension)
    logger.info(
        "Created enhanced agent: %s with %d functions",
        config.agent_type.value,
        len(agent.available_functions),
    )
    return agent


def get_default_system_prompt(agent_type: AgentType) -> str:
    return get_policy(agent_type).default_system_prompt or FALLBACK_SYSTEM_PROMPT


def get_default_config(agent_type: AgentType) -> AgentConfig:
    """Return the stock configuration for *agent_type*."""
    temperature, max_tokens = _DEFAULT_SAMPLING.get(agent_type, (0.7, 1000))
    return AgentConfig(
        agent_type=agent_type,
        system_prompt=get_default_system_prompt(agent_type),
        temperature=temperature,
        max_tokens=max_tokens,
    )


for _agent_class in (
    AssistantAgent,
    CreativeAgent,
    TechnicalAgent,
    AnalyticalAgent,
    ConversationalAgent,
):
    register_agent(_agent_class.agent_type, _agent_class)
