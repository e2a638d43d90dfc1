"""
Parley - a conversational agent runtime for LLM providers.

This library provides provider-agnostic conversational agents. It includes:

- Agents with conversation history, persistent context and statistics
- Archetypes with per-type request policies
- Enhanced agents with a bounded tool-calling loop over function extensions
- An OpenAI-compatible provider, a REST surface and a CLI

Quick Start:
    >>> from parley.conversation import AssistantAgent, AgentConfig, OpenAICompatibleProvider
    >>> agent = AssistantAgent()
    >>> agent.initialize(AgentConfig(), OpenAICompatibleProvider(api_key="..."))
    >>> response = await agent.chat("What time is it?")
"""

from parley.config import Settings, get_settings

__version__ = "0.1.0"
__all__ = ["Settings", "get_settings"]
