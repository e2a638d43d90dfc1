"""
Parley Conversation Package.

Agents that hold a conversation with an LLM provider: `BaseAgent` for single
round-trips and streaming, the archetype subclasses with their request
policies, and `EnhancedAgent`, which runs a bounded tool-calling loop over
attached function extensions.
"""

from parley.conversation.agent import BaseAgent, ProviderNotInitializedError
from parley.conversation.archetypes import (
    AnalyticalAgent,
    AssistantAgent,
    ConversationalAgent,
    CreativeAgent,
    TechnicalAgent,
    create_agent,
    create_enhanced_agent,
    get_default_config,
    get_default_system_prompt,
    register_agent,
)
from parley.conversation.enhanced import EnhancedAgent
from parley.conversation.models import (
    AgentConfig,
    AgentStatistics,
    AgentType,
    AIResponse,
    ChatRequest,
    EnhancedAgentConfig,
    EnhancedChatRequest,
    FunctionCall,
    FunctionDefinition,
    FunctionResult,
    Message,
    Personality,
    StreamChunk,
    UsageStats,
)
from parley.conversation.parsing import (
    CompositeFunctionCallParser,
    MalformedFunctionCallError,
    MarkerFunctionCallParser,
    NativeToolCallParser,
)
from parley.conversation.providers import (
    AIProvider,
    LLMAPIError,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    OpenAICompatibleProvider,
)

__all__ = [
    "AIProvider",
    "AIResponse",
    "AgentConfig",
    "AgentStatistics",
    "AgentType",
    "AnalyticalAgent",
    "AssistantAgent",
    "BaseAgent",
    "ChatRequest",
    "CompositeFunctionCallParser",
    "ConversationalAgent",
    "CreativeAgent",
    "EnhancedAgent",
    "EnhancedAgentConfig",
    "EnhancedChatRequest",
    "FunctionCall",
    "FunctionDefinition",
    "FunctionResult",
    "LLMAPIError",
    "LLMConnectionError",
    "LLMError",
    "LLMRateLimitError",
    "MalformedFunctionCallError",
    "MarkerFunctionCallParser",
    "Message",
    "NativeToolCallParser",
    "OpenAICompatibleProvider",
    "Personality",
    "ProviderNotInitializedError",
    "StreamChunk",
    "TechnicalAgent",
    "UsageStats",
    "create_agent",
    "create_enhanced_agent",
    "get_default_config",
    "get_default_system_prompt",
    "register_agent",
]
