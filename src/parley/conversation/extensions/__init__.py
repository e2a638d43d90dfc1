"""
Built-in function extensions for enhanced agents.

Quick-start example::

    from parley.conversation.extensions import CalculatorExtension, CurrentTimeExtension

    agent = EnhancedAgent()
    agent.initialize(EnhancedAgentConfig(), provider)
    agent.add_function_extension(CalculatorExtension())
    agent.add_function_extension(CurrentTimeExtension())
"""

from parley.conversation.extensions.base import (
    BaseFunctionExtension,
    FunctionExtension,
    FunctionHandler,
)
from parley.conversation.extensions.calculator import CalculatorExtension
from parley.conversation.extensions.current_time import CurrentTimeExtension
from parley.conversation.extensions.knowledge import KnowledgeSearchExtension
from parley.conversation.extensions.weather import WeatherExtension

__all__ = [
    "BaseFunctionExtension",
    "CalculatorExtension",
    "CurrentTimeExtension",
    "FunctionExtension",
    "FunctionHandler",
    "KnowledgeSearchExtension",
    "WeatherExtension",
]
