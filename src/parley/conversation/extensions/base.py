"""
Capability extension interface and a handler-table base class.

`FunctionExtension` is the contract an `EnhancedAgent` consumes: a ``name``,
the list of `FunctionDefinition` objects it exposes, and an async
``execute_function`` entry point. Extensions are attached explicitly with
``EnhancedAgent.add_function_extension``; nothing is discovered implicitly.

`BaseFunctionExtension` implements the contract on top of a
``name -> (FunctionDefinition, handler)`` table. Subclasses register their
functions in ``register_functions``::

    class GreeterExtension(BaseFunctionExtension):
        name = "Greeter"

        def register_functions(self) -> None:
            self.add_function(
                "greet",
                "Greet someone by name",
                {"type": "object",
                 "properties": {"who": {"type": "string"}},
                 "required": ["who"]},
                self._greet,
            )

        async def _greet(self, args: dict[str, Any]) -> str:
            return f"Hello, {args['who']}!"
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from parley.conversation.models import FunctionCall, FunctionDefinition, FunctionResult

logger = logging.getLogger(__name__)

# Type alias for a single function handler: async (args_dict) -> result
FunctionHandler = Callable[[dict[str, Any]], Awaitable[Any]]


@runtime_checkable
class FunctionExtension(Protocol):
    """A pluggable unit exposing named functions the model may invoke."""

    @property
    def name(self) -> str:
        ...

    def get_function_definitions(self) -> list[FunctionDefinition]:
        ...

    async def execute_function(self, call: FunctionCall) -> FunctionResult:
        ...


class BaseFunctionExtension:
    """Function extension backed by a table of async handlers.

    Handlers receive the decoded argument dict and return the result. Strings
    are passed through; anything else is JSON-encoded. Exceptions raised by a
    handler become a failed `FunctionResult`.

    Attributes:
        name: Extension name; stamped on every definition it owns.
        description: Human-readable summary.
        enabled: Disabled extensions refuse every call.
        call_counts: Successful executions per function name.
    """

    name: str = "Extension"
    description: str = ""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self.call_counts: Counter[str] = Counter()
        self._functions: dict[str, tuple[FunctionDefinition, FunctionHandler]] = {}
        self._examples: dict[str, str] = {}
        self.register_functions()

    def register_functions(self) -> None:
        """Register this extension's functions. Override in subclasses."""

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_function(
        self,
        name: str,
        description: str,
        parameters: dict[str, Any],
        handler: FunctionHandler,
        example: str = "",
    ) -> None:
        """Register a function with its async handler.

        Raises:
            ValueError: If a function with the same name is already registered.
        """
        if name in self._functions:
            raise ValueError(
                f"Function {name!r} is already registered on {self.name!r}."
            )
        definition = FunctionDefinition(
            name=name,
            description=description,
            parameters=parameters,
            extension_name=self.name,
        )
        self._functions[name] = (definition, handler)
        if example:
            self._examples[name] = example
        logger.debug("[%s] Added function: %s", self.name, name)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_function_definitions(self) -> list[FunctionDefinition]:
        """Return all definitions in registration order."""
        return [definition for definition, _handler in self._functions.values()]

    def get_function_examples(self) -> dict[str, str]:
        return dict(self._examples)

    def can_handle_function(self, name: str) -> bool:
        return name in self._functions

    def validate_function_arguments(self, name: str, arguments: dict[str, Any]) -> bool:
        """Return True if every required parameter of *name* is present."""
        entry = self._functions.get(name)
        if entry is None:
            return False
        definition, _handler = entry
        missing = [p for p in definition.required_parameters if p not in arguments]
        if missing:
            logger.warning(
                "[%s] Missing required parameter(s) for %s: %s",
                self.name,
                name,
                ", ".join(missing),
            )
            return False
        return True

    def __len__(self) -> int:
        return len(self._functions)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_function(self, call: FunctionCall) -> FunctionResult:
        if not self.enabled:
            return FunctionResult.failure(call.name, "Extension not enabled", self.name)
        if not self.can_handle_function(call.name):
            return FunctionResult.failure(
                call.name, f"Function {call.name} not supported", self.name
            )
        if not self.validate_function_arguments(call.name, call.arguments):
            return FunctionResult.failure(call.name, "Invalid function arguments", self.name)

        _definition, handler = self._functions[call.name]
        try:
            value = await handler(call.arguments)
        except Exception as exc:
            logger.error("[%s] Function %s failed: %s", self.name, call.name, exc)
            return FunctionResult.failure(call.name, str(exc), self.name)

        self.call_counts[call.name] += 1
        logger.info("[%s] Function %s executed successfully", self.name, call.name)
        result = value if isinstance(value, str) else json.dumps(value, default=str)
        return FunctionResult.ok(call.name, result, self.name)
