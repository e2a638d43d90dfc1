"""
EnhancedAgent: the multi-round tool-calling loop.

One ``chat`` call runs this loop:

1. Build a function-aware request from the working message list and call the
   provider.
2. Extract function calls from the response with the agent's parser. Calls
   to unregistered functions are dropped.
3. If any calls remain, function calling is enabled and the per-message call
   budget is not yet spent, execute them one after another, fold all results
   into a single system message on the working list and go back to 1.
4. Otherwise the response content is the final answer: it is recorded in
   History and returned.

The loop makes at most ``max_function_calls_per_message + 1`` provider calls,
leaving one round for a narrative answer after the last function round. The
working list is private to the call; only the caller's input and the final
answer reach History.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Sequence

from parley.conversation.agent import BaseAgent, build_request
from parley.conversation.extensions.base import FunctionExtension
from parley.conversation.models import (
    AgentConfig,
    AgentType,
    AIResponse,
    EnhancedAgentConfig,
    EnhancedChatRequest,
    FunctionCall,
    FunctionDefinition,
    FunctionResult,
    Message,
    Personality,
    UsageStats,
)
from parley.conversation.parsing import (
    FunctionCallParser,
    MalformedFunctionCallError,
    MarkerFunctionCallParser,
)
from parley.conversation.personality import compose_system_prompt
from parley.conversation.providers import AIProvider

logger = logging.getLogger(__name__)

FUNCTION_NOT_FOUND_ERROR = "Function not found"


def build_function_result_message(results: Sequence[FunctionResult]) -> str:
    """Render one round of function results as the fold-back message text."""
    lines = ["Function execution results:"]
    for result in results:
        if result.success:
            lines.append(f"- {result.function_name}: SUCCESS - {result.result}")
        else:
            lines.append(f"- {result.function_name}: ERROR - {result.error}")
    return "\n".join(lines) + "\n"


class EnhancedAgent(BaseAgent):
    """Agent with function calling through attached extensions.

    Attributes:
        function_extensions: Attached extensions, in attachment order.
        available_functions: Registered definitions, names unique.
        personality: Active personality, or ``None``.
        function_calling_enabled: When ``False`` no functions are advertised
            and no calls are dispatched.
        max_function_calls_per_message: Call budget for one ``chat`` call.
        function_timeout: Seconds to wait for one function execution.
        parser: Strategy used to find function calls in responses.
    """

    def __init__(
        self,
        agent_type: AgentType = AgentType.ASSISTANT,
        parser: FunctionCallParser | None = None,
    ) -> None:
        super().__init__(agent_type)
        self.function_extensions: list[FunctionExtension] = []
        self.available_functions: list[FunctionDefinition] = []
        self.personality: Personality | None = None
        self.function_calling_enabled = True
        self.max_function_calls_per_message = 5
        self.function_timeout: float | None = 30.0
        self.parser: FunctionCallParser = parser or MarkerFunctionCallParser()
        self._function_map: dict[str, FunctionExtension] = {}

    # ------------------------------------------------------------------
    # Initialisation and personality
    # ------------------------------------------------------------------

    def initialize(self, config: AgentConfig, provider: AIProvider) -> None:
        """Initialise from an `AgentConfig` or `EnhancedAgentConfig`.

        Function-calling settings and the personality are only read from an
        `EnhancedAgentConfig`; a plain config keeps the current settings. A
        personality that is already active survives re-initialisation and
        its composed prompt replaces the configured one.

        Raises:
            ValueError: If ``max_function_calls_per_message`` is negative.
        """
        if (
            isinstance(config, EnhancedAgentConfig)
            and config.max_function_calls_per_message < 0
        ):
            raise ValueError("max_function_calls_per_message must be >= 0")

        super().initialize(config, provider)
        if isinstance(config, EnhancedAgentConfig):
            self.function_calling_enabled = config.enable_function_calling
            self.max_function_calls_per_message = config.max_function_calls_per_message
            self.function_timeout = config.function_timeout
            if config.personality is not None:
                self.personality = config.personality
        self._refresh_personality_prompt()

        logger.debug(
            "%s Enhanced agent initialized with personality: %s",
            self._log_prefix,
            self.personality.name if self.personality else "None",
        )

    def set_personality(self, personality: Personality | None) -> None:
        """Apply *personality*, replacing the system prompt with its composition."""
        self.personality = personality
        if personality is None:
            return
        self.set_system_prompt(
            compose_system_prompt(
                personality,
                self.available_functions,
                self.function_calling_enabled,
                call_syntax=getattr(self.parser, "prompt_hint", ""),
            )
        )
        logger.debug("%s Applied personality: %s", self._log_prefix, personality.name)

    def _refresh_personality_prompt(self) -> None:
        if self.personality is not None:
            self.set_personality(self.personality)

    # ------------------------------------------------------------------
    # Extension registry
    # ------------------------------------------------------------------

    def add_function_extension(self, extension: FunctionExtension) -> None:
        """Attach *extension* and register its functions. No-op if attached.

        A function whose name is already registered is taken over by
        *extension* (last registration wins) and a warning is logged.
        """
        if extension is None or extension in self.function_extensions:
            return

        self.function_extensions.append(extension)
        definitions = extension.get_function_definitions()
        for definition in definitions:
            if definition.extension_name != extension.name:
                definition = replace(definition, extension_name=extension.name)
            previous = self._function_map.get(definition.name)
            if previous is not None:
                logger.warning(
                    "%s Function %r from %r overrides the one from %r",
                    self._log_prefix,
                    definition.name,
                    extension.name,
                    previous.name,
                )
                self.available_functions = [
                    f for f in self.available_functions if f.name != definition.name
                ]
            self._function_map[definition.name] = extension
            self.available_functions.append(definition)

        self._refresh_personality_prompt()
        logger.debug(
            "%s Added function extension: %s with %d functions",
            self._log_prefix,
            extension.name,
            len(definitions),
        )

    def remove_function_extension(self, extension: FunctionExtension) -> None:
        """Detach *extension* and drop the functions it owns. No-op if absent."""
        if extension is None or extension not in self.function_extensions:
            return

        self.function_extensions.remove(extension)
        owned = [f for f in self.available_functions if self._function_map.get(f.name) is extension]
        for definition in owned:
            self._function_map.pop(definition.name, None)
            self.available_functions.remove(definition)

        self._refresh_personality_prompt()
        logger.debug("%s Removed function extension: %s", self._log_prefix, extension.name)

    def has_function(self, name: str) -> bool:
        return name in self._function_map

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def build_request(self, messages: Sequence[Message]) -> EnhancedChatRequest:
        """Build a function-aware request and apply the archetype policy.

        Functions and extension names are only included while function
        calling is enabled.
        """
        enabled = self.function_calling_enabled
        request = build_request(
            self.config,
            self._context,
            messages,
            self._model_name(),
            request_cls=EnhancedChatRequest,
            supports_function_calling=enabled,
            functions=list(self.available_functions) if enabled else [],
            enabled_extensions=[e.name for e in self.function_extensions] if enabled else [],
        )
        self.policy.apply(request)
        return request

    # ------------------------------------------------------------------
    # Function calls
    # ------------------------------------------------------------------

    def extract_function_calls(self, response: AIResponse) -> list[FunctionCall]:
        """Return the registered function calls found in *response*.

        Each call is stamped with the name of the extension that owns it.
        Unregistered names are dropped; a parser failure yields no calls.
        """
        try:
            candidates = self.parser.parse(response)
        except MalformedFunctionCallError as exc:
            logger.warning("%s Failed to extract function calls: %s", self._log_prefix, exc)
            return []

        calls: list[FunctionCall] = []
        for call in candidates:
            extension = self._function_map.get(call.name)
            if extension is None:
                logger.warning(
                    "%s Ignoring call to unregistered function %r", self._log_prefix, call.name
                )
                continue
            calls.append(replace(call, extension_name=extension.name))
        return calls

    async def execute_function_call(self, call: FunctionCall) -> FunctionResult:
        """Execute *call* against its owning extension.

        Never raises for extension-side problems: an unknown name, a timeout
        or an exception from the extension all produce a failed result.
        """
        extension = self._function_map.get(call.name)
        if extension is None:
            return FunctionResult.failure(call.name, FUNCTION_NOT_FOUND_ERROR)

        logger.debug(
            "%s Executing function: %s(%s) from extension: %s",
            self._log_prefix,
            call.name,
            call.arguments,
            extension.name,
        )
        try:
            result = await asyncio.wait_for(
                extension.execute_function(call), timeout=self.function_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "%s Function %r timed out after %ss",
                self._log_prefix,
                call.name,
                self.function_timeout,
            )
            return FunctionResult.failure(
                call.name, f"Function timed out after {self.function_timeout}s", extension.name
            )
        except Exception as exc:
            logger.error(
                "%s Function %r failed: %s", self._log_prefix, call.name, exc, exc_info=True
            )
            return FunctionResult.failure(call.name, str(exc), extension.name)

        if result is None:
            return FunctionResult.failure(call.name, "No result returned", extension.name)
        return result

    # ------------------------------------------------------------------
    # Tool-calling loop
    # ------------------------------------------------------------------

    async def _run_chat(self, messages: list[Message]) -> AIResponse:
        working = list(messages)
        max_rounds = max(self.max_function_calls_per_message, 0) + 1
        calls_executed = 0
        usage = UsageStats()
        turn_start = time.monotonic()

        for round_index in range(max_rounds):
            logger.debug("%s Tool loop round %d/%d", self._log_prefix, round_index + 1, max_rounds)

            response = await self._request_completion(self.build_request(working))
            if not response.success:
                return response
            _accumulate(usage, response)

            calls = self.extract_function_calls(response)
            if not (
                calls
                and self.function_calling_enabled
                and calls_executed < self.max_function_calls_per_message
            ):
                break

            results: list[FunctionResult] = []
            for call in calls:
                results.append(await self.execute_function_call(call))
                calls_executed += 1
            working.append(Message("system", build_function_result_message(results)))
            logger.debug("%s Executed %d function calls", self._log_prefix, len(results))

        rounds = round_index + 1
        self._record_reply(response.content)
        self.statistics.record_tokens(usage.total_tokens)
        logger.info(
            "%s Chat complete after %d round(s), %d function call(s) in %.3fs",
            self._log_prefix,
            rounds,
            calls_executed,
            time.monotonic() - turn_start,
        )

        return AIResponse(
            success=True,
            content=response.content,
            agent_type=self.agent_type,
            tokens_used=usage.total_tokens,
            usage=usage,
            metadata={
                "function_calls_executed": calls_executed,
                "personality": self.personality.name if self.personality else "None",
                "rounds": rounds,
            },
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_statistics(self) -> dict[str, Any]:
        stats = super().get_statistics()
        stats["personality"] = self.personality.name if self.personality else "None"
        stats["function_calling_enabled"] = self.function_calling_enabled
        stats["available_functions"] = len(self.available_functions)
        stats["function_extensions"] = len(self.function_extensions)
        if self.function_extensions:
            stats["extension_names"] = ", ".join(e.name for e in self.function_extensions)
        return stats

    @property
    def _log_prefix(self) -> str:
        prefix = f"[enhanced-{self.agent_type.value}]"
        if self.personality is not None:
            prefix += f"[{self.personality.name}]"
        return prefix


def _accumulate(total: UsageStats, response: AIResponse) -> None:
    if response.usage is not None:
        total.prompt_tokens += response.usage.prompt_tokens
        total.completion_tokens += response.usage.completion_tokens
        total.total_tokens += response.usage.total_tokens
    else:
        total.total_tokens += response.tokens_used
