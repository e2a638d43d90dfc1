"""
Function-call extraction strategies.

The model asks for a function by emitting a directive; how that directive is
encoded depends on the provider family. Each strategy implements
`FunctionCallParser.parse`, turning one `AIResponse` into zero or more
`FunctionCall` candidates. Name validation against the registry is left to
the agent.

Strategies:

- `MarkerFunctionCallParser`: free-text line protocol::

      FUNCTION_CALL: {"name": "add", "arguments": {"a": 2, "b": 3}}

  ``arguments`` may also be a JSON-encoded string. Malformed lines are
  logged and dropped; they never abort extraction of the other lines.
- `NativeToolCallParser`: structured ``tool_calls`` returned by providers
  with native function calling (see ``OpenAICompatibleProvider``).
- `CompositeFunctionCallParser`: runs several strategies in order.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol, runtime_checkable

from parley.conversation.models import AIResponse, FunctionCall

logger = logging.getLogger(__name__)

FUNCTION_CALL_MARKER = "FUNCTION_CALL:"


class MalformedFunctionCallError(ValueError):
    """Raised when a function-call payload cannot be decoded."""


@runtime_checkable
class FunctionCallParser(Protocol):
    """Extracts structured function calls from a raw provider response."""

    def parse(self, response: AIResponse) -> list[FunctionCall]:
        ...


def parse_function_call_payload(payload: str) -> FunctionCall:
    """Decode one marker payload into a `FunctionCall`.

    Args:
        payload: JSON text following the marker.

    Returns:
        The decoded call (``extension_name`` left empty).

    Raises:
        MalformedFunctionCallError: If the payload is not a JSON object with a
            string ``name`` and object (or JSON-object string) ``arguments``.
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedFunctionCallError(f"invalid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise MalformedFunctionCallError("payload must be a JSON object")

    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise MalformedFunctionCallError("missing function name")

    return FunctionCall(name=name, arguments=_decode_arguments(data.get("arguments")))


def _decode_arguments(raw: Any) -> dict[str, Any]:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MalformedFunctionCallError(f"invalid arguments JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise MalformedFunctionCallError("arguments must be a JSON object")
    return raw


class MarkerFunctionCallParser:
    """Parses ``FUNCTION_CALL:`` lines out of the response text.

    Attributes:
        marker: Line prefix that introduces a call.
        prompt_hint: Instruction appended to the function catalog so the
            model knows the expected format.
    """

    def __init__(self, marker: str = FUNCTION_CALL_MARKER) -> None:
        self.marker = marker
        self.prompt_hint = (
            f"To call a function, write a line of the form "
            f'{marker} {{"name": "<function>", "arguments": {{...}}}}'
        )

    def parse(self, response: AIResponse) -> list[FunctionCall]:
        calls: list[FunctionCall] = []
        for line in (response.content or "").splitlines():
            stripped = line.strip()
            if not stripped.startswith(self.marker):
                continue
            payload = stripped[len(self.marker):].strip()
            try:
                calls.append(parse_function_call_payload(payload))
            except MalformedFunctionCallError as exc:
                logger.warning("Dropping malformed function call %r: %s", payload, exc)
        return calls


class NativeToolCallParser:
    """Returns the provider's structured tool calls unchanged."""

    def parse(self, response: AIResponse) -> list[FunctionCall]:
        return list(response.tool_calls)


class CompositeFunctionCallParser:
    """Concatenates the calls found by each wrapped parser, in order."""

    def __init__(self, *parsers: FunctionCallParser) -> None:
        self.parsers = list(parsers)

    def parse(self, response: AIResponse) -> list[FunctionCall]:
        calls: list[FunctionCall] = []
        for parser in self.parsers:
            calls.extend(parser.parse(response))
        return calls
