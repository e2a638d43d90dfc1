"""Unit tests for parley.conversation.extensions.base.BaseFunctionExtension."""

from __future__ import annotations

import json
from typing import Any

import pytest

from parley.conversation.extensions.base import BaseFunctionExtension, FunctionExtension
from parley.conversation.models import FunctionCall


class GreeterExtension(BaseFunctionExtension):
    name = "Greeter"
    description = "Says hello"

    def register_functions(self) -> None:
        self.add_function(
            "greet",
            "Greet someone by name",
            {
                "type": "object",
                "properties": {"who": {"type": "string"}},
                "required": ["who"],
            },
            self._greet,
            "greet('Ada')",
        )
        self.add_function("profile", "Return a profile", {}, self._profile)
        self.add_function("fail", "Always fails", {}, self._fail)

    async def _greet(self, args: dict[str, Any]) -> str:
        return f"Hello, {args['who']}!"

    async def _profile(self, args: dict[str, Any]) -> dict[str, Any]:
        return {"name": "Ada", "languages": ["en", "fr"]}

    async def _fail(self, args: dict[str, Any]) -> str:
        raise RuntimeError("nope")


def test_satisfies_protocol() -> None:
    assert isinstance(GreeterExtension(), FunctionExtension)


def test_definitions_are_stamped_with_extension_name() -> None:
    extension = GreeterExtension()

    definitions = extension.get_function_definitions()

    assert [d.name for d in definitions] == ["greet", "profile", "fail"]
    assert {d.extension_name for d in definitions} == {"Greeter"}
    assert len(extension) == 3
    assert extension.get_function_examples() == {"greet": "greet('Ada')"}


def test_duplicate_registration_rejected() -> None:
    extension = GreeterExtension()
    with pytest.raises(ValueError, match="already registered"):
        extension.add_function("greet", "again", {}, extension._greet)


def test_validate_function_arguments() -> None:
    extension = GreeterExtension()
    assert extension.validate_function_arguments("greet", {"who": "Ada"})
    assert not extension.validate_function_arguments("greet", {})
    assert not extension.validate_function_arguments("unknown", {})
    assert extension.can_handle_function("greet")
    assert not extension.can_handle_function("unknown")


@pytest.mark.anyio
async def test_execute_success_counts_calls() -> None:
    extension = GreeterExtension()

    result = await extension.execute_function(FunctionCall(name="greet", arguments={"who": "Ada"}))

    assert result.success
    assert result.result == "Hello, Ada!"
    assert result.extension_name == "Greeter"
    assert extension.call_counts["greet"] == 1


@pytest.mark.anyio
async def test_execute_json_encodes_non_string_results() -> None:
    result = await GreeterExtension().execute_function(FunctionCall(name="profile"))
    assert json.loads(result.result) == {"name": "Ada", "languages": ["en", "fr"]}


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("call", "error"),
    [
        (FunctionCall(name="greet"), "Invalid function arguments"),
        (FunctionCall(name="wave"), "Function wave not supported"),
        (FunctionCall(name="fail"), "nope"),
    ],
)
async def test_execute_failures(call: FunctionCall, error: str) -> None:
    extension = GreeterExtension()

    result = await extension.execute_function(call)

    assert not result.success
    assert result.error == error
    assert sum(extension.call_counts.values()) == 0


@pytest.mark.anyio
async def test_disabled_extension_refuses_calls() -> None:
    extension = GreeterExtension(enabled=False)

    result = await extension.execute_function(FunctionCall(name="greet", arguments={"who": "x"}))

    assert not result.success
    assert result.error == "Extension not enabled"
