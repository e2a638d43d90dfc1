"""Composition of a personality and the function catalog into one system prompt."""

from __future__ import annotations

from typing import Sequence

from parley.conversation.models import FunctionDefinition, Personality


def compose_system_prompt(
    personality: Personality,
    functions: Sequence[FunctionDefinition] = (),
    function_calling_enabled: bool = True,
    call_syntax: str = "",
) -> str:
    """Return the effective system prompt for *personality*.

    The personality's own prompt comes first. When function calling is
    enabled and at least one function is registered, a catalog of the
    functions follows, with an instruction to call them explicitly and to
    explain their use (plus *call_syntax*, if the parser needs the model to
    use a particular format). Traits, if any, are listed last.
    """
    prompt = personality.system_prompt

    if function_calling_enabled and functions:
        prompt += "\n\nAvailable Functions:\n"
        prompt += "You have access to the following functions that you can call to help users:\n"
        for function in functions:
            prompt += f"- {function.name}: {function.description}\n"
        prompt += (
            "\nWhen you need to use these functions, call them with appropriate parameters. "
            "Always explain what you're doing when calling functions to help the user "
            "understand your process."
        )
        if call_syntax:
            prompt += f"\n{call_syntax}"

    if personality.traits:
        prompt += f"\n\nPersonality Traits: {', '.join(personality.traits)}"

    return prompt
