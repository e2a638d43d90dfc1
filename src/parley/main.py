"""
Parley - Main Entry Point.

Command-line front end for the agent runtime:

    parley chat "What is 17 * 23?" --enhanced
    parley chat "Tell me a story" --type creative --stream
    parley serve --port 8765 --enhanced

Provider and agent defaults come from `parley.config.Settings` (``PARLEY_*``
environment variables or ``.env``); command-line flags override them.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from parley.config import Settings, get_settings
from parley.conversation.agent import BaseAgent
from parley.conversation.archetypes import (
    create_agent,
    create_enhanced_agent,
    get_default_system_prompt,
)
from parley.conversation.extensions import (
    CalculatorExtension,
    CurrentTimeExtension,
    KnowledgeSearchExtension,
    WeatherExtension,
)
from parley.conversation.models import AgentType
from parley.conversation.parsing import (
    CompositeFunctionCallParser,
    MarkerFunctionCallParser,
    NativeToolCallParser,
)
from parley.conversation.providers import OpenAICompatibleProvider

logger = logging.getLogger(__name__)


def build_agent(settings: Settings, enhanced: bool = False) -> BaseAgent:
    """Create an initialised agent from *settings*.

    Enhanced agents get the built-in calculator, time, knowledge and weather
    extensions and accept both native tool calls and ``FUNCTION_CALL:``
    markers.
    """
    provider = OpenAICompatibleProvider(base_url=settings.base_url, api_key=settings.api_key)

    if not enhanced:
        config = settings.agent_config()
        if not config.system_prompt:
            config.system_prompt = get_default_system_prompt(config.agent_type)
        return create_agent(config, provider)

    parser = CompositeFunctionCallParser(NativeToolCallParser(), MarkerFunctionCallParser())
    return create_enhanced_agent(
        settings.enhanced_agent_config(),
        provider,
        extensions=[
            CalculatorExtension(),
            CurrentTimeExtension(),
            KnowledgeSearchExtension(),
            WeatherExtension(),
        ],
        parser=parser,
    )


async def run_chat(agent: BaseAgent, prompt: str, stream: bool = False) -> int:
    """Send one prompt and print the reply. Returns the process exit code."""
    if stream:
        failed = False

        def on_chunk(content: str, done: bool) -> None:
            nonlocal failed
            if done:
                if content:
                    failed = True
                    print(content, file=sys.stderr)
                else:
                    print()
                return
            print(content, end="", flush=True)

        await agent.stream(prompt, on_chunk=on_chunk)
        return 1 if failed else 0

    response = await agent.chat(prompt)
    if not response.success:
        print(f"Error: {response.error}", file=sys.stderr)
        return 1
    print(response.content)
    if response.metadata.get("function_calls_executed"):
        logger.info(
            "Executed %d function call(s) in %d round(s)",
            response.metadata["function_calls_executed"],
            response.metadata.get("rounds", 1),
        )
    return 0


async def run_server(agent: BaseAgent, settings: Settings) -> None:
    """Serve *agent* over HTTP until interrupted."""
    from parley.server import create_agent_app
    import uvicorn

    config = uvicorn.Config(
        create_agent_app(agent),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    logger.info("Starting Parley API server on %s:%d", settings.host, settings.port)
    await server.serve()


def _build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="parley",
        description="Parley conversational agent runtime",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    # Shared agent options
    agent_opts = argparse.ArgumentParser(add_help=False)
    agent_opts.add_argument(
        "--type",
        choices=[t.value for t in AgentType if t is not AgentType.CUSTOM],
        default=settings.agent_type.value,
        help=f"Agent archetype (default: {settings.agent_type.value})",
    )
    agent_opts.add_argument(
        "--model",
        default=settings.model,
        help=f"Model name (default: {settings.model})",
    )
    agent_opts.add_argument(
        "--enhanced",
        action="store_true",
        help="Enable function calling with the built-in extensions",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p_chat = sub.add_parser("chat", parents=[agent_opts], help="Send a single prompt")
    p_chat.add_argument("prompt", help="Prompt text")
    p_chat.add_argument("--stream", action="store_true", help="Stream the reply")

    p_serve = sub.add_parser("serve", parents=[agent_opts], help="Run the REST API server")
    p_serve.add_argument(
        "--host",
        default=settings.host,
        help=f"Bind address (default: {settings.host})",
    )
    p_serve.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"Port (default: {settings.port})",
    )

    return parser


def run() -> None:
    """Entry point for the parley console script."""
    settings = get_settings()
    args = _build_parser(settings).parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Override settings with CLI arguments
    settings.agent_type = AgentType(args.type)
    settings.model = args.model

    agent = build_agent(settings, enhanced=args.enhanced)

    if args.command == "serve":
        settings.host = args.host
        settings.port = args.port
        asyncio.run(run_server(agent, settings))
        return

    sys.exit(asyncio.run(run_chat(agent, args.prompt, stream=args.stream)))


if __name__ == "__main__":
    run()
