"""
AgentPRD CLI.

Entry point for chatting with the agent (REPL or full-screen), one-shot
questions, running the agent server and managing configuration.
"""

from __future__ import annotations

import os
import sys
import traceback
from typing import Any, Optional

import typer
from pydantic import ValidationError

from agentprd import __version__
from agentprd.config import Config, get_config_safe
from agentprd.exceptions import AgentPRDError
from agentprd.protocol.frames import ToolEvent, ToolEventKind
from agentprd.render.tools import render_tool_event
from agentprd.utils.async_utils import run_async
from agentprd.utils.console import console
from agentprd.utils.logger import get_logger, setup_logging

app = typer.Typer(
    name="agentprd",
    help="🤖 AgentPRD: your AI product management assistant",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
    context_settings={
        "help_option_names": ["-h", "--help"],
    },
)

from agentprd.cli.commands.config import app as config_app  # noqa: E402
app.add_typer(config_app, name="config")


def initialize_logging() -> None:
    """Initialize logging early; fall back to environment settings on bad config."""
    try:
        setup_logging(get_config_safe())
    except ValidationError:
        setup_logging(None)


def load_cli_config() -> Config:
    """Configuration for a command, exiting cleanly when it is invalid."""
    try:
        config = get_config_safe()
    except ValidationError:
        # The loader has already shown the validation panel
        raise typer.Exit(1)
    if os.getenv("AGENTPRD_DEBUG"):
        config.app.debug = True
    return config


def global_exception_handler(exc_type: type, exc_value: BaseException, exc_tb: Any) -> None:
    """Log uncaught exceptions and show them as a rich error instead of a traceback."""
    logger = get_logger(__name__)

    if isinstance(exc_value, KeyboardInterrupt):
        logger.info("Application interrupted by user")
        console.print("\n👋 Goodbye!")
        sys.exit(0)

    if hasattr(exc_value, 'exit_code'):
        sys.exit(getattr(exc_value, 'exit_code', 1))

    if isinstance(exc_value, AgentPRDError):
        logger.error(f"Unhandled AgentPRD error: {exc_value.message}", error_type=exc_type.__name__)
        exc_value.display()
        sys.exit(1)

    error_title = f"Unexpected Error: {exc_type.__name__}"
    error_message = str(exc_value) or "An unexpected error occurred"

    logger.exception(
        f"Uncaught exception: {error_title}",
        error_type=exc_type.__name__,
        error_message=error_message,
    )
    console.error(f"{error_title}: {error_message}")

    if os.getenv("AGENTPRD_DEBUG"):
        console.print("\n[dim]Full traceback (debug mode):[/dim]")
        traceback.print_exception(exc_type, exc_value, exc_tb)
    else:
        console.info("Run with --debug for full traceback", emoji=False)

    sys.exit(1)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V", help="Show version and exit"
    ),
    debug: bool = typer.Option(
        False, "--debug", help="Enable debug mode"
    ),
) -> None:
    """
    AgentPRD: create PRDs, brainstorm features and get PM coaching from a
    streaming AI agent.
    """
    if version:
        console.print(f"AgentPRD version [panel.title]{__version__}[/panel.title]")
        raise typer.Exit()

    if debug:
        os.environ["AGENTPRD_DEBUG"] = "1"

    initialize_logging()
    get_logger(__name__).debug(
        "AgentPRD CLI started",
        version=__version__,
        debug=debug,
        command=ctx.invoked_subcommand,
    )


async def _run_chat(config: Config, tui: bool) -> None:
    from agentprd.client.agent_client import AgentClient
    from agentprd.client.chat import ChatSession

    async with AgentClient(config.agent) as client:
        chat = ChatSession(client, show_reasoning=config.app.show_reasoning)
        if tui:
            from agentprd.cli.tui import ChatTUI
            await ChatTUI(chat).run()
        else:
            from agentprd.cli.repl import ChatRepl
            await ChatRepl(chat).run()


@app.command("chat")
def chat_command(
    tui: bool = typer.Option(False, "--tui", help="Use the full-screen interface"),
    show_reasoning: Optional[bool] = typer.Option(
        None, "--show-reasoning/--hide-reasoning", help="Render detected reasoning blocks"
    ),
) -> None:
    """💬 Start an interactive chat with the agent."""
    config = load_cli_config()
    if show_reasoning is not None:
        config.app.show_reasoning = show_reasoning

    logger = get_logger(__name__)
    logger.info("Starting chat", url=config.agent.url, tui=tui)
    run_async(_run_chat(config, tui))


async def _ask(config: Config, message: str, command: Optional[str]) -> int:
    from agentprd.client.agent_client import AgentClient

    def on_text(chunk: str) -> None:
        console.print(chunk, end="", markup=False, highlight=False)

    def on_tool_event(event: ToolEvent) -> None:
        if event.type in (ToolEventKind.CALL, ToolEventKind.RESULT):
            console.print()
            console.print(render_tool_event(event))

    async with AgentClient(config.agent) as client:
        try:
            reply = await client.stream_message(
                message, command=command, on_text=on_text, on_tool_event=on_tool_event
            )
        except AgentPRDError as e:
            console.print()
            e.display()
            return 1

    console.print()
    if reply.error:
        console.warning(reply.error)
    console.print(f"[dim]session {reply.session_id}[/dim]")
    return 0


@app.command("ask")
def ask_command(
    message: str = typer.Argument(..., help="Message to send", metavar="MESSAGE"),
    command: Optional[str] = typer.Option(
        None, "--command", "-c", help="Agent command, e.g. create-prd or brainstorm"
    ),
) -> None:
    """❓ Send one message and stream the reply."""
    config = load_cli_config()
    if command is None and message.startswith("/"):
        command, _, rest = message[1:].partition(" ")
        message = rest or message

    exit_code = run_async(_ask(config, message, command))
    if exit_code:
        raise typer.Exit(exit_code)


@app.command("serve")
def serve_command(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default: server.host)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default: server.port)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes (development)"),
) -> None:
    """🚀 Run the agent HTTP server."""
    import uvicorn

    config = load_cli_config()
    host = host or config.server.host
    port = port or config.server.port
    log_level = "debug" if config.app.debug else config.app.log_level.lower()

    logger = get_logger(__name__)
    logger.info("Starting agent server", host=host, port=port, reload=reload)
    console.status_panel(
        title="AgentPRD server",
        content=f"Listening on http://{host}:{port}/agent\nModel: {config.llm.model}",
        status="info",
        emoji="🚀",
    )

    if reload:
        uvicorn.run(
            "agentprd.server.app:create_default_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            log_level=log_level,
        )
    else:
        from agentprd.server.app import create_app
        uvicorn.run(create_app(config), host=host, port=port, log_level=log_level)


@app.command("version")
def version_command() -> None:
    """Show AgentPRD version."""
    console.print(f"AgentPRD version {__version__}")


def setup_exception_handling() -> None:
    """Install global exception handler."""
    sys.excepthook = global_exception_handler


def cli_main() -> None:
    """Main CLI entry point with exception handling and logging."""
    initialize_logging()
    logger = get_logger(__name__)
    logger.debug("Starting AgentPRD CLI", python_version=sys.version, argv=sys.argv)

    setup_exception_handling()

    try:
        app()
    except Exception as e:
        logger.critical(f"Critical error in CLI main: {e}")
        raise
    finally:
        logger.debug("AgentPRD CLI session ended")


if __name__ == "__main__":
    cli_main()
