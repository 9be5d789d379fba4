"""
Line-oriented chat REPL.

prompt_toolkit handles input (slash completion, history, bottom toolbar);
replies stream through a rich ``Live`` region while the turn is running.
"""

from __future__ import annotations

from typing import List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import InMemoryHistory
from rich.console import Group, RenderableType
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.spinner import Spinner
from rich.text import Text

import agentprd
from agentprd.cli.slash_commands import SLASH_COMMANDS, ALIASES, parse_slash, run_local
from agentprd.client.chat import ChatSession
from agentprd.render.tools import render_tool_event
from agentprd.utils.console import AgentPRDConsole, console
from agentprd.utils.logger import get_logger

logger = get_logger(__name__)


def build_completer() -> WordCompleter:
    words = [f"/{name}" for name in SLASH_COMMANDS] + [f"/{alias}" for alias in ALIASES]
    return WordCompleter(words, ignore_case=True, sentence=True)


def show_banner(printer: AgentPRDConsole = console) -> None:
    txt = Text()
    txt.append(f"🤖 AgentPRD v{agentprd.__version__}", style="panel.title")
    txt.append("\nYour AI product management assistant", style="dim")
    printer.print(Panel(
        txt,
        title="[panel.title]Chat[/panel.title]",
        subtitle="[dim]Type /help for commands[/dim]",
        border_style="panel.border",
    ))


class ChatRepl:
    """Reads lines, runs local slash commands and streams agent turns."""

    def __init__(self, chat: ChatSession, printer: AgentPRDConsole = console):
        self.chat = chat
        self.printer = printer
        self._live: Optional[Live] = None
        self._events_start = 0

    def bottom_toolbar(self) -> HTML:
        session = self.chat.session_id or "new session"
        state = "streaming" if self.chat.is_streaming else "ready"
        tools = self.chat.active_tool_count
        return HTML(
            f"<b>{session}</b>  "
            f"<ansiyellow>{state}</ansiyellow>  "
            f"<ansimagenta>{tools} tool{'s' if tools != 1 else ''} running</ansimagenta>"
        )

    def _render_turn(self) -> RenderableType:
        parts: List[RenderableType] = [render_tool_event(e) for e in self.chat.tool_events[self._events_start:]]
        agent = next((m for m in reversed(self.chat.messages) if m.kind == "agent"), None)
        if agent is not None and agent.content:
            parts.append(Markdown(agent.content))
        if self.chat.is_streaming:
            parts.append(Spinner("dots", text=Text(self.chat.status_hint or "Working...", style="dim")))
        return Group(*parts)

    def _refresh(self) -> None:
        if self._live is not None:
            self._live.update(self._render_turn())

    async def send(self, text: str, command: Optional[str] = None) -> None:
        self._events_start = len(self.chat.tool_events)
        self.chat.on_change = self._refresh
        with Live(self._render_turn(), console=self.printer.console, refresh_per_second=12) as live:
            self._live = live
            try:
                outcome = await self.chat.send(text, command=command)
            finally:
                self._live = None
                self.chat.on_change = None
            live.update(self._render_turn())

        if outcome.error is not None:
            outcome.error.display()
            for message in self.chat.messages[-1:]:
                if message.kind == "system":
                    self.printer.print(f"[chat.system]{message.content}[/chat.system]")
        elif outcome.reply and outcome.reply.needs_approval:
            self.printer.warning("The agent is waiting for your approval")

    async def handle_line(self, line: str) -> bool:
        """Process one input line. Returns False to exit."""
        line = line.strip()
        if not line:
            return True

        parsed = parse_slash(line)
        if parsed is None:
            await self.send(line)
            return True

        if not parsed.is_known:
            self.printer.error(f"Unknown command: {parsed.name}")
            self.printer.print("[dim]Use /help to see available commands[/dim]")
            return True

        if parsed.is_local:
            return run_local(parsed, self.chat, self.printer)

        await self.send(parsed.raw_args or f"/{parsed.name}", command=parsed.name)
        return True

    async def run(self) -> None:
        show_banner(self.printer)
        session: PromptSession = PromptSession(completer=build_completer(), history=InMemoryHistory())

        while True:
            try:
                line = await session.prompt_async("> ", bottom_toolbar=self.bottom_toolbar)
            except (EOFError, KeyboardInterrupt):
                self.printer.print("\n[dim]👋 Goodbye![/dim]")
                break

            if not await self.handle_line(line):
                break

        logger.debug("REPL finished", session_id=self.chat.session_id)


__all__ = ["ChatRepl", "build_completer", "show_banner"]
