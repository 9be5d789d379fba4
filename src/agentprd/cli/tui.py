"""
Full-screen chat front end.

A rich ``Layout`` with header, message history, tool-call sidebar and status
bar. The layout is redrawn live while a turn streams; input is read with
prompt_toolkit below the last frame.
"""

from __future__ import annotations

from typing import List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from rich.console import Group, RenderableType
from rich.layout import Layout
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

import agentprd
from agentprd.cli.repl import build_completer
from agentprd.cli.slash_commands import parse_slash, run_local
from agentprd.client.chat import ChatMessage, ChatSession
from agentprd.render.tools import render_tool_event, tool_status_table
from agentprd.utils.console import AgentPRDConsole, console
from agentprd.utils.logger import get_logger

logger = get_logger(__name__)

SIDEBAR_WIDTH = 34
PROMPT_LINES = 2


def render_message(message: ChatMessage) -> RenderableType:
    if message.kind == "user":
        return Text.assemble(("You  ", "chat.user"), message.content)
    if message.kind == "agent":
        header = Text("AgentPRD", style="chat.agent")
        if message.is_streaming:
            header.append("  streaming...", style="dim")
        body: RenderableType = Markdown(message.content) if message.content else Text("…", style="dim")
        return Group(header, body)
    if message.kind == "tool" and message.tool_event is not None:
        return render_tool_event(message.tool_event)
    return Text(message.content, style="chat.system")


class ChatTUI:
    """Full-screen view over a ``ChatSession``."""

    def __init__(self, chat: ChatSession, printer: AgentPRDConsole = console, max_messages: int = 30):
        self.chat = chat
        self.printer = printer
        self.max_messages = max_messages
        self.notice: Optional[str] = None
        self._live: Optional[Live] = None

    def render_header(self) -> Panel:
        title = Text.assemble(("🤖 AgentPRD ", "panel.title"), (f"v{agentprd.__version__}", "dim"))
        return Panel(title, border_style="panel.border")

    def render_messages(self) -> Panel:
        visible: List[RenderableType] = []
        for message in self.chat.messages[-self.max_messages:]:
            visible.append(render_message(message))
            visible.append(Text(""))
        if not visible:
            visible = [Text("Ask anything, or type /help for commands.", style="dim")]
        return Panel(Group(*visible), title="Conversation", title_align="left", border_style="panel.border")

    def render_sidebar(self) -> Panel:
        parts: List[RenderableType] = []
        if self.chat.tracker.states:
            parts.append(tool_status_table(self.chat.tracker))
        else:
            parts.append(Text("No tool calls yet", style="dim"))
        parts.append(Text(f"\n{len(self.chat.tool_events)} events this session", style="dim"))
        return Panel(Group(*parts), title="Tools", title_align="left", border_style="accent")

    def render_status(self) -> Text:
        session = self.chat.session_id or "new session"
        if self.chat.is_streaming:
            state = (self.chat.status_hint or "streaming", "status.running")
        else:
            state = ("ready", "status.complete")
        status = Text.assemble(
            (f" {session} ", "muted"),
            " │ ",
            state,
            " │ ",
            (f"{self.chat.active_tool_count} running", "chat.tool"),
        )
        if self.notice:
            status.append(f" │ {self.notice}", style="warning")
        return status

    def build_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(self.render_header(), name="header", size=3),
            Layout(name="body"),
            Layout(self.render_status(), name="status", size=1),
        )
        layout["body"].split_row(
            Layout(self.render_messages(), name="messages"),
            Layout(self.render_sidebar(), name="sidebar", size=SIDEBAR_WIDTH),
        )
        return layout

    def _refresh(self) -> None:
        if self._live is not None:
            self._live.update(self.build_layout())

    def draw(self) -> None:
        self.printer.clear()
        height = max(self.printer.console.size.height - PROMPT_LINES, 10)
        self.printer.print(self.build_layout(), height=height)

    async def send(self, text: str, command: Optional[str] = None) -> None:
        self.notice = None
        self.chat.on_change = self._refresh
        with Live(self.build_layout(), console=self.printer.console, screen=True, refresh_per_second=12) as live:
            self._live = live
            try:
                outcome = await self.chat.send(text, command=command)
            finally:
                self._live = None
                self.chat.on_change = None

        if outcome.error is not None:
            self.notice = outcome.error.message
        elif outcome.reply and outcome.reply.needs_approval:
            self.notice = "Approval requested"

    async def handle_line(self, line: str) -> bool:
        line = line.strip()
        if not line:
            return True

        parsed = parse_slash(line)
        if parsed is None:
            await self.send(line)
        elif not parsed.is_known:
            self.notice = f"Unknown command: /{parsed.name}"
        elif parsed.is_local:
            if parsed.name in ("help", "status"):
                # Output from these must survive the next redraw
                self.printer.clear()
                keep_going = run_local(parsed, self.chat, self.printer)
                self.printer.console.input("[dim]Press Enter to return[/dim]")
                return keep_going
            return run_local(parsed, self.chat, self.printer)
        else:
            await self.send(parsed.raw_args or f"/{parsed.name}", command=parsed.name)
        return True

    async def run(self) -> None:
        session: PromptSession = PromptSession(completer=build_completer(), history=InMemoryHistory())
        while True:
            self.draw()
            try:
                line = await session.prompt_async("> ")
            except (EOFError, KeyboardInterrupt):
                break
            if not await self.handle_line(line):
                break

        self.printer.clear()
        self.printer.print("[dim]👋 Goodbye![/dim]")
        logger.debug("TUI finished", session_id=self.chat.session_id)


__all__ = ["ChatTUI", "render_message"]
