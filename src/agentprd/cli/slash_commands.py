"""
Slash commands for the interactive front ends.

Local commands (help, reasoning, status, clear, quit, exit) run without
calling the agent. Everything else in the registry is forwarded to the
agent as the request's ``command``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from rich.console import RenderableType
from rich.table import Table
from rich.text import Text

from agentprd.client.chat import ChatSession
from agentprd.utils.console import AgentPRDConsole


@dataclass(frozen=True)
class SlashCommand:
    name: str
    description: str
    args: Tuple[str, ...] = ()
    examples: Tuple[str, ...] = ()
    aliases: Tuple[str, ...] = ()
    local: bool = False

    @property
    def usage(self) -> str:
        return " ".join((f"/{self.name}",) + self.args)


_COMMANDS = (
    SlashCommand("help", "Show available commands and usage", ("[command]",),
                 ("/help", "/help create-prd"), aliases=("h", "?"), local=True),
    SlashCommand("create-prd", "Interactive PRD creation (custom structure)", ("[product description]",),
                 ("/create-prd mobile analytics app", "/create-prd")),
    SlashCommand("brainstorm", "Feature ideation and prioritization", ("[topic]",),
                 ("/brainstorm user onboarding",)),
    SlashCommand("coach", "Strategic product management advice", ("[question]",),
                 ("/coach prioritization frameworks",)),
    SlashCommand("context", "Manage work context and goals", ("<action>", "[details]"),
                 ("/context set We're building user authentication", "/context get",
                  "/context list", "/context switch auth-prd")),
    SlashCommand("search", "Search PRDs, contexts and notes", ("<query>",),
                 ("/search onboarding",)),
    SlashCommand("note", "Save a quick note", ("<text>",),
                 ("/note Interview #3 wants SSO",)),
    SlashCommand("visualize", "Build a priority or timeline chart", ("[what]",),
                 ("/visualize feature priorities",)),
    SlashCommand("history", "Show past PRDs and work", examples=("/history",)),
    SlashCommand("export", "Export current work as markdown", ("[format]",),
                 ("/export markdown",), aliases=("e",)),
    SlashCommand("prds", "List stored PRDs", examples=("/prds",)),
    SlashCommand("prd", "Show one stored PRD", ("<id or title>",),
                 ("/prd Mobile Analytics",)),
    SlashCommand("reasoning", "Toggle display of reasoning blocks", ("[on|off]",),
                 ("/reasoning", "/reasoning on"), local=True),
    SlashCommand("status", "Show session and connection info", examples=("/status",),
                 aliases=("info",), local=True),
    SlashCommand("clear", "Clear conversation history", examples=("/clear",),
                 aliases=("c",), local=True),
    SlashCommand("quit", "Exit AgentPRD", local=True),
    SlashCommand("exit", "Exit AgentPRD (alias for quit)", local=True),
)

SLASH_COMMANDS: Dict[str, SlashCommand] = {c.name: c for c in _COMMANDS}
ALIASES: Dict[str, str] = {alias: c.name for c in _COMMANDS for alias in c.aliases}

CONTEXT_ACTIONS = ("set", "get", "list", "switch")


def resolve(name: str) -> Optional[SlashCommand]:
    name = name.lower()
    return SLASH_COMMANDS.get(name) or SLASH_COMMANDS.get(ALIASES.get(name, ""))


@dataclass
class ParsedSlash:
    name: str
    args: List[str] = field(default_factory=list)
    raw_args: str = ""
    command: Optional[SlashCommand] = None

    @property
    def is_known(self) -> bool:
        return self.command is not None

    @property
    def is_local(self) -> bool:
        return self.command is not None and self.command.local


def parse_slash(line: str) -> Optional[ParsedSlash]:
    """``"/Context set Foo"`` -> ``ParsedSlash("context", ["set", "Foo"], "set Foo")``."""
    line = line.strip()
    if not line.startswith("/"):
        return None
    head, _, rest = line[1:].partition(" ")
    name = head.lower()
    command = resolve(name)
    return ParsedSlash(
        name=command.name if command else name,
        args=rest.split(),
        raw_args=rest.strip(),
        command=command,
    )


def get_command_hints(text: str) -> List[str]:
    """Completions or argument hints for a partially typed line."""
    if text == "/":
        return [f"/{name}" for name in SLASH_COMMANDS]

    if not text.startswith("/"):
        return []

    if " " not in text:
        partial = text[1:].lower()
        return [f"/{name}" for name in SLASH_COMMANDS if name.startswith(partial)]

    head, *arg_parts = text.split(" ")
    command = SLASH_COMMANDS.get(head[1:].lower())
    if command is None or not command.args:
        return []

    index = len(arg_parts) - 1
    if index >= len(command.args):
        return []

    if command.name == "context" and index == 0:
        partial = arg_parts[0].lower()
        return [f"{head} {action}" for action in CONTEXT_ACTIONS if action.startswith(partial)]

    return [f"Expected: {command.args[index]}"]


def complete_command(text: str) -> Optional[str]:
    """The unique completion of ``text``, if there is exactly one."""
    if not text.startswith("/"):
        return None

    if " " not in text:
        partial = text[1:].lower()
        matches = [name for name in SLASH_COMMANDS if name.startswith(partial)]
        return f"/{matches[0]}" if len(matches) == 1 else None

    head, *arg_parts = text.split(" ")
    if head[1:].lower() == "context" and len(arg_parts) == 1:
        partial = arg_parts[0].lower()
        matches = [a for a in CONTEXT_ACTIONS if a.startswith(partial)]
        if len(matches) == 1:
            return f"{head} {matches[0]}"
    return None


def help_renderable(name: Optional[str] = None) -> RenderableType:
    command = resolve(name) if name else None
    if command is not None:
        text = Text()
        text.append(command.usage, style="help.command")
        text.append(f"\n{command.description}", style="dim")
        if command.examples:
            text.append("\n\nExamples:", style="bold")
            for example in command.examples:
                text.append(f"\n  {example}", style="help.example")
        return text

    table = Table(show_header=True, header_style="table.header", box=None, padding=(0, 2))
    table.add_column("Command", style="help.command", no_wrap=True)
    table.add_column("Description", style="dim")
    for c in SLASH_COMMANDS.values():
        table.add_row(Text(c.usage), c.description)
    table.caption = "Use /help <command> for details. Tab completes, Ctrl+D or /quit exits."
    return table


def status_renderable(chat: ChatSession) -> Table:
    client = chat.client
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="info.text")
    table.add_column()
    table.add_row("Agent", client.config.url)
    table.add_row("Session", chat.session_id or "[dim]not started[/dim]")
    table.add_row("History", f"{len(client.history)} messages")
    table.add_row("Approval", client.config.approval_mode)
    table.add_row("Reasoning", "shown" if chat.show_reasoning else "hidden")
    table.add_row("Tools this turn", str(len(chat.tracker.states)))
    return table


def run_local(parsed: ParsedSlash, chat: ChatSession, printer: AgentPRDConsole) -> bool:
    """
    Execute a local command.

    Returns:
        False when the front end should exit, True otherwise
    """
    name = parsed.name

    if name in ("quit", "exit"):
        printer.print("[dim]👋 Goodbye![/dim]")
        return False

    if name == "help":
        printer.print(help_renderable(parsed.args[0] if parsed.args else None))
    elif name == "reasoning":
        choice = parsed.args[0].lower() if parsed.args else ""
        enabled = {"on": True, "off": False}.get(choice, not chat.show_reasoning)
        chat.set_show_reasoning(enabled)
        printer.info(f"Reasoning display {'enabled' if enabled else 'disabled'}")
    elif name == "status":
        printer.print(status_renderable(chat))
    elif name == "clear":
        chat.clear()
        printer.success("Conversation history cleared")
    return True


__all__ = [
    "SlashCommand",
    "SLASH_COMMANDS",
    "ParsedSlash",
    "parse_slash",
    "resolve",
    "get_command_hints",
    "complete_command",
    "help_renderable",
    "run_local",
]
