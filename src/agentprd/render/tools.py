"""
Rich renderers for tool-call events.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Optional

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from agentprd.protocol.decoder import ToolCallState, ToolCallTracker
from agentprd.protocol.frames import ToolEvent, ToolEventKind
from agentprd.render.charts import render_chart

TOOL_ICONS = {
    "set_work_context": "🎯",
    "get_work_context": "🎯",
    "list_work_contexts": "🗂️",
    "switch_work_context": "🔀",
    "store_prd": "💾",
    "get_prd": "📄",
    "list_prds": "📚",
    "delete_prd": "🗑️",
    "search_prds": "🔍",
    "search_all": "🔍",
    "add_note": "📝",
    "list_notes": "📝",
    "get_suggestions": "💡",
    "create_feature_priority_chart": "📊",
    "create_timeline_chart": "📅",
}
DEFAULT_ICON = "🔧"

STATE_STYLES = {
    ToolCallState.STARTED: ("status.pending", "starting"),
    ToolCallState.CALLED: ("status.running", "running"),
    ToolCallState.COMPLETED: ("status.complete", "done"),
}

SUMMARY_LIMIT = 80


def tool_icon(tool_name: Optional[str]) -> str:
    return TOOL_ICONS.get(tool_name or "", DEFAULT_ICON)


def _truncate(text: str, limit: int = SUMMARY_LIMIT) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


def summarize_args(args: Any) -> str:
    """One-line ``key=value`` summary of tool arguments."""
    if args is None:
        return ""
    if isinstance(args, dict):
        parts = [f"{k}={json.dumps(v, default=str)}" for k, v in args.items()]
        return _truncate(", ".join(parts))
    return _truncate(json.dumps(args, default=str))


def summarize_result(result: Any) -> str:
    if result is None:
        return ""
    if isinstance(result, dict):
        if "error" in result:
            return _truncate(f"error: {result['error']}")
        if "message" in result:
            return _truncate(str(result["message"]))
        if "title" in result:
            return _truncate(str(result["title"]))
        return _truncate(", ".join(result.keys()))
    if isinstance(result, list):
        return f"{len(result)} item" + ("" if len(result) == 1 else "s")
    return _truncate(str(result))


def chart_text(result: Any) -> str:
    """ASCII chart carried by a visualization result, or ``""``."""
    if not isinstance(result, dict) or "type" not in result or "data" not in result:
        return ""
    return result.get("ascii") or render_chart(result)


def render_tool_event(event: ToolEvent) -> RenderableType:
    """Single-line (or chart panel) rendering of one tool event."""
    name = event.tool_name or "tool"
    icon = tool_icon(event.tool_name)

    if event.type == ToolEventKind.CALL_START:
        return Text.assemble((f"{icon} ", ""), (name, "chat.tool"), (" starting…", "dim"))

    if event.type == ToolEventKind.CALL:
        line = Text.assemble((f"{icon} ", ""), (name, "chat.tool"))
        summary = summarize_args(event.args)
        if summary:
            line.append(f"({summary})", style="dim")
        return line

    if event.type == ToolEventKind.RESULT:
        chart = chart_text(event.result)
        if chart:
            return Panel(Text(chart), title=f"{icon} {name}", border_style="accent", title_align="left")
        failed = isinstance(event.result, dict) and "error" in event.result
        mark = ("✗ ", "status.failed") if failed else ("✓ ", "status.complete")
        return Text.assemble(mark, (name, "chat.tool"), (f" {summarize_result(event.result)}", "dim"))

    label = "continuing" if event.is_continued else "step finished"
    return Text(f"⋯ {label}", style="dim")


def render_tool_log(events: Iterable[ToolEvent]) -> RenderableType:
    return Group(*(render_tool_event(e) for e in events))


def tool_status_table(tracker: ToolCallTracker) -> Table:
    """Per-call status table for the sidebar."""
    table = Table(show_header=True, header_style="table.header", border_style="table.border", expand=True)
    table.add_column("Tool", style="chat.tool", no_wrap=True)
    table.add_column("State", no_wrap=True)

    for key, state in tracker.states.items():
        style, label = STATE_STYLES[state]
        name = tracker.tool_name(key) or "unknown"
        table.add_row(f"{tool_icon(name)} {name}", Text(label, style=style))
    return table


__all__ = [
    "TOOL_ICONS",
    "tool_icon",
    "summarize_args",
    "summarize_result",
    "chart_text",
    "render_tool_event",
    "render_tool_log",
    "tool_status_table",
]
