"""
Plain-text chart rendering for chart payloads returned by the agent.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional, Sequence

BAR = "█"
LABEL_WIDTH = 15


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


def bar_chart(items: Sequence[Dict[str, Any]], width: int = 50, show_values: bool = True) -> str:
    """
    Horizontal bar chart.

    Each item needs ``label`` and ``value``; bars are scaled so the largest
    value fills the space left after the label column.
    """
    if not items:
        return ""

    max_value = max(float(item["value"]) for item in items)
    space = max(width - LABEL_WIDTH, 1)
    scale = space / max_value if max_value > 0 else 0

    lines = []
    for item in items:
        label = str(item["label"])[:LABEL_WIDTH - 2].ljust(LABEL_WIDTH - 2)
        value = float(item["value"])
        bar = BAR * int(round(max(value, 0) * scale))
        line = f"{label}  {bar}"
        if show_values:
            line += f" {item['value']}"
        lines.append(line.rstrip())
    return "\n".join(lines)


def gantt_chart(tasks: Sequence[Dict[str, Any]], width: int = 60) -> str:
    """
    Timeline chart with one row per task.

    Each task needs ``name``, ``start`` and ``end`` (dates or ISO strings).
    """
    if not tasks:
        return ""

    spans = [(t, _as_date(t["start"]), _as_date(t["end"])) for t in tasks]
    first = min(start for _, start, _ in spans)
    last = max(end for _, _, end in spans)
    total_days = max((last - first).days, 1)
    track = max(width - LABEL_WIDTH, 10)

    lines = [f"{'':<{LABEL_WIDTH}}{first.isoformat()} → {last.isoformat()}"]
    for task, start, end in spans:
        offset = int(round((start - first).days / total_days * track))
        length = max(int(round((end - start).days / total_days * track)), 1)
        offset = min(offset, track - 1)
        length = min(length, track - offset)
        row = " " * offset + BAR * length
        name = str(task["name"])[:LABEL_WIDTH - 2].ljust(LABEL_WIDTH)
        lines.append(f"{name}{row.ljust(track)} {(end - start).days}d")
    return "\n".join(lines)


def render_chart(chart: Dict[str, Any], width: Optional[int] = None) -> str:
    """Render a chart payload by its ``type``; unknown types render empty."""
    kind = chart.get("type")
    data = chart.get("data") or {}
    width = width or (chart.get("metadata") or {}).get("width") or 50

    if kind == "bar":
        body = bar_chart(data.get("items", []), width=width)
    elif kind == "gantt":
        body = gantt_chart(data.get("tasks", []), width=width)
    else:
        return ""

    title = chart.get("title")
    return f"{title}\n{body}" if title else body


__all__ = ["bar_chart", "gantt_chart", "render_chart"]
