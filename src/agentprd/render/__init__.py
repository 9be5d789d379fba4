"""
Terminal rendering: ASCII charts and tool-event summaries.
"""

from agentprd.render.charts import bar_chart, gantt_chart, render_chart
from agentprd.render.tools import render_tool_event, render_tool_log, tool_status_table

__all__ = [
    "bar_chart",
    "gantt_chart",
    "render_chart",
    "render_tool_event",
    "render_tool_log",
    "tool_status_table",
]
