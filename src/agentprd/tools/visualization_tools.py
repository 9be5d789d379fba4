"""
Chart-building tools. Results carry both structured chart data and an
ASCII rendering the model can quote back verbatim.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from agentprd.render.charts import render_chart
from agentprd.tools.base import ToolContext, ToolRegistry

ChartType = Literal["bar", "line", "pie", "gantt", "sparkline"]


class ChartData(BaseModel):
    type: ChartType
    title: str
    data: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    ascii: str = ""


class Feature(BaseModel):
    name: str
    impact: float = Field(ge=1, le=10)
    effort: float = Field(ge=1, le=10)
    category: Optional[str] = None


class TimelineTask(BaseModel):
    name: str
    start_date: date = Field(description="ISO date string")
    end_date: date = Field(description="ISO date string")
    status: Optional[Literal["planned", "in-progress", "completed"]] = None


def priority_color(score: float) -> str:
    if score > 7:
        return "green"
    if score > 4:
        return "yellow"
    return "red"


def feature_priority_chart(features: List[Feature]) -> ChartData:
    """Rank features by impact/effort x 10, highest first."""
    scored = sorted(
        ((f, f.impact / f.effort * 10) for f in features),
        key=lambda pair: pair[1],
        reverse=True,
    )
    chart = ChartData(
        type="bar",
        title="Feature Priority Matrix",
        data={
            "items": [
                {
                    "label": f.name[:15],
                    "value": round(score),
                    "score": round(score, 2),
                    "color": priority_color(score),
                    "metadata": {"impact": f.impact, "effort": f.effort, "category": f.category},
                }
                for f, score in scored
            ]
        },
        metadata={"width": 50, "colors": ["green", "yellow", "red"]},
    )
    chart.ascii = render_chart(chart.model_dump())
    return chart


def timeline_chart(tasks: List[TimelineTask]) -> ChartData:
    ordered = sorted(tasks, key=lambda t: t.start_date)
    colors = {"completed": "green", "in-progress": "yellow"}
    chart = ChartData(
        type="gantt",
        title="Project Timeline",
        data={
            "tasks": [
                {
                    "name": t.name,
                    "start": t.start_date.isoformat(),
                    "end": t.end_date.isoformat(),
                    "duration": (t.end_date - t.start_date).days,
                    "color": colors.get(t.status or "", "blue"),
                }
                for t in ordered
            ]
        },
        metadata={"width": 60},
    )
    chart.ascii = render_chart(chart.model_dump())
    return chart


class PriorityChartParams(BaseModel):
    features: List[Feature]


class TimelineChartParams(BaseModel):
    tasks: List[TimelineTask]


def register_visualization_tools(registry: ToolRegistry) -> None:
    @registry.tool(
        "create_feature_priority_chart",
        "Create a feature priority chart (impact vs effort)",
        PriorityChartParams,
    )
    async def create_feature_priority_chart(ctx: ToolContext, p: PriorityChartParams):
        return feature_priority_chart(p.features)

    @registry.tool(
        "create_timeline_chart",
        "Create a timeline/gantt chart for project phases",
        TimelineChartParams,
    )
    async def create_timeline_chart(ctx: ToolContext, p: TimelineChartParams):
        return timeline_chart(p.tasks)


__all__ = [
    "ChartData",
    "Feature",
    "TimelineTask",
    "feature_priority_chart",
    "timeline_chart",
    "priority_color",
    "register_visualization_tools",
]
