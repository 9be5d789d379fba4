"""
Heuristic detection of "thinking out loud" passages in streamed text.

This sits on top of decoded text and plays no part in framing. Chunks are
classified by substring sniffing, which is fragile: a false positive only
changes how text is displayed, never what is stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

OPEN_MARKERS = ("<thinking>", "thinking through", "let me think")
CLOSE_MARKERS = ("</thinking>", "based on this analysis", "now i'll")

# First matching word wins
SPINNER_HINTS = (
    ("analyzing", "Analyzing..."),
    ("considering", "Considering options..."),
    ("planning", "Planning approach..."),
    ("research", "Researching..."),
    ("structure", "Structuring response..."),
)
DEFAULT_HINT = "Thinking..."


@dataclass
class ReasoningUpdate:
    """What the front end should do with one chunk."""

    visible: str = ""
    in_reasoning: bool = False
    hint: Optional[str] = None
    finished_block: Optional[str] = None


class ReasoningDetector:
    """
    Routes text chunks to visible content or a reasoning buffer.

    When ``show_reasoning`` is true, a finished reasoning block is returned
    in ``ReasoningUpdate.finished_block`` for display; otherwise it is
    discarded from the visible stream.
    """

    def __init__(self, show_reasoning: bool = False):
        self.show_reasoning = show_reasoning
        self.in_reasoning = False
        self.reasoning_buffer = ""
        self.visible: List[str] = []

    def reset(self) -> None:
        self.in_reasoning = False
        self.reasoning_buffer = ""
        self.visible = []

    def process(self, chunk: str) -> ReasoningUpdate:
        lowered = chunk.lower()

        if any(marker in lowered for marker in OPEN_MARKERS):
            self.in_reasoning = True
            self.reasoning_buffer += chunk
            return ReasoningUpdate(in_reasoning=True, hint=self.hint())

        if self.in_reasoning and any(marker in lowered for marker in CLOSE_MARKERS):
            self.reasoning_buffer += chunk
            block = self.reasoning_buffer
            self.in_reasoning = False
            self.reasoning_buffer = ""
            return ReasoningUpdate(finished_block=block if self.show_reasoning else None)

        if self.in_reasoning:
            self.reasoning_buffer += chunk
            return ReasoningUpdate(in_reasoning=True, hint=self.hint())

        self.visible.append(chunk)
        return ReasoningUpdate(visible=chunk)

    def hint(self) -> str:
        words = self.reasoning_buffer.lower()
        for needle, label in SPINNER_HINTS:
            if needle in words:
                return label
        return DEFAULT_HINT

    @property
    def visible_text(self) -> str:
        return "".join(self.visible)


__all__ = ["ReasoningDetector", "ReasoningUpdate", "OPEN_MARKERS", "CLOSE_MARKERS"]
