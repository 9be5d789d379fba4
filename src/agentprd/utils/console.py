"""
Rich console singleton and utilities for the AgentPRD CLI.

Provides a centralized console instance with the AgentPRD theme and
helper methods for consistent styling across commands and front ends.
"""

from __future__ import annotations

import os
from typing import Any, Optional

from rich.console import Console
from rich.panel import Panel

from agentprd.cli.theme import agentprd_theme


class AgentPRDConsole:
    """
    Singleton console instance with AgentPRD theming and helper methods.
    """

    _instance: Optional[AgentPRDConsole] = None

    def __new__(cls) -> AgentPRDConsole:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self) -> None:
        """Initialize the Rich console with the AgentPRD theme."""
        force_terminal = None
        if os.getenv("AGENTPRD_DEBUG"):
            force_terminal = True

        self._console = Console(
            theme=agentprd_theme,
            force_terminal=force_terminal,
            no_color=bool(os.getenv("NO_COLOR")),
            width=None,
        )

    @property
    def console(self) -> Console:
        """Access to the underlying Rich console."""
        return self._console

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Print with themed console."""
        self._console.print(*args, **kwargs)

    def success(self, message: str, emoji: bool = True) -> None:
        prefix = "✅ " if emoji else ""
        self._console.print(f"{prefix}{message}", style="success.text")

    def error(self, message: str, emoji: bool = True) -> None:
        prefix = "❌ " if emoji else ""
        self._console.print(f"{prefix}{message}", style="error.text")

    def warning(self, message: str, emoji: bool = True) -> None:
        prefix = "⚠️  " if emoji else ""
        self._console.print(f"{prefix}{message}", style="warning.text")

    def info(self, message: str, emoji: bool = True) -> None:
        prefix = "ℹ️  " if emoji else ""
        self._console.print(f"{prefix}{message}", style="info.text")

    def status_panel(
        self,
        title: str,
        content: str,
        status: str = "info",
        emoji: str = "",
    ) -> None:
        """
        Display a status panel with consistent styling.

        Args:
            title: Panel title
            content: Panel content
            status: Status type (success, warning, error, info)
            emoji: Optional emoji for the title
        """
        title_text = f"{emoji} {title}" if emoji else title

        panel = Panel(
            content,
            title=title_text,
            title_align="left",
            border_style=f"{status}.text" if status != "info" else "panel.border",
            padding=(1, 2),
        )
        self._console.print(panel)

    def clear(self) -> None:
        """Clear the console screen."""
        self._console.clear()


# Global console instance
console = AgentPRDConsole()

__all__ = ["console", "AgentPRDConsole"]
