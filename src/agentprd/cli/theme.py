"""
Rich theme configuration for the AgentPRD CLI.

One palette shared by the REPL, the full-screen TUI and log output.
"""

from rich.theme import Theme

PRIMARY = "#00A6FB"    # Agent replies, panel borders
SUCCESS = "#52C41A"
WARNING = "#FAAD14"
ERROR = "#FF4D4F"
INFO = "#1890FF"
MUTED = "#8C8C8C"
ACCENT = "#722ED1"     # Tool calls

agentprd_theme = Theme({
    "primary": PRIMARY,
    "success": SUCCESS,
    "warning": WARNING,
    "error": ERROR,
    "info": INFO,
    "muted": MUTED,
    "accent": ACCENT,

    "success.text": f"bold {SUCCESS}",
    "warning.text": f"bold {WARNING}",
    "error.text": f"bold {ERROR}",
    "info.text": f"bold {INFO}",

    "panel.title": f"bold {PRIMARY}",
    "panel.border": PRIMARY,

    "table.header": f"bold {PRIMARY}",
    "table.border": MUTED,

    "help.command": f"bold {PRIMARY}",
    "help.option": f"bold {ACCENT}",
    "help.example": MUTED,

    # Chat roles
    "chat.user": f"bold {INFO}",
    "chat.agent": f"bold {PRIMARY}",
    "chat.system": f"italic {MUTED}",
    "chat.tool": ACCENT,

    "dim": MUTED,

    "status.running": f"bold {INFO}",
    "status.complete": f"bold {SUCCESS}",
    "status.failed": f"bold {ERROR}",
    "status.pending": f"bold {WARNING}",
})

__all__ = ["agentprd_theme", "PRIMARY", "SUCCESS", "WARNING", "ERROR", "INFO", "MUTED", "ACCENT"]
