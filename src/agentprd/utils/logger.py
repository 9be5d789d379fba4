"""
AgentPRD logging infrastructure using loguru with Rich integration.

Rich-colored console output for humans and structured JSON logs on disk.
The same setup is used by the CLI front ends and by the agent server.
"""

from __future__ import annotations

import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Dict, Optional, TYPE_CHECKING

from loguru import logger
from rich.console import Console
from rich.highlighter import Highlighter
from rich.text import Text

if TYPE_CHECKING:
    from agentprd.config.models import Config


def _get_log_level_colors() -> Dict[str, str]:
    """Get log level colors with lazy import to avoid circular dependency."""
    from agentprd.cli.theme import SUCCESS, WARNING, ERROR, INFO, MUTED

    return {
        "TRACE": MUTED,
        "DEBUG": MUTED,
        "INFO": INFO,
        "SUCCESS": SUCCESS,
        "WARNING": WARNING,
        "ERROR": ERROR,
        "CRITICAL": ERROR,
    }


SENSITIVE_PATTERNS = [
    re.compile(r'api[_-]?key[\'"\s]*[:=][\'"\s]*([^\s\'",}]+)', re.IGNORECASE),
    re.compile(r'token[\'"\s]*[:=][\'"\s]*([^\s\'",}]+)', re.IGNORECASE),
    re.compile(r'password[\'"\s]*[:=][\'"\s]*([^\s\'",}]+)', re.IGNORECASE),
    re.compile(r'secret[\'"\s]*[:=][\'"\s]*([^\s\'",}]+)', re.IGNORECASE),
    re.compile(r'bearer\s+([^\s\'",}]+)', re.IGNORECASE),
    re.compile(r'authorization[\'"\s]*[:=][\'"\s]*([^\s\'",}]+)', re.IGNORECASE),
]

# stdlib level numbers -> loguru level names (tenacity logs with ints)
_STDLIB_LEVELS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARNING",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRITICAL",
}


class RichLogHighlighter(Highlighter):
    """Highlighter for Rich console logs with AgentPRD theme colors."""

    def highlight(self, text: Text) -> None:
        plain_text = text.plain
        log_level_colors = _get_log_level_colors()

        for level, color in log_level_colors.items():
            if plain_text.startswith(level):
                text.stylize(f"bold {color}", 0, len(level))
                break

        from agentprd.cli.theme import SUCCESS, WARNING, ERROR, INFO, MUTED

        text.highlight_regex(r'\b(ERROR|FAILED|EXCEPTION)\b', f"bold {ERROR}")
        text.highlight_regex(r'\b(SUCCESS|COMPLETED|DONE)\b', f"bold {SUCCESS}")
        text.highlight_regex(r'\b(WARNING|WARN)\b', f"bold {WARNING}")
        text.highlight_regex(r'https?://[^\s]+', f"underline {INFO}")
        text.highlight_regex(r'\b(session[_-][\w-]+|cli-[\w-]+)\b', f"dim {MUTED}")
        text.highlight_regex(r'\d+\.?\d*\s?(ms|s|sec|seconds?)', f"italic {SUCCESS}")


def filter_sensitive_data(message: str) -> str:
    """
    Filter sensitive data from log messages.

    Args:
        message: Log message to filter

    Returns:
        Filtered message with sensitive data replaced
    """
    filtered = message

    for pattern in SENSITIVE_PATTERNS:
        filtered = pattern.sub(lambda m: m.group(0).replace(m.group(1), '[REDACTED]'), filtered)

    return filtered


def console_formatter(record: Dict[str, Any]) -> str:
    """
    Format log records for Rich console output.

    Returns a rich-markup line; loguru treats the return value as a format
    template, so literal braces in the message are escaped.
    """
    from agentprd.cli.theme import INFO
    log_level_colors = _get_log_level_colors()
    level_color = log_level_colors.get(record['level'].name, INFO)

    time_str = record['time'].strftime('%H:%M:%S')
    level_str = f"{record['level'].name:<8}"

    logger_name = record['extra'].get('name', record['name'])
    if logger_name.startswith('agentprd.'):
        logger_name = logger_name[len('agentprd.'):]
    logger_str = f"{logger_name:<18}"

    message = filter_sensitive_data(record['message'])

    parts = [
        f"[dim]{time_str}[/dim]",
        f"[bold {level_color}]{level_str}[/bold {level_color}]",
        f"[dim]{logger_str}[/dim]",
        message,
    ]

    extra = record.get('extra', {})
    context_parts = [
        f"{key}={value}"
        for key, value in extra.items()
        if key not in ('name', 'request_id', 'duration_ms')
    ]
    if context_parts:
        parts.append(f"[dim]({', '.join(context_parts)})[/dim]")

    line = " | ".join(parts)
    return line.replace("{", "{{").replace("}", "}}") + "\n"


def setup_logging(config: Optional[Config] = None, log_dir: Optional[Path] = None) -> None:
    """
    Setup loguru with Rich console output and JSON file logging.

    Args:
        config: AgentPRD configuration object. If None, uses environment variables
        log_dir: Directory for the JSON log file (defaults to ~/.agentprd/logs)
    """
    logger.remove()

    if config:
        log_level = config.app.log_level
        debug_mode = config.app.debug
        no_color = config.app.no_color
    else:
        log_level = os.getenv('AGENTPRD_LOG_LEVEL', 'WARNING').upper()
        debug_mode = os.getenv('AGENTPRD_DEBUG', '').lower() in ('1', 'true', 'yes', 'on')
        no_color = bool(os.getenv('NO_COLOR'))

    if debug_mode:
        log_level = 'DEBUG'

    console = Console(
        stderr=True,
        force_terminal=not no_color,
        no_color=no_color,
        highlighter=RichLogHighlighter() if not no_color else None,
    )

    def console_sink(message: str) -> None:
        console.print(message.rstrip("\n"), highlight=False, markup=True)

    logger.add(
        console_sink,
        format=console_formatter,
        level=log_level,
        colorize=False,
        backtrace=debug_mode,
        diagnose=debug_mode,
        enqueue=True,
    )

    log_dir = log_dir or Path.home() / '.agentprd' / 'logs'
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        # Read-only home (containers, CI): console logging only
        logger.warning("Log directory not writable, file logging disabled", log_dir=str(log_dir))
        return

    log_file = log_dir / 'agentprd.log'

    logger.add(
        log_file,
        format="{message}",
        serialize=True,
        level='DEBUG',
        rotation='10 MB',
        retention='7 days',
        compression='gz',
        backtrace=True,
        diagnose=False,
        enqueue=True,
    )

    logger.debug(
        "AgentPRD logging initialized",
        console_level=log_level,
        debug_mode=debug_mode,
        log_file=str(log_file),
    )


def get_logger(name: str) -> "LoggerAdapter":
    """
    Get a logger instance for the given module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        LoggerAdapter instance with context support
    """
    return LoggerAdapter(logger.bind(name=name), name)


class LoggerAdapter:
    """
    Adapter around a bound loguru logger.

    Keyword arguments passed to the level methods become structured
    ``extra`` fields; messages are never used as format templates.
    """

    def __init__(self, logger_instance: Any, name: str):
        self._logger = logger_instance
        self.name = name

    def bind(self, **kwargs: Any) -> "LoggerAdapter":
        """Bind additional context to the logger."""
        return LoggerAdapter(self._logger.bind(**kwargs), self.name)

    def with_context(self, **context: Any) -> "LoggerAdapter":
        return self.bind(**context)

    def _emit(self, level: str, message: str, kwargs: Dict[str, Any], exception: bool = False) -> None:
        extra = kwargs.pop("extra", None) or {}
        kwargs.pop("exc_info", None)
        bound = self._logger.bind(**extra, **kwargs)
        if exception:
            bound.opt(exception=True, depth=2).log(level, "{}", message)
        else:
            bound.opt(depth=2).log(level, "{}", message)

    def log(self, level: Any, message: str, **kwargs: Any) -> None:
        """Log at an explicit level (stdlib int or loguru name)."""
        if isinstance(level, int):
            level = _STDLIB_LEVELS.get(level, "INFO")
        self._emit(str(level).upper(), message, kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._emit("DEBUG", message, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._emit("INFO", message, kwargs)

    def success(self, message: str, **kwargs: Any) -> None:
        self._emit("SUCCESS", message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._emit("WARNING", message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._emit("ERROR", message, kwargs)

    def critical(self, message: str, **kwargs: Any) -> None:
        self._emit("CRITICAL", message, kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._emit("ERROR", message, kwargs, exception=True)

    def time_operation(self, operation: str) -> "TimedOperation":
        """Create a context manager that times an operation."""
        return TimedOperation(self, operation)


class TimedOperation:
    """Context manager for timing operations and logging the results."""

    def __init__(self, logger_adapter: LoggerAdapter, operation: str):
        self.logger = logger_adapter
        self.operation = operation
        self.start_time: Optional[float] = None

    def __enter__(self) -> "TimedOperation":
        self.start_time = time.perf_counter()
        self.logger.debug(f"Starting {self.operation}")
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.start_time is None:
            return
        duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
        if exc_type is None:
            self.logger.debug(f"Completed {self.operation}", duration_ms=duration_ms)
        else:
            self.logger.error(f"Failed {self.operation}: {exc_val}", duration_ms=duration_ms)


__all__ = [
    'setup_logging',
    'get_logger',
    'LoggerAdapter',
    'TimedOperation',
    'filter_sensitive_data',
    'RichLogHighlighter',
]
