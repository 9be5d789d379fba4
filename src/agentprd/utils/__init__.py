"""
AgentPRD utilities: console, logging and async helpers.
"""

from .async_utils import run_async, retry_with_backoff, timeout
from .console import console, AgentPRDConsole
from .logger import setup_logging, get_logger, LoggerAdapter

__all__ = [
    "run_async",
    "retry_with_backoff",
    "timeout",
    "console",
    "AgentPRDConsole",
    "setup_logging",
    "get_logger",
    "LoggerAdapter",
]
