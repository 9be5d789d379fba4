"""
AgentPRD exception hierarchy.

Every error a user can see carries a message, an optional suggestion and a
context dict, and knows how to render itself as a Rich panel.
"""

from typing import Optional, Any
from rich.panel import Panel
from rich.text import Text

from agentprd.utils.console import console


class AgentPRDError(Exception):
    """
    Base exception for all AgentPRD errors.
    """

    def __init__(
        self,
        message: str,
        suggestion: Optional[str] = None,
        context: Optional[dict[str, Any]] = None
    ):
        """
        Initialize AgentPRD exception.

        Args:
            message: The error message
            suggestion: Optional helpful suggestion for fixing the error
            context: Optional context data for debugging
        """
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.context = context or {}

    def display(self) -> None:
        """Display the error in the console."""
        error_text = Text(self.message, style="bold red")

        if self.suggestion:
            error_text.append("\n\n💡 ", style="yellow")
            error_text.append(self.suggestion, style="italic yellow")

        panel = Panel(
            error_text,
            title="❌ Error",
            title_align="left",
            border_style="red",
            padding=(1, 2)
        )
        console.print(panel)


class ConfigError(AgentPRDError):
    """Raised when there's a configuration issue."""

    def __init__(self, message: str, suggestion: Optional[str] = None):
        if not suggestion:
            if "url" in message.lower():
                suggestion = "Run 'agentprd config set agent.url <url>' or set AGENTPRD_AGENT_URL"
            elif "API" in message.upper():
                suggestion = "Set your API key in environment variables or .env file"
        super().__init__(message, suggestion)


class ValidationError(AgentPRDError):
    """Raised when user input or request data fails validation."""

    def __init__(self, message: str, field: Optional[str] = None):
        suggestion = f"Check the format of '{field}'" if field else "Check your input format"
        context = {"field": field} if field else {}
        super().__init__(message, suggestion, context)


class LLMError(AgentPRDError):
    """Raised when LLM API calls fail."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        suggestion: Optional[str] = None
    ):
        if not suggestion:
            if "rate" in message.lower():
                suggestion = "Please wait a moment and try again"
            elif "timeout" in message.lower():
                suggestion = "Check your internet connection or try again"
            elif "key" in message.lower() or "auth" in message.lower():
                suggestion = f"Check your {provider or 'API'} key is valid"

        context = {"provider": provider} if provider else {}
        super().__init__(message, suggestion, context)


class StorageError(AgentPRDError):
    """Raised when the key-value store cannot be read or written."""

    def __init__(self, message: str, namespace: Optional[str] = None, key: Optional[str] = None):
        context = {k: v for k, v in (("namespace", namespace), ("key", key)) if v}
        super().__init__(message, None, context)


class AgentCommunicationError(AgentPRDError):
    """
    Raised when a turn cannot be completed over HTTP.

    Carries the original cause, the HTTP status (when one was received) and
    whatever content had already streamed before the failure.
    """

    default_suggestion = "Check that the agent is running and the agent URL is correct"

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
        partial_content: str = "",
        suggestion: Optional[str] = None,
    ):
        context: dict[str, Any] = {}
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(message, suggestion or self.default_suggestion, context)
        self.cause = cause
        self.status_code = status_code
        self.partial_content = partial_content


class RequestTimeoutError(AgentCommunicationError):
    """Raised when a request exceeds the client's absolute deadline."""

    default_suggestion = "Try again in a moment or raise agent.timeout"


class RateLimitError(AgentCommunicationError):
    """Raised when the agent answers HTTP 429."""

    default_suggestion = "Wait a few seconds before sending another message"


__all__ = [
    "AgentPRDError",
    "ConfigError",
    "ValidationError",
    "LLMError",
    "StorageError",
    "AgentCommunicationError",
    "RequestTimeoutError",
    "RateLimitError",
]
