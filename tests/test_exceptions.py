"""
Tests for the AgentPRD exception hierarchy.

Covers messages, automatic suggestions, context data and panel display.
"""

from __future__ import annotations

import httpx
import pytest

from agentprd.exceptions import (
    AgentCommunicationError,
    AgentPRDError,
    ConfigError,
    LLMError,
    RateLimitError,
    RequestTimeoutError,
    StorageError,
    ValidationError,
)


class TestAgentPRDError:
    def test_message_only(self):
        error = AgentPRDError("Something went wrong")

        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.suggestion is None
        assert error.context == {}

    def test_full_context(self):
        error = AgentPRDError("Bad file", suggestion="Fix it", context={"line": 42})
        assert error.suggestion == "Fix it"
        assert error.context["line"] == 42

    def test_display_panel(self, console_output):
        AgentPRDError("Agent unavailable", suggestion="Start the server").display()

        output = console_output()
        assert "Error" in output
        assert "Agent unavailable" in output
        assert "💡" in output
        assert "Start the server" in output

    def test_display_without_suggestion(self, console_output):
        AgentPRDError("Plain failure").display()
        assert "💡" not in console_output()


class TestConfigError:
    def test_url_suggestion(self):
        assert "agent.url" in ConfigError("Invalid URL configured").suggestion

    def test_api_key_suggestion(self):
        assert "API key" in ConfigError("Missing API key").suggestion

    def test_explicit_suggestion_wins(self):
        assert ConfigError("Invalid URL", suggestion="Use https").suggestion == "Use https"

    def test_no_match(self):
        assert ConfigError("Something odd").suggestion is None


class TestValidationError:
    def test_field_in_suggestion_and_context(self):
        error = ValidationError("Bad title", field="title")
        assert "'title'" in error.suggestion
        assert error.context == {"field": "title"}

    def test_without_field(self):
        error = ValidationError("Bad input")
        assert error.suggestion == "Check your input format"
        assert error.context == {}


class TestLLMError:
    @pytest.mark.parametrize(
        "message,expected",
        [
            ("Rate limit reached", "wait"),
            ("Request timeout", "internet connection"),
            ("Invalid key", "openai key"),
            ("Auth failed", "openai key"),
        ],
    )
    def test_suggestions(self, message, expected):
        error = LLMError(message, provider="openai")
        assert expected in error.suggestion
        assert error.context == {"provider": "openai"}

    def test_no_provider(self):
        error = LLMError("Invalid key")
        assert "API key" in error.suggestion
        assert error.context == {}


class TestStorageError:
    def test_context_skips_missing_parts(self):
        assert StorageError("read failed", namespace="ns").context == {"namespace": "ns"}
        assert StorageError("write failed", namespace="ns", key="k").context == {"namespace": "ns", "key": "k"}
        assert StorageError("boom").suggestion is None


class TestAgentCommunicationError:
    def test_fields(self):
        cause = httpx.ConnectError("refused")
        error = AgentCommunicationError(
            "Could not reach the agent", cause=cause, status_code=502, partial_content="Hel"
        )

        assert error.cause is cause
        assert error.status_code == 502
        assert error.partial_content == "Hel"
        assert error.context == {"status_code": 502}
        assert "agent URL" in error.suggestion

    def test_no_status(self):
        error = AgentCommunicationError("offline")
        assert error.status_code is None
        assert error.partial_content == ""
        assert error.context == {}

    def test_subclass_suggestions(self):
        timeout_error = RequestTimeoutError("Request timed out")
        rate_error = RateLimitError("Rate limit exceeded", status_code=429)

        assert "agent.timeout" in timeout_error.suggestion
        assert "Wait" in rate_error.suggestion
        assert isinstance(timeout_error, AgentCommunicationError)
        assert isinstance(rate_error, AgentPRDError)

    def test_override_suggestion(self):
        assert RateLimitError("slow down", suggestion="Later").suggestion == "Later"
