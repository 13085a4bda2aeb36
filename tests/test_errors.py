"""Tests for the exception hierarchy and error response formatting."""

import pytest

from slackmod.errors import (
    format_error_response,
    get_error_suggestion,
    safe_error_message,
    truncate_context,
)
from slackmod.exceptions import (
    APIError,
    AuthError,
    CircuitOpenError,
    ConfigurationError,
    ErrorKind,
    InvalidCredentialError,
    NetworkError,
    NotAuthenticatedError,
    NotFoundError,
    RateLimitedError,
    RequestTimeoutError,
    RequestValidationError,
    SignatureValidationError,
    SlackAPIError,
    SlackModError,
)


class TestExceptionHierarchy:
    """Every error is a SlackModError carrying a kind and retryability."""

    @pytest.mark.parametrize("error,kind,retryable", [
        (RateLimitedError("slow down", retry_after=5), ErrorKind.RATE_LIMITED, True),
        (NetworkError("refused"), ErrorKind.NETWORK_ERROR, True),
        (RequestTimeoutError("late"), ErrorKind.TIMEOUT, True),
        (AuthError("Invalid authentication: invalid_auth", "invalid_auth"), ErrorKind.AUTH_ERROR, False),
        (APIError("boom", "channel_not_found"), ErrorKind.API_ERROR, False),
        (NotFoundError("channel", "nosuch"), ErrorKind.NOT_FOUND, False),
        (CircuitOpenError("chat.postMessage", 12.0), ErrorKind.CIRCUIT_OPEN, False),
    ])
    def test_api_errors(self, error, kind, retryable):
        assert isinstance(error, SlackAPIError)
        assert isinstance(error, SlackModError)
        assert error.kind == kind
        assert error.code == kind.value
        assert error.retryable is retryable

    def test_credential_errors_are_auth_errors(self):
        assert isinstance(NotAuthenticatedError("user-1"), AuthError)
        assert isinstance(InvalidCredentialError(), AuthError)
        assert NotAuthenticatedError("user-1").user_id == "user-1"

    def test_local_errors(self):
        assert SignatureValidationError("signature mismatch").kind == ErrorKind.SIGNATURE_INVALID
        assert ConfigurationError("events", "bad").kind == ErrorKind.CONFIGURATION_ERROR
        assert RequestValidationError("Missing", field="text").field == "text"
        assert not isinstance(SignatureValidationError("x"), SlackAPIError)

    def test_str_includes_details(self):
        error = NotFoundError("channel", "nosuch")
        assert str(error).startswith("Could not find channel with name: nosuch")
        assert "details" in str(error)
        assert error.message == "Could not find channel with name: nosuch"

    def test_not_found_hint(self):
        error = NotFoundError("channel", "bob", hint="Try a channel instead.")
        assert error.message.endswith(". Try a channel instead.")

    def test_circuit_open_message(self):
        error = CircuitOpenError("users.list", 30.25)
        assert "users.list" in error.message
        assert "30.2s" in error.message or "30.3s" in error.message
        assert error.cooldown_remaining == 30.25


class TestFormatErrorResponse:
    """Tests for turning exceptions into action results."""

    def test_api_error(self):
        response = format_error_response(APIError("chat.postMessage failed: is_archived", "is_archived"))
        assert response == {
            "error": "chat.postMessage failed: is_archived",
            "code": "API_ERROR",
            "retryable": False,
        }

    def test_auth_error(self):
        response = format_error_response(NotAuthenticatedError())
        assert response["code"] == "AUTH_ERROR"
        assert response["action"] == "authenticate"
        assert response["message"] == get_error_suggestion(ErrorKind.AUTH_ERROR)

    def test_rate_limited(self):
        response = format_error_response(RateLimitedError("Rate limited", retry_after=30.0))
        assert response["retryable"] is True
        assert response["retry_after"] == 30.0

    def test_extra_context(self):
        response = format_error_response(NetworkError("down"), operation="users.list")
        assert response["operation"] == "users.list"

    def test_plain_exception(self):
        response = format_error_response(ValueError("bad value"))
        assert response == {"error": "bad value", "code": "API_ERROR", "retryable": False}

    def test_exception_without_text(self):
        assert safe_error_message(KeyError()) == "KeyError"


class TestTruncateContext:
    def test_short_value_unchanged(self):
        assert truncate_context("short") == "short"

    def test_long_value_cut(self):
        result = truncate_context("x" * 500)
        assert len(result) == 203
        assert result.endswith("...")

    def test_non_string_repr(self):
        assert truncate_context({"a": 1}) == "{'a': 1}"
