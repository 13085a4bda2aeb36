"""
Unified error module for slackmod.

This module provides a single import point for slackmod exceptions plus the
helpers that turn them into the error-shaped results returned to the AI
action dispatcher.

Usage:
    from slackmod.errors import (
        SlackAPIError,
        NotFoundError,
        format_error_response,
    )

    try:
        ...
    except SlackAPIError as e:
        return format_error_response(e)
"""

from __future__ import annotations

from typing import Any

from slackmod.exceptions import (
    APIError,
    AuthError,
    CircuitHalfOpenLimitError,
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

# Short user-facing hints per error kind
ERROR_SUGGESTIONS: dict[ErrorKind, str] = {
    ErrorKind.RATE_LIMITED: "Slack is rate limiting requests. Try again shortly.",
    ErrorKind.NETWORK_ERROR: "Could not reach Slack. Check connectivity and retry.",
    ErrorKind.TIMEOUT: "Slack did not respond in time. Retry the request.",
    ErrorKind.AUTH_ERROR: "Please reconnect your Slack account.",
    ErrorKind.NOT_FOUND: "Check the channel or user name and try again.",
    ErrorKind.CIRCUIT_OPEN: "Slack is degraded right now. Try again later.",
    ErrorKind.CIRCUIT_HALF_OPEN_LIMIT: "Slack is recovering. Try again later.",
    ErrorKind.VALIDATION_ERROR: "The request is missing required parameters.",
}

MAX_CONTEXT_LENGTH = 200


def get_error_suggestion(kind: ErrorKind) -> str | None:
    """Return a short remediation hint for an error kind, if one exists."""
    return ERROR_SUGGESTIONS.get(kind)


def truncate_context(value: Any, max_length: int = MAX_CONTEXT_LENGTH) -> str:
    """Render a value for logs, cut to ``max_length`` characters."""
    text = value if isinstance(value, str) else repr(value)
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def safe_error_message(error: BaseException) -> str:
    """Return a user-presentable message for any exception.

    slackmod errors expose their own message; anything else is reduced to the
    exception text so stack details never reach the caller.
    """
    if isinstance(error, SlackModError):
        return error.message
    text = str(error)
    return text or type(error).__name__


def format_error_response(error: BaseException, **context: Any) -> dict[str, Any]:
    """Convert an exception into the error-shaped action result.

    Args:
        error: The exception to convert
        **context: Extra fields copied into the response

    Returns:
        Dict of the form ``{"error": str, "code": str, "retryable": bool, ...}``
    """
    response: dict[str, Any] = {"error": safe_error_message(error)}

    if isinstance(error, SlackModError):
        response["code"] = error.kind.value
        response["retryable"] = error.retryable
        suggestion = get_error_suggestion(error.kind)
        if suggestion:
            response["message"] = suggestion
        if isinstance(error, AuthError):
            response["action"] = "authenticate"
        if isinstance(error, RateLimitedError) and error.retry_after is not None:
            response["retry_after"] = error.retry_after
    else:
        response["code"] = ErrorKind.API_ERROR.value
        response["retryable"] = False

    response.update(context)
    return response


__all__ = [
    "ErrorKind",
    "SlackModError",
    "SlackAPIError",
    "RateLimitedError",
    "NetworkError",
    "RequestTimeoutError",
    "AuthError",
    "NotAuthenticatedError",
    "InvalidCredentialError",
    "APIError",
    "NotFoundError",
    "CircuitOpenError",
    "CircuitHalfOpenLimitError",
    "SignatureValidationError",
    "ConfigurationError",
    "RequestValidationError",
    "ERROR_SUGGESTIONS",
    "get_error_suggestion",
    "truncate_context",
    "safe_error_message",
    "format_error_response",
]
