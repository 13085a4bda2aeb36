"""
Custom exception types for slackmod.

This module defines the hierarchy of exceptions used throughout the package.
Every Slack-facing failure carries an ``ErrorKind`` and a ``retryable`` flag,
so callers can tell retryable faults from terminal ones without parsing
message strings.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Classification of failures surfaced by slackmod."""

    RATE_LIMITED = "RATE_LIMITED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    AUTH_ERROR = "AUTH_ERROR"
    API_ERROR = "API_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    CIRCUIT_HALF_OPEN_LIMIT = "CIRCUIT_HALF_OPEN_LIMIT"
    PARSE_ERROR = "PARSE_ERROR"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"


class SlackModError(Exception):
    """Base exception for all slackmod errors.

    All custom exceptions in slackmod inherit from this class
    to enable catching every package-specific error with a single handler.
    """

    kind: ErrorKind = ErrorKind.API_ERROR
    retryable: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


# ============================================================================
# Slack Web API Errors
# ============================================================================


class SlackAPIError(SlackModError):
    """Failure of an outbound Slack Web API operation."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.API_ERROR,
        retryable: bool = False,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.kind = kind
        self.retryable = retryable

    @property
    def code(self) -> str:
        return self.kind.value


class RateLimitedError(SlackAPIError):
    """Slack asked us to back off."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(
            message,
            ErrorKind.RATE_LIMITED,
            retryable=True,
            details={"retry_after": retry_after},
        )
        self.retry_after = retry_after


class NetworkError(SlackAPIError):
    """Transport-level failure reaching Slack."""

    def __init__(self, message: str):
        super().__init__(message, ErrorKind.NETWORK_ERROR, retryable=True)


class RequestTimeoutError(SlackAPIError):
    """A Slack request exceeded its deadline."""

    def __init__(self, message: str):
        super().__init__(message, ErrorKind.TIMEOUT, retryable=True)


class AuthError(SlackAPIError):
    """Credential is invalid, expired, revoked or missing a scope.

    Never retried automatically; the user has to re-authenticate.
    """

    def __init__(self, message: str, platform_error: str | None = None):
        super().__init__(
            message,
            ErrorKind.AUTH_ERROR,
            retryable=False,
            details={"platform_error": platform_error} if platform_error else None,
        )
        self.platform_error = platform_error


class NotAuthenticatedError(AuthError):
    """The user has no stored Slack credential."""

    def __init__(self, user_id: str | None = None):
        super().__init__("User is not authenticated with Slack")
        self.user_id = user_id


class InvalidCredentialError(AuthError):
    """The stored credential does not look like a Slack token."""

    def __init__(self) -> None:
        super().__init__("Invalid access token format")


class APIError(SlackAPIError):
    """Any other platform-reported failure."""

    def __init__(self, message: str, platform_error: str | None = None):
        super().__init__(
            message,
            ErrorKind.API_ERROR,
            retryable=False,
            details={"platform_error": platform_error} if platform_error else None,
        )
        self.platform_error = platform_error


class NotFoundError(SlackAPIError):
    """A human-friendly identifier did not resolve to a Slack ID."""

    def __init__(self, entity: str, identifier: str, hint: str | None = None):
        message = f"Could not find {entity} with name: {identifier}"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(
            message,
            ErrorKind.NOT_FOUND,
            retryable=False,
            details={"entity": entity, "identifier": identifier},
        )
        self.entity = entity
        self.identifier = identifier


class CircuitOpenError(SlackAPIError):
    """Raised when attempting to use an open circuit."""

    def __init__(self, circuit_name: str, cooldown_remaining: float):
        super().__init__(
            f"Circuit breaker OPEN for {circuit_name}. Retry in {cooldown_remaining:.1f}s",
            ErrorKind.CIRCUIT_OPEN,
            retryable=False,
            details={"circuit": circuit_name, "cooldown_remaining": cooldown_remaining},
        )
        self.circuit_name = circuit_name
        self.cooldown_remaining = cooldown_remaining


class CircuitHalfOpenLimitError(SlackAPIError):
    """Raised when a half-open circuit has used up its trial calls."""

    def __init__(self, circuit_name: str, max_calls: int):
        super().__init__(
            f"Circuit breaker HALF_OPEN limit reached for {circuit_name}",
            ErrorKind.CIRCUIT_HALF_OPEN_LIMIT,
            retryable=False,
            details={"circuit": circuit_name, "half_open_max_calls": max_calls},
        )
        self.circuit_name = circuit_name
        self.max_calls = max_calls


# ============================================================================
# Inbound / Local Errors
# ============================================================================


class SignatureValidationError(SlackModError):
    """Webhook request failed signature or freshness validation."""

    kind = ErrorKind.SIGNATURE_INVALID

    def __init__(self, reason: str):
        super().__init__(f"Signature validation failed: {reason}", {"reason": reason})
        self.reason = reason


class ConfigurationError(SlackModError):
    """Raised when a component is misconfigured."""

    kind = ErrorKind.CONFIGURATION_ERROR

    def __init__(self, component: str, reason: str):
        super().__init__(
            f"Configuration error in {component}: {reason}",
            {"component": component, "reason": reason},
        )
        self.component = component
        self.reason = reason


class RequestValidationError(SlackModError):
    """An AI action request is missing required data."""

    kind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, {"field": field} if field else None)
        self.field = field


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
]
