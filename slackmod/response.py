"""
Response handling for outbound Slack calls.

Every Slack Web API call goes through :class:`ResponseHandler`, which runs
the call (optionally behind the operation's circuit breaker and the shared
request queue) and converts whatever it raises into the slackmod error
taxonomy.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import aiohttp
from slack_sdk.errors import SlackApiError, SlackRequestError

from slackmod.errors import truncate_context
from slackmod.exceptions import (
    APIError,
    AuthError,
    NetworkError,
    RateLimitedError,
    RequestTimeoutError,
    SlackAPIError,
    SlackModError,
)
from slackmod.logging_config import get_logger
from slackmod.pool import ClientPool

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_RETRY_AFTER_SECONDS = 60.0

RATE_LIMIT_ERRORS = frozenset({"ratelimited", "rate_limited"})

# Platform error codes that mean the credential itself is unusable
AUTH_ERROR_MESSAGES: dict[str, str] = {
    "missing_scope": "Missing OAuth scope",
    "invalid_auth": "Invalid authentication",
    "not_authed": "Invalid authentication",
    "account_inactive": "Account inactive",
    "token_revoked": "Token revoked",
    "token_expired": "Token expired",
    "no_permission": "Missing permission",
}


def _retry_after(error: SlackApiError) -> float:
    headers = getattr(error.response, "headers", None) or {}
    value = headers.get("Retry-After") or headers.get("retry-after")
    if value is None:
        data = getattr(error.response, "data", None)
        if isinstance(data, dict):
            value = data.get("retry_after")
    try:
        return float(value) if value is not None else DEFAULT_RETRY_AFTER_SECONDS
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER_SECONDS


def _platform_error(error: SlackApiError) -> Optional[str]:
    response = error.response
    try:
        code = response.get("error")
    except AttributeError:
        code = None
    return code if isinstance(code, str) else None


def classify_error(error: BaseException, operation_name: str) -> SlackModError:
    """Map any exception raised by a Slack call onto the error taxonomy.

    Args:
        error: The raised exception
        operation_name: Name of the operation, used in messages

    Returns:
        A SlackModError subclass; slackmod errors are returned unchanged
    """
    if isinstance(error, SlackModError):
        return error

    if isinstance(error, SlackApiError):
        platform_error = _platform_error(error)
        status = getattr(error.response, "status_code", None)

        if status == 429 or platform_error in RATE_LIMIT_ERRORS:
            retry_after = _retry_after(error)
            return RateLimitedError(
                f"Rate limited: {operation_name} (retry after {retry_after:g}s)",
                retry_after=retry_after,
            )

        if platform_error in AUTH_ERROR_MESSAGES:
            return AuthError(
                f"{AUTH_ERROR_MESSAGES[platform_error]}: {platform_error}",
                platform_error=platform_error,
            )

        return APIError(
            f"{operation_name} failed: {platform_error or error}",
            platform_error=platform_error,
        )

    # aiohttp's ServerTimeoutError is also a connection error; check timeouts first
    if isinstance(error, asyncio.TimeoutError):
        return RequestTimeoutError(f"Request timeout: {operation_name}")

    if isinstance(error, (SlackRequestError, aiohttp.ClientError, ConnectionError)):
        return NetworkError(f"Network error: {error}")

    return APIError(f"{operation_name} failed: {error}")


class ResponseHandler:
    """
    Wraps outbound Slack operations with classification and protection.

    Usage:
        handler = ResponseHandler(pool)
        result = await handler.execute(
            lambda: client.chat_postMessage(channel=channel_id, text=text),
            "chat.postMessage",
        )
    """

    def __init__(self, pool: ClientPool):
        self.pool = pool

    async def _run_classified(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
    ) -> T:
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            classified = classify_error(e, operation_name)
            logger.error(
                "Slack API error",
                operation=operation_name,
                code=classified.kind.value,
                retryable=classified.retryable,
                context=truncate_context(str(e)),
            )
            if classified is e:
                raise
            raise classified from e

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
        use_circuit_breaker: bool = True,
        queued: bool = False,
    ) -> T:
        """Run a Slack operation and classify its failure.

        Args:
            operation: Zero-argument coroutine function performing the call
            operation_name: Name used for the circuit breaker and logs
            use_circuit_breaker: Gate the call behind the operation's breaker
            queued: Route the call through the shared request queue

        Raises:
            SlackAPIError: Classified failure (see ErrorKind)
        """

        async def run() -> T:
            if not use_circuit_breaker:
                return await self._run_classified(operation, operation_name)
            breaker = self.pool.get_circuit_breaker(operation_name)
            try:
                return await breaker.call(
                    lambda: self._run_classified(operation, operation_name)
                )
            except SlackAPIError as e:
                if e.kind.value.startswith("CIRCUIT"):
                    logger.warning(
                        "Slack call short-circuited",
                        operation=operation_name,
                        code=e.kind.value,
                    )
                raise

        if queued:
            return await self.pool.execute_with_queue(run)
        return await run()


async def call_slack(
    pool: ClientPool,
    operation: Callable[[], Awaitable[T]],
    operation_name: str,
    use_circuit_breaker: bool = True,
) -> T:
    """Functional shortcut for ``ResponseHandler(pool).execute(...)``."""
    return await ResponseHandler(pool).execute(operation, operation_name, use_circuit_breaker)


def response_data(response: Any) -> dict[str, Any]:
    """Return the JSON body of a slack_sdk response (or a plain dict)."""
    data = getattr(response, "data", response)
    return data if isinstance(data, dict) else {}
