"""
Standardized Slack Web API client construction.

Every Slack client in slackmod is built here so the retry policy and
timeouts are identical across the codebase. Clients talk HTTP through
aiohttp (slack_sdk's async transport).

Usage:
    from slackmod.http_client import create_slack_client

    client = create_slack_client("xoxp-...")
    response = await client.conversations_list(limit=100)
"""

from __future__ import annotations

from typing import Optional

from slack_sdk.http_retry.builtin_async_handlers import (
    AsyncConnectionErrorRetryHandler,
    AsyncRateLimitErrorRetryHandler,
)
from slack_sdk.http_retry.builtin_interval_calculators import (
    BackoffRetryIntervalCalculator,
)
from slack_sdk.web.async_client import AsyncWebClient

from slackmod.resilience_config import ClientPoolConfig

__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "build_retry_handlers",
    "create_slack_client",
]

# Default timeout for a single Slack Web API request
DEFAULT_TIMEOUT_SECONDS = 30


def build_retry_handlers(config: Optional[ClientPoolConfig] = None) -> list:
    """Build the retry handlers attached to every pooled client.

    Connection errors retry with exponential backoff; rate-limited calls wait
    for Slack's Retry-After instead of being rejected outright.

    Args:
        config: Pool configuration supplying retry count and backoff factor

    Returns:
        List of slack_sdk async retry handlers
    """
    config = config or ClientPoolConfig()
    return [
        AsyncConnectionErrorRetryHandler(
            max_retry_count=config.max_retries,
            interval_calculator=BackoffRetryIntervalCalculator(
                backoff_factor=config.backoff_factor,
            ),
        ),
        AsyncRateLimitErrorRetryHandler(max_retry_count=config.max_retries),
    ]


def create_slack_client(
    token: str,
    config: Optional[ClientPoolConfig] = None,
) -> AsyncWebClient:
    """Create an AsyncWebClient bound to one credential.

    Args:
        token: Slack OAuth token (``xoxp-``/``xoxb-``)
        config: Optional pool configuration. Uses defaults if not specified.

    Returns:
        Configured AsyncWebClient.
    """
    config = config or ClientPoolConfig()
    return AsyncWebClient(
        token=token,
        timeout=config.timeout_seconds or DEFAULT_TIMEOUT_SECONDS,
        retry_handlers=build_retry_handlers(config),
    )
