"""
Process configuration for slackmod.

Resilience thresholds live in :mod:`slackmod.resilience_config`; this module
adds the inbound Events API settings and the server bind address, and
bundles everything into :class:`SlackModConfig`.

Environment variables:
    SLACK_SIGNING_SECRET: Secret used to verify webhook signatures
    EVENTS_API_ENABLED: "true" enables the webhook endpoint
    SLACK_WEBHOOK_URL: Public URL Slack delivers events to (informational)
    SLACK_CLIENT_ID / SLACK_CLIENT_SECRET: OAuth app credentials (unused here)
    SLACKMOD_HOST / SLACKMOD_PORT: Webhook server bind address
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Optional

from slackmod.exceptions import ConfigurationError
from slackmod.resilience_config import (
    CircuitBreakerConfig,
    ClientPoolConfig,
    RequestQueueConfig,
    _get_env_int,
    get_circuit_breaker_config,
    get_client_pool_config,
    get_request_queue_config,
)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000


def _get_env_bool(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() == "true"


@dataclass(frozen=True)
class EventsConfig:
    """Settings for the inbound Events API webhook.

    Attributes:
        enabled: Whether the webhook endpoint accepts events.
        signing_secret: Slack app signing secret.
        webhook_url: Public delivery URL, logged at startup.
        max_request_age_seconds: Freshness window for request timestamps.
        processed_event_capacity: Size bound of the processed-event set.
    """

    enabled: bool = False
    signing_secret: Optional[str] = None
    webhook_url: Optional[str] = None
    max_request_age_seconds: int = 300
    processed_event_capacity: int = 10_000

    def __post_init__(self) -> None:
        if self.enabled and not self.signing_secret:
            raise ConfigurationError("events", "SLACK_SIGNING_SECRET is required when events are enabled")
        if self.max_request_age_seconds <= 0:
            raise ConfigurationError("events", "max_request_age_seconds must be positive")
        if self.processed_event_capacity < 10:
            raise ConfigurationError("events", "processed_event_capacity must be at least 10")

    @classmethod
    def from_env(cls) -> EventsConfig:
        return cls(
            enabled=_get_env_bool("EVENTS_API_ENABLED"),
            signing_secret=os.environ.get("SLACK_SIGNING_SECRET") or None,
            webhook_url=os.environ.get("SLACK_WEBHOOK_URL") or None,
        )


@dataclass(frozen=True)
class SlackModConfig:
    """All slackmod settings for one process."""

    events: EventsConfig = field(default_factory=EventsConfig)
    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    request_queue: RequestQueueConfig = field(default_factory=RequestQueueConfig)
    client_pool: ClientPoolConfig = field(default_factory=ClientPoolConfig)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    client_id: Optional[str] = None
    client_secret: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_env(cls) -> SlackModConfig:
        """Build the configuration from environment variables.

        Raises:
            ConfigurationError: Events enabled without a signing secret
        """
        return cls(
            events=EventsConfig.from_env(),
            circuit_breaker=get_circuit_breaker_config(),
            request_queue=get_request_queue_config(),
            client_pool=get_client_pool_config(),
            host=os.environ.get("SLACKMOD_HOST", DEFAULT_HOST),
            port=_get_env_int("SLACKMOD_PORT") or DEFAULT_PORT,
            client_id=os.environ.get("SLACK_CLIENT_ID") or None,
            client_secret=os.environ.get("SLACK_CLIENT_SECRET") or None,
        )

    def with_events(self, **overrides) -> SlackModConfig:
        """Return a copy with Events API settings replaced."""
        return replace(self, events=replace(self.events, **overrides))
