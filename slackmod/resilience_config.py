"""
Resilience configuration module.

Provides the fixed thresholds for circuit breakers, the request queue and
the client pool, with environment variable overrides.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for a circuit breaker instance.

    Attributes:
        failure_threshold: Number of failures before opening circuit.
        timeout_seconds: Time in seconds since the last failure before the
            circuit goes half-open.
        half_open_max_calls: Trial calls allowed while half-open.

    Example:
        # Create a strict config for a flaky endpoint
        strict_config = CircuitBreakerConfig(
            failure_threshold=2,
            timeout_seconds=120.0,
        )
    """

    failure_threshold: int = 5
    timeout_seconds: float = 60.0
    half_open_max_calls: int = 3

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be at least 1")

    def with_overrides(
        self,
        failure_threshold: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        half_open_max_calls: Optional[int] = None,
    ) -> CircuitBreakerConfig:
        """Create a new config with specified overrides.

        Args:
            failure_threshold: Override for failure_threshold
            timeout_seconds: Override for timeout_seconds
            half_open_max_calls: Override for half_open_max_calls

        Returns:
            New CircuitBreakerConfig with overrides applied
        """
        return CircuitBreakerConfig(
            failure_threshold=(
                failure_threshold if failure_threshold is not None else self.failure_threshold
            ),
            timeout_seconds=(
                timeout_seconds if timeout_seconds is not None else self.timeout_seconds
            ),
            half_open_max_calls=(
                half_open_max_calls if half_open_max_calls is not None else self.half_open_max_calls
            ),
        )


@dataclass(frozen=True)
class RequestQueueConfig:
    """Configuration for the outbound request queue.

    Attributes:
        max_concurrent: Operations allowed to run at the same time.
        dispatch_delay_seconds: Pause before each dispatch of a waiting operation.
    """

    max_concurrent: int = 10
    dispatch_delay_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if self.dispatch_delay_seconds < 0:
            raise ValueError("dispatch_delay_seconds must not be negative")


@dataclass(frozen=True)
class ClientPoolConfig:
    """Configuration for the per-credential Slack client pool.

    Attributes:
        max_clients: Pool capacity before LRU eviction kicks in.
        client_ttl_seconds: Idle time after which a client is dropped.
        max_retries: Retries the Slack client performs on connection errors
            and rate limiting.
        backoff_factor: Exponential backoff factor between retries.
        timeout_seconds: Per-request HTTP timeout.
    """

    max_clients: int = 50
    client_ttl_seconds: float = 300.0
    max_retries: int = 5
    backoff_factor: float = 2.5
    timeout_seconds: int = 30

    def __post_init__(self) -> None:
        if self.max_clients < 1:
            raise ValueError("max_clients must be at least 1")
        if self.client_ttl_seconds <= 0:
            raise ValueError("client_ttl_seconds must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")


def _get_env_int(name: str) -> Optional[int]:
    """Get an integer from environment variable, or None if not set/invalid."""
    value = os.environ.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _get_env_float(name: str) -> Optional[float]:
    """Get a float from environment variable, or None if not set/invalid."""
    value = os.environ.get(name)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def get_circuit_breaker_config() -> CircuitBreakerConfig:
    """Get circuit breaker configuration with environment overrides.

    Environment variables:
        SLACKMOD_CB_FAILURE_THRESHOLD: Override failure threshold
        SLACKMOD_CB_TIMEOUT_SECONDS: Override timeout
        SLACKMOD_CB_HALF_OPEN_MAX_CALLS: Override half-open max calls
    """
    base_config = CircuitBreakerConfig()

    env_failure = _get_env_int("SLACKMOD_CB_FAILURE_THRESHOLD")
    env_timeout = _get_env_float("SLACKMOD_CB_TIMEOUT_SECONDS")
    env_half_open = _get_env_int("SLACKMOD_CB_HALF_OPEN_MAX_CALLS")

    if any(v is not None for v in [env_failure, env_timeout, env_half_open]):
        return base_config.with_overrides(
            failure_threshold=env_failure,
            timeout_seconds=env_timeout,
            half_open_max_calls=env_half_open,
        )

    return base_config


def get_request_queue_config() -> RequestQueueConfig:
    """Get request queue configuration with environment overrides.

    Environment variables:
        SLACKMOD_QUEUE_MAX_CONCURRENT: Override concurrency cap
        SLACKMOD_QUEUE_DELAY_SECONDS: Override inter-dispatch delay
    """
    config = RequestQueueConfig()
    max_concurrent = _get_env_int("SLACKMOD_QUEUE_MAX_CONCURRENT")
    delay = _get_env_float("SLACKMOD_QUEUE_DELAY_SECONDS")
    if max_concurrent is not None:
        config = replace(config, max_concurrent=max_concurrent)
    if delay is not None:
        config = replace(config, dispatch_delay_seconds=delay)
    return config


def get_client_pool_config() -> ClientPoolConfig:
    """Get client pool configuration with environment overrides.

    Environment variables:
        SLACKMOD_POOL_MAX_CLIENTS: Override pool capacity
        SLACKMOD_POOL_CLIENT_TTL_SECONDS: Override idle TTL
    """
    config = ClientPoolConfig()
    max_clients = _get_env_int("SLACKMOD_POOL_MAX_CLIENTS")
    ttl = _get_env_float("SLACKMOD_POOL_CLIENT_TTL_SECONDS")
    if max_clients is not None:
        config = replace(config, max_clients=max_clients)
    if ttl is not None:
        config = replace(config, client_ttl_seconds=ttl)
    return config
