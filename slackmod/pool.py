"""
Per-credential Slack client pool.

The pool hands out one ``AsyncWebClient`` per distinct token, evicts idle
clients after a TTL, and falls back to least-recently-used eviction when it
grows past capacity. Per-operation circuit breakers and the shared request
queue hang off the same pool instance, so one pool holds all of the
process-wide outbound state.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

from slack_sdk.web.async_client import AsyncWebClient

from slackmod.http_client import create_slack_client
from slackmod.resilience import CircuitBreaker, RequestQueue
from slackmod.resilience_config import (
    CircuitBreakerConfig,
    ClientPoolConfig,
    RequestQueueConfig,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

ClientFactory = Callable[[str, ClientPoolConfig], AsyncWebClient]


@dataclass
class ClientHandle:
    """A pooled client bound to exactly one credential."""

    token: str
    client: AsyncWebClient
    last_used: float = field(default_factory=time.monotonic)

    def touch(self, now: float) -> None:
        self.last_used = now


class ClientPool:
    """
    Pool of Slack clients keyed by credential.

    Usage:
        pool = ClientPool()
        client = pool.get_client(user.access_token)
        breaker = pool.get_circuit_breaker("chat.postMessage")
        result = await pool.execute_with_queue(lambda: client.auth_test())
    """

    def __init__(
        self,
        config: Optional[ClientPoolConfig] = None,
        breaker_config: Optional[CircuitBreakerConfig] = None,
        queue_config: Optional[RequestQueueConfig] = None,
        client_factory: Optional[ClientFactory] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or ClientPoolConfig()
        self.breaker_config = breaker_config or CircuitBreakerConfig()
        self._client_factory = client_factory or create_slack_client
        self._clock = clock
        self._handles: dict[str, ClientHandle] = {}
        self._circuit_breakers: dict[str, CircuitBreaker] = {}
        self._request_queue = RequestQueue(queue_config)

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, token: object) -> bool:
        return token in self._handles

    @property
    def request_queue(self) -> RequestQueue:
        return self._request_queue

    def get_client(self, token: str) -> AsyncWebClient:
        """Return the pooled client for ``token``, creating it on first use."""
        now = self._clock()
        handle = self._handles.get(token)
        self._cleanup(now, reserve=0 if handle is not None else 1)

        handle = self._handles.get(token)
        if handle is not None:
            handle.touch(now)
            return handle.client

        client = self._client_factory(token, self.config)
        self._handles[token] = ClientHandle(token=token, client=client, last_used=now)
        logger.debug(f"Created Slack client ({len(self._handles)} pooled)")
        return client

    def evict(self, token: str) -> bool:
        """Drop the client for ``token``. Returns True if one was pooled."""
        return self._handles.pop(token, None) is not None

    def _cleanup(self, now: float, reserve: int = 0) -> None:
        """Drop idle clients, then LRU-evict until ``reserve`` slots are free."""
        ttl = self.config.client_ttl_seconds
        expired = [t for t, h in self._handles.items() if now - h.last_used > ttl]
        for token in expired:
            del self._handles[token]
        if expired:
            logger.debug(f"Evicted {len(expired)} idle Slack clients")

        overflow = len(self._handles) + reserve - self.config.max_clients
        if overflow > 0:
            by_age = sorted(self._handles.values(), key=lambda h: h.last_used)
            for handle in by_age[:overflow]:
                del self._handles[handle.token]
            logger.debug(f"Evicted {overflow} least recently used Slack clients")

    def get_circuit_breaker(self, operation_name: str) -> CircuitBreaker:
        """Get or lazily create the breaker for an operation name."""
        breaker = self._circuit_breakers.get(operation_name)
        if breaker is None:
            breaker = CircuitBreaker(name=operation_name, config=self.breaker_config)
            self._circuit_breakers[operation_name] = breaker
            logger.debug(f"Created circuit breaker: {operation_name}")
        return breaker

    async def execute_with_queue(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` through the shared request queue."""
        return await self._request_queue.enqueue(operation)

    def reset_circuit_breakers(self) -> None:
        """Reset every circuit breaker to CLOSED. Useful for testing."""
        for breaker in self._circuit_breakers.values():
            breaker.reset()
        logger.info(f"Reset {len(self._circuit_breakers)} circuit breakers")

    def get_circuit_breaker_status(self) -> dict[str, Any]:
        """Summarize all circuit breakers for health output."""
        breakers = {name: cb.to_dict() for name, cb in self._circuit_breakers.items()}
        open_circuits = [name for name, cb in breakers.items() if cb["state"] != "closed"]
        return {
            "total": len(breakers),
            "open": open_circuits,
            "status": "degraded" if open_circuits else "healthy",
            "circuit_breakers": breakers,
        }

    def stats(self) -> dict[str, Any]:
        return {
            "clients": len(self._handles),
            "max_clients": self.config.max_clients,
            "circuit_breakers": len(self._circuit_breakers),
            "queue": self._request_queue.stats(),
        }
