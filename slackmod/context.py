"""
Process context for slackmod.

One :class:`SlackModContext` is built by the process entry point and passed to
every handler. It owns all process-wide mutable state: the client pool (and
with it the circuit breakers and request queue), the event router and its
processed-event set, the event state tracker and the credential store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from slackmod.auth import CredentialStore, InMemoryCredentialStore
from slackmod.config import SlackModConfig
from slackmod.events.dedup import ProcessedEventSet
from slackmod.events.processors import EventStateTracker, register_default_handlers
from slackmod.events.router import EventRouter
from slackmod.pool import ClientFactory, ClientPool
from slackmod.response import ResponseHandler

logger = logging.getLogger(__name__)


@dataclass
class SlackModContext:
    """Dependency-injected bundle of process state."""

    config: SlackModConfig
    pool: ClientPool
    router: EventRouter
    credentials: CredentialStore
    state: EventStateTracker = field(default_factory=EventStateTracker)

    @property
    def responses(self) -> ResponseHandler:
        return ResponseHandler(self.pool)

    def health(self) -> dict[str, Any]:
        breakers = self.pool.get_circuit_breaker_status()
        return {
            "status": breakers["status"],
            "events_enabled": self.config.events.enabled,
            "circuit_breakers": breakers,
            "pool": self.pool.stats(),
            "events": self.router.stats(),
            "state": self.state.to_dict(),
        }


def create_context(
    config: Optional[SlackModConfig] = None,
    credentials: Optional[CredentialStore] = None,
    client_factory: Optional[ClientFactory] = None,
    register_handlers: bool = True,
) -> SlackModContext:
    """Build a context with default handlers registered.

    Args:
        config: Configuration, defaults to ``SlackModConfig()``
        credentials: Credential store, defaults to an in-memory store
        client_factory: Override for Slack client construction (tests)
        register_handlers: Register the built-in event handlers
    """
    config = config or SlackModConfig()
    pool = ClientPool(
        config=config.client_pool,
        breaker_config=config.circuit_breaker,
        queue_config=config.request_queue,
        client_factory=client_factory,
    )
    router = EventRouter(ProcessedEventSet(config.events.processed_event_capacity))
    context = SlackModContext(
        config=config,
        pool=pool,
        router=router,
        credentials=credentials if credentials is not None else InMemoryCredentialStore(),
    )
    if register_handlers:
        register_default_handlers(router, context.state, context.credentials, pool)
    logger.debug("slackmod context created")
    return context
