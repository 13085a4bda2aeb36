"""
slackmod: resilient Slack integration plumbing.

=== COMPONENTS ===

AI ACTIONS:
- handle_ai_action: single entry point for AI-triggered Slack functions
- Parameter normalization for every parameter shape the AI layer sends
- Identifier resolution (#channel, @user, names) to canonical Slack IDs

OUTBOUND CALLS:
- Per-credential client pool with TTL and LRU eviction
- Per-operation circuit breakers
- Concurrency-capped request queue
- Typed error taxonomy (rate limited, network, timeout, auth, API, circuit)

INBOUND EVENTS:
- Events API webhook (aiohttp) with signature verification
- Deduplicating event router with per-type handlers

Everything stateful hangs off one SlackModContext, built by create_context().
"""

from __future__ import annotations

import importlib
from typing import Any

from slackmod.__version__ import __version__

_EXPORT_MAP = {
    # Context
    'SlackModContext': ('slackmod.context', 'SlackModContext'),
    'create_context': ('slackmod.context', 'create_context'),
    'SlackModConfig': ('slackmod.config', 'SlackModConfig'),
    'EventsConfig': ('slackmod.config', 'EventsConfig'),
    # Actions
    'handle_ai_action': ('slackmod.actions', 'handle_ai_action'),
    'normalize': ('slackmod.params', 'normalize'),
    'parse_params': ('slackmod.params', 'parse_params'),
    # Resolution
    'resolve_channel': ('slackmod.resolver', 'resolve_channel'),
    'resolve_user': ('slackmod.resolver', 'resolve_user'),
    'resolve_conversation': ('slackmod.resolver', 'resolve_conversation'),
    # Outbound
    'ClientPool': ('slackmod.pool', 'ClientPool'),
    'CircuitBreaker': ('slackmod.resilience', 'CircuitBreaker'),
    'RequestQueue': ('slackmod.resilience', 'RequestQueue'),
    'ResponseHandler': ('slackmod.response', 'ResponseHandler'),
    # Events
    'EventRouter': ('slackmod.events.router', 'EventRouter'),
    'create_app': ('slackmod.server.webhook', 'create_app'),
    # Errors
    'ErrorKind': ('slackmod.exceptions', 'ErrorKind'),
    'SlackModError': ('slackmod.exceptions', 'SlackModError'),
    'SlackAPIError': ('slackmod.exceptions', 'SlackAPIError'),
    'NotFoundError': ('slackmod.exceptions', 'NotFoundError'),
}


def __getattr__(name: str) -> Any:
    """Lazily import public symbols to avoid heavy import side effects."""
    try:
        module_name, attr_name = _EXPORT_MAP[name]
    except KeyError as exc:
        raise AttributeError(f"module 'slackmod' has no attribute {name!r}") from exc
    module = importlib.import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(__all__))


__all__ = ["__version__", *_EXPORT_MAP]
