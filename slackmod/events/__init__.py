"""
Inbound Slack Events API support: signature validation, deduplication,
routing and the default event handlers.
"""

from slackmod.events.dedup import ProcessedEventSet
from slackmod.events.processors import (
    DefaultEventHandlers,
    EventStateTracker,
    MessageEventData,
    extract_mentions,
    register_default_handlers,
)
from slackmod.events.router import EventRouter
from slackmod.events.types import (
    EVENT_CALLBACK,
    URL_VERIFICATION,
    EventContext,
    EventHandler,
)
from slackmod.events.validation import (
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    compute_signature,
    is_valid_request,
    verify_signature,
)

__all__ = [
    "ProcessedEventSet",
    "DefaultEventHandlers",
    "EventStateTracker",
    "MessageEventData",
    "extract_mentions",
    "register_default_handlers",
    "EventRouter",
    "EVENT_CALLBACK",
    "URL_VERIFICATION",
    "EventContext",
    "EventHandler",
    "SIGNATURE_HEADER",
    "TIMESTAMP_HEADER",
    "compute_signature",
    "is_valid_request",
    "verify_signature",
]
