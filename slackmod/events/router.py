"""
Event routing with deduplication.

Slack delivers events at least once. The router skips event IDs it has
already processed and IDs whose handler is still running, dispatches
everything else to the handler registered for the event type, and marks an
event processed only after its handler returns. A handler that raises leaves
the event unmarked so a redelivery retries it.
"""

from __future__ import annotations

from typing import Any, Optional

from slackmod.events.dedup import ProcessedEventSet
from slackmod.events.types import EventContext, EventHandler, SlackEvent
from slackmod.logging_config import LogContext, get_logger

logger = get_logger(__name__)


class EventRouter:
    """
    Dispatches Slack events to per-type handlers.

    Usage:
        router = EventRouter()
        router.register("message", handle_message)
        await router.route(event, EventContext(event_id="Ev123", team_id="T1"))
    """

    def __init__(self, processed: Optional[ProcessedEventSet] = None):
        self._handlers: dict[str, EventHandler] = {}
        self._processed = processed if processed is not None else ProcessedEventSet()
        self._in_flight: set[str] = set()

    def register(self, event_type: str, handler: EventHandler) -> None:
        """Register (or replace) the handler for ``event_type``."""
        self._handlers[event_type] = handler
        logger.info("Event handler registered", event_type=event_type)

    def unregister(self, event_type: str) -> bool:
        return self._handlers.pop(event_type, None) is not None

    def handler_for(self, event_type: str) -> Optional[EventHandler]:
        return self._handlers.get(event_type)

    def is_processed(self, event_id: str) -> bool:
        return event_id in self._processed

    async def route(self, event: SlackEvent, context: EventContext) -> bool:
        """Route one event.

        Returns:
            True if a handler ran to completion, False if the event was
            skipped (duplicate, malformed or unhandled)

        Raises:
            Exception: Whatever the handler raised; the event stays unmarked
        """
        event_type = event.get("type")

        with LogContext(event_id=context.event_id, team_id=context.team_id):
            if context.event_id in self._processed:
                logger.info("Event already processed, skipping", event_type=event_type)
                return False
            if context.event_id in self._in_flight:
                logger.info("Event already being processed, skipping", event_type=event_type)
                return False

            if not event_type or not (event.get("ts") or event.get("event_ts")):
                logger.warning(
                    "Invalid event: missing required fields",
                    event_type=event_type,
                    has_ts=bool(event.get("ts") or event.get("event_ts")),
                )
                return False

            handler = self._handlers.get(event_type)
            if handler is None:
                logger.debug("No handler registered for event type", event_type=event_type)
                return False

            logger.info(
                "Processing event",
                event_type=event_type,
                user=event.get("user"),
                channel=event.get("channel"),
            )
            if context.event_id:
                self._in_flight.add(context.event_id)
            try:
                await handler(event, context)
            except Exception as e:
                logger.error(
                    "Error processing event",
                    event_type=event_type,
                    error=f"{type(e).__name__}: {e}",
                )
                raise
            else:
                if context.event_id:
                    self._processed.add(context.event_id)
            finally:
                self._in_flight.discard(context.event_id)

            logger.info("Event processed successfully", event_type=event_type)
            return True

    def stats(self) -> dict[str, Any]:
        return {
            "processed_events_count": len(self._processed),
            "registered_handlers": sorted(self._handlers),
            "handler_count": len(self._handlers),
        }

    def clear_processed(self) -> None:
        """Forget every processed event ID. Useful for testing."""
        self._processed.clear()
        logger.debug("Processed events cache cleared")
