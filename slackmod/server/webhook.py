"""
Slack Events API webhook.

The endpoint acknowledges every accepted delivery immediately with ``OK`` and
routes the event in a background task, so Slack's 3 second delivery timeout
never depends on handler latency. Responses:

- 404 ``Events API not enabled`` when the subsystem is switched off
- 200 with the challenge for ``url_verification`` (no signature required)
- 401 ``Unauthorized`` on a bad or stale signature
- 200 ``Error`` for unparseable bodies, so Slack does not redeliver them
- 200 ``OK`` otherwise
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Mapping, Union

from aiohttp import web

from slackmod.context import SlackModContext
from slackmod.events.types import EVENT_CALLBACK, URL_VERIFICATION, EventContext
from slackmod.events.validation import SIGNATURE_HEADER, TIMESTAMP_HEADER, verify_signature
from slackmod.exceptions import SignatureValidationError
from slackmod.logging_config import LogContext, get_logger, log_request

logger = get_logger(__name__)

EVENTS_PATH = "/slack/events"
HEALTH_PATH = "/health"


class SlackEventsWebhook:
    """Validates webhook deliveries and hands events to the router."""

    def __init__(self, context: SlackModContext):
        self.context = context
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def process(self, headers: Mapping[str, str], body: Union[str, bytes]) -> web.Response:
        """Handle one delivery given its headers and raw body."""
        events_config = self.context.config.events
        if not events_config.enabled:
            return web.Response(status=404, text="Events API not enabled")

        try:
            text = body.decode("utf-8") if isinstance(body, bytes) else body
            payload = json.loads(text)
        except (ValueError, RecursionError) as e:
            logger.warning("Unparseable webhook body", error=str(e))
            return web.Response(status=200, text="Error")
        if not isinstance(payload, dict):
            logger.warning("Webhook body is not a JSON object")
            return web.Response(status=200, text="Error")

        payload_type = payload.get("type")
        if payload_type == URL_VERIFICATION:
            logger.info("Answering url_verification challenge")
            return web.Response(status=200, text=str(payload.get("challenge", "")))

        try:
            verify_signature(
                events_config.signing_secret or "",
                headers.get(TIMESTAMP_HEADER),
                body,
                headers.get(SIGNATURE_HEADER),
                max_age_seconds=events_config.max_request_age_seconds,
            )
        except SignatureValidationError as e:
            logger.warning("Rejected webhook request", reason=e.reason)
            return web.Response(status=401, text="Unauthorized")

        event = payload.get("event")
        if payload_type == EVENT_CALLBACK and isinstance(event, dict):
            self.schedule(event, EventContext.from_envelope(payload))
        else:
            logger.debug("Ignoring webhook payload", payload_type=payload_type)
        return web.Response(status=200, text="OK")

    def schedule(self, event: dict[str, Any], event_context: EventContext) -> asyncio.Task:
        """Route ``event`` in the background; the task is tracked until done."""
        task = asyncio.ensure_future(self._route(event, event_context))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _route(self, event: dict[str, Any], event_context: EventContext) -> None:
        with LogContext(event_id=event_context.event_id, team_id=event_context.team_id):
            try:
                await self.context.router.route(event, event_context)
            except Exception:
                # Left unmarked; Slack's redelivery retries it
                logger.exception("Background event routing failed", event_type=event.get("type"))

    async def drain(self) -> None:
        """Wait for in-flight routing tasks."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


CONTEXT_KEY = web.AppKey("slackmod_context", SlackModContext)
WEBHOOK_KEY = web.AppKey("slack_webhook", SlackEventsWebhook)


@log_request(logger)
async def handle_slack_events(request: web.Request) -> web.Response:
    body = await request.read()
    return await request.app[WEBHOOK_KEY].process(request.headers, body)


@log_request(logger)
async def handle_health(request: web.Request) -> web.Response:
    return web.json_response(request.app[CONTEXT_KEY].health())


async def _drain_on_shutdown(app: web.Application) -> None:
    await app[WEBHOOK_KEY].drain()


def create_app(context: SlackModContext) -> web.Application:
    """Build the aiohttp application serving the webhook and health check."""
    app = web.Application()
    app[CONTEXT_KEY] = context
    app[WEBHOOK_KEY] = SlackEventsWebhook(context)
    app.router.add_post(EVENTS_PATH, handle_slack_events)
    app.router.add_get(HEALTH_PATH, handle_health)
    app.on_shutdown.append(_drain_on_shutdown)
    return app
