"""aiohttp server exposing the Slack Events API webhook."""

from slackmod.server.webhook import (
    CONTEXT_KEY,
    EVENTS_PATH,
    HEALTH_PATH,
    WEBHOOK_KEY,
    SlackEventsWebhook,
    create_app,
    handle_health,
    handle_slack_events,
)

__all__ = [
    "CONTEXT_KEY",
    "EVENTS_PATH",
    "HEALTH_PATH",
    "WEBHOOK_KEY",
    "SlackEventsWebhook",
    "create_app",
    "handle_health",
    "handle_slack_events",
]
