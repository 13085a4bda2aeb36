"""Inbound Slack event envelope types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional

URL_VERIFICATION = "url_verification"
EVENT_CALLBACK = "event_callback"

READ_STATE_EVENTS = ("channel_marked", "group_marked", "im_marked", "mpim_marked")


@dataclass(frozen=True)
class EventContext:
    """Envelope metadata delivered alongside an ``event_callback`` event."""

    event_id: str
    team_id: Optional[str] = None
    api_app_id: Optional[str] = None
    event_time: Optional[int] = None
    authorizations: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_envelope(cls, envelope: Mapping[str, Any]) -> EventContext:
        return cls(
            event_id=str(envelope.get("event_id") or ""),
            team_id=envelope.get("team_id"),
            api_app_id=envelope.get("api_app_id"),
            event_time=envelope.get("event_time"),
            authorizations=list(envelope.get("authorizations") or []),
        )


SlackEvent = dict[str, Any]

EventHandler = Callable[[SlackEvent, EventContext], Awaitable[None]]
