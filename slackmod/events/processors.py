"""
Default handlers for inbound Slack events.

Handlers record what they learn in an in-memory :class:`EventStateTracker`
and, for token revocation and uninstall events, drop the affected
credentials and their pooled clients.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from slackmod.events.router import EventRouter
from slackmod.events.types import READ_STATE_EVENTS, EventContext, SlackEvent
from slackmod.logging_config import get_logger

if TYPE_CHECKING:
    from slackmod.auth import CredentialStore
    from slackmod.pool import ClientPool

logger = get_logger(__name__)

MENTION_PATTERN = re.compile(r"<@([A-Z0-9]+)>")

MESSAGE_DELETED = "message_deleted"


def extract_mentions(text: str) -> list[str]:
    """Return user IDs mentioned as ``<@U…>`` in message text."""
    return MENTION_PATTERN.findall(text or "")


@dataclass(frozen=True)
class MessageEventData:
    """A message event reduced to the fields the handlers use."""

    message_id: str
    channel_id: Optional[str]
    user_id: Optional[str]
    text: str
    thread_ts: Optional[str]
    is_edit: bool
    is_deleted: bool
    mentions: list[str]

    @classmethod
    def from_event(cls, event: SlackEvent) -> MessageEventData:
        text = event.get("text") or ""
        return cls(
            message_id=event.get("ts", ""),
            channel_id=event.get("channel"),
            user_id=event.get("user"),
            text=text,
            thread_ts=event.get("thread_ts"),
            is_edit=bool(event.get("edited")),
            is_deleted=event.get("subtype") == MESSAGE_DELETED,
            mentions=extract_mentions(text),
        )

    @property
    def kind(self) -> str:
        if self.is_deleted:
            return "deleted"
        if self.is_edit:
            return "edited"
        return "new"


@dataclass
class ReadState:
    last_read: str
    unread_count: Optional[int] = None
    event_type: str = "channel_marked"


@dataclass
class EventStateTracker:
    """In-memory view of workspace activity built from events."""

    last_message_ts: dict[str, str] = field(default_factory=dict)
    message_counts: dict[str, int] = field(default_factory=dict)
    mentions: dict[str, list[str]] = field(default_factory=dict)
    read_state: dict[tuple[str, str], ReadState] = field(default_factory=dict)
    presence: dict[str, str] = field(default_factory=dict)
    display_names: dict[str, str] = field(default_factory=dict)

    def record_message(self, message: MessageEventData) -> None:
        if not message.channel_id:
            return
        key = f"{message.channel_id}:{message.kind}"
        self.message_counts[key] = self.message_counts.get(key, 0) + 1
        if message.kind == "new":
            current = self.last_message_ts.get(message.channel_id)
            if current is None or float(message.message_id or 0) >= float(current):
                self.last_message_ts[message.channel_id] = message.message_id
            for user_id in message.mentions:
                self.mentions.setdefault(user_id, []).append(message.message_id)

    def record_read(self, user_id: str, channel_id: str, state: ReadState) -> None:
        self.read_state[(user_id, channel_id)] = state

    def unread_count(self, user_id: str, channel_id: str) -> Optional[int]:
        state = self.read_state.get((user_id, channel_id))
        return state.unread_count if state else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "channels_seen": len(self.last_message_ts),
            "read_states": len(self.read_state),
            "presence": len(self.presence),
            "profiles": len(self.display_names),
        }


class DefaultEventHandlers:
    """The built-in event handlers, bound to shared process state."""

    def __init__(
        self,
        tracker: EventStateTracker,
        credentials: Optional[CredentialStore] = None,
        pool: Optional[ClientPool] = None,
    ):
        self.tracker = tracker
        self.credentials = credentials
        self.pool = pool

    async def handle_message(self, event: SlackEvent, context: EventContext) -> None:
        message = MessageEventData.from_event(event)
        self.tracker.record_message(message)
        logger.info(
            "Message event processed",
            channel=message.channel_id,
            kind=message.kind,
            in_thread=bool(message.thread_ts),
            mention_count=len(message.mentions),
        )

    async def handle_read_state(self, event: SlackEvent, context: EventContext) -> None:
        user_id = event.get("user")
        channel_id = event.get("channel")
        if not user_id or not channel_id:
            logger.warning("Read state event missing user or channel", event_type=event.get("type"))
            return
        state = ReadState(
            last_read=event.get("ts", ""),
            unread_count=event.get("unread_count_display", event.get("unread_count")),
            event_type=event.get("type", "channel_marked"),
        )
        self.tracker.record_read(user_id, channel_id, state)
        logger.debug("Read state updated", user=user_id, channel=channel_id, last_read=state.last_read)

    async def handle_presence_change(self, event: SlackEvent, context: EventContext) -> None:
        presence = event.get("presence")
        users = event.get("users") or ([event["user"]] if event.get("user") else [])
        for user_id in users:
            self.tracker.presence[user_id] = presence
        logger.debug("Presence updated", users=len(users), presence=presence)

    async def handle_user_change(self, event: SlackEvent, context: EventContext) -> None:
        user = event.get("user") or {}
        user_id = user.get("id")
        if not user_id:
            return
        profile = user.get("profile") or {}
        name = profile.get("display_name") or user.get("real_name") or user.get("name")
        if name:
            self.tracker.display_names[user_id] = name
        logger.debug("User profile updated", user=user_id)

    def _evict_clients(self, tokens: list[str]) -> None:
        if self.pool is None:
            return
        for token in tokens:
            self.pool.evict(token)

    async def handle_tokens_revoked(self, event: SlackEvent, context: EventContext) -> None:
        tokens = event.get("tokens") or {}
        slack_user_ids = list(tokens.get("oauth") or []) + list(tokens.get("bot") or [])
        if self.credentials is None or not slack_user_ids:
            return
        revoked = await self.credentials.revoke_slack_users(slack_user_ids)
        self._evict_clients(revoked)
        logger.info("Tokens revoked", users=len(slack_user_ids), credentials=len(revoked))

    async def handle_app_uninstalled(self, event: SlackEvent, context: EventContext) -> None:
        if self.credentials is None or not context.team_id:
            return
        revoked = await self.credentials.revoke_team(context.team_id)
        self._evict_clients(revoked)
        logger.info("App uninstalled", credentials=len(revoked))


def register_default_handlers(
    router: EventRouter,
    tracker: EventStateTracker,
    credentials: Optional[CredentialStore] = None,
    pool: Optional[ClientPool] = None,
) -> DefaultEventHandlers:
    """Register the built-in handlers on ``router``."""
    handlers = DefaultEventHandlers(tracker, credentials, pool)
    router.register("message", handlers.handle_message)
    for event_type in READ_STATE_EVENTS:
        router.register(event_type, handlers.handle_read_state)
    router.register("presence_change", handlers.handle_presence_change)
    router.register("user_change", handlers.handle_user_change)
    router.register("tokens_revoked", handlers.handle_tokens_revoked)
    router.register("app_uninstalled", handlers.handle_app_uninstalled)
    logger.info("Event handlers initialized", handler_count=len(router.stats()["registered_handlers"]))
    return handlers
