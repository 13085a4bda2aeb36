"""
Identifier resolution.

Turns human-friendly references (``#general``, ``general``, ``@jane``,
``jane.doe``) into Slack's canonical IDs. Canonical IDs short-circuit with no
network call. Everything else is looked up fresh on every call; nothing is
cached between calls.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from slack_sdk.web.async_client import AsyncWebClient

from slackmod.exceptions import APIError, NotFoundError, SlackModError
from slackmod.logging_config import get_logger
from slackmod.response import classify_error

logger = get_logger(__name__)

CHANNEL_ID_PATTERN = re.compile(r"^[CD][A-Z0-9]{8,}$")
USER_ID_PATTERN = re.compile(r"^[UW][A-Z0-9]{8,}$")
USERNAME_PATTERN = re.compile(r"^@?[a-zA-Z0-9._-]+$")

LIST_PAGE_LIMIT = 1000

DM_NOT_SUPPORTED_HINT = "If you meant to open a DM, this function doesn't support DMs"


@dataclass(frozen=True)
class ResolveOptions:
    """Filters applied when a lookup has to list conversations."""

    include_private: bool = True
    include_archived: bool = False
    allow_dms: bool = True

    @property
    def channel_types(self) -> str:
        return "public_channel,private_channel" if self.include_private else "public_channel"


DEFAULT_OPTIONS = ResolveOptions()


def is_channel_id(identifier: str) -> bool:
    return bool(CHANNEL_ID_PATTERN.match(identifier))


def is_user_id(identifier: str) -> bool:
    return bool(USER_ID_PATTERN.match(identifier))


def strip_sigil(identifier: str, sigil: str) -> str:
    return identifier[1:] if identifier.startswith(sigil) else identifier


async def _call(operation: Callable[[], Awaitable[Any]], operation_name: str) -> Any:
    try:
        response = await operation()
    except SlackModError:
        raise
    except Exception as e:
        raise classify_error(e, operation_name) from e
    if not response.get("ok", True):
        error = response.get("error")
        raise APIError(f"{operation_name} failed: {error}", platform_error=error)
    return response


async def _paginate(
    fetch: Callable[[Optional[str]], Awaitable[Any]],
    key: str,
    operation_name: str,
) -> AsyncIterator[dict[str, Any]]:
    cursor: Optional[str] = None
    while True:
        response = await _call(lambda: fetch(cursor), operation_name)
        for item in response.get(key) or []:
            yield item
        cursor = (response.get("response_metadata") or {}).get("next_cursor")
        if not cursor:
            return


def _user_matches(member: dict[str, Any], username: str) -> bool:
    profile = member.get("profile") or {}
    return username in (
        member.get("name"),
        member.get("real_name"),
        profile.get("display_name"),
        profile.get("display_name_normalized"),
    ) or member.get("name") == username.lower()


async def resolve_channel(
    client: AsyncWebClient,
    identifier: str,
    options: ResolveOptions = DEFAULT_OPTIONS,
) -> str:
    """Resolve a channel reference to a channel (or DM) ID.

    Args:
        client: Slack client bound to the caller's credential
        identifier: ``C…``/``D…`` ID, ``#name`` or bare name
        options: Private/archived inclusion flags

    Raises:
        NotFoundError: No channel with that name is visible to the caller
    """
    if is_channel_id(identifier):
        return identifier

    name = strip_sigil(identifier, "#")
    lowered = name.lower()

    channels = _paginate(
        lambda cursor: client.conversations_list(
            types=options.channel_types,
            exclude_archived=not options.include_archived,
            limit=LIST_PAGE_LIMIT,
            cursor=cursor,
        ),
        "channels",
        "conversations.list",
    )
    async for channel in channels:
        if channel.get("id") and channel.get("name") in (name, lowered):
            logger.debug("Resolved channel", identifier=identifier, channel_id=channel["id"])
            return channel["id"]

    raise NotFoundError("channel", name)


async def resolve_user(client: AsyncWebClient, identifier: str) -> str:
    """Resolve ``@name``, a username, real name or display name to a user ID.

    Raises:
        NotFoundError: No workspace member matches
    """
    if is_user_id(identifier):
        return identifier

    username = strip_sigil(identifier, "@")

    members = _paginate(
        lambda cursor: client.users_list(limit=LIST_PAGE_LIMIT, cursor=cursor),
        "members",
        "users.list",
    )
    async for member in members:
        if member.get("id") and _user_matches(member, username):
            logger.debug("Resolved user", identifier=identifier, user_id=member["id"])
            return member["id"]

    raise NotFoundError("user", username)


async def open_direct_message(client: AsyncWebClient, user_id: str) -> Optional[str]:
    """Open (or find) the DM with ``user_id``; returns its conversation ID."""
    response = await _call(lambda: client.conversations_open(users=user_id), "conversations.open")
    return (response.get("channel") or {}).get("id")


async def resolve_conversation(
    client: AsyncWebClient,
    identifier: str,
    options: ResolveOptions = DEFAULT_OPTIONS,
) -> str:
    """Resolve any conversation reference: channel, DM, user or username.

    Attempts, in order: canonical conversation ID, user ID (opens a DM),
    username (resolves the user, opens a DM), channel name. DM attempts only
    happen when ``options.allow_dms`` is set; their failures fall through to
    channel lookup.

    Raises:
        NotFoundError: Nothing matched
    """
    if is_channel_id(identifier):
        return identifier

    if options.allow_dms and is_user_id(identifier):
        try:
            dm_id = await open_direct_message(client, identifier)
            if dm_id:
                logger.debug("Opened DM", identifier=identifier, channel_id=dm_id)
                return dm_id
        except SlackModError as e:
            logger.warning("Failed to open DM with user", identifier=identifier, error=e.message)

    if options.allow_dms and USERNAME_PATTERN.match(identifier):
        try:
            user_id = await resolve_user(client, identifier)
            dm_id = await open_direct_message(client, user_id)
            if dm_id:
                logger.debug("Opened DM", identifier=identifier, user_id=user_id, channel_id=dm_id)
                return dm_id
        except SlackModError as e:
            logger.warning("Failed to resolve username to DM", identifier=identifier, error=e.message)

    try:
        return await resolve_channel(client, identifier, options)
    except NotFoundError:
        if not options.allow_dms and USERNAME_PATTERN.match(identifier):
            raise NotFoundError("channel", identifier, hint=DM_NOT_SUPPORTED_HINT)
        raise
