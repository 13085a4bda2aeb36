"""
Slack operations exposed to the AI action dispatcher.

Each operation validates the caller's credential, resolves human-friendly
identifiers, runs the Web API call through the response handler (circuit
breaker plus error classification) and returns a ``{"success": True, ...}``
mapping. Failures raise a typed :class:`~slackmod.exceptions.SlackAPIError`.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from slack_sdk.web.async_client import AsyncWebClient

from slackmod.auth import UserRecord, validate_credential
from slackmod.context import SlackModContext
from slackmod.exceptions import APIError, SlackAPIError
from slackmod.logging_config import get_logger, log_function
from slackmod.resilience import process_batch
from slackmod.resolver import (
    ResolveOptions,
    resolve_conversation,
    resolve_user,
)
from slackmod.response import response_data

logger = get_logger(__name__)

DEFAULT_CONVERSATION_TYPES = ("public_channel", "private_channel", "mpim", "im")

SEARCH_FALLBACK_HINT = "Try using get_messages on specific channels instead."


def _client_for(context: SlackModContext, user: UserRecord) -> AsyncWebClient:
    token = validate_credential(user.access_token, user.id)
    return context.pool.get_client(token)


def conversation_type(channel: dict[str, Any]) -> str:
    """Classify a conversation as channel, group, mpim or im."""
    if channel.get("is_channel"):
        return "channel"
    if channel.get("is_group"):
        return "group"
    if channel.get("is_mpim"):
        return "mpim"
    return "im"


def _user_display_name(user: dict[str, Any]) -> str:
    profile = user.get("profile") or {}
    return profile.get("display_name") or user.get("real_name") or user.get("name") or "Unknown User"


def _summarize_message(msg: dict[str, Any]) -> dict[str, Any]:
    summary = {
        "ts": msg.get("ts"),
        "type": msg.get("type"),
        "user": msg.get("user"),
        "bot_id": msg.get("bot_id"),
        "text": msg.get("text"),
        "subtype": msg.get("subtype"),
        "thread_ts": msg.get("thread_ts"),
        "reply_count": msg.get("reply_count"),
    }
    if msg.get("reactions"):
        summary["reactions"] = [
            {"name": r.get("name"), "users": r.get("users") or [], "count": r.get("count") or 0}
            for r in msg["reactions"]
        ]
    return summary


def strip_emoji(emoji: str) -> str:
    """``:thumbsup:`` -> ``thumbsup``."""
    return emoji.strip().strip(":")


@log_function()
async def send_message(
    context: SlackModContext,
    user: UserRecord,
    channel: str,
    text: str,
    thread_ts: Optional[str] = None,
) -> dict[str, Any]:
    """Post ``text`` to a channel, DM (``@user``) or thread."""
    client = _client_for(context, user)
    channel_id = await resolve_conversation(client, channel)

    result = await context.responses.execute(
        lambda: client.chat_postMessage(channel=channel_id, text=text, thread_ts=thread_ts),
        "chat.postMessage",
    )
    data = response_data(result)
    logger.info("Message sent", channel_id=channel_id, in_thread=bool(thread_ts))
    return {
        "success": True,
        "message": "Message sent successfully",
        "ts": data.get("ts"),
        "channel": data.get("channel", channel_id),
    }


@log_function()
async def list_conversations(
    context: SlackModContext,
    user: UserRecord,
    types: Optional[Sequence[str]] = None,
    limit: int = 100,
    cursor: Optional[str] = None,
) -> dict[str, Any]:
    """List the caller's conversations with type and display name."""
    client = _client_for(context, user)
    conversation_types = ",".join(types or DEFAULT_CONVERSATION_TYPES)

    result = await context.responses.execute(
        lambda: client.conversations_list(
            types=conversation_types,
            exclude_archived=True,
            limit=limit,
            cursor=cursor,
        ),
        "conversations.list",
    )
    data = response_data(result)
    channels = data.get("channels") or []

    dm_user_ids = sorted({
        c["user"] for c in channels if conversation_type(c) == "im" and c.get("user")
    })
    names = dict(await process_batch(
        dm_user_ids,
        lambda user_id: _lookup_dm_name(context, client, user_id),
        delay_seconds=context.config.request_queue.dispatch_delay_seconds,
    ))

    conversations = []
    for channel in channels:
        kind = conversation_type(channel)
        name = channel.get("name")
        if kind == "im":
            dm_user = channel.get("user")
            display_name = names.get(dm_user) or f"DM with User {dm_user}"
        elif kind == "mpim":
            display_name = name or "Group DM"
        else:
            display_name = f"#{name or channel.get('id') or 'Unknown'}"

        conversations.append({
            "id": channel.get("id"),
            "name": name,
            "display_name": display_name,
            "type": kind,
            "is_private": bool(channel.get("is_private")) or kind in ("im", "mpim"),
            "is_member": bool(channel.get("is_member")),
            "is_archived": bool(channel.get("is_archived")),
            "num_members": channel.get("num_members"),
            "unread_count": channel.get("unread_count"),
        })

    next_cursor = (data.get("response_metadata") or {}).get("next_cursor") or None
    logger.info("Listed conversations", count=len(conversations), has_more=bool(next_cursor))
    return {"success": True, "conversations": conversations, "next_cursor": next_cursor}


async def _lookup_dm_name(
    context: SlackModContext,
    client: AsyncWebClient,
    user_id: str,
) -> tuple[str, Optional[str]]:
    try:
        result = await context.responses.execute(
            lambda: client.users_info(user=user_id),
            "users.info",
            queued=True,
        )
    except SlackAPIError as e:
        logger.warning("Failed to look up DM user", user_id=user_id, error=e.message)
        return user_id, None
    return user_id, f"@{_user_display_name(response_data(result).get('user') or {})}"


@log_function()
async def get_messages(
    context: SlackModContext,
    user: UserRecord,
    channel: str,
    limit: int = 20,
    cursor: Optional[str] = None,
    oldest: Optional[str] = None,
    latest: Optional[str] = None,
) -> dict[str, Any]:
    """Fetch recent messages from a conversation."""
    client = _client_for(context, user)
    channel_id = await resolve_conversation(client, channel)

    result = await context.responses.execute(
        lambda: client.conversations_history(
            channel=channel_id,
            limit=limit,
            cursor=cursor,
            oldest=oldest,
            latest=latest,
        ),
        "conversations.history",
    )
    data = response_data(result)
    messages = [_summarize_message(m) for m in data.get("messages") or []]
    return {
        "success": True,
        "channel": channel_id,
        "messages": messages,
        "has_more": bool(data.get("has_more")),
        "next_cursor": (data.get("response_metadata") or {}).get("next_cursor") or None,
    }


async def search_messages(
    context: SlackModContext,
    user: UserRecord,
    query: str,
    count: int = 20,
) -> dict[str, Any]:
    """Search messages. Platform errors other than auth degrade to an empty result."""
    client = _client_for(context, user)

    try:
        result = await context.responses.execute(
            lambda: client.search_messages(query=query, count=count),
            "search.messages",
        )
    except APIError as e:
        return {
            "success": False,
            "message": f"Search error: {e.message}. {SEARCH_FALLBACK_HINT}",
            "matches": [],
        }

    matches = (response_data(result).get("messages") or {}).get("matches") or []
    return {
        "success": True,
        "matches": [
            {
                "text": m.get("text"),
                "user": m.get("user"),
                "ts": m.get("ts"),
                "channel": (m.get("channel") or {}).get("name") or (m.get("channel") or {}).get("id"),
                "permalink": m.get("permalink"),
            }
            for m in matches
        ],
    }


async def get_user_profile(
    context: SlackModContext,
    user: UserRecord,
    user_identifier: str,
) -> dict[str, Any]:
    """Look up a user by ID, ``@name`` or display name."""
    client = _client_for(context, user)
    user_id = await resolve_user(client, user_identifier)

    result = await context.responses.execute(lambda: client.users_info(user=user_id), "users.info")
    info = response_data(result).get("user") or {}
    profile = info.get("profile") or {}
    return {
        "success": True,
        "user": {
            "id": info.get("id", user_id),
            "name": info.get("name"),
            "real_name": info.get("real_name"),
            "display_name": profile.get("display_name"),
            "email": profile.get("email"),
            "title": profile.get("title"),
            "timezone": info.get("tz"),
            "is_bot": info.get("is_bot"),
            "is_admin": info.get("is_admin"),
            "is_owner": info.get("is_owner"),
        },
    }


async def get_conversation_details(
    context: SlackModContext,
    user: UserRecord,
    channel: str,
) -> dict[str, Any]:
    """Fetch metadata for one conversation."""
    client = _client_for(context, user)
    channel_id = await resolve_conversation(client, channel)

    result = await context.responses.execute(
        lambda: client.conversations_info(channel=channel_id, include_num_members=True),
        "conversations.info",
    )
    info = response_data(result).get("channel") or {}
    return {
        "success": True,
        "channel": {
            "id": info.get("id", channel_id),
            "name": info.get("name"),
            "type": conversation_type(info),
            "purpose": (info.get("purpose") or {}).get("value"),
            "topic": (info.get("topic") or {}).get("value"),
            "is_private": info.get("is_private"),
            "is_archived": info.get("is_archived"),
            "is_member": info.get("is_member"),
            "num_members": info.get("num_members"),
        },
    }


async def _react(
    context: SlackModContext,
    user: UserRecord,
    channel: str,
    message_ts: str,
    emoji: str,
    add: bool,
) -> dict[str, Any]:
    client = _client_for(context, user)
    channel_id = await resolve_conversation(client, channel, ResolveOptions(allow_dms=False))
    name = strip_emoji(emoji)

    if add:
        await context.responses.execute(
            lambda: client.reactions_add(channel=channel_id, timestamp=message_ts, name=name),
            "reactions.add",
        )
    else:
        await context.responses.execute(
            lambda: client.reactions_remove(channel=channel_id, timestamp=message_ts, name=name),
            "reactions.remove",
        )
    verb = "added" if add else "removed"
    return {
        "success": True,
        "message": f"Reaction :{name}: {verb}",
        "channel": channel_id,
        "ts": message_ts,
    }


async def add_reaction(
    context: SlackModContext,
    user: UserRecord,
    channel: str,
    message_ts: str,
    emoji: str,
) -> dict[str, Any]:
    return await _react(context, user, channel, message_ts, emoji, add=True)


async def remove_reaction(
    context: SlackModContext,
    user: UserRecord,
    channel: str,
    message_ts: str,
    emoji: str,
) -> dict[str, Any]:
    return await _react(context, user, channel, message_ts, emoji, add=False)


async def mark_conversation_as_read(
    context: SlackModContext,
    user: UserRecord,
    channel: str,
    ts: str,
) -> dict[str, Any]:
    """Move the caller's read cursor in a conversation to ``ts``."""
    client = _client_for(context, user)
    channel_id = await resolve_conversation(client, channel)

    await context.responses.execute(
        lambda: client.conversations_mark(channel=channel_id, ts=ts),
        "conversations.mark",
    )
    return {"success": True, "channel": channel_id, "ts": ts}
