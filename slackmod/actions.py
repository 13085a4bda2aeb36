"""
AI action dispatch.

:func:`handle_ai_action` is the single entry point for AI-triggered Slack
functions. It normalizes parameters, loads the caller's credential, runs
the named operation and always returns a mapping: ``{"success": True, ...}``
on success or ``{"error": str, ...}`` on failure. It never raises.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Awaitable, Callable, Mapping, Optional

from slackmod import operations
from slackmod.auth import UserRecord
from slackmod.context import SlackModContext
from slackmod.errors import format_error_response
from slackmod.exceptions import RequestValidationError, SlackModError
from slackmod.logging_config import LogContext, get_logger
from slackmod.params import normalize_mapping
from slackmod.response import response_data

logger = get_logger(__name__)

ActionHandler = Callable[[SlackModContext, UserRecord, dict[str, Any]], Awaitable[dict[str, Any]]]

AUTH_ACTIONS = frozenset({"check_auth_status", "manual_auth", "logout"})

MANUAL_TOKEN_PREFIXES = ("xoxp-", "xoxb-")


def validate_request(name: Any, meta: Any) -> Optional[str]:
    """Return an error message for a malformed request, or None."""
    if not isinstance(name, str) or not name.strip():
        return "Function name is required and must be a non-empty string"
    user = meta.get("user") if isinstance(meta, Mapping) else None
    if not isinstance(user, Mapping) or not user.get("id"):
        return "User ID is required in meta.user.id"
    return None


def _require(params: Mapping[str, Any], *keys: str) -> Any:
    """First non-empty value among ``keys``; the first key names the parameter."""
    for key in keys:
        value = params.get(key)
        if value not in (None, ""):
            return value
    raise RequestValidationError(f"Missing required parameter: {keys[0]}", field=keys[0])


def _optional_int(params: Mapping[str, Any], key: str, default: int) -> int:
    value = params.get(key)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise RequestValidationError(f"Parameter {key} must be an integer", field=key) from None


CHANNEL_KEYS = ("channel", "channel_id", "conversation_id", "channel_name")


async def _send_message(context, user, params):
    return await operations.send_message(
        context,
        user,
        _require(params, *CHANNEL_KEYS),
        _require(params, "text", "message"),
        thread_ts=params.get("thread_ts"),
    )


async def _list_conversations(context, user, params):
    types = params.get("types")
    if isinstance(types, str):
        types = [t.strip() for t in types.split(",") if t.strip()]
    return await operations.list_conversations(
        context,
        user,
        types=types,
        limit=_optional_int(params, "limit", 100),
        cursor=params.get("cursor"),
    )


async def _get_messages(context, user, params):
    return await operations.get_messages(
        context,
        user,
        _require(params, *CHANNEL_KEYS),
        limit=_optional_int(params, "limit", 20),
        cursor=params.get("cursor"),
        oldest=params.get("oldest"),
        latest=params.get("latest"),
    )


async def _search_messages(context, user, params):
    return await operations.search_messages(
        context,
        user,
        _require(params, "query"),
        count=_optional_int(params, "count", _optional_int(params, "limit", 20)),
    )


async def _get_user_profile(context, user, params):
    return await operations.get_user_profile(
        context, user, _require(params, "user", "user_id", "username")
    )


async def _get_conversation_details(context, user, params):
    return await operations.get_conversation_details(context, user, _require(params, *CHANNEL_KEYS))


async def _add_reaction(context, user, params):
    return await operations.add_reaction(
        context,
        user,
        _require(params, *CHANNEL_KEYS),
        _require(params, "timestamp", "ts", "message_ts"),
        _require(params, "emoji", "name", "reaction"),
    )


async def _remove_reaction(context, user, params):
    return await operations.remove_reaction(
        context,
        user,
        _require(params, *CHANNEL_KEYS),
        _require(params, "timestamp", "ts", "message_ts"),
        _require(params, "emoji", "name", "reaction"),
    )


async def _mark_conversation_as_read(context, user, params):
    return await operations.mark_conversation_as_read(
        context,
        user,
        _require(params, *CHANNEL_KEYS),
        _require(params, "ts", "timestamp"),
    )


ACTIONS: dict[str, ActionHandler] = {
    "send_message": _send_message,
    "list_conversations": _list_conversations,
    "get_conversations": _list_conversations,
    "get_messages": _get_messages,
    "search_messages": _search_messages,
    "get_user_profile": _get_user_profile,
    "get_user_info": _get_user_profile,
    "get_conversation_details": _get_conversation_details,
    "get_conversation_info": _get_conversation_details,
    "add_reaction": _add_reaction,
    "remove_reaction": _remove_reaction,
    "mark_conversation_as_read": _mark_conversation_as_read,
}


async def check_auth_status(user: UserRecord) -> dict[str, Any]:
    if not user.access_token:
        return {
            "authenticated": False,
            "message": "Not authenticated with Slack",
            "next_step": "Use 'manual_auth' with a user or bot token",
        }
    return {
        "authenticated": True,
        "message": "Successfully authenticated with Slack!",
        "team_name": user.team_name or "Unknown",
        "team_id": user.team_id or "Unknown",
        "user_name": user.user_name or "Unknown",
        "slack_user_id": user.slack_user_id or "Unknown",
        "token_preview": f"{user.access_token[:12]}...",
    }


async def manual_auth(
    context: SlackModContext,
    user: UserRecord,
    params: Mapping[str, Any],
) -> dict[str, Any]:
    """Verify a pasted token with ``auth.test`` and store it for the user."""
    token = params.get("access_token")
    if not isinstance(token, str) or not token.startswith(MANUAL_TOKEN_PREFIXES):
        return {
            "error": "Invalid token format",
            "message": "Slack tokens should start with 'xoxp-' (user token) or 'xoxb-' (bot token)",
        }

    client = context.pool.get_client(token)
    try:
        result = await context.responses.execute(
            lambda: client.auth_test(),
            "auth.test",
            use_circuit_breaker=False,
        )
    except SlackModError as e:
        context.pool.evict(token)
        return {
            "error": "Authentication failed",
            "message": e.message,
            "help": "Verify your token is correct and has the required scopes",
        }

    data = response_data(result)
    await context.credentials.save_user(replace(
        user,
        access_token=token,
        team_id=data.get("team_id"),
        team_name=params.get("team_name") or data.get("team"),
        slack_user_id=data.get("user_id"),
        user_name=data.get("user"),
    ))
    token_type = "User Token" if token.startswith("xoxp-") else "Bot Token"
    logger.info("Manual authentication succeeded", team_id=data.get("team_id"))
    return {
        "success": True,
        "message": "Manual authentication successful!",
        "token_type": token_type,
        "team": data.get("team"),
        "team_id": data.get("team_id"),
        "user": data.get("user"),
        "user_id": data.get("user_id"),
    }


async def logout(context: SlackModContext, user: UserRecord) -> dict[str, Any]:
    """Forget the user's token and drop its pooled client."""
    if not user.access_token:
        return {"success": True, "message": "Already logged out"}
    for token in await context.credentials.revoke_token(user.access_token):
        context.pool.evict(token)
    return {"success": True, "message": "Logged out of Slack"}


async def _handle_auth_action(
    context: SlackModContext,
    name: str,
    user: UserRecord,
    params: Mapping[str, Any],
) -> dict[str, Any]:
    if name == "check_auth_status":
        return await check_auth_status(user)
    if name == "manual_auth":
        return await manual_auth(context, user, params)
    return await logout(context, user)


async def handle_ai_action(
    context: SlackModContext,
    name: Any,
    parameters: Any,
    meta: Any,
) -> dict[str, Any]:
    """Dispatch an AI-triggered Slack function.

    Args:
        context: Process context
        name: Function name, e.g. ``"send_message"``
        parameters: Raw parameters in any shape the AI layer produces
        meta: Request metadata; ``meta["user"]["id"]`` identifies the caller

    Returns:
        ``{"success": True, ...}`` or ``{"error": str, ...}``
    """
    invalid = validate_request(name, meta)
    if invalid:
        return {"error": invalid}

    user_id = str(meta["user"]["id"])

    with LogContext(operation=name, user_id=user_id):
        try:
            params = normalize_mapping(parameters)
            user = await context.credentials.get_user(user_id) or UserRecord(id=user_id)

            if name in AUTH_ACTIONS:
                return await _handle_auth_action(context, name, user, params)

            if not user.access_token:
                return {
                    "error": "Not authenticated with Slack",
                    "action": "authenticate",
                    "message": "Please use 'manual_auth' to connect your Slack account first",
                }

            action = ACTIONS.get(name)
            if action is None:
                return {"error": f"Unknown Slack function: {name}"}

            logger.info("Running Slack action")
            return await action(context, user, params)
        except SlackModError as e:
            logger.warning("Slack action failed", code=e.kind.value, error=e.message)
            return format_error_response(e)
        except Exception as e:
            logger.exception("Unexpected error in Slack action")
            return format_error_response(e)
