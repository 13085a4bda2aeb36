"""Tests for channel, user and conversation identifier resolution."""

import pytest

from slackmod.exceptions import AuthError, ErrorKind, NotFoundError
from slackmod.resolver import (
    ResolveOptions,
    is_channel_id,
    is_user_id,
    resolve_channel,
    resolve_conversation,
    resolve_user,
)

CHANNELS = [
    {"id": "C123", "name": "general"},
    {"id": "C456", "name": "random"},
]

MEMBERS = [
    {"id": "U111", "name": "jane.doe", "real_name": "Jane Doe", "profile": {"display_name": "Jane"}},
    {"id": "U222", "name": "bob", "profile": {"display_name_normalized": "bobby"}},
]


@pytest.fixture
def client(slack_client):
    slack_client.conversations_list.return_value = {"ok": True, "channels": CHANNELS}
    slack_client.users_list.return_value = {"ok": True, "members": MEMBERS}
    slack_client.conversations_open.return_value = {"ok": True, "channel": {"id": "D999"}}
    return slack_client


class TestCanonicalIds:
    """Canonical IDs short-circuit with no network call."""

    @pytest.mark.parametrize("identifier", ["C0123456789", "D0ABCDEFGH", "CABCDEFGH"])
    def test_channel_ids(self, identifier):
        assert is_channel_id(identifier)

    @pytest.mark.parametrize("identifier", ["C123", "general", "#C0123456789", "c0123456789"])
    def test_not_channel_ids(self, identifier):
        assert not is_channel_id(identifier)

    def test_user_ids(self):
        assert is_user_id("U0123456789")
        assert is_user_id("W0123456789")
        assert not is_user_id("U12")

    @pytest.mark.asyncio
    async def test_channel_id_returned_unchanged(self, client):
        assert await resolve_channel(client, "C0123456789") == "C0123456789"
        client.conversations_list.assert_not_called()

    @pytest.mark.asyncio
    async def test_user_id_returned_unchanged(self, client):
        assert await resolve_user(client, "U0123456789") == "U0123456789"
        client.users_list.assert_not_called()

    @pytest.mark.asyncio
    async def test_conversation_id_returned_unchanged(self, client):
        assert await resolve_conversation(client, "D0123456789") == "D0123456789"
        client.conversations_list.assert_not_called()
        client.conversations_open.assert_not_called()


class TestResolveChannel:
    """Tests for channel name lookup."""

    @pytest.mark.asyncio
    async def test_hash_name(self, client):
        assert await resolve_channel(client, "#general") == "C123"

    @pytest.mark.asyncio
    async def test_bare_name(self, client):
        assert await resolve_channel(client, "random") == "C456"

    @pytest.mark.asyncio
    async def test_lowercase_fallback(self, client):
        assert await resolve_channel(client, "#General") == "C123"

    @pytest.mark.asyncio
    async def test_not_found(self, client):
        with pytest.raises(NotFoundError) as exc_info:
            await resolve_channel(client, "#nosuch")
        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert exc_info.value.entity == "channel"
        assert exc_info.value.identifier == "nosuch"
        assert "nosuch" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_listing_filters(self, client):
        await resolve_channel(client, "#general")
        kwargs = client.conversations_list.call_args.kwargs
        assert kwargs["types"] == "public_channel,private_channel"
        assert kwargs["exclude_archived"] is True
        assert kwargs["limit"] == 1000

    @pytest.mark.asyncio
    async def test_public_only_with_archived(self, client):
        await resolve_channel(client, "#general", ResolveOptions(include_private=False, include_archived=True))
        kwargs = client.conversations_list.call_args.kwargs
        assert kwargs["types"] == "public_channel"
        assert kwargs["exclude_archived"] is False

    @pytest.mark.asyncio
    async def test_follows_pagination(self, client):
        client.conversations_list.side_effect = [
            {"ok": True, "channels": CHANNELS, "response_metadata": {"next_cursor": "page2"}},
            {"ok": True, "channels": [{"id": "C789", "name": "later"}]},
        ]
        assert await resolve_channel(client, "#later") == "C789"
        assert client.conversations_list.call_args.kwargs["cursor"] == "page2"

    @pytest.mark.asyncio
    async def test_fresh_lookup_every_call(self, client):
        await resolve_channel(client, "#general")
        await resolve_channel(client, "#general")
        assert client.conversations_list.await_count == 2

    @pytest.mark.asyncio
    async def test_listing_failure_is_classified(self, client, api_error):
        client.conversations_list.side_effect = api_error("invalid_auth")
        with pytest.raises(AuthError):
            await resolve_channel(client, "#general")


class TestResolveUser:
    """Tests for user lookup by name."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("identifier,expected", [
        ("@jane.doe", "U111"),
        ("jane.doe", "U111"),
        ("Jane Doe", "U111"),
        ("@Jane", "U111"),
        ("@BOB", "U222"),
        ("bobby", "U222"),
    ])
    async def test_matches(self, client, identifier, expected):
        assert await resolve_user(client, identifier) == expected

    @pytest.mark.asyncio
    async def test_not_found(self, client):
        with pytest.raises(NotFoundError) as exc_info:
            await resolve_user(client, "@ghost")
        assert exc_info.value.entity == "user"


class TestResolveConversation:
    """Tests for the combined conversation resolver."""

    @pytest.mark.asyncio
    async def test_user_id_opens_dm(self, client):
        assert await resolve_conversation(client, "U0123456789") == "D999"
        client.conversations_open.assert_awaited_once_with(users="U0123456789")

    @pytest.mark.asyncio
    async def test_username_opens_dm(self, client):
        assert await resolve_conversation(client, "@jane.doe") == "D999"
        client.conversations_open.assert_awaited_once_with(users="U111")

    @pytest.mark.asyncio
    async def test_channel_name_falls_through(self, client):
        """A bare name that is not a user resolves as a channel."""
        assert await resolve_conversation(client, "general") == "C123"
        client.conversations_open.assert_not_called()

    @pytest.mark.asyncio
    async def test_hash_channel(self, client):
        assert await resolve_conversation(client, "#random") == "C456"
        client.users_list.assert_not_called()

    @pytest.mark.asyncio
    async def test_dm_open_failure_falls_back_to_channel(self, client, api_error):
        client.conversations_open.side_effect = api_error("cannot_dm_bot")
        client.conversations_list.return_value = {
            "ok": True,
            "channels": [{"id": "C777", "name": "bob"}],
        }
        assert await resolve_conversation(client, "bob") == "C777"

    @pytest.mark.asyncio
    async def test_dms_disallowed(self, client):
        result = await resolve_conversation(client, "general", ResolveOptions(allow_dms=False))
        assert result == "C123"
        client.users_list.assert_not_called()

    @pytest.mark.asyncio
    async def test_dms_disallowed_hint(self, client):
        with pytest.raises(NotFoundError) as exc_info:
            await resolve_conversation(client, "jane.doe", ResolveOptions(allow_dms=False))
        assert "doesn't support DMs" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_nothing_matches(self, client):
        with pytest.raises(NotFoundError):
            await resolve_conversation(client, "#nosuch")
