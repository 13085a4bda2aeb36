"""Tests for credential validation and the in-memory credential store."""

import pytest

from slackmod.auth import (
    CredentialStore,
    InMemoryCredentialStore,
    UserRecord,
    validate_credential,
)
from slackmod.exceptions import InvalidCredentialError, NotAuthenticatedError


class TestValidateCredential:
    def test_valid_token(self):
        assert validate_credential("xoxp-123") == "xoxp-123"
        assert validate_credential("xoxb-123") == "xoxb-123"

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing(self, token):
        with pytest.raises(NotAuthenticatedError) as exc_info:
            validate_credential(token, "user-1")
        assert exc_info.value.user_id == "user-1"

    def test_malformed(self):
        with pytest.raises(InvalidCredentialError):
            validate_credential("Bearer abc")


@pytest.fixture
def store():
    return InMemoryCredentialStore([
        UserRecord(id="a", access_token="xoxp-a", team_id="T1", slack_user_id="U1"),
        UserRecord(id="b", access_token="xoxp-shared", team_id="T1", slack_user_id="U2"),
        UserRecord(id="c", access_token="xoxp-shared", team_id="T2", slack_user_id="U3"),
        UserRecord(id="d", team_id="T1", slack_user_id="U4"),
    ])


class TestInMemoryCredentialStore:
    """Tests for the default credential store."""

    def test_satisfies_protocol(self, store):
        assert isinstance(store, CredentialStore)

    @pytest.mark.asyncio
    async def test_get_and_save(self, store):
        assert await store.get_user("missing") is None
        await store.save_user(UserRecord(id="e", access_token="xoxp-e"))
        assert (await store.get_user("e")).is_authenticated
        assert len(store) == 5

    @pytest.mark.asyncio
    async def test_revoke_token(self, store):
        assert await store.revoke_token("xoxp-shared") == ["xoxp-shared"]
        assert (await store.get_user("b")).access_token is None
        assert (await store.get_user("c")).access_token is None
        assert (await store.get_user("a")).access_token == "xoxp-a"

    @pytest.mark.asyncio
    async def test_revoke_unknown_token(self, store):
        assert await store.revoke_token("xoxp-unknown") == []
        assert await store.revoke_token("") == []
        assert (await store.get_user("a")).is_authenticated

    @pytest.mark.asyncio
    async def test_revoke_slack_users(self, store):
        tokens = await store.revoke_slack_users(["U1", "U4", "U9"])
        assert tokens == ["xoxp-a"]
        assert not (await store.get_user("a")).is_authenticated
        assert (await store.get_user("b")).is_authenticated

    @pytest.mark.asyncio
    async def test_revoke_team(self, store):
        tokens = await store.revoke_team("T1")
        assert sorted(tokens) == ["xoxp-a", "xoxp-shared"]
        assert (await store.get_user("c")).access_token == "xoxp-shared"
        # Other fields survive revocation
        assert (await store.get_user("a")).team_id == "T1"
