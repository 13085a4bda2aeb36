"""
Per-user Slack credentials.

Durable credential storage belongs to the host platform; slackmod only needs
the small :class:`CredentialStore` protocol below. :class:`InMemoryCredentialStore`
is the default and the one used in tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Protocol, runtime_checkable

from slackmod.exceptions import InvalidCredentialError, NotAuthenticatedError

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "xox"


@dataclass(frozen=True)
class UserRecord:
    """A platform user and their Slack credential, if any."""

    id: str
    access_token: Optional[str] = None
    team_id: Optional[str] = None
    slack_user_id: Optional[str] = None
    team_name: Optional[str] = None
    user_name: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)


def validate_credential(token: Optional[str], user_id: Optional[str] = None) -> str:
    """Check that a credential exists and looks like a Slack token.

    Returns:
        The token, unchanged

    Raises:
        NotAuthenticatedError: No token stored
        InvalidCredentialError: Token lacks the ``xox`` prefix
    """
    if not token:
        raise NotAuthenticatedError(user_id)
    if not token.startswith(TOKEN_PREFIX):
        raise InvalidCredentialError()
    return token


@runtime_checkable
class CredentialStore(Protocol):
    """Storage for user credentials."""

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    async def save_user(self, user: UserRecord) -> None:
        ...

    async def revoke_token(self, token: str) -> list[str]:
        """Clear ``token`` from every user holding it; returns the revoked tokens."""
        ...

    async def revoke_slack_users(self, slack_user_ids: Iterable[str]) -> list[str]:
        ...

    async def revoke_team(self, team_id: str) -> list[str]:
        ...


class InMemoryCredentialStore:
    """Process-local credential store."""

    def __init__(self, users: Iterable[UserRecord] = ()):
        self._users: dict[str, UserRecord] = {u.id: u for u in users}

    def __len__(self) -> int:
        return len(self._users)

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._users.get(user_id)

    async def save_user(self, user: UserRecord) -> None:
        self._users[user.id] = user

    async def revoke_token(self, token: str) -> list[str]:
        holders = [u for u in self._users.values() if token and u.access_token == token]
        for user in holders:
            self._users[user.id] = replace(user, access_token=None)
        if not holders:
            return []
        logger.info(f"Revoked Slack token for {len(holders)} user(s)")
        return [token]

    async def revoke_slack_users(self, slack_user_ids: Iterable[str]) -> list[str]:
        """Clear credentials of users whose Slack user ID is in ``slack_user_ids``.

        Returns the revoked tokens.
        """
        targets = set(slack_user_ids)
        tokens = []
        for user_id, user in list(self._users.items()):
            if user.slack_user_id in targets and user.access_token:
                tokens.append(user.access_token)
                self._users[user_id] = replace(user, access_token=None)
        return tokens

    async def revoke_team(self, team_id: str) -> list[str]:
        """Clear every credential for a workspace. Returns the revoked tokens."""
        tokens = []
        for user_id, user in list(self._users.items()):
            if user.team_id == team_id and user.access_token:
                tokens.append(user.access_token)
                self._users[user_id] = replace(user, access_token=None)
        if tokens:
            logger.info(f"Revoked {len(tokens)} Slack token(s) for team {team_id}")
        return tokens
