"""Read-only lookups against the users table."""
from __future__ import annotations

from collections.abc import Iterable

from upvista_core.core.errors import NotFoundError
from upvista_core.store import Filter, StoreClient

__all__ = ["UserRepository"]

USERS_TABLE = "users"


class UserRepository:
    """Resolves public usernames to user ids."""

    def __init__(self, store: StoreClient) -> None:
        self.store = store

    async def resolve_usernames(self, usernames: Iterable[str]) -> dict[str, str]:
        """Map lowercase usernames to user ids; unknown names are absent."""
        names = list(dict.fromkeys(name.lower() for name in usernames))
        if not names:
            return {}
        rows = await self.store.select(
            USERS_TABLE, Filter().in_("username", names), columns="id,username"
        )
        return {str(row["username"]).lower(): str(row["id"]) for row in rows}

    async def id_for_username(self, username: str) -> str:
        resolved = await self.resolve_usernames([username])
        user_id = resolved.get(username.lower())
        if user_id is None:
            raise NotFoundError(f"User {username} not found")
        return user_id
