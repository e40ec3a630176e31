"""Data access helpers for hashtags, mentions and their post links."""
from __future__ import annotations

import logging

from upvista_core.core.errors import DuplicateKeyError, NotFoundError
from upvista_core.models.hashtag import Hashtag
from upvista_core.store import CancellationToken, Filter, Order, StoreClient

__all__ = ["HashtagRepository", "POST_HASHTAGS_TABLE"]

logger = logging.getLogger(__name__)

HASHTAGS_TABLE = "hashtags"
POST_HASHTAGS_TABLE = "post_hashtags"
POST_MENTIONS_TABLE = "post_mentions"
HASHTAG_FOLLOWERS_TABLE = "hashtag_followers"


class HashtagRepository:
    """Thin wrapper around store access for hashtags and mentions."""

    def __init__(self, store: StoreClient) -> None:
        self.store = store

    async def get_by_tag(
        self, tag: str, *, cancel: CancellationToken | None = None
    ) -> Hashtag | None:
        """Return the hashtag with ``tag`` (case-insensitive), if any."""
        rows = await self.store.select(
            HASHTAGS_TABLE, Filter().eq("tag", tag.lower()), limit=1, cancel=cancel
        )
        return Hashtag.model_validate(rows[0]) if rows else None

    async def require(self, tag: str) -> Hashtag:
        hashtag = await self.get_by_tag(tag)
        if hashtag is None:
            raise NotFoundError(f"Hashtag #{tag} not found")
        return hashtag

    async def get_or_create(self, tag: str) -> Hashtag:
        """Return the hashtag row for ``tag``, inserting it when missing.

        A concurrent writer may insert the same tag between the lookup and the
        insert; the unique violation is resolved by reading the winner's row.
        """
        tag = tag.lower()
        existing = await self.get_by_tag(tag)
        if existing is not None:
            return existing
        try:
            rows = await self.store.insert(HASHTAGS_TABLE, {"tag": tag})
        except DuplicateKeyError:
            raced = await self.get_by_tag(tag)
            if raced is None:
                raise
            return raced
        return Hashtag.model_validate(rows[0])

    async def link_post(self, post_id: str, hashtag_id: str) -> None:
        try:
            await self.store.insert(
                POST_HASHTAGS_TABLE,
                {"post_id": post_id, "hashtag_id": hashtag_id},
                returning=False,
            )
        except DuplicateKeyError:
            logger.debug("Post %s already tagged with %s", post_id, hashtag_id)

    async def unlink_post(self, post_id: str) -> None:
        """Remove every hashtag link of a post."""
        await self.store.delete(POST_HASHTAGS_TABLE, Filter().eq("post_id", post_id))

    async def add_mention(self, post_id: str, user_id: str) -> None:
        try:
            await self.store.insert(
                POST_MENTIONS_TABLE,
                {"post_id": post_id, "mentioned_user_id": user_id},
                returning=False,
            )
        except DuplicateKeyError:
            logger.debug("Post %s already mentions %s", post_id, user_id)

    async def remove_mentions(self, post_id: str) -> None:
        await self.store.delete(POST_MENTIONS_TABLE, Filter().eq("post_id", post_id))

    async def trending(
        self, limit: int, *, cancel: CancellationToken | None = None
    ) -> list[Hashtag]:
        """Return hashtags by trending score, ties broken by post count."""
        if limit <= 0:
            return []
        rows = await self.store.select(
            HASHTAGS_TABLE,
            order=Order.by("-trending_score", "-posts_count"),
            limit=limit,
            cancel=cancel,
        )
        return [Hashtag.model_validate(row) for row in rows]

    async def follow(self, hashtag_id: str, user_id: str) -> None:
        try:
            await self.store.insert(
                HASHTAG_FOLLOWERS_TABLE,
                {"hashtag_id": hashtag_id, "user_id": user_id},
                returning=False,
            )
        except DuplicateKeyError:
            logger.debug("User %s already follows hashtag %s", user_id, hashtag_id)

    async def unfollow(self, hashtag_id: str, user_id: str) -> None:
        await self.store.delete(
            HASHTAG_FOLLOWERS_TABLE,
            Filter().eq("hashtag_id", hashtag_id).eq("user_id", user_id),
        )
