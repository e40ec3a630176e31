"""Data access helpers for working with posts and their engagement links."""
from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from upvista_core.core.errors import (
    DuplicateKeyError,
    NotFoundError,
    RequestCancelledError,
    UnauthorizedError,
)
from upvista_core.models.post import AUTHOR_PROJECTION, Post
from upvista_core.store import CancellationToken, Filter, Order, StoreClient
from upvista_core.utils.timestamps import format_timestamp, utcnow

if TYPE_CHECKING:
    from upvista_core.enrichers.base import EnricherRegistry

__all__ = [
    "LIKES_TABLE",
    "POSTS_TABLE",
    "PostRepository",
    "SAVES_TABLE",
    "SHARES_TABLE",
    "link_embed",
]

logger = logging.getLogger(__name__)

POSTS_TABLE = "posts"
LIKES_TABLE = "post_likes"
SAVES_TABLE = "saved_posts"
SHARES_TABLE = "post_shares"
FOLLOWS_TABLE = "follows"

DEFAULT_COLLECTION = "Saved"
POST_WITH_AUTHOR = f"*,{AUTHOR_PROJECTION}"
_COUNTERS = ("likes_count", "comments_count", "shares_count", "views_count", "saves_count")


def link_embed(table: str) -> str:
    """Return an ``!inner`` embed of ``table`` that projects no columns.

    Filters on ``"<table>.<column>"`` then keep only the posts with a matching
    link row, each post once, so the page stays bounded by ``limit``.
    """
    return f"{table}!inner()"


class PostRepository:
    """Thin wrapper around store access for post entities."""

    def __init__(
        self, store: StoreClient, enrichers: EnricherRegistry | None = None
    ) -> None:
        """Initialize the repository with a store client and optional enrichers."""
        self.store = store
        self.enrichers = enrichers

    @staticmethod
    def visible_filter() -> Filter:
        """Return the filter shared by every public listing."""
        return (
            Filter()
            .eq("is_published", True)
            .is_("deleted_at", None)
            .eq("visibility", "public")
        )

    @staticmethod
    def live_filter() -> Filter:
        """Return the filter for published posts that are not deleted."""
        return Filter().eq("is_published", True).is_("deleted_at", None)

    @staticmethod
    def user_filter(user_id: str) -> Filter:
        """Return the filter for a user's published, live posts."""
        return Filter().eq("user_id", user_id).eq("is_published", True).is_("deleted_at", None)

    @staticmethod
    def deleted_since_filter(user_id: str, since: datetime) -> Filter:
        """Return the filter for a user's posts soft-deleted at or after ``since``."""
        return Filter().eq("user_id", user_id).gte("deleted_at", since)

    async def create(self, post: Post, *, cancel: CancellationToken | None = None) -> Post:
        """Insert the base row of ``post`` and return the canonical row.

        An identifier is assigned when absent, counters are zeroed and
        ``published_at`` is stamped for published posts that lack one.
        """
        now = utcnow()
        row = post.to_row()
        row["id"] = row["id"] or str(uuid.uuid4())
        for counter in _COUNTERS:
            row[counter] = 0
        row["created_at"] = format_timestamp(now)
        row["updated_at"] = format_timestamp(now)
        row["deleted_at"] = None
        if row["is_published"]:
            row["is_draft"] = False
            if row["published_at"] is None:
                row["published_at"] = format_timestamp(now)

        rows = await self.store.insert(POSTS_TABLE, row, cancel=cancel)
        return Post.from_row(rows[0])

    async def get(
        self,
        post_id: str,
        viewer_id: str | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> Post:
        """Return a live post with its author, viewer flags and variant payload.

        Raises:
            NotFoundError: If the post is absent, deleted, or an unpublished
                post requested by someone other than its author
        """
        rows = await self.store.select(
            POSTS_TABLE,
            Filter().eq("id", post_id).is_("deleted_at", None),
            columns=POST_WITH_AUTHOR,
            limit=1,
            cancel=cancel,
        )
        if not rows:
            raise NotFoundError("Post not found")
        post = Post.from_row(rows[0])
        if not post.is_published and post.user_id != viewer_id:
            raise NotFoundError("Post not found")

        if viewer_id is not None:
            post.is_liked, post.is_saved = await asyncio.gather(
                self._check_engagement(LIKES_TABLE, post_id, viewer_id, cancel),
                self._check_engagement(SAVES_TABLE, post_id, viewer_id, cancel),
            )

        if self.enrichers is not None:
            await self.enrichers.load_one(post, viewer_id, cancel=cancel)
        return post

    async def get_owner(
        self, post_id: str, *, cancel: CancellationToken | None = None
    ) -> dict[str, Any]:
        """Return the ownership columns of a post, including deleted ones."""
        rows = await self.store.select(
            POSTS_TABLE,
            Filter().eq("id", post_id),
            columns="id,user_id,post_type,is_published,allows_comments,allows_sharing,deleted_at",
            limit=1,
            cancel=cancel,
        )
        if not rows:
            raise NotFoundError("Post not found")
        return rows[0]

    async def fetch_page(
        self,
        filter: Filter,
        order: Order,
        *,
        limit: int,
        offset: int = 0,
        embed: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> list[Post]:
        """Run one base query with the author embedded.

        ``embed`` adds a link-table resource, usually from :func:`link_embed`,
        whose filters restrict the page.
        """
        rows = await self.store.select(
            POSTS_TABLE,
            filter,
            columns=POST_WITH_AUTHOR if embed is None else f"{POST_WITH_AUTHOR},{embed}",
            order=order,
            limit=limit,
            offset=offset,
            cancel=cancel,
        )
        return [Post.from_row(row) for row in rows]

    async def count(
        self,
        filter: Filter,
        *,
        embed: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> int:
        """Return the number of posts matching ``filter``."""
        return await self.store.count(POSTS_TABLE, filter, embed=embed, cancel=cancel)

    async def list_user(
        self,
        user_id: str,
        *,
        limit: int,
        offset: int = 0,
        cancel: CancellationToken | None = None,
    ) -> tuple[list[Post], int]:
        """Return one page of a user's posts and their total."""
        filter = self.user_filter(user_id)
        posts, total = await asyncio.gather(
            self.fetch_page(
                filter, Order.by("-published_at"), limit=limit, offset=offset, cancel=cancel
            ),
            self.count(filter, cancel=cancel),
        )
        return posts, total

    async def update(
        self,
        post_id: str,
        updates: Mapping[str, Any],
        *,
        cancel: CancellationToken | None = None,
    ) -> Post:
        """Patch arbitrary columns of a post, always stamping ``updated_at``."""
        patch = dict(updates)
        patch["updated_at"] = format_timestamp(utcnow())
        rows = await self.store.patch(
            POSTS_TABLE, Filter().eq("id", post_id), patch, cancel=cancel
        )
        if not rows:
            raise NotFoundError("Post not found")
        return Post.from_row(rows[0])

    async def soft_delete(
        self, post_id: str, actor_id: str, *, cancel: CancellationToken | None = None
    ) -> None:
        """Mark a post deleted. Deleting an already deleted post is a no-op.

        Raises:
            NotFoundError: If the post does not exist
            UnauthorizedError: If ``actor_id`` is not the author
        """
        owner = await self.get_owner(post_id, cancel=cancel)
        if owner["user_id"] != actor_id:
            raise UnauthorizedError("Only the author can delete this post")
        if owner.get("deleted_at") is not None:
            return

        now = format_timestamp(utcnow())
        await self.store.patch(
            POSTS_TABLE,
            Filter().eq("id", post_id),
            {"deleted_at": now, "updated_at": now},
            returning=False,
            cancel=cancel,
        )

    async def _insert_link(self, table: str, row: Mapping[str, Any]) -> None:
        try:
            await self.store.insert(table, row, returning=False)
        except DuplicateKeyError:
            logger.debug("Link already present in %s: %s", table, dict(row))

    async def _delete_link(self, table: str, post_id: str, user_id: str) -> None:
        await self.store.delete(table, Filter().eq("post_id", post_id).eq("user_id", user_id))

    async def like(self, post_id: str, user_id: str) -> None:
        await self._insert_link(LIKES_TABLE, {"post_id": post_id, "user_id": user_id})

    async def unlike(self, post_id: str, user_id: str) -> None:
        await self._delete_link(LIKES_TABLE, post_id, user_id)

    async def save(
        self, post_id: str, user_id: str, collection: str | None = None
    ) -> None:
        await self._insert_link(
            SAVES_TABLE,
            {
                "post_id": post_id,
                "user_id": user_id,
                "collection_name": collection or DEFAULT_COLLECTION,
            },
        )

    async def unsave(self, post_id: str, user_id: str) -> None:
        await self._delete_link(SAVES_TABLE, post_id, user_id)

    async def share(self, post_id: str, user_id: str, comment: str | None = None) -> None:
        await self._insert_link(
            SHARES_TABLE,
            {"post_id": post_id, "user_id": user_id, "repost_comment": comment},
        )

    async def unshare(self, post_id: str, user_id: str) -> None:
        await self._delete_link(SHARES_TABLE, post_id, user_id)

    async def _exists(
        self, table: str, post_id: str, user_id: str, cancel: CancellationToken | None
    ) -> bool:
        rows = await self.store.select(
            table,
            Filter().eq("post_id", post_id).eq("user_id", user_id),
            columns="post_id",
            limit=1,
            cancel=cancel,
        )
        return bool(rows)

    async def _check_engagement(
        self, table: str, post_id: str, user_id: str, cancel: CancellationToken | None
    ) -> bool:
        try:
            return await self._exists(table, post_id, user_id, cancel)
        except RequestCancelledError:
            raise
        except Exception:
            logger.warning(
                "Engagement lookup on %s failed for post %s; defaulting to false",
                table,
                post_id,
                exc_info=True,
            )
            return False

    async def is_liked(
        self, post_id: str, user_id: str, *, cancel: CancellationToken | None = None
    ) -> bool:
        return await self._exists(LIKES_TABLE, post_id, user_id, cancel)

    async def is_saved(
        self, post_id: str, user_id: str, *, cancel: CancellationToken | None = None
    ) -> bool:
        return await self._exists(SAVES_TABLE, post_id, user_id, cancel)

    async def _batch_check(
        self,
        table: str,
        post_ids: Iterable[str],
        viewer_id: str,
        cancel: CancellationToken | None,
    ) -> dict[str, bool]:
        ids = list(dict.fromkeys(post_ids))
        if not ids:
            return {}
        rows = await self.store.select(
            table,
            Filter().in_("post_id", ids).eq("user_id", viewer_id),
            columns="post_id",
            cancel=cancel,
        )
        result = dict.fromkeys(ids, False)
        for row in rows:
            result[str(row["post_id"])] = True
        return result

    async def batch_check_likes(
        self,
        post_ids: Iterable[str],
        viewer_id: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> dict[str, bool]:
        """Answer which of ``post_ids`` the viewer liked, in one query."""
        return await self._batch_check(LIKES_TABLE, post_ids, viewer_id, cancel)

    async def batch_check_saves(
        self,
        post_ids: Iterable[str],
        viewer_id: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> dict[str, bool]:
        """Answer which of ``post_ids`` the viewer saved, in one query."""
        return await self._batch_check(SAVES_TABLE, post_ids, viewer_id, cancel)

    async def increment_views(self, post_id: str) -> None:
        """Atomically bump the view counter through the store."""
        await self.store.rpc("increment_post_views", {"target_post_id": post_id})

    async def saved_post_ids(
        self,
        user_id: str,
        *,
        collection: str | None = None,
        limit: int,
        offset: int = 0,
        cancel: CancellationToken | None = None,
    ) -> list[str]:
        """Return the ids of posts saved by ``user_id``, newest save first."""
        filter = Filter().eq("user_id", user_id)
        if collection:
            filter.eq("collection_name", collection)
        rows = await self.store.select(
            SAVES_TABLE,
            filter,
            columns="post_id,saved_at",
            order=Order.by("-saved_at"),
            limit=limit,
            offset=offset,
            cancel=cancel,
        )
        return [str(row["post_id"]) for row in rows]

    async def following_ids(
        self, user_id: str, *, cancel: CancellationToken | None = None
    ) -> list[str]:
        """Return the ids of the users ``user_id`` follows."""
        rows = await self.store.select(
            FOLLOWS_TABLE,
            Filter().eq("follower_id", user_id),
            columns="following_id",
            cancel=cancel,
        )
        return [str(row["following_id"]) for row in rows]
