"""Data access helpers for comment trees."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from upvista_core.core.errors import DuplicateKeyError, NotFoundError
from upvista_core.models.comment import DELETED_COMMENT_CONTENT, Comment
from upvista_core.models.post import AUTHOR_PROJECTION
from upvista_core.store import Filter, Order, StoreClient
from upvista_core.utils.timestamps import format_timestamp, utcnow

__all__ = ["CommentRepository"]

logger = logging.getLogger(__name__)

COMMENTS_TABLE = "post_comments"
COMMENT_LIKES_TABLE = "comment_likes"
COMMENT_WITH_AUTHOR = f"*,{AUTHOR_PROJECTION}"


class CommentRepository:
    """Thin wrapper around store access for comments."""

    def __init__(self, store: StoreClient) -> None:
        self.store = store

    async def create(
        self,
        *,
        post_id: str,
        user_id: str,
        content: str,
        parent_comment_id: str | None = None,
    ) -> Comment:
        now = format_timestamp(utcnow())
        rows = await self.store.insert(
            COMMENTS_TABLE,
            {
                "id": str(uuid.uuid4()),
                "post_id": post_id,
                "user_id": user_id,
                "parent_comment_id": parent_comment_id,
                "content": content,
                "created_at": now,
                "updated_at": now,
            },
        )
        return Comment.from_row(rows[0])

    async def get(self, comment_id: str) -> Comment:
        rows = await self.store.select(
            COMMENTS_TABLE, Filter().eq("id", comment_id), columns=COMMENT_WITH_AUTHOR, limit=1
        )
        if not rows:
            raise NotFoundError("Comment not found")
        return Comment.from_row(rows[0])

    async def list_for_post(self, post_id: str, *, limit: int, offset: int = 0) -> list[Comment]:
        """Return top-level comments of a post, newest first."""
        rows = await self.store.select(
            COMMENTS_TABLE,
            Filter().eq("post_id", post_id).is_("parent_comment_id", None),
            columns=COMMENT_WITH_AUTHOR,
            order=Order.by("-created_at"),
            limit=limit,
            offset=offset,
        )
        return [Comment.from_row(row) for row in rows]

    async def list_replies(
        self, comment_id: str, *, limit: int, offset: int = 0
    ) -> list[Comment]:
        """Return direct replies of a comment in conversation order."""
        rows = await self.store.select(
            COMMENTS_TABLE,
            Filter().eq("parent_comment_id", comment_id),
            columns=COMMENT_WITH_AUTHOR,
            order=Order.by("created_at"),
            limit=limit,
            offset=offset,
        )
        return [Comment.from_row(row) for row in rows]

    async def update_content(self, comment_id: str, content: str) -> Comment:
        now = format_timestamp(utcnow())
        rows = await self.store.patch(
            COMMENTS_TABLE,
            Filter().eq("id", comment_id),
            {"content": content, "is_edited": True, "edited_at": now, "updated_at": now},
        )
        if not rows:
            raise NotFoundError("Comment not found")
        return Comment.from_row(rows[0])

    async def soft_delete(self, comment_id: str) -> None:
        """Blank a comment's content but keep the node so replies survive."""
        now = format_timestamp(utcnow())
        await self.store.patch(
            COMMENTS_TABLE,
            Filter().eq("id", comment_id),
            {"content": DELETED_COMMENT_CONTENT, "deleted_at": now, "updated_at": now},
            returning=False,
        )

    async def like(self, comment_id: str, user_id: str) -> None:
        try:
            await self.store.insert(
                COMMENT_LIKES_TABLE,
                {"comment_id": comment_id, "user_id": user_id},
                returning=False,
            )
        except DuplicateKeyError:
            logger.debug("Comment %s already liked by %s", comment_id, user_id)

    async def unlike(self, comment_id: str, user_id: str) -> None:
        await self.store.delete(
            COMMENT_LIKES_TABLE, Filter().eq("comment_id", comment_id).eq("user_id", user_id)
        )

    async def batch_check_likes(
        self, comment_ids: Iterable[str], viewer_id: str
    ) -> dict[str, bool]:
        ids = list(dict.fromkeys(comment_ids))
        if not ids:
            return {}
        rows = await self.store.select(
            COMMENT_LIKES_TABLE,
            Filter().in_("comment_id", ids).eq("user_id", viewer_id),
            columns="comment_id",
        )
        result = dict.fromkeys(ids, False)
        for row in rows:
            result[str(row["comment_id"])] = True
        return result
