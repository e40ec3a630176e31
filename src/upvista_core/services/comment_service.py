"""Comment threads under posts."""

from __future__ import annotations

import logging

from upvista_core.core.errors import NotFoundError, UnauthorizedError, ValidationFailedError
from upvista_core.models.comment import Comment
from upvista_core.repositories.comment_repo import CommentRepository
from upvista_core.repositories.post_repo import PostRepository

logger = logging.getLogger(__name__)


class CommentService:
    """Creates, edits and lists comments while keeping the tree intact."""

    def __init__(self, comments: CommentRepository, posts: PostRepository) -> None:
        self.comments = comments
        self.posts = posts

    async def create(
        self,
        post_id: str,
        user_id: str,
        content: str,
        parent_comment_id: str | None = None,
    ) -> Comment:
        """Add a top-level comment or a reply.

        Raises:
            NotFoundError: If the post or the parent comment is absent
            ValidationFailedError: If comments are disabled or the parent
                belongs to another post
        """
        owner = await self.posts.get_owner(post_id)
        if owner.get("deleted_at") is not None or not owner.get("is_published"):
            raise NotFoundError("Post not found")
        if owner.get("allows_comments") is False:
            raise ValidationFailedError("Comments are disabled for this post")

        if parent_comment_id is not None:
            parent = await self.comments.get(parent_comment_id)
            if parent.post_id != post_id:
                raise ValidationFailedError("Parent comment belongs to another post")

        comment = await self.comments.create(
            post_id=post_id,
            user_id=user_id,
            content=content,
            parent_comment_id=parent_comment_id,
        )
        logger.info("Comment %s added to post %s", comment.id, post_id)
        return comment

    async def _with_viewer_likes(
        self, comments: list[Comment], viewer_id: str | None
    ) -> list[Comment]:
        if viewer_id is None or not comments:
            return comments
        liked = await self.comments.batch_check_likes([c.id for c in comments], viewer_id)
        for comment in comments:
            comment.is_liked = liked.get(comment.id, False)
        return comments

    async def list_for_post(
        self, post_id: str, viewer_id: str | None, *, limit: int, offset: int = 0
    ) -> list[Comment]:
        if limit <= 0:
            return []
        comments = await self.comments.list_for_post(post_id, limit=limit, offset=offset)
        return await self._with_viewer_likes(comments, viewer_id)

    async def list_replies(
        self, comment_id: str, viewer_id: str | None, *, limit: int, offset: int = 0
    ) -> list[Comment]:
        if limit <= 0:
            return []
        replies = await self.comments.list_replies(comment_id, limit=limit, offset=offset)
        return await self._with_viewer_likes(replies, viewer_id)

    async def _require_owned(self, comment_id: str, actor_id: str) -> Comment:
        comment = await self.comments.get(comment_id)
        if comment.user_id != actor_id:
            raise UnauthorizedError("Only the author can modify this comment")
        return comment

    async def update(self, comment_id: str, actor_id: str, content: str) -> Comment:
        comment = await self._require_owned(comment_id, actor_id)
        if comment.deleted_at is not None:
            raise NotFoundError("Comment not found")
        return await self.comments.update_content(comment_id, content)

    async def delete(self, comment_id: str, actor_id: str) -> None:
        """Soft-delete a comment. Deleting twice is a no-op."""
        comment = await self._require_owned(comment_id, actor_id)
        if comment.deleted_at is not None:
            return
        await self.comments.soft_delete(comment_id)

    async def like(self, comment_id: str, user_id: str) -> None:
        comment = await self.comments.get(comment_id)
        if comment.deleted_at is not None:
            raise NotFoundError("Comment not found")
        await self.comments.like(comment_id, user_id)

    async def unlike(self, comment_id: str, user_id: str) -> None:
        await self.comments.unlike(comment_id, user_id)
