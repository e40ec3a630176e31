"""Post write pipeline and single-post operations.

Writes go through one pipeline regardless of variant: validate, insert the
base row, insert the variant's extension row, then index hashtags and
mentions. A failed extension insert soft-deletes the orphaned base row before
the error is surfaced.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from upvista_core.core.errors import (
    NotFoundError,
    UnauthorizedError,
    ValidationFailedError,
)
from upvista_core.core.settings import settings
from upvista_core.enrichers import ArticleEnricher, EnricherRegistry, PollEnricher
from upvista_core.models.post import PollDetails, Post, PostVariant
from upvista_core.repositories.post_repo import PostRepository
from upvista_core.schemas.post import PostCreate, PostUpdate
from upvista_core.services.indexer import HashtagIndexer
from upvista_core.store import CancellationToken
from upvista_core.utils.timestamps import format_timestamp, utcnow

logger = logging.getLogger(__name__)

MEDIA_VARIANTS = (PostVariant.IMAGE, PostVariant.VIDEO)

# Strong references to fire-and-forget tasks until they finish.
_background_tasks: set[asyncio.Task[None]] = set()


def validate_post(data: PostCreate) -> None:
    """Check variant-independent and variant-specific constraints.

    Raises:
        ValidationFailedError: On the first violated constraint
    """
    if len(data.content) > settings.post_max_content_length:
        raise ValidationFailedError(
            f"Content exceeds {settings.post_max_content_length} characters"
        )
    if len(data.media_urls) != len(data.media_types):
        raise ValidationFailedError("media_urls and media_types must have the same length")

    if data.post_type is PostVariant.TEXT and not data.content.strip():
        raise ValidationFailedError("Text posts require content")
    if data.post_type in MEDIA_VARIANTS and not data.media_urls:
        raise ValidationFailedError(f"{data.post_type.value} posts require media")
    if data.post_type is PostVariant.ARTICLE and data.article is None:
        raise ValidationFailedError("Article posts require article fields")
    if data.post_type is PostVariant.POLL:
        if data.poll is None:
            raise ValidationFailedError("Poll posts require poll fields")
        count = len(data.poll.options)
        if not settings.poll_min_options <= count <= settings.poll_max_options:
            raise ValidationFailedError(
                f"Polls need between {settings.poll_min_options} and "
                f"{settings.poll_max_options} options"
            )
        if any(not option.strip() for option in data.poll.options):
            raise ValidationFailedError("Poll options cannot be empty")


class PostService:
    """Coordinates the repository, enrichers and indexer for single posts."""

    def __init__(
        self,
        posts: PostRepository,
        enrichers: EnricherRegistry,
        indexer: HashtagIndexer,
    ) -> None:
        self.posts = posts
        self.enrichers = enrichers
        self.indexer = indexer

    def _article_enricher(self) -> ArticleEnricher:
        enricher = self.enrichers.get(PostVariant.ARTICLE)
        if not isinstance(enricher, ArticleEnricher):
            raise RuntimeError("No article enricher registered")
        return enricher

    def _poll_enricher(self) -> PollEnricher:
        enricher = self.enrichers.get(PostVariant.POLL)
        if not isinstance(enricher, PollEnricher):
            raise RuntimeError("No poll enricher registered")
        return enricher

    async def create(self, author_id: str, data: PostCreate) -> Post:
        """Run the write pipeline for a new post and return it."""
        validate_post(data)

        draft = Post(
            user_id=author_id,
            post_type=data.post_type,
            content=data.content,
            media_urls=data.media_urls,
            media_types=data.media_types,
            visibility=data.visibility,
            allows_comments=data.allows_comments,
            allows_sharing=data.allows_sharing,
            is_published=data.is_published,
            is_draft=not data.is_published,
            is_nsfw=data.is_nsfw,
        )
        post = await self.posts.create(draft)

        try:
            await self._create_extension(post, data)
        except Exception:
            logger.error("Extension insert failed for post %s; rolling back", post.id)
            await self._discard(post.id)
            raise

        await self.indexer.index(post.id, post.content)
        logger.info("Created %s post %s by %s", post.post_type.value, post.id, author_id)
        return post

    async def _create_extension(self, post: Post, data: PostCreate) -> None:
        if post.post_type is PostVariant.ARTICLE and data.article is not None:
            post.article = await self._article_enricher().create(post, data.article.model_dump())
        elif post.post_type is PostVariant.POLL and data.poll is not None:
            post.poll = await self._poll_enricher().create(post, data.poll.model_dump())

    async def _discard(self, post_id: str) -> None:
        try:
            await self.posts.update(post_id, {"deleted_at": format_timestamp(utcnow())})
        except Exception:
            logger.error("Failed to discard orphaned post %s", post_id, exc_info=True)

    async def get(
        self,
        post_id: str,
        viewer_id: str | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> Post:
        """Return a post with its variant payload and record a view."""
        post = await self.posts.get(post_id, viewer_id, cancel=cancel)
        self._record_view(post.id)
        return post

    def _record_view(self, post_id: str) -> None:
        task = asyncio.create_task(self._increment_views(post_id))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    async def _increment_views(self, post_id: str) -> None:
        try:
            await self.posts.increment_views(post_id)
        except Exception:
            logger.warning("Failed to record view for post %s", post_id, exc_info=True)

    async def _require_owned(self, post_id: str, actor_id: str) -> dict[str, Any]:
        owner = await self.posts.get_owner(post_id)
        if owner.get("deleted_at") is not None:
            raise NotFoundError("Post not found")
        if owner["user_id"] != actor_id:
            raise UnauthorizedError("Only the author can modify this post")
        return owner

    async def _require_live(self, post_id: str) -> dict[str, Any]:
        owner = await self.posts.get_owner(post_id)
        if owner.get("deleted_at") is not None or not owner.get("is_published"):
            raise NotFoundError("Post not found")
        return owner

    async def update(self, post_id: str, actor_id: str, data: PostUpdate) -> Post:
        """Patch a post owned by ``actor_id``.

        Flipping ``is_published`` to true publishes a draft. A content change
        replaces the post's hashtag and mention links.
        """
        owner = await self._require_owned(post_id, actor_id)
        updates = data.model_dump(exclude_unset=True, exclude_none=True, mode="json")
        if not updates:
            return await self.posts.get(post_id, actor_id)

        content = updates.get("content")
        if content is not None and len(content) > settings.post_max_content_length:
            raise ValidationFailedError(
                f"Content exceeds {settings.post_max_content_length} characters"
            )
        if "media_urls" in updates or "media_types" in updates:
            current = await self.posts.get(post_id, actor_id)
            urls = updates.get("media_urls", current.media_urls) or []
            types = updates.get("media_types", current.media_types) or []
            if len(urls) != len(types):
                raise ValidationFailedError(
                    "media_urls and media_types must have the same length"
                )

        if updates.get("is_published") is True and not owner.get("is_published"):
            updates["published_at"] = format_timestamp(utcnow())
            updates["is_draft"] = False
        elif updates.get("is_published") is False and owner.get("is_published"):
            raise ValidationFailedError("A published post cannot return to draft")

        await self.posts.update(post_id, updates)
        if content is not None:
            await self.indexer.reindex(post_id, content)
        return await self.posts.get(post_id, actor_id)

    async def delete(self, post_id: str, actor_id: str) -> None:
        await self.posts.soft_delete(post_id, actor_id)
        logger.info("Post %s deleted by %s", post_id, actor_id)

    async def like(self, post_id: str, user_id: str) -> None:
        await self._require_live(post_id)
        await self.posts.like(post_id, user_id)

    async def unlike(self, post_id: str, user_id: str) -> None:
        await self.posts.unlike(post_id, user_id)

    async def save(self, post_id: str, user_id: str, collection: str | None = None) -> None:
        await self._require_live(post_id)
        await self.posts.save(post_id, user_id, collection)

    async def unsave(self, post_id: str, user_id: str) -> None:
        await self.posts.unsave(post_id, user_id)

    async def share(self, post_id: str, user_id: str, comment: str | None = None) -> None:
        owner = await self._require_live(post_id)
        if owner.get("allows_sharing") is False:
            raise ValidationFailedError("This post cannot be shared")
        await self.posts.share(post_id, user_id, comment)

    async def unshare(self, post_id: str, user_id: str) -> None:
        await self.posts.unshare(post_id, user_id)

    async def _require_poll(self, post_id: str) -> None:
        owner = await self._require_live(post_id)
        if owner.get("post_type") != PostVariant.POLL.value:
            raise ValidationFailedError("Post is not a poll")

    async def vote(self, post_id: str, user_id: str, option_indices: Sequence[int]) -> PollDetails:
        await self._require_poll(post_id)
        return await self._poll_enricher().vote(post_id, user_id, option_indices)

    async def poll_results(self, post_id: str, viewer_id: str | None = None) -> PollDetails:
        await self._require_poll(post_id)
        return await self._poll_enricher().get_for_post(post_id, viewer_id)

    async def get_article_by_slug(self, slug: str, viewer_id: str | None = None) -> Post:
        post_id = await self._article_enricher().post_id_for_slug(slug)
        return await self.get(post_id, viewer_id)

