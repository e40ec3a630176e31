"""Feed assembly.

Every feed flavour runs the same pipeline; only the base filter and order
differ:

1. One base query selects the page with the author embedded.
2. For a signed-in viewer, the like and save lookups run concurrently over the
   page's ids.
3. The page is partitioned by variant and each enricher's ``load_batch`` runs
   concurrently with the lookups.
4. Results are stitched back into the posts in place, so page order is the
   base query's order.

Engagement and enricher failures degrade the affected fields and are logged.
Base-query, count and cancellation errors are surfaced.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
from datetime import timedelta

from upvista_core.core.errors import RequestCancelledError
from upvista_core.enrichers.base import Enricher, EnricherRegistry
from upvista_core.models.post import Post, PostVariant
from upvista_core.repositories.comment_repo import COMMENTS_TABLE
from upvista_core.repositories.hashtag_repo import POST_HASHTAGS_TABLE, HashtagRepository
from upvista_core.repositories.post_repo import (
    LIKES_TABLE,
    SHARES_TABLE,
    PostRepository,
    link_embed,
)
from upvista_core.store import CancellationToken, Filter, Order
from upvista_core.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

RECENT_FIRST = Order.by("-published_at")
MOST_LIKED_FIRST = Order.by("-likes_count", "-published_at")
RECENTLY_DELETED_FIRST = Order.by("-deleted_at")
ARCHIVE_WINDOW = timedelta(days=30)


@dataclass
class FeedResult:
    """An assembled page and the total it was cut from."""

    posts: list[Post]
    total: int
    limit: int
    offset: int

    @property
    def page(self) -> int:
        return self.offset // self.limit + 1 if self.limit > 0 else 1

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.posts) < self.total


class FeedAssembler:
    """Builds feed pages from the post repository and the enrichers."""

    def __init__(
        self,
        posts: PostRepository,
        hashtags: HashtagRepository,
        enrichers: EnricherRegistry,
    ) -> None:
        self.posts = posts
        self.hashtags = hashtags
        self.enrichers = enrichers

    async def home(
        self,
        viewer_id: str | None,
        *,
        limit: int,
        offset: int = 0,
        cancel: CancellationToken | None = None,
    ) -> FeedResult:
        """Public posts, newest first."""
        return await self._assemble(
            self.posts.visible_filter(), RECENT_FIRST, viewer_id, limit, offset, cancel
        )

    async def explore(
        self,
        viewer_id: str | None,
        *,
        limit: int,
        offset: int = 0,
        cancel: CancellationToken | None = None,
    ) -> FeedResult:
        """Public posts, most liked first."""
        return await self._assemble(
            self.posts.visible_filter(), MOST_LIKED_FIRST, viewer_id, limit, offset, cancel
        )

    async def following(
        self,
        viewer_id: str,
        *,
        limit: int,
        offset: int = 0,
        cancel: CancellationToken | None = None,
    ) -> FeedResult:
        """Public posts by the users the viewer follows."""
        following = await self.posts.following_ids(viewer_id, cancel=cancel)
        if not following:
            return FeedResult([], 0, limit, offset)
        filter = self.posts.visible_filter().in_("user_id", following)
        return await self._assemble(filter, RECENT_FIRST, viewer_id, limit, offset, cancel)

    async def hashtag(
        self,
        tag: str,
        viewer_id: str | None,
        *,
        limit: int,
        offset: int = 0,
        cancel: CancellationToken | None = None,
    ) -> FeedResult:
        """Public posts tagged with ``tag``."""
        hashtag = await self.hashtags.get_by_tag(tag, cancel=cancel)
        if hashtag is None:
            return FeedResult([], 0, limit, offset)
        filter = self.posts.visible_filter().eq(f"{POST_HASHTAGS_TABLE}.hashtag_id", hashtag.id)
        return await self._assemble(
            filter,
            RECENT_FIRST,
            viewer_id,
            limit,
            offset,
            cancel,
            embed=link_embed(POST_HASHTAGS_TABLE),
        )

    async def saved(
        self,
        viewer_id: str,
        *,
        collection: str | None = None,
        limit: int,
        offset: int = 0,
        cancel: CancellationToken | None = None,
    ) -> FeedResult:
        """Posts the viewer saved, most recently saved first."""
        if limit <= 0:
            return FeedResult([], 0, limit, offset)
        saved_ids = await self.posts.saved_post_ids(
            viewer_id, collection=collection, limit=limit, offset=offset, cancel=cancel
        )
        if not saved_ids:
            return FeedResult([], 0, limit, offset)

        filter = Filter().in_("id", saved_ids).eq("is_published", True).is_("deleted_at", None)
        fetched = await self.posts.fetch_page(
            filter, RECENT_FIRST, limit=len(saved_ids), cancel=cancel
        )
        position = {post_id: index for index, post_id in enumerate(saved_ids)}
        posts = sorted(fetched, key=lambda post: position[post.id])

        await self._fan_out(posts, viewer_id, cancel)
        return FeedResult(posts, len(posts), limit, offset)

    async def user(
        self,
        user_id: str,
        viewer_id: str | None,
        *,
        limit: int,
        offset: int = 0,
        cancel: CancellationToken | None = None,
    ) -> FeedResult:
        """A user's profile feed. Other viewers only see public posts."""
        filter = self.posts.user_filter(user_id)
        if viewer_id != user_id:
            filter.eq("visibility", "public")
        return await self._assemble(filter, RECENT_FIRST, viewer_id, limit, offset, cancel)

    async def liked(
        self,
        viewer_id: str,
        *,
        limit: int,
        offset: int = 0,
        cancel: CancellationToken | None = None,
    ) -> FeedResult:
        """Live posts the viewer liked."""
        return await self._linked(LIKES_TABLE, viewer_id, limit, offset, cancel)

    async def commented(
        self,
        viewer_id: str,
        *,
        limit: int,
        offset: int = 0,
        cancel: CancellationToken | None = None,
    ) -> FeedResult:
        """Live posts the viewer commented on, each listed once.

        Comments the viewer has since deleted do not count.
        """
        filter = (
            self.posts.live_filter()
            .eq(f"{COMMENTS_TABLE}.user_id", viewer_id)
            .is_(f"{COMMENTS_TABLE}.deleted_at", None)
        )
        return await self._assemble(
            filter,
            RECENT_FIRST,
            viewer_id,
            limit,
            offset,
            cancel,
            embed=link_embed(COMMENTS_TABLE),
        )

    async def shared(
        self,
        viewer_id: str,
        *,
        post_type: PostVariant | None = None,
        limit: int,
        offset: int = 0,
        cancel: CancellationToken | None = None,
    ) -> FeedResult:
        """Live posts the viewer shared, optionally of one variant only."""
        return await self._linked(
            SHARES_TABLE, viewer_id, limit, offset, cancel, post_type=post_type
        )

    async def deleted(
        self,
        viewer_id: str,
        *,
        limit: int,
        offset: int = 0,
        cancel: CancellationToken | None = None,
    ) -> FeedResult:
        """The viewer's own posts deleted within :data:`ARCHIVE_WINDOW`, latest first."""
        filter = self.posts.deleted_since_filter(viewer_id, utcnow() - ARCHIVE_WINDOW)
        return await self._assemble(
            filter, RECENTLY_DELETED_FIRST, viewer_id, limit, offset, cancel
        )

    async def _linked(
        self,
        table: str,
        viewer_id: str,
        limit: int,
        offset: int,
        cancel: CancellationToken | None,
        *,
        post_type: PostVariant | None = None,
    ) -> FeedResult:
        filter = self.posts.live_filter().eq(f"{table}.user_id", viewer_id)
        if post_type is not None:
            filter.eq("post_type", post_type.value)
        return await self._assemble(
            filter, RECENT_FIRST, viewer_id, limit, offset, cancel, embed=link_embed(table)
        )

    async def _assemble(
        self,
        filter: Filter,
        order: Order,
        viewer_id: str | None,
        limit: int,
        offset: int,
        cancel: CancellationToken | None,
        *,
        embed: str | None = None,
    ) -> FeedResult:
        if limit <= 0:
            total = await self.posts.count(filter, embed=embed, cancel=cancel)
            return FeedResult([], total, limit, offset)

        posts = await self.posts.fetch_page(
            filter, order, limit=limit, offset=offset, embed=embed, cancel=cancel
        )
        count = self.posts.count(filter, embed=embed, cancel=cancel)
        total = await self._fan_out(posts, viewer_id, cancel, count)
        return FeedResult(posts, total if total is not None else len(posts), limit, offset)

    async def _fan_out(
        self,
        posts: Sequence[Post],
        viewer_id: str | None,
        cancel: CancellationToken | None,
        count: Awaitable[int] | None = None,
    ) -> int | None:
        """Run engagement lookups, enrichers and the optional count concurrently.

        Returns:
            The awaited count, or None when no count was requested
        """
        jobs: list[Awaitable[object]] = []
        if count is not None:
            jobs.append(count)
        if posts and viewer_id is not None:
            jobs.append(self._load_engagement(posts, viewer_id, cancel))
        for variant, group in self._partition(posts).items():
            enricher = self.enrichers.get(variant)
            if enricher is not None:
                jobs.append(self._enrich_group(enricher, group, viewer_id, cancel))

        results = await asyncio.gather(*jobs, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        if cancel is not None and cancel.cancelled:
            raise RequestCancelledError("Feed request cancelled")
        if count is None:
            return None
        return int(results[0])  # type: ignore[call-overload]

    @staticmethod
    def _partition(posts: Sequence[Post]) -> dict[PostVariant, list[Post]]:
        groups: dict[PostVariant, list[Post]] = defaultdict(list)
        for post in posts:
            groups[post.post_type].append(post)
        return groups

    async def _load_engagement(
        self,
        posts: Sequence[Post],
        viewer_id: str,
        cancel: CancellationToken | None,
    ) -> None:
        post_ids = [post.id for post in posts]
        liked, saved = await asyncio.gather(
            self._degrade("likes", self.posts.batch_check_likes(post_ids, viewer_id, cancel=cancel)),
            self._degrade("saves", self.posts.batch_check_saves(post_ids, viewer_id, cancel=cancel)),
        )
        for post in posts:
            post.is_liked = liked.get(post.id, False)
            post.is_saved = saved.get(post.id, False)

    @staticmethod
    async def _degrade(name: str, lookup: Awaitable[dict[str, bool]]) -> dict[str, bool]:
        try:
            return await lookup
        except RequestCancelledError:
            raise
        except Exception:
            logger.warning("Engagement lookup for %s failed; defaulting to false", name, exc_info=True)
            return {}

    @staticmethod
    async def _enrich_group(
        enricher: Enricher,
        posts: Sequence[Post],
        viewer_id: str | None,
        cancel: CancellationToken | None,
    ) -> None:
        try:
            await enricher.load_batch(posts, viewer_id, cancel=cancel)
        except RequestCancelledError:
            raise
        except Exception:
            logger.warning(
                "%s enrichment failed for posts %s",
                enricher.variant.value,
                ", ".join(post.id for post in posts),
                exc_info=True,
            )
