"""Article extension: long-form body, slug, read time and tags."""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Sequence
from typing import Any

from upvista_core.core.errors import NotFoundError
from upvista_core.enrichers.base import Enricher
from upvista_core.models.post import ArticleDetails, Post, PostVariant
from upvista_core.store import CancellationToken, Filter
from upvista_core.utils.timestamps import format_timestamp, utcnow

logger = logging.getLogger(__name__)

ARTICLES_TABLE = "articles"
ARTICLE_TAGS_TABLE = "article_tags"

WORDS_PER_MINUTE = 200
MAX_NUMBERED_SLUGS = 10
SUMMARY_COLUMNS = "id,post_id,title,subtitle,slug,read_time_minutes,cover_image_url,category"

_TAG_RE = re.compile(r"<[^>]+>")
_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """Return a URL-safe slug for ``title``."""
    slug = _NON_SLUG_RE.sub("-", title.lower()).strip("-")
    return slug or "article"


def read_time_minutes(content_html: str) -> int:
    """Estimate reading time at 200 words per minute, never below one."""
    words = len(_TAG_RE.sub(" ", content_html).split())
    return max(1, words // WORDS_PER_MINUTE)


class ArticleEnricher(Enricher):
    """Reads and writes rows of the ``articles`` table."""

    variant = PostVariant.ARTICLE

    async def load_batch(
        self,
        posts: Sequence[Post],
        viewer_id: str | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        if not posts:
            return
        rows = await self.store.select(
            ARTICLES_TABLE,
            Filter().in_("post_id", [post.id for post in posts]),
            columns=SUMMARY_COLUMNS,
            cancel=cancel,
        )
        by_post = {str(row["post_id"]): row for row in rows}
        for post in posts:
            row = by_post.get(post.id)
            if row is None:
                logger.error("Article extension missing for post %s", post.id)
                continue
            post.article = ArticleDetails.model_validate(row)

    async def load_one(
        self,
        post: Post,
        viewer_id: str | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        rows = await self.store.select(
            ARTICLES_TABLE, Filter().eq("post_id", post.id), limit=1, cancel=cancel
        )
        if not rows:
            logger.error("Article extension missing for post %s", post.id)
            return
        article = ArticleDetails.model_validate(rows[0])
        if article.id:
            article.tags = await self.tags(article.id, cancel=cancel)
        post.article = article

    async def tags(
        self, article_id: str, *, cancel: CancellationToken | None = None
    ) -> list[str]:
        rows = await self.store.select(
            ARTICLE_TAGS_TABLE,
            Filter().eq("article_id", article_id),
            columns="tag",
            cancel=cancel,
        )
        return [str(row["tag"]) for row in rows]

    async def unique_slug(self, title: str) -> str:
        """Return a slug for ``title`` not yet used by any article.

        Collisions get ``-1`` through ``-10``; after that a random suffix.
        """
        base = slugify(title)
        candidates = [base] + [f"{base}-{n}" for n in range(1, MAX_NUMBERED_SLUGS + 1)]
        for candidate in candidates:
            rows = await self.store.select(
                ARTICLES_TABLE, Filter().eq("slug", candidate), columns="id", limit=1
            )
            if not rows:
                return candidate
        return f"{base}-{uuid.uuid4().hex[:8]}"

    async def create(self, post: Post, payload: dict[str, Any]) -> ArticleDetails:
        """Insert the article row for ``post`` and its tags."""
        now = format_timestamp(utcnow())
        content_html = payload.get("content_html") or ""
        row = {
            "id": str(uuid.uuid4()),
            "post_id": post.id,
            "title": payload["title"],
            "subtitle": payload.get("subtitle"),
            "content_html": content_html,
            "cover_image_url": payload.get("cover_image_url"),
            "meta_title": payload.get("meta_title"),
            "meta_description": payload.get("meta_description"),
            "slug": payload.get("slug") or await self.unique_slug(payload["title"]),
            "read_time_minutes": read_time_minutes(content_html),
            "category": payload.get("category"),
            "created_at": now,
            "updated_at": now,
        }
        rows = await self.store.insert(ARTICLES_TABLE, row)
        article = ArticleDetails.model_validate(rows[0])

        tags = list(dict.fromkeys(tag.lower() for tag in payload.get("tags") or []))
        if tags and article.id:
            await self.store.insert(
                ARTICLE_TAGS_TABLE,
                [{"article_id": article.id, "tag": tag} for tag in tags],
                returning=False,
            )
        article.tags = tags
        return article

    async def post_id_for_slug(self, slug: str) -> str:
        rows = await self.store.select(
            ARTICLES_TABLE, Filter().eq("slug", slug), columns="post_id", limit=1
        )
        if not rows:
            raise NotFoundError("Article not found")
        return str(rows[0]["post_id"])
