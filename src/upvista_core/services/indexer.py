"""Hashtag and mention indexing of post content.

Indexing runs after the base row is written. Every hashtag or mention is
handled on its own: a failure is logged and the rest still get indexed, and
nothing here fails the post write.
"""

from __future__ import annotations

import logging
import re

from upvista_core.core.errors import RequestCancelledError
from upvista_core.repositories.hashtag_repo import HashtagRepository
from upvista_core.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)

HASHTAG_RE = re.compile(r"#([A-Za-z0-9_]{1,50})")
MENTION_RE = re.compile(r"@([A-Za-z0-9_]{1,30})")


def _unique_lower(matches: list[str]) -> list[str]:
    return list(dict.fromkeys(match.lower() for match in matches))


def extract_hashtags(content: str) -> list[str]:
    """Return the distinct lowercase hashtags of ``content`` in order of appearance."""
    return _unique_lower(HASHTAG_RE.findall(content or ""))


def extract_mentions(content: str) -> list[str]:
    """Return the distinct lowercase usernames mentioned in ``content``."""
    return _unique_lower(MENTION_RE.findall(content or ""))


class HashtagIndexer:
    """Links posts to the hashtags and users their content references."""

    def __init__(self, hashtags: HashtagRepository, users: UserRepository) -> None:
        self.hashtags = hashtags
        self.users = users

    async def index(self, post_id: str, content: str) -> None:
        """Create hashtag links and mention rows for a freshly written post."""
        for tag in extract_hashtags(content):
            try:
                hashtag = await self.hashtags.get_or_create(tag)
                await self.hashtags.link_post(post_id, hashtag.id)
            except RequestCancelledError:
                raise
            except Exception:
                logger.warning(
                    "Failed to index hashtag #%s for post %s", tag, post_id, exc_info=True
                )

        usernames = extract_mentions(content)
        if not usernames:
            return
        try:
            user_ids = await self.users.resolve_usernames(usernames)
        except RequestCancelledError:
            raise
        except Exception:
            logger.warning("Failed to resolve mentions for post %s", post_id, exc_info=True)
            return

        for username in usernames:
            user_id = user_ids.get(username)
            if user_id is None:
                continue
            try:
                await self.hashtags.add_mention(post_id, user_id)
            except RequestCancelledError:
                raise
            except Exception:
                logger.warning(
                    "Failed to record mention @%s for post %s", username, post_id, exc_info=True
                )

    async def reindex(self, post_id: str, content: str) -> None:
        """Replace a post's links after its content changed."""
        try:
            await self.hashtags.unlink_post(post_id)
            await self.hashtags.remove_mentions(post_id)
        except RequestCancelledError:
            raise
        except Exception:
            logger.warning("Failed to clear old links of post %s", post_id, exc_info=True)
        await self.index(post_id, content)
