"""Version 1 API endpoints."""

from .endpoints import (
    activity_router,
    articles_router,
    comments_router,
    feed_router,
    hashtags_router,
    posts_router,
)

__all__ = [
    "activity_router",
    "articles_router",
    "comments_router",
    "feed_router",
    "hashtags_router",
    "posts_router",
]
