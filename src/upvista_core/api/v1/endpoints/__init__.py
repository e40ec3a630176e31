"""API endpoint modules for version 1."""

from .activity import router as activity_router
from .articles import router as articles_router
from .comments import router as comments_router
from .feed import router as feed_router
from .hashtags import router as hashtags_router
from .posts import router as posts_router

__all__ = [
    "activity_router",
    "articles_router",
    "comments_router",
    "feed_router",
    "hashtags_router",
    "posts_router",
]
