"""Business logic services for the Upvista core."""

from .comment_service import CommentService
from .feed import FeedAssembler, FeedResult
from .indexer import HashtagIndexer
from .jobs import NotificationJobs, build_jobs
from .post_service import PostService
from .scheduler import JobScheduler, ScheduledJob
from .storage import MediaStorage
from .trending import TrendingScorer

__all__ = [
    "CommentService",
    "FeedAssembler",
    "FeedResult",
    "HashtagIndexer",
    "JobScheduler",
    "MediaStorage",
    "NotificationJobs",
    "PostService",
    "ScheduledJob",
    "TrendingScorer",
    "build_jobs",
]
