"""Domain models for posts and their satellites."""

from upvista_core.models.comment import Comment
from upvista_core.models.hashtag import Hashtag
from upvista_core.models.post import (
    ArticleDetails,
    Author,
    PollDetails,
    PollOption,
    Post,
    PostVariant,
    Visibility,
)

__all__ = [
    "ArticleDetails",
    "Author",
    "Comment",
    "Hashtag",
    "PollDetails",
    "PollOption",
    "Post",
    "PostVariant",
    "Visibility",
]
