"""Data access for posts, hashtags, comments and users."""

from upvista_core.repositories.comment_repo import CommentRepository
from upvista_core.repositories.hashtag_repo import HashtagRepository
from upvista_core.repositories.post_repo import PostRepository
from upvista_core.repositories.user_repo import UserRepository

__all__ = ["CommentRepository", "HashtagRepository", "PostRepository", "UserRepository"]
