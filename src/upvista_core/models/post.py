"""Post aggregate: the base row plus its variant-specific extension."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Columns of the ``posts`` table; everything else on Post is derived or embedded.
POST_COLUMNS = (
    "id",
    "user_id",
    "post_type",
    "content",
    "media_urls",
    "media_types",
    "visibility",
    "allows_comments",
    "allows_sharing",
    "is_published",
    "is_draft",
    "is_nsfw",
    "is_pinned",
    "is_featured",
    "likes_count",
    "comments_count",
    "shares_count",
    "views_count",
    "saves_count",
    "created_at",
    "updated_at",
    "published_at",
    "deleted_at",
)

AUTHOR_PROJECTION = "author:user_id(id,username,display_name,profile_picture,is_verified)"


class PostVariant(str, Enum):
    """Subtype tag of a post."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    POLL = "poll"
    ARTICLE = "article"


class Visibility(str, Enum):
    """Audience a post is shown to."""

    PUBLIC = "public"
    FOLLOWERS = "followers"
    PRIVATE = "private"


class Author(BaseModel):
    """Public projection of a user embedded into posts and comments."""

    model_config = ConfigDict(extra="ignore")

    id: str
    username: str
    display_name: str | None = None
    profile_picture: str | None = None
    is_verified: bool = False


class ArticleDetails(BaseModel):
    """Extension row of an article post."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    post_id: str
    title: str
    subtitle: str | None = None
    content_html: str = ""
    cover_image_url: str | None = None
    meta_title: str | None = None
    meta_description: str | None = None
    slug: str
    read_time_minutes: int = 1
    category: str | None = None
    views_count: int = 0
    reads_count: int = 0
    tags: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PollOption(BaseModel):
    """One ordered answer of a poll with its tally."""

    model_config = ConfigDict(extra="ignore")

    id: str
    poll_id: str
    option_text: str
    option_index: int
    votes_count: int = 0
    is_selected: bool = False


class PollDetails(BaseModel):
    """Extension row of a poll post."""

    model_config = ConfigDict(extra="ignore")

    id: str
    post_id: str
    question: str
    duration_hours: int | None = None
    ends_at: datetime | None = None
    allow_multiple_votes: bool = False
    total_votes: int = 0
    options: list[PollOption] = Field(default_factory=list)
    selected_option_indices: list[int] = Field(default_factory=list)

    def is_closed(self, now: datetime) -> bool:
        """Return True once the poll's closing time has passed."""
        return self.ends_at is not None and now >= self.ends_at


class Post(BaseModel):
    """A post with its author, viewer-relative flags and variant payload."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    user_id: str
    post_type: PostVariant = PostVariant.TEXT
    content: str = ""
    media_urls: list[str] = Field(default_factory=list)
    media_types: list[str] = Field(default_factory=list)
    visibility: Visibility = Visibility.PUBLIC

    allows_comments: bool = True
    allows_sharing: bool = True
    is_published: bool = True
    is_draft: bool = False
    is_nsfw: bool = False
    is_pinned: bool = False
    is_featured: bool = False

    likes_count: int = 0
    comments_count: int = 0
    shares_count: int = 0
    views_count: int = 0
    saves_count: int = 0

    created_at: datetime | None = None
    updated_at: datetime | None = None
    published_at: datetime | None = None
    deleted_at: datetime | None = None

    author: Author | None = None
    is_liked: bool = False
    is_saved: bool = False
    article: ArticleDetails | None = None
    poll: PollDetails | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Post:
        """Build a post from a store row, tolerating a missing author embed."""
        data = dict(row)
        author = data.pop("author", None)
        data["media_urls"] = data.get("media_urls") or []
        data["media_types"] = data.get("media_types") or []
        post = cls.model_validate(data)
        if isinstance(author, dict):
            post.author = Author.model_validate(author)
        return post

    def to_row(self) -> dict[str, Any]:
        """Return the base-table columns as a JSON-ready mapping."""
        dumped = self.model_dump(mode="json")
        return {column: dumped[column] for column in POST_COLUMNS}
