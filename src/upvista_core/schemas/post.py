"""Post-related Pydantic schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from upvista_core.models.post import Post, PostVariant, Visibility


class ArticleInput(BaseModel):
    """Article fields supplied when creating an article post."""

    title: str = Field(..., min_length=1, max_length=300, description="Article title")
    subtitle: str | None = Field(None, max_length=500)
    content_html: str = Field(..., min_length=1, description="Article body as HTML")
    cover_image_url: str | None = None
    meta_title: str | None = None
    meta_description: str | None = None
    category: str | None = None
    tags: list[str] = Field(default_factory=list, description="Free-form article tags")


class PollInput(BaseModel):
    """Poll fields supplied when creating a poll post."""

    question: str = Field(..., min_length=1, max_length=500)
    options: list[str] = Field(..., description="Ordered answer texts")
    duration_hours: int | None = Field(24, ge=1, description="Hours until the poll closes")
    allow_multiple_votes: bool = False


class PostCreate(BaseModel):
    """Schema for creating a new post of any variant."""

    post_type: PostVariant = Field(PostVariant.TEXT, description="Post variant")
    content: str = Field("", description="Post text; hashtags and mentions are indexed")
    media_urls: list[str] = Field(default_factory=list)
    media_types: list[str] = Field(default_factory=list)
    visibility: Visibility = Visibility.PUBLIC
    allows_comments: bool = True
    allows_sharing: bool = True
    is_published: bool = True
    is_nsfw: bool = False
    article: ArticleInput | None = None
    poll: PollInput | None = None


class PostUpdate(BaseModel):
    """Schema for partially updating a post. Unset fields are left alone."""

    content: str | None = None
    media_urls: list[str] | None = None
    media_types: list[str] | None = None
    visibility: Visibility | None = None
    allows_comments: bool | None = None
    allows_sharing: bool | None = None
    is_published: bool | None = None
    is_nsfw: bool | None = None
    is_pinned: bool | None = None


class ShareRequest(BaseModel):
    comment: str | None = Field(None, max_length=1000, description="Repost comment")


class SaveRequest(BaseModel):
    collection: str | None = Field(None, max_length=100, description="Collection name")


class VoteRequest(BaseModel):
    option_indices: list[int] = Field(..., min_length=1)


class PostEnvelope(BaseModel):
    """Response carrying a single post."""

    success: bool = True
    post: Post
    message: str | None = None


class FeedPage(BaseModel):
    """One page of a feed."""

    model_config = ConfigDict(from_attributes=True)

    success: bool = True
    posts: list[Post]
    total: int
    page: int
    limit: int
    has_more: bool


class MessageEnvelope(BaseModel):
    success: bool = True
    message: str
