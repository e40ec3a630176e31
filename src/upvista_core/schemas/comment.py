"""Comment-related Pydantic schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from upvista_core.models.comment import Comment


class CommentCreate(BaseModel):
    """Schema for creating a comment or a reply."""

    content: str = Field(..., min_length=1, max_length=2000)
    parent_comment_id: str | None = Field(None, description="Comment being replied to")


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class CommentEnvelope(BaseModel):
    success: bool = True
    comment: Comment


class CommentList(BaseModel):
    success: bool = True
    comments: list[Comment]
    limit: int
    offset: int
