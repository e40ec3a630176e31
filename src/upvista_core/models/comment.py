"""Comment tree node."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from upvista_core.models.post import Author

DELETED_COMMENT_CONTENT = "[deleted]"


class Comment(BaseModel):
    """A comment; replies point at their parent through ``parent_comment_id``."""

    model_config = ConfigDict(extra="ignore")

    id: str
    post_id: str
    user_id: str
    parent_comment_id: str | None = None
    content: str
    likes_count: int = 0
    replies_count: int = 0
    is_edited: bool = False
    edited_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    author: Author | None = None
    is_liked: bool = False

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Comment:
        data = dict(row)
        author = data.pop("author", None)
        comment = cls.model_validate(data)
        if isinstance(author, dict):
            comment.author = Author.model_validate(author)
        return comment
