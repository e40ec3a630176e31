"""Hashtag entity."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class Hashtag(BaseModel):
    """Unique lowercase tag with its counters and trending score."""

    model_config = ConfigDict(extra="ignore")

    id: str
    tag: str
    posts_count: int = 0
    followers_count: int = 0
    trending_score: float = 0.0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_used_at: datetime | None = None
