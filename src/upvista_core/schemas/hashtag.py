"""Hashtag-related Pydantic schemas."""

from __future__ import annotations

from pydantic import BaseModel

from upvista_core.models.hashtag import Hashtag


class TrendingHashtags(BaseModel):
    success: bool = True
    hashtags: list[Hashtag]


class HashtagEnvelope(BaseModel):
    success: bool = True
    hashtag: Hashtag
