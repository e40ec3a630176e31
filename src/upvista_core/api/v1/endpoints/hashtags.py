"""Hashtag endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query

from upvista_core.api.v1.dependencies import CurrentUserDep, HashtagRepoDep
from upvista_core.schemas.hashtag import HashtagEnvelope, TrendingHashtags
from upvista_core.schemas.post import MessageEnvelope

router = APIRouter(prefix="/hashtags", tags=["hashtags"])


@router.get("/trending", response_model=TrendingHashtags)
async def trending_hashtags(
    hashtags: HashtagRepoDep,
    limit: Annotated[int, Query(ge=0, le=100)] = 10,
) -> TrendingHashtags:
    """Return hashtags by trending score."""
    return TrendingHashtags(hashtags=await hashtags.trending(limit))


@router.get("/{tag}", response_model=HashtagEnvelope)
async def get_hashtag(tag: str, hashtags: HashtagRepoDep) -> HashtagEnvelope:
    return HashtagEnvelope(hashtag=await hashtags.require(tag.lstrip("#")))


@router.post("/{tag}/follow", response_model=MessageEnvelope)
async def follow_hashtag(
    tag: str, user_id: CurrentUserDep, hashtags: HashtagRepoDep
) -> MessageEnvelope:
    hashtag = await hashtags.require(tag.lstrip("#"))
    await hashtags.follow(hashtag.id, user_id)
    return MessageEnvelope(message=f"Following #{hashtag.tag}")


@router.post("/{tag}/unfollow", response_model=MessageEnvelope)
async def unfollow_hashtag(
    tag: str, user_id: CurrentUserDep, hashtags: HashtagRepoDep
) -> MessageEnvelope:
    hashtag = await hashtags.require(tag.lstrip("#"))
    await hashtags.unfollow(hashtag.id, user_id)
    return MessageEnvelope(message=f"Unfollowed #{hashtag.tag}")
