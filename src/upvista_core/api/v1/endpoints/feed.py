"""Feed endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query

from upvista_core.api.v1.dependencies import (
    CancellationDep,
    CurrentUserDep,
    FeedDep,
    OptionalUserDep,
)
from upvista_core.core.settings import settings
from upvista_core.schemas.post import FeedPage
from upvista_core.services.feed import FeedResult

router = APIRouter(prefix="/feed", tags=["feed"])

LimitQuery = Annotated[int, Query(ge=0, le=settings.feed_max_limit, description="Page size")]
OffsetQuery = Annotated[int, Query(ge=0, description="Rows to skip")]


def to_page(result: FeedResult) -> FeedPage:
    return FeedPage(
        posts=result.posts,
        total=result.total,
        page=result.page,
        limit=result.limit,
        has_more=result.has_more,
    )


@router.get("/home", response_model=FeedPage)
async def home_feed(
    viewer_id: OptionalUserDep,
    feed: FeedDep,
    cancel: CancellationDep,
    limit: LimitQuery = settings.feed_default_limit,
    offset: OffsetQuery = 0,
) -> FeedPage:
    """Public posts, newest first."""
    return to_page(await feed.home(viewer_id, limit=limit, offset=offset, cancel=cancel))


@router.get("/following", response_model=FeedPage)
async def following_feed(
    viewer_id: CurrentUserDep,
    feed: FeedDep,
    cancel: CancellationDep,
    limit: LimitQuery = settings.feed_default_limit,
    offset: OffsetQuery = 0,
) -> FeedPage:
    """Posts from the accounts the viewer follows."""
    return to_page(await feed.following(viewer_id, limit=limit, offset=offset, cancel=cancel))


@router.get("/explore", response_model=FeedPage)
async def explore_feed(
    viewer_id: OptionalUserDep,
    feed: FeedDep,
    cancel: CancellationDep,
    limit: LimitQuery = settings.feed_default_limit,
    offset: OffsetQuery = 0,
) -> FeedPage:
    """Public posts, most liked first."""
    return to_page(await feed.explore(viewer_id, limit=limit, offset=offset, cancel=cancel))


@router.get("/hashtag/{tag}", response_model=FeedPage)
async def hashtag_feed(
    tag: str,
    viewer_id: OptionalUserDep,
    feed: FeedDep,
    cancel: CancellationDep,
    limit: LimitQuery = settings.feed_default_limit,
    offset: OffsetQuery = 0,
) -> FeedPage:
    """Public posts carrying ``#tag``."""
    result = await feed.hashtag(
        tag.lstrip("#"), viewer_id, limit=limit, offset=offset, cancel=cancel
    )
    return to_page(result)


@router.get("/saved", response_model=FeedPage)
async def saved_feed(
    viewer_id: CurrentUserDep,
    feed: FeedDep,
    cancel: CancellationDep,
    collection: Annotated[str | None, Query(max_length=100)] = None,
    limit: LimitQuery = settings.feed_default_limit,
    offset: OffsetQuery = 0,
) -> FeedPage:
    """Posts the viewer bookmarked, most recently saved first."""
    result = await feed.saved(
        viewer_id, collection=collection, limit=limit, offset=offset, cancel=cancel
    )
    return to_page(result)
