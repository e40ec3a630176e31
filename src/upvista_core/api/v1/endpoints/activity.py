"""The signed-in user's own activity listings."""

from __future__ import annotations

from typing import Annotated, Literal

from fastapi import APIRouter, Query

from upvista_core.api.v1.dependencies import CancellationDep, CurrentUserDep, FeedDep
from upvista_core.api.v1.endpoints.feed import LimitQuery, OffsetQuery, to_page
from upvista_core.core.settings import settings
from upvista_core.models.post import PostVariant
from upvista_core.schemas.post import FeedPage

router = APIRouter(prefix="/activity", tags=["activity"])

InteractionQuery = Annotated[
    Literal["likes", "comments"],
    Query(alias="filter", description="Which interactions to list"),
]


@router.get("/interactions", response_model=FeedPage)
async def interactions(
    kind: InteractionQuery,
    viewer_id: CurrentUserDep,
    feed: FeedDep,
    cancel: CancellationDep,
    limit: LimitQuery = settings.feed_default_limit,
    offset: OffsetQuery = 0,
) -> FeedPage:
    """Posts the viewer liked or commented on."""
    listing = feed.liked if kind == "likes" else feed.commented
    return to_page(await listing(viewer_id, limit=limit, offset=offset, cancel=cancel))


@router.get("/archived", response_model=FeedPage)
async def recently_deleted(
    viewer_id: CurrentUserDep,
    feed: FeedDep,
    cancel: CancellationDep,
    limit: LimitQuery = settings.feed_default_limit,
    offset: OffsetQuery = 0,
) -> FeedPage:
    """The viewer's posts deleted in the last 30 days."""
    return to_page(await feed.deleted(viewer_id, limit=limit, offset=offset, cancel=cancel))


@router.get("/shared", response_model=FeedPage)
async def shared(
    viewer_id: CurrentUserDep,
    feed: FeedDep,
    cancel: CancellationDep,
    post_type: PostVariant | None = None,
    limit: LimitQuery = settings.feed_default_limit,
    offset: OffsetQuery = 0,
) -> FeedPage:
    """Posts the viewer shared, optionally of one variant."""
    result = await feed.shared(
        viewer_id, post_type=post_type, limit=limit, offset=offset, cancel=cancel
    )
    return to_page(result)
