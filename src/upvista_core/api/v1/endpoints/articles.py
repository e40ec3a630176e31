"""Article endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from upvista_core.api.v1.dependencies import OptionalUserDep, PostServiceDep
from upvista_core.schemas.post import PostEnvelope

router = APIRouter(prefix="/articles", tags=["articles"])


@router.get("/{slug}", response_model=PostEnvelope)
async def get_article(
    slug: str, viewer_id: OptionalUserDep, service: PostServiceDep
) -> PostEnvelope:
    """Return the article post published under ``slug``."""
    return PostEnvelope(post=await service.get_article_by_slug(slug, viewer_id))
