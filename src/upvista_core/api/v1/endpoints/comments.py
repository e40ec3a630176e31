"""Comment endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from upvista_core.api.v1.dependencies import (
    CommentServiceDep,
    CurrentUserDep,
    OptionalUserDep,
)
from upvista_core.api.v1.endpoints.feed import LimitQuery, OffsetQuery
from upvista_core.core.settings import settings
from upvista_core.schemas.comment import (
    CommentCreate,
    CommentEnvelope,
    CommentList,
    CommentUpdate,
)
from upvista_core.schemas.post import MessageEnvelope

router = APIRouter(tags=["comments"])


@router.post(
    "/posts/{post_id}/comments",
    response_model=CommentEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    post_id: str, payload: CommentCreate, user_id: CurrentUserDep, service: CommentServiceDep
) -> CommentEnvelope:
    comment = await service.create(post_id, user_id, payload.content, payload.parent_comment_id)
    return CommentEnvelope(comment=comment)


@router.get("/posts/{post_id}/comments", response_model=CommentList)
async def list_comments(
    post_id: str,
    viewer_id: OptionalUserDep,
    service: CommentServiceDep,
    limit: LimitQuery = settings.feed_default_limit,
    offset: OffsetQuery = 0,
) -> CommentList:
    """Top-level comments of a post, newest first."""
    comments = await service.list_for_post(post_id, viewer_id, limit=limit, offset=offset)
    return CommentList(comments=comments, limit=limit, offset=offset)


@router.get("/comments/{comment_id}/replies", response_model=CommentList)
async def list_replies(
    comment_id: str,
    viewer_id: OptionalUserDep,
    service: CommentServiceDep,
    limit: LimitQuery = settings.feed_default_limit,
    offset: OffsetQuery = 0,
) -> CommentList:
    replies = await service.list_replies(comment_id, viewer_id, limit=limit, offset=offset)
    return CommentList(comments=replies, limit=limit, offset=offset)


@router.patch("/comments/{comment_id}", response_model=CommentEnvelope)
async def update_comment(
    comment_id: str, payload: CommentUpdate, user_id: CurrentUserDep, service: CommentServiceDep
) -> CommentEnvelope:
    return CommentEnvelope(comment=await service.update(comment_id, user_id, payload.content))


@router.delete("/comments/{comment_id}", response_model=MessageEnvelope)
async def delete_comment(
    comment_id: str, user_id: CurrentUserDep, service: CommentServiceDep
) -> MessageEnvelope:
    await service.delete(comment_id, user_id)
    return MessageEnvelope(message="Comment deleted")


@router.post("/comments/{comment_id}/like", response_model=MessageEnvelope)
async def like_comment(
    comment_id: str, user_id: CurrentUserDep, service: CommentServiceDep
) -> MessageEnvelope:
    await service.like(comment_id, user_id)
    return MessageEnvelope(message="Comment liked")


@router.post("/comments/{comment_id}/unlike", response_model=MessageEnvelope)
async def unlike_comment(
    comment_id: str, user_id: CurrentUserDep, service: CommentServiceDep
) -> MessageEnvelope:
    await service.unlike(comment_id, user_id)
    return MessageEnvelope(message="Comment unliked")
