"""Post-related endpoints."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, File, UploadFile, status

from upvista_core.api.v1.dependencies import (
    CancellationDep,
    CurrentUserDep,
    FeedDep,
    MediaStorageDep,
    OptionalUserDep,
    PostServiceDep,
    UserRepoDep,
)
from upvista_core.api.v1.endpoints.feed import LimitQuery, OffsetQuery, to_page
from upvista_core.core.settings import settings
from upvista_core.schemas.post import (
    FeedPage,
    MessageEnvelope,
    PostCreate,
    PostEnvelope,
    PostUpdate,
    SaveRequest,
    ShareRequest,
    VoteRequest,
)

router = APIRouter(prefix="/posts", tags=["posts"])


@router.post("", response_model=PostEnvelope, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreate, user_id: CurrentUserDep, service: PostServiceDep
) -> PostEnvelope:
    """Create a post of any variant."""
    post = await service.create(user_id, payload)
    return PostEnvelope(post=post, message="Post created successfully")


@router.post("/media", status_code=status.HTTP_201_CREATED)
async def upload_media(
    user_id: CurrentUserDep,
    storage: MediaStorageDep,
    file: Annotated[UploadFile, File(description="Image, video or audio file")],
) -> dict[str, Any]:
    """Upload a media file and return its public URL."""
    data = await file.read()
    content_type = file.content_type or "application/octet-stream"
    url = await storage.upload(user_id, file.filename, content_type, data)
    return {"success": True, "url": url, "media_type": content_type.split("/", 1)[0]}


@router.get("/user/{username}", response_model=FeedPage)
async def user_posts(
    username: str,
    viewer_id: OptionalUserDep,
    users: UserRepoDep,
    feed: FeedDep,
    cancel: CancellationDep,
    limit: LimitQuery = settings.feed_default_limit,
    offset: OffsetQuery = 0,
) -> FeedPage:
    """Return a user's published posts, newest first."""
    user_id = await users.id_for_username(username)
    result = await feed.user(user_id, viewer_id, limit=limit, offset=offset, cancel=cancel)
    return to_page(result)


@router.get("/{post_id}", response_model=PostEnvelope)
async def get_post(
    post_id: str, viewer_id: OptionalUserDep, service: PostServiceDep
) -> PostEnvelope:
    return PostEnvelope(post=await service.get(post_id, viewer_id))


@router.patch("/{post_id}", response_model=PostEnvelope)
async def update_post(
    post_id: str, payload: PostUpdate, user_id: CurrentUserDep, service: PostServiceDep
) -> PostEnvelope:
    post = await service.update(post_id, user_id, payload)
    return PostEnvelope(post=post, message="Post updated successfully")


@router.delete("/{post_id}", response_model=MessageEnvelope)
async def delete_post(
    post_id: str, user_id: CurrentUserDep, service: PostServiceDep
) -> MessageEnvelope:
    await service.delete(post_id, user_id)
    return MessageEnvelope(message="Post deleted successfully")


@router.post("/{post_id}/like", response_model=MessageEnvelope)
async def like_post(
    post_id: str, user_id: CurrentUserDep, service: PostServiceDep
) -> MessageEnvelope:
    await service.like(post_id, user_id)
    return MessageEnvelope(message="Post liked")


@router.post("/{post_id}/unlike", response_model=MessageEnvelope)
async def unlike_post(
    post_id: str, user_id: CurrentUserDep, service: PostServiceDep
) -> MessageEnvelope:
    await service.unlike(post_id, user_id)
    return MessageEnvelope(message="Post unliked")


@router.post("/{post_id}/save", response_model=MessageEnvelope)
async def save_post(
    post_id: str,
    user_id: CurrentUserDep,
    service: PostServiceDep,
    payload: SaveRequest | None = None,
) -> MessageEnvelope:
    await service.save(post_id, user_id, payload.collection if payload else None)
    return MessageEnvelope(message="Post saved")


@router.post("/{post_id}/unsave", response_model=MessageEnvelope)
async def unsave_post(
    post_id: str, user_id: CurrentUserDep, service: PostServiceDep
) -> MessageEnvelope:
    await service.unsave(post_id, user_id)
    return MessageEnvelope(message="Post unsaved")


@router.post("/{post_id}/share", response_model=MessageEnvelope)
async def share_post(
    post_id: str,
    user_id: CurrentUserDep,
    service: PostServiceDep,
    payload: ShareRequest | None = None,
) -> MessageEnvelope:
    await service.share(post_id, user_id, payload.comment if payload else None)
    return MessageEnvelope(message="Post shared")


@router.post("/{post_id}/unshare", response_model=MessageEnvelope)
async def unshare_post(
    post_id: str, user_id: CurrentUserDep, service: PostServiceDep
) -> MessageEnvelope:
    await service.unshare(post_id, user_id)
    return MessageEnvelope(message="Post unshared")


@router.post("/{post_id}/vote")
async def vote_poll(
    post_id: str, payload: VoteRequest, user_id: CurrentUserDep, service: PostServiceDep
) -> dict[str, Any]:
    poll = await service.vote(post_id, user_id, payload.option_indices)
    return {"success": True, "poll": poll.model_dump(mode="json"), "message": "Vote recorded"}


@router.get("/{post_id}/results")
async def poll_results(
    post_id: str, viewer_id: OptionalUserDep, service: PostServiceDep
) -> dict[str, Any]:
    poll = await service.poll_results(post_id, viewer_id)
    return {"success": True, "poll": poll.model_dump(mode="json")}

