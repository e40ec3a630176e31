"""Shared API dependencies for authentication, services and cancellation."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from upvista_core.core.settings import settings
from upvista_core.enrichers import EnricherRegistry, build_registry
from upvista_core.repositories import (
    CommentRepository,
    HashtagRepository,
    PostRepository,
    UserRepository,
)
from upvista_core.services.comment_service import CommentService
from upvista_core.services.feed import FeedAssembler
from upvista_core.services.indexer import HashtagIndexer
from upvista_core.services.post_service import PostService
from upvista_core.services.storage import MediaStorage
from upvista_core.store import CancellationToken, StoreClient, get_store_client

DISCONNECT_POLL_SECONDS = 0.1

# HTTP Bearer scheme for JWT authentication; missing credentials are a 401
bearer_scheme = HTTPBearer(auto_error=False)


def _credentials_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )


def decode_user_id(token: str) -> str:
    """Return the subject of a bearer token.

    Args:
        token: Encoded JWT

    Returns:
        The user id carried in the ``sub`` claim

    Raises:
        HTTPException: If the token is invalid or has no subject
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as err:
        raise _credentials_error() from err
    subject = payload.get("sub")
    if not subject:
        raise _credentials_error()
    return str(subject)


def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """Return the id of the authenticated user."""
    if credentials is None:
        raise _credentials_error()
    return decode_user_id(credentials.credentials)


def get_optional_user_id(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> str | None:
    """Return the viewer's id, or None for anonymous requests."""
    if credentials is None:
        return None
    return decode_user_id(credentials.credentials)


def get_store() -> StoreClient:
    """Return the shared store client."""
    return get_store_client()


CurrentUserDep = Annotated[str, Depends(get_current_user_id)]
OptionalUserDep = Annotated[str | None, Depends(get_optional_user_id)]
StoreDep = Annotated[StoreClient, Depends(get_store)]


def get_enrichers(store: StoreDep) -> EnricherRegistry:
    return build_registry(store)


EnrichersDep = Annotated[EnricherRegistry, Depends(get_enrichers)]


def get_post_repository(store: StoreDep, enrichers: EnrichersDep) -> PostRepository:
    return PostRepository(store, enrichers)


PostRepoDep = Annotated[PostRepository, Depends(get_post_repository)]


def get_post_service(store: StoreDep, posts: PostRepoDep, enrichers: EnrichersDep) -> PostService:
    """Return the post service wired to the shared store."""
    indexer = HashtagIndexer(HashtagRepository(store), UserRepository(store))
    return PostService(posts, enrichers, indexer)


def get_feed_assembler(
    store: StoreDep, posts: PostRepoDep, enrichers: EnrichersDep
) -> FeedAssembler:
    """Return the feed assembler wired to the shared store."""
    return FeedAssembler(posts, HashtagRepository(store), enrichers)


def get_comment_service(store: StoreDep, posts: PostRepoDep) -> CommentService:
    return CommentService(CommentRepository(store), posts)


def get_hashtag_repository(store: StoreDep) -> HashtagRepository:
    return HashtagRepository(store)


def get_user_repository(store: StoreDep) -> UserRepository:
    return UserRepository(store)


_media_storage: MediaStorage | None = None


def get_media_storage() -> MediaStorage:
    """Return the shared object-store client."""
    global _media_storage
    if _media_storage is None:
        _media_storage = MediaStorage()
    return _media_storage


async def get_cancellation(request: Request) -> AsyncIterator[CancellationToken]:
    """Yield a token that is cancelled when the client disconnects."""
    token = CancellationToken()

    async def watch_disconnect() -> None:
        while not token.cancelled:
            if await request.is_disconnected():
                token.cancel()
                return
            await asyncio.sleep(DISCONNECT_POLL_SECONDS)

    watcher = asyncio.create_task(watch_disconnect())
    try:
        yield token
    finally:
        watcher.cancel()


PostServiceDep = Annotated[PostService, Depends(get_post_service)]
FeedDep = Annotated[FeedAssembler, Depends(get_feed_assembler)]
CommentServiceDep = Annotated[CommentService, Depends(get_comment_service)]
HashtagRepoDep = Annotated[HashtagRepository, Depends(get_hashtag_repository)]
UserRepoDep = Annotated[UserRepository, Depends(get_user_repository)]
MediaStorageDep = Annotated[MediaStorage, Depends(get_media_storage)]
CancellationDep = Annotated[CancellationToken, Depends(get_cancellation)]
