# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jose import jwt

os.environ.setdefault("SUPABASE_URL", "http://store.test")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-key")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from upvista_core.api.v1.dependencies import get_store
from upvista_core.core.settings import settings
from upvista_core.enrichers import EnricherRegistry, build_registry
from upvista_core.main import app as fastapi_app
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
from upvista_core.store import StoreClient

from tests.fakes import FakePostgrest


@pytest.fixture()
def fake() -> FakePostgrest:
    return FakePostgrest()


@pytest.fixture()
def store(fake: FakePostgrest) -> StoreClient:
    return fake.client()


@pytest.fixture()
def enrichers(store: StoreClient) -> EnricherRegistry:
    return build_registry(store)


@pytest.fixture()
def post_repo(store: StoreClient, enrichers: EnricherRegistry) -> PostRepository:
    return PostRepository(store, enrichers)


@pytest.fixture()
def hashtag_repo(store: StoreClient) -> HashtagRepository:
    return HashtagRepository(store)


@pytest.fixture()
def user_repo(store: StoreClient) -> UserRepository:
    return UserRepository(store)


@pytest.fixture()
def indexer(hashtag_repo: HashtagRepository, user_repo: UserRepository) -> HashtagIndexer:
    return HashtagIndexer(hashtag_repo, user_repo)


@pytest.fixture()
def post_service(
    post_repo: PostRepository, enrichers: EnricherRegistry, indexer: HashtagIndexer
) -> PostService:
    return PostService(post_repo, enrichers, indexer)


@pytest.fixture()
def feed(
    post_repo: PostRepository, hashtag_repo: HashtagRepository, enrichers: EnricherRegistry
) -> FeedAssembler:
    return FeedAssembler(post_repo, hashtag_repo, enrichers)


@pytest.fixture()
def comment_service(store: StoreClient, post_repo: PostRepository) -> CommentService:
    return CommentService(CommentRepository(store), post_repo)


@pytest.fixture()
def app(store: StoreClient) -> Iterator[FastAPI]:
    fastapi_app.dependency_overrides[get_store] = lambda: store
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.pop(get_store, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Return a factory building bearer headers for a user id."""

    def _headers(user_id: str) -> dict[str, str]:
        token = jwt.encode({"sub": user_id}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
        return {"Authorization": f"Bearer {token}"}

    return _headers
