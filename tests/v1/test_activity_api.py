# tests/v1/test_activity_api.py
"""Tests for the signed-in user's activity endpoints."""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from upvista_core.utils.timestamps import format_timestamp, utcnow

from tests.fakes import FakePostgrest

Headers = Callable[[str], dict[str, str]]


@pytest.mark.parametrize(
    "path",
    ["/api/v1/activity/interactions?filter=likes", "/api/v1/activity/archived", "/api/v1/activity/shared"],
)
def test_activity_requires_auth(client: TestClient, path: str) -> None:
    response = client.get(path)

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_interactions_lists_likes_and_comments(
    client: TestClient, fake: FakePostgrest, auth_headers: Headers
) -> None:
    author = fake.add_user("alice")
    viewer = fake.add_user("victor")
    liked = fake.add_post(author)
    discussed = fake.add_post(author, age=timedelta(hours=1))
    fake.add_row("post_likes", post_id=liked, user_id=viewer)
    fake.add_row("post_comments", post_id=discussed, user_id=viewer, content="nice", deleted_at=None)

    likes = client.get("/api/v1/activity/interactions?filter=likes", headers=auth_headers(viewer))
    comments = client.get(
        "/api/v1/activity/interactions?filter=comments", headers=auth_headers(viewer)
    )

    assert likes.status_code == status.HTTP_200_OK
    assert [post["id"] for post in likes.json()["posts"]] == [liked]
    assert likes.json()["posts"][0]["is_liked"] is True
    assert [post["id"] for post in comments.json()["posts"]] == [discussed]


def test_interactions_rejects_unknown_filter(
    client: TestClient, fake: FakePostgrest, auth_headers: Headers
) -> None:
    viewer = fake.add_user("victor")

    missing = client.get("/api/v1/activity/interactions", headers=auth_headers(viewer))
    unknown = client.get(
        "/api/v1/activity/interactions?filter=views", headers=auth_headers(viewer)
    )

    for response in (missing, unknown):
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "validation"


def test_archived_lists_recent_deletions(
    client: TestClient, fake: FakePostgrest, auth_headers: Headers
) -> None:
    viewer = fake.add_user("victor")
    gone = fake.add_post(viewer, deleted_at=format_timestamp(utcnow() - timedelta(days=2)))
    fake.add_post(viewer, deleted_at=format_timestamp(utcnow() - timedelta(days=31)))
    fake.add_post(viewer)

    page = client.get("/api/v1/activity/archived", headers=auth_headers(viewer)).json()

    assert [post["id"] for post in page["posts"]] == [gone]
    assert page["total"] == 1


def test_shared_filters_by_post_type(
    client: TestClient, fake: FakePostgrest, auth_headers: Headers
) -> None:
    author = fake.add_user("alice")
    viewer = fake.add_user("victor")
    text = fake.add_post(author)
    poll = fake.add_post(author, age=timedelta(hours=1), post_type="poll")
    for post_id in (text, poll):
        fake.add_row("post_shares", post_id=post_id, user_id=viewer)

    everything = client.get("/api/v1/activity/shared", headers=auth_headers(viewer)).json()
    texts = client.get(
        "/api/v1/activity/shared?post_type=text", headers=auth_headers(viewer)
    ).json()
    bad = client.get("/api/v1/activity/shared?post_type=reel", headers=auth_headers(viewer))

    assert [post["id"] for post in everything["posts"]] == [text, poll]
    assert [post["id"] for post in texts["posts"]] == [text]
    assert bad.status_code == status.HTTP_400_BAD_REQUEST
