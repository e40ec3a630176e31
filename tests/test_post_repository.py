# tests/test_post_repository.py
from __future__ import annotations

import logging

import pytest

from upvista_core.core.errors import NotFoundError, UnauthorizedError
from upvista_core.models.post import Post, PostVariant, Visibility
from upvista_core.repositories import PostRepository
from upvista_core.utils.timestamps import parse_timestamp

from tests.fakes import FakePostgrest


@pytest.mark.asyncio
async def test_create_then_get_round_trips_author_fields(
    fake: FakePostgrest, post_repo: PostRepository
) -> None:
    author = fake.add_user("alice", is_verified=True)
    draft = Post(
        user_id=author,
        post_type=PostVariant.IMAGE,
        content="sunset",
        media_urls=["https://cdn.test/a.jpg"],
        media_types=["image"],
        visibility=Visibility.PUBLIC,
        allows_sharing=False,
        is_nsfw=True,
        likes_count=99,
    )

    created = await post_repo.create(draft)
    fetched = await post_repo.get(created.id, viewer_id=author)

    assert created.id
    for field in ("user_id", "post_type", "content", "media_urls", "media_types",
                  "visibility", "allows_sharing", "is_nsfw"):
        assert getattr(fetched, field) == getattr(draft, field)
    assert fetched.likes_count == 0
    assert fetched.views_count == 0
    assert fetched.published_at is not None
    assert fetched.author is not None
    assert fetched.author.username == "alice"
    assert fetched.author.is_verified is True


@pytest.mark.asyncio
async def test_get_hides_deleted_posts_and_foreign_drafts(
    fake: FakePostgrest, post_repo: PostRepository
) -> None:
    author = fake.add_user("alice")
    other = fake.add_user("bob")
    deleted = fake.add_post(author, deleted_at="2025-01-01T00:00:00Z")
    draft = fake.add_post(author, is_published=False, is_draft=True, published_at=None)

    with pytest.raises(NotFoundError):
        await post_repo.get(deleted, viewer_id=author)
    with pytest.raises(NotFoundError):
        await post_repo.get(draft, viewer_id=other)
    assert (await post_repo.get(draft, viewer_id=author)).is_draft is True


@pytest.mark.asyncio
async def test_get_defaults_engagement_flags_when_lookups_fail(
    fake: FakePostgrest, post_repo: PostRepository, caplog: pytest.LogCaptureFixture
) -> None:
    author = fake.add_user("alice")
    viewer = fake.add_user("victor")
    post_id = fake.add_post(author)
    fake.add_row("post_likes", post_id=post_id, user_id=viewer)
    fake.add_row("saved_posts", post_id=post_id, user_id=viewer)
    fake.fail("post_likes", status=503)

    with caplog.at_level(logging.WARNING, logger="upvista_core.repositories.post_repo"):
        post = await post_repo.get(post_id, viewer)

    assert post.id == post_id
    assert post.is_liked is False
    assert post.is_saved is True
    assert "post_likes failed" in caplog.text

    fake.fail("saved_posts", status=500)
    assert (await post_repo.get(post_id, viewer)).is_saved is False


@pytest.mark.asyncio
async def test_liking_twice_leaves_one_row(fake: FakePostgrest, post_repo: PostRepository) -> None:
    author = fake.add_user("alice")
    viewer = fake.add_user("victor")
    post_id = fake.add_post(author)

    await post_repo.like(post_id, viewer)
    await post_repo.like(post_id, viewer)

    assert len(fake.rows("post_likes", post_id=post_id, user_id=viewer)) == 1
    assert await post_repo.is_liked(post_id, viewer)


@pytest.mark.asyncio
async def test_like_unlike_like_leaves_exactly_one_row(
    fake: FakePostgrest, post_repo: PostRepository
) -> None:
    author = fake.add_user("alice")
    viewer = fake.add_user("victor")
    post_id = fake.add_post(author)

    await post_repo.like(post_id, viewer)
    await post_repo.unlike(post_id, viewer)
    await post_repo.like(post_id, viewer)

    assert len(fake.rows("post_likes", post_id=post_id)) == 1
    assert fake.row("posts", id=post_id)["likes_count"] == 1


@pytest.mark.asyncio
async def test_save_and_share_are_idempotent(fake: FakePostgrest, post_repo: PostRepository) -> None:
    author = fake.add_user("alice")
    viewer = fake.add_user("victor")
    post_id = fake.add_post(author)

    await post_repo.save(post_id, viewer, "Recipes")
    await post_repo.save(post_id, viewer)
    await post_repo.share(post_id, viewer, "look")
    await post_repo.share(post_id, viewer)

    saves = fake.rows("saved_posts", post_id=post_id)
    assert [row["collection_name"] for row in saves] == ["Recipes"]
    assert len(fake.rows("post_shares", post_id=post_id)) == 1

    await post_repo.unsave(post_id, viewer)
    await post_repo.unsave(post_id, viewer)
    assert not await post_repo.is_saved(post_id, viewer)


@pytest.mark.asyncio
async def test_soft_delete_by_non_owner_is_rejected(
    fake: FakePostgrest, post_repo: PostRepository
) -> None:
    author = fake.add_user("alice")
    intruder = fake.add_user("mallory")
    post_id = fake.add_post(author)

    with pytest.raises(UnauthorizedError):
        await post_repo.soft_delete(post_id, intruder)
    assert fake.row("posts", id=post_id)["deleted_at"] is None


@pytest.mark.asyncio
async def test_soft_delete_is_idempotent(fake: FakePostgrest, post_repo: PostRepository) -> None:
    author = fake.add_user("alice")
    post_id = fake.add_post(author)

    await post_repo.soft_delete(post_id, author)
    first = fake.row("posts", id=post_id)["deleted_at"]
    await post_repo.soft_delete(post_id, author)

    assert first is not None
    assert fake.row("posts", id=post_id)["deleted_at"] == first


@pytest.mark.asyncio
async def test_batch_checks_use_one_query_each(
    fake: FakePostgrest, post_repo: PostRepository
) -> None:
    author = fake.add_user("alice")
    viewer = fake.add_user("victor")
    ids = [fake.add_post(author) for _ in range(5)]
    fake.add_row("post_likes", post_id=ids[1], user_id=viewer)
    fake.add_row("post_likes", post_id=ids[3], user_id=author)
    fake.add_row("saved_posts", post_id=ids[4], user_id=viewer)

    liked = await post_repo.batch_check_likes(ids, viewer)
    saved = await post_repo.batch_check_saves(ids, viewer)

    assert [liked[post_id] for post_id in ids] == [False, True, False, False, False]
    assert [saved[post_id] for post_id in ids] == [False, False, False, False, True]
    assert len(fake.reads("post_likes")) == 1
    assert len(fake.reads("saved_posts")) == 1
    assert await post_repo.batch_check_likes([], viewer) == {}


@pytest.mark.asyncio
async def test_update_stamps_updated_at(fake: FakePostgrest, post_repo: PostRepository) -> None:
    author = fake.add_user("alice")
    post_id = fake.add_post(author)
    before = fake.row("posts", id=post_id)["updated_at"]

    updated = await post_repo.update(post_id, {"is_pinned": True})

    assert updated.is_pinned is True
    assert updated.updated_at is not None
    assert updated.updated_at >= parse_timestamp(before)

    with pytest.raises(NotFoundError):
        await post_repo.update("missing", {"is_pinned": True})


@pytest.mark.asyncio
async def test_list_user_counts_only_live_published_posts(
    fake: FakePostgrest, post_repo: PostRepository
) -> None:
    author = fake.add_user("alice")
    for _ in range(3):
        fake.add_post(author)
    fake.add_post(author, deleted_at="2025-01-01T00:00:00Z")
    fake.add_post(author, is_published=False)

    posts, total = await post_repo.list_user(author, limit=2)

    assert total == 3
    assert len(posts) == 2
