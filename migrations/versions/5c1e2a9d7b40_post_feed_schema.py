"""post and feed schema

Revision ID: 5c1e2a9d7b40
Revises:
Create Date: 2026-10-18 09:12:41.503318

"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "5c1e2a9d7b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UUID = postgresql.UUID(as_uuid=False)
NOW = sa.text("now()")

# (trigger table, target table, link column, counter column)
COUNTER_TRIGGERS = (
    ("post_likes", "posts", "post_id", "likes_count"),
    ("saved_posts", "posts", "post_id", "saves_count"),
    ("post_shares", "posts", "post_id", "shares_count"),
    ("post_comments", "posts", "post_id", "comments_count"),
    ("comment_likes", "post_comments", "comment_id", "likes_count"),
    ("poll_votes", "poll_options", "option_id", "votes_count"),
    ("poll_votes", "polls", "poll_id", "total_votes"),
    ("post_hashtags", "hashtags", "hashtag_id", "posts_count"),
    ("hashtag_followers", "hashtags", "hashtag_id", "followers_count"),
)


def _id() -> sa.Column:
    return sa.Column("id", UUID, primary_key=True, server_default=sa.text("gen_random_uuid()"))


def _ref(name: str, target: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, UUID, sa.ForeignKey(f"{target}.id", ondelete="CASCADE"), nullable=nullable)


def _stamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=None if nullable else NOW,
    )


def _counter(name: str) -> sa.Column:
    return sa.Column(name, sa.Integer(), nullable=False, server_default="0")


def _flag(name: str, default: bool) -> sa.Column:
    return sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.true() if default else sa.false())


def upgrade() -> None:
    """Create the post, engagement, hashtag and notification tables."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    op.create_table(
        "users",
        _id(),
        sa.Column("username", sa.Text(), nullable=False, unique=True),
        sa.Column("display_name", sa.Text()),
        sa.Column("profile_picture", sa.Text()),
        _flag("is_verified", False),
        _stamp("created_at"),
    )
    op.create_table(
        "follows",
        _ref("follower_id", "users"),
        _ref("following_id", "users"),
        _stamp("created_at"),
        sa.PrimaryKeyConstraint("follower_id", "following_id"),
    )
    op.create_table(
        "posts",
        _id(),
        _ref("user_id", "users"),
        sa.Column("post_type", sa.Text(), nullable=False, server_default="text"),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("media_urls", postgresql.ARRAY(sa.Text()), nullable=False, server_default="{}"),
        sa.Column("media_types", postgresql.ARRAY(sa.Text()), nullable=False, server_default="{}"),
        sa.Column("visibility", sa.Text(), nullable=False, server_default="public"),
        _flag("allows_comments", True),
        _flag("allows_sharing", True),
        _flag("is_published", True),
        _flag("is_draft", False),
        _flag("is_nsfw", False),
        _flag("is_pinned", False),
        _flag("is_featured", False),
        _counter("likes_count"),
        _counter("comments_count"),
        _counter("shares_count"),
        _counter("views_count"),
        _counter("saves_count"),
        _stamp("created_at"),
        _stamp("updated_at"),
        _stamp("published_at", nullable=True),
        _stamp("deleted_at", nullable=True),
        sa.CheckConstraint(
            "post_type IN ('text', 'image', 'video', 'poll', 'article')", name="posts_post_type_check"
        ),
        sa.CheckConstraint(
            "visibility IN ('public', 'followers', 'private')", name="posts_visibility_check"
        ),
    )
    op.create_index("ix_posts_feed", "posts", ["is_published", "visibility", sa.text("published_at DESC")])
    op.create_index("ix_posts_user", "posts", ["user_id", sa.text("published_at DESC")])

    for table, extra in (
        ("post_likes", []),
        ("saved_posts", [sa.Column("collection_name", sa.Text(), nullable=False, server_default="Saved")]),
        ("post_shares", [sa.Column("repost_comment", sa.Text())]),
    ):
        stamp = "saved_at" if table == "saved_posts" else "created_at"
        op.create_table(
            table,
            _id(),
            _ref("post_id", "posts"),
            _ref("user_id", "users"),
            *extra,
            _stamp(stamp),
            sa.UniqueConstraint("post_id", "user_id", name=f"{table}_post_user_key"),
        )

    op.create_table(
        "articles",
        _id(),
        sa.Column("post_id", UUID, sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("subtitle", sa.Text()),
        sa.Column("content_html", sa.Text(), nullable=False, server_default=""),
        sa.Column("cover_image_url", sa.Text()),
        sa.Column("meta_title", sa.Text()),
        sa.Column("meta_description", sa.Text()),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("read_time_minutes", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("category", sa.Text()),
        _counter("views_count"),
        _counter("reads_count"),
        _stamp("created_at"),
        _stamp("updated_at"),
    )
    op.create_table(
        "article_tags",
        _ref("article_id", "articles"),
        sa.Column("tag", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("article_id", "tag"),
    )

    op.create_table(
        "polls",
        _id(),
        sa.Column("post_id", UUID, sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("duration_hours", sa.Integer()),
        _stamp("ends_at", nullable=True),
        _flag("allow_multiple_votes", False),
        _counter("total_votes"),
        _stamp("created_at"),
    )
    op.create_table(
        "poll_options",
        _id(),
        _ref("poll_id", "polls"),
        sa.Column("option_text", sa.Text(), nullable=False),
        sa.Column("option_index", sa.Integer(), nullable=False),
        _counter("votes_count"),
        sa.UniqueConstraint("poll_id", "option_index", name="poll_options_poll_index_key"),
    )
    op.create_table(
        "poll_votes",
        _id(),
        _ref("poll_id", "polls"),
        _ref("option_id", "poll_options"),
        _ref("user_id", "users"),
        _stamp("created_at"),
        sa.UniqueConstraint("option_id", "user_id", name="poll_votes_option_user_key"),
    )

    op.create_table(
        "post_comments",
        _id(),
        _ref("post_id", "posts"),
        _ref("user_id", "users"),
        _ref("parent_comment_id", "post_comments", nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        _counter("likes_count"),
        _counter("replies_count"),
        _flag("is_edited", False),
        _stamp("edited_at", nullable=True),
        _stamp("created_at"),
        _stamp("updated_at"),
        _stamp("deleted_at", nullable=True),
    )
    op.create_table(
        "comment_likes",
        _ref("comment_id", "post_comments"),
        _ref("user_id", "users"),
        _stamp("created_at"),
        sa.PrimaryKeyConstraint("comment_id", "user_id"),
    )

    op.create_table(
        "hashtags",
        _id(),
        sa.Column("tag", sa.Text(), nullable=False, unique=True),
        _counter("posts_count"),
        _counter("followers_count"),
        sa.Column("trending_score", sa.Float(), nullable=False, server_default="0"),
        _stamp("created_at"),
        _stamp("updated_at"),
        _stamp("last_used_at", nullable=True),
    )
    op.create_table(
        "post_hashtags",
        _ref("post_id", "posts"),
        _ref("hashtag_id", "hashtags"),
        _stamp("created_at"),
        sa.PrimaryKeyConstraint("post_id", "hashtag_id"),
    )
    op.create_table(
        "post_mentions",
        _ref("post_id", "posts"),
        _ref("mentioned_user_id", "users"),
        _stamp("created_at"),
        sa.PrimaryKeyConstraint("post_id", "mentioned_user_id"),
    )
    op.create_table(
        "hashtag_followers",
        _ref("hashtag_id", "hashtags"),
        _ref("user_id", "users"),
        _stamp("created_at"),
        sa.PrimaryKeyConstraint("hashtag_id", "user_id"),
    )

    op.create_table(
        "notifications",
        _id(),
        _ref("user_id", "users"),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False, server_default=""),
        sa.Column("data", postgresql.JSONB(), nullable=False, server_default="{}"),
        _flag("is_read", False),
        _stamp("created_at"),
        _stamp("expires_at", nullable=True),
    )
    op.create_index("ix_notifications_user_unread", "notifications", ["user_id", "is_read"])
    op.create_table(
        "notification_preferences",
        sa.Column("user_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("email_frequency", sa.Text(), nullable=False, server_default="daily"),
        _stamp("digest_sent_at", nullable=True),
    )

    op.execute(
        """
        CREATE OR REPLACE FUNCTION maintain_counter() RETURNS trigger AS $$
        DECLARE
            target_id uuid;
            delta integer;
        BEGIN
            IF TG_OP = 'INSERT' THEN
                target_id := (to_jsonb(NEW) ->> TG_ARGV[1])::uuid;
                delta := 1;
            ELSE
                target_id := (to_jsonb(OLD) ->> TG_ARGV[1])::uuid;
                delta := -1;
            END IF;
            EXECUTE format(
                'UPDATE %I SET %I = GREATEST(%I + $1, 0) WHERE id = $2',
                TG_ARGV[0], TG_ARGV[2], TG_ARGV[2]
            ) USING delta, target_id;
            RETURN NULL;
        END;
        $$ LANGUAGE plpgsql
        """
    )
    for table, target, column, counter in COUNTER_TRIGGERS:
        op.execute(
            f"CREATE TRIGGER {table}_{counter}_trg AFTER INSERT OR DELETE ON {table} "
            f"FOR EACH ROW EXECUTE FUNCTION maintain_counter('{target}', '{column}', '{counter}')"
        )

    op.execute(
        """
        CREATE OR REPLACE FUNCTION increment_post_views(target_post_id uuid) RETURNS void AS $$
            UPDATE posts SET views_count = views_count + 1 WHERE id = target_post_id;
        $$ LANGUAGE sql
        """
    )
    op.execute(
        """
        CREATE OR REPLACE FUNCTION calculate_hashtag_trending_scores(
            decay_hours double precision DEFAULT 24,
            window_days integer DEFAULT 7
        ) RETURNS void AS $$
            UPDATE hashtags h
            SET trending_score = COALESCE(scores.score, 0),
                updated_at = now()
            FROM hashtags base
            LEFT JOIN (
                SELECT ph.hashtag_id,
                       SUM(EXP(-EXTRACT(EPOCH FROM (now() - p.published_at)) / 3600.0 / decay_hours)) AS score
                FROM post_hashtags ph
                JOIN posts p ON p.id = ph.post_id
                WHERE p.is_published
                  AND p.deleted_at IS NULL
                  AND p.published_at >= now() - make_interval(days => window_days)
                GROUP BY ph.hashtag_id
            ) scores ON scores.hashtag_id = base.id
            WHERE h.id = base.id;
        $$ LANGUAGE sql
        """
    )


def downgrade() -> None:
    """Drop everything created by upgrade()."""
    op.execute("DROP FUNCTION IF EXISTS calculate_hashtag_trending_scores(double precision, integer)")
    op.execute("DROP FUNCTION IF EXISTS increment_post_views(uuid)")
    for table, _target, _column, counter in COUNTER_TRIGGERS:
        op.execute(f"DROP TRIGGER IF EXISTS {table}_{counter}_trg ON {table}")
    op.execute("DROP FUNCTION IF EXISTS maintain_counter()")
    for table in (
        "notification_preferences",
        "notifications",
        "hashtag_followers",
        "post_mentions",
        "post_hashtags",
        "hashtags",
        "comment_likes",
        "post_comments",
        "poll_votes",
        "poll_options",
        "polls",
        "article_tags",
        "articles",
        "post_shares",
        "saved_posts",
        "post_likes",
        "posts",
        "follows",
        "users",
    ):
        op.drop_table(table)
