"""Background jobs: notification cleanup, digests and trending recompute."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any

from upvista_core.core.settings import settings
from upvista_core.services.scheduler import ScheduledJob
from upvista_core.services.trending import TrendingScorer
from upvista_core.store import Filter, Order, StoreClient
from upvista_core.utils.timestamps import format_timestamp, utcnow

logger = logging.getLogger(__name__)

NOTIFICATIONS_TABLE = "notifications"
PREFERENCES_TABLE = "notification_preferences"
DIGEST_MAX_ITEMS = 50
DIGEST_PERIODS = {"daily": timedelta(days=1), "weekly": timedelta(days=7)}

DigestDelivery = Callable[[str, list[dict[str, Any]]], Awaitable[None]]


async def log_digest(user_id: str, notifications: list[dict[str, Any]]) -> None:
    """Default delivery: record the digest. Sending email is another service's job."""
    logger.info("Digest ready for user %s with %d notifications", user_id, len(notifications))


class NotificationJobs:
    """Maintenance work over the notifications table."""

    def __init__(self, store: StoreClient, deliver: DigestDelivery = log_digest) -> None:
        self.store = store
        self.deliver = deliver

    async def cleanup_expired(self) -> None:
        """Delete notifications whose expiry has passed."""
        await self.store.delete(
            NOTIFICATIONS_TABLE, Filter().lt("expires_at", utcnow())
        )

    async def send_digests(self, frequency: str) -> int:
        """Deliver unread notifications to users on the ``frequency`` digest.

        Each user's window starts at their previous digest, or one period ago
        for a first digest. Returns the number of digests delivered.
        """
        period = DIGEST_PERIODS[frequency]
        now = utcnow()
        preferences = await self.store.select(
            PREFERENCES_TABLE,
            Filter().eq("email_frequency", frequency),
            columns="user_id,digest_sent_at",
        )

        delivered = 0
        for preference in preferences:
            user_id = str(preference["user_id"])
            since = preference.get("digest_sent_at") or now - period
            notifications = await self.store.select(
                NOTIFICATIONS_TABLE,
                Filter().eq("user_id", user_id).eq("is_read", False).gte("created_at", since),
                order=Order.by("-created_at"),
                limit=DIGEST_MAX_ITEMS,
            )
            if not notifications:
                continue
            await self.deliver(user_id, notifications)
            await self.store.patch(
                PREFERENCES_TABLE,
                Filter().eq("user_id", user_id),
                {"digest_sent_at": format_timestamp(now)},
                returning=False,
            )
            delivered += 1

        logger.info("Delivered %d %s digests", delivered, frequency)
        return delivered


def build_jobs(
    store: StoreClient,
    *,
    scorer: TrendingScorer | None = None,
    deliver: DigestDelivery = log_digest,
) -> list[ScheduledJob]:
    """Return the scheduled jobs configured in settings."""
    notifications = NotificationJobs(store, deliver)
    scorer = scorer or TrendingScorer(store)

    async def daily_digest() -> None:
        await notifications.send_digests("daily")

    async def weekly_digest() -> None:
        await notifications.send_digests("weekly")

    return [
        ScheduledJob("notification-cleanup", settings.cleanup_at, notifications.cleanup_expired),
        ScheduledJob("hashtag-trending", settings.trending_at, scorer.recompute),
        ScheduledJob("digest-daily", settings.digest_at, daily_digest),
        ScheduledJob(
            "digest-weekly",
            settings.digest_at,
            weekly_digest,
            weekday=settings.digest_weekly_weekday,
        ),
    ]
