"""Hashtag trending scores.

The score of a hashtag is the sum of ``exp(-age_hours / tau)`` over the posts
tagged with it inside the scoring window. The store computes it server-side
through ``calculate_hashtag_trending_scores``; :func:`decayed_score` is the
same formula in Python.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from upvista_core.core.settings import settings
from upvista_core.store import StoreClient

logger = logging.getLogger(__name__)

TRENDING_RPC = "calculate_hashtag_trending_scores"


def decayed_score(
    published_ats: Iterable[datetime],
    now: datetime,
    *,
    decay_hours: float = 24.0,
    window_days: int = 7,
) -> float:
    """Return the time-decayed trending score of a set of posts.

    Args:
        published_ats: Publication times of the posts carrying the hashtag
        now: Scoring time
        decay_hours: Decay constant tau in hours
        window_days: Posts older than this contribute nothing

    Returns:
        Sum of exp(-age_hours / decay_hours) over posts in the window
    """
    window = timedelta(days=window_days)
    score = 0.0
    for published_at in published_ats:
        age = now - published_at
        if age < timedelta(0) or age > window:
            continue
        score += math.exp(-(age.total_seconds() / 3600.0) / decay_hours)
    return score


@dataclass(frozen=True)
class TrendingConfig:
    """Decay parameters passed to the scoring function."""

    decay_hours: float
    window_days: int


def load_trending_config() -> TrendingConfig:
    return TrendingConfig(
        decay_hours=float(settings.trending_decay_hours),
        window_days=settings.trending_window_days,
    )


class TrendingScorer:
    """Asks the store to recompute every hashtag's trending score."""

    def __init__(self, store: StoreClient, config: TrendingConfig | None = None) -> None:
        self.store = store
        self.config = config or load_trending_config()

    async def recompute(self) -> None:
        """Run one scoring pass. Errors propagate to the scheduler, which logs them."""
        await self.store.rpc(
            TRENDING_RPC,
            {
                "decay_hours": self.config.decay_hours,
                "window_days": self.config.window_days,
            },
        )
        logger.info(
            "Recomputed hashtag trending scores (tau=%sh, window=%sd)",
            self.config.decay_hours,
            self.config.window_days,
        )
