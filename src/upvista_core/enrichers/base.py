"""Variant enrichers and their registry.

An enricher owns the extension row of one post variant. ``load_batch`` is the
hot path used by the feed; ``load_one`` serves single-post reads and may load
extra detail. Loading never writes.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import ClassVar

from upvista_core.core.errors import RequestCancelledError
from upvista_core.models.post import Post, PostVariant
from upvista_core.store import CancellationToken, StoreClient

logger = logging.getLogger(__name__)


class Enricher(ABC):
    """Loads and writes the extension row of a single post variant."""

    variant: ClassVar[PostVariant]

    def __init__(self, store: StoreClient) -> None:
        self.store = store

    @abstractmethod
    async def load_batch(
        self,
        posts: Sequence[Post],
        viewer_id: str | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Attach extension payloads to every post in ``posts`` with one query."""

    async def load_one(
        self,
        post: Post,
        viewer_id: str | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        await self.load_batch([post], viewer_id, cancel=cancel)


class EnricherRegistry:
    """Enrichers keyed by the variant tag they serve."""

    def __init__(self, enrichers: Iterable[Enricher] = ()) -> None:
        self._enrichers: dict[PostVariant, Enricher] = {}
        for enricher in enrichers:
            self.register(enricher)

    def register(self, enricher: Enricher) -> None:
        self._enrichers[enricher.variant] = enricher

    def get(self, variant: PostVariant) -> Enricher | None:
        return self._enrichers.get(variant)

    def __contains__(self, variant: object) -> bool:
        return variant in self._enrichers

    async def load_one(
        self,
        post: Post,
        viewer_id: str | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Enrich a single post, leaving its extension empty on failure."""
        enricher = self.get(post.post_type)
        if enricher is None:
            return
        try:
            await enricher.load_one(post, viewer_id, cancel=cancel)
        except RequestCancelledError:
            raise
        except Exception:
            logger.error(
                "Failed to load %s extension for post %s",
                post.post_type.value,
                post.id,
                exc_info=True,
            )
