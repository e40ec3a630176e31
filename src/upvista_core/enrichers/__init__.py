"""Per-variant enrichment of posts."""

from upvista_core.enrichers.article import ArticleEnricher
from upvista_core.enrichers.base import Enricher, EnricherRegistry
from upvista_core.enrichers.poll import PollEnricher
from upvista_core.store import StoreClient

__all__ = [
    "ArticleEnricher",
    "Enricher",
    "EnricherRegistry",
    "PollEnricher",
    "build_registry",
]


def build_registry(store: StoreClient) -> EnricherRegistry:
    """Return a registry holding every built-in enricher."""
    return EnricherRegistry([ArticleEnricher(store), PollEnricher(store)])
