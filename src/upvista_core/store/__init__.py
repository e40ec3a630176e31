"""Adapter onto the remote PostgREST-compatible relational store."""

from upvista_core.store.cancellation import CancellationToken
from upvista_core.store.client import StoreClient, StoreConfig, StoreMetrics
from upvista_core.store.factory import get_store_client, reset_store_client
from upvista_core.store.query import Filter, Order

__all__ = [
    "CancellationToken",
    "Filter",
    "Order",
    "StoreClient",
    "StoreConfig",
    "StoreMetrics",
    "get_store_client",
    "reset_store_client",
]
