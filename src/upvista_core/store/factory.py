"""Selection of the store implementation from configuration."""

from __future__ import annotations

from upvista_core.core.settings import SUPPORTED_DATA_PROVIDERS, settings
from upvista_core.store.client import StoreClient, StoreConfig


def create_store_client(provider: str, config: StoreConfig | None = None) -> StoreClient:
    """Build the store client for ``provider``.

    Raises:
        ValueError: If the provider is not implemented
    """
    if provider.lower() not in SUPPORTED_DATA_PROVIDERS:
        raise ValueError(f"unsupported data provider: {provider}")
    return StoreClient(config)


class _StoreClientSingleton:
    _instance: StoreClient | None = None

    @classmethod
    def get_instance(cls) -> StoreClient:
        if cls._instance is None:
            cls._instance = create_store_client(settings.data_provider)
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None


def get_store_client() -> StoreClient:
    """Return a singleton store client instance."""
    return _StoreClientSingleton.get_instance()


def reset_store_client() -> None:
    """Forget the singleton so the next call builds a fresh client."""
    _StoreClientSingleton.reset()
