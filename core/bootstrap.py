"""
Wiring of configured components shared by the CLI and the API server.
"""

from typing import Optional

from chain_adapters.http import ResilientFetcher
from chain_adapters.registry import ChainAdapterRegistry, setup_default_adapters
from core.config import AppConfig
from transaction_cache.storage import JsonFileStore, KeyValueStore, MemoryStore


def build_registry(
    config: AppConfig,
    registry: Optional[ChainAdapterRegistry] = None,
) -> ChainAdapterRegistry:
    """Registry of the built-in adapters sharing one configured fetcher."""
    fetcher = ResilientFetcher(
        timeout=config.http_timeout_seconds,
        max_rate_limit_retries=config.fetch_max_rate_limit_retries,
        max_retries=config.fetch_max_retries,
        base_delay=config.fetch_base_delay_seconds,
    )
    if registry is None:
        registry = ChainAdapterRegistry()
    registry.adopt_fetcher(fetcher)
    return setup_default_adapters(
        registry,
        fetcher,
        variational_api_key=config.variational_api_key,
        variational_api_secret=config.variational_api_secret,
    )


def build_store(config: AppConfig) -> KeyValueStore:
    """File-backed store when CACHE_PATH is set, else in-memory."""
    if config.cache_path:
        return JsonFileStore(config.cache_path)
    return MemoryStore()
