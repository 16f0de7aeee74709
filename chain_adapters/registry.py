"""
Chain Adapter Registry - map from chain id to adapter implementation.

Usage:
    registry = ChainAdapterRegistry()
    registry.register(KaspaAdapter())
    registry.register(InjectiveAdapter())

    adapter = registry.require("kaspa")
    transactions = await adapter.fetch_transactions(address)
"""

import logging
from typing import Optional

from chain_adapters.base import BaseChainAdapter, BasePerpsAdapter
from chain_adapters.exceptions import ChainNotSupportedError
from chain_adapters.http import ResilientFetcher
from chain_adapters.models import ChainInfo


logger = logging.getLogger(__name__)


class ChainAdapterRegistry:
    """Central registry of chain adapters, keyed by lowercase chain id."""

    def __init__(self) -> None:
        self._adapters: dict[str, BaseChainAdapter] = {}
        self._owned_fetchers: list[ResilientFetcher] = []

    def register(self, adapter: BaseChainAdapter) -> None:
        """Register an adapter under its chain id."""
        chain_id = adapter.chain_id.lower()
        if not chain_id:
            raise ValueError(f"{adapter.__class__.__name__} has no chain_id")

        if chain_id in self._adapters:
            logger.warning(f"Adapter for '{chain_id}' already registered, replacing")

        self._adapters[chain_id] = adapter
        logger.info(f"Registered chain adapter '{chain_id}' ({adapter.chain_name})")

    def adopt_fetcher(self, fetcher: ResilientFetcher) -> None:
        """Close a shared fetcher together with the registry."""
        if fetcher not in self._owned_fetchers:
            self._owned_fetchers.append(fetcher)

    def unregister(self, chain_id: str) -> Optional[BaseChainAdapter]:
        """Unregister an adapter."""
        adapter = self._adapters.pop(chain_id.lower(), None)
        if adapter is not None:
            logger.info(f"Unregistered adapter '{chain_id}'")
        return adapter

    def get(self, chain_id: str) -> Optional[BaseChainAdapter]:
        """Get an adapter by chain id."""
        return self._adapters.get((chain_id or "").lower())

    def require(self, chain_id: str) -> BaseChainAdapter:
        """
        Get an adapter by chain id.

        Raises:
            ChainNotSupportedError: No adapter registered for the chain
        """
        adapter = self.get(chain_id)
        if adapter is None:
            raise ChainNotSupportedError(
                f"Unsupported chain: {chain_id}",
                chain=chain_id,
                supported_chains=self.chain_ids(),
            )
        return adapter

    def require_perps(self, chain_id: str) -> BasePerpsAdapter:
        """
        Get a perps-capable adapter by chain id.

        Raises:
            ChainNotSupportedError: Unknown chain or chain without perps
        """
        adapter = self.require(chain_id)
        if not isinstance(adapter, BasePerpsAdapter):
            raise ChainNotSupportedError(
                f"Chain {chain_id} does not support perpetuals",
                chain=chain_id,
                supported_chains=[
                    info.chain_id for info in self.available_chains() if info.perps_capable
                ],
            )
        return adapter

    def has(self, chain_id: str) -> bool:
        """Check if a chain is registered."""
        return self.get(chain_id) is not None

    def __contains__(self, chain_id: str) -> bool:
        return self.has(chain_id)

    def __len__(self) -> int:
        return len(self._adapters)

    def chain_ids(self) -> list[str]:
        """Registered chain ids in registration order."""
        return list(self._adapters)

    def available_chains(self) -> list[ChainInfo]:
        """Metadata of every registered chain."""
        return [adapter.info() for adapter in self._adapters.values()]

    def clear(self) -> None:
        """Remove every adapter without closing them."""
        self._adapters.clear()

    async def close(self) -> None:
        """Close all adapters."""
        for adapter in self._adapters.values():
            await adapter.close()
        self._adapters.clear()
        for fetcher in self._owned_fetchers:
            await fetcher.close()
        self._owned_fetchers.clear()
        logger.info("Chain adapter registry closed")

    async def __aenter__(self) -> "ChainAdapterRegistry":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()


# Singleton instance
_default_registry: Optional[ChainAdapterRegistry] = None


def get_default_registry() -> ChainAdapterRegistry:
    """Get or create the default registry."""
    global _default_registry
    if _default_registry is None:
        _default_registry = ChainAdapterRegistry()
    return _default_registry


def setup_default_adapters(
    registry: Optional[ChainAdapterRegistry] = None,
    fetcher: Optional[ResilientFetcher] = None,
    variational_api_key: Optional[str] = None,
    variational_api_secret: Optional[str] = None,
) -> ChainAdapterRegistry:
    """
    Register the built-in adapters.

    Returns the registry (the default one unless given). All adapters
    share one fetcher so throttle keys are honoured across chains.
    """
    from chain_adapters.providers.injective import InjectiveAdapter
    from chain_adapters.providers.kaspa import KaspaAdapter
    from chain_adapters.providers.osmosis import OsmosisAdapter
    from chain_adapters.providers.variational import VariationalAdapter

    if registry is None:
        registry = get_default_registry()
    if fetcher is None:
        fetcher = ResilientFetcher()
        registry.adopt_fetcher(fetcher)

    registry.register(KaspaAdapter(fetcher))
    registry.register(InjectiveAdapter(fetcher))
    registry.register(OsmosisAdapter(fetcher))
    registry.register(
        VariationalAdapter(
            fetcher,
            api_key=variational_api_key,
            api_secret=variational_api_secret,
        )
    )
    return registry
