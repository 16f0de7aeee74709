"""Chain adapter providers."""

from chain_adapters.providers.cosmos import CosmosLcdAdapter
from chain_adapters.providers.injective import InjectiveAdapter
from chain_adapters.providers.kaspa import KaspaAdapter
from chain_adapters.providers.osmosis import OsmosisAdapter
from chain_adapters.providers.variational import VariationalAdapter

__all__ = [
    "CosmosLcdAdapter",
    "InjectiveAdapter",
    "KaspaAdapter",
    "OsmosisAdapter",
    "VariationalAdapter",
]
