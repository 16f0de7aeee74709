"""
Injective Adapter - Cosmos LCD history for inj1 addresses.

INJ and factory denoms use 18 decimals; peggy-bridged ERC-20s and IBC
denoms use 6.
"""

import re

from chain_adapters.providers.cosmos import CosmosLcdAdapter


PEGGY_SYMBOLS = {
    "peggy0xdac17f958d2ee523a2206206994597c13d831ec7": "USDT",
    "peggy0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48": "USDC",
    "peggy0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2": "WETH",
}


class InjectiveAdapter(CosmosLcdAdapter):
    """Injective (INJ) adapter."""

    chain_id = "injective"
    chain_name = "Injective"
    ticker = "INJ"
    explorer_tx_url = "https://explorer.injective.network/transaction/{hash}"
    address_pattern = re.compile(r"inj1[a-z0-9]{38}")

    LCD_BASE_URL = "https://sentry.lcd.injective.network"
    PAGE_LIMIT = 50
    QUERY_PARAM = "query"
    PAGINATION_MODE = "cursor"

    def denom_decimals(self, denom: str) -> int:
        lowered = denom.lower()
        if lowered in ("inj", "uinj"):
            return 18
        if lowered.startswith("peggy0x") or "usdt" in lowered or "usdc" in lowered:
            return 6
        if lowered.startswith("ibc/"):
            return 6
        return 18

    def denom_symbol(self, denom: str) -> str:
        lowered = denom.lower()
        if lowered in ("inj", "uinj"):
            return "INJ"
        if lowered in PEGGY_SYMBOLS:
            return PEGGY_SYMBOLS[lowered]
        if lowered.startswith("peggy0x"):
            return f"PEGGY-{denom[7:13].upper()}"
        return super().denom_symbol(denom)
