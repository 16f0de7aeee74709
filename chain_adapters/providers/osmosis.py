"""
Osmosis Adapter - Cosmos LCD history for osmo1 addresses.

Adds GAMM liquidity and swap messages on top of the Cosmos handlers.
Liquidity operations carry every deposited/withdrawn asset as its own leg.
Pages are requested by offset; the LCD reports the total count.
"""

import re
from typing import Any, Optional

from chain_adapters.classification import Leg, build_transaction
from chain_adapters.models import Transaction, TransactionType
from chain_adapters.providers.cosmos import CosmosLcdAdapter, Handler


MSG_JOIN_POOL = "/osmosis.gamm.v1beta1.MsgJoinPool"
MSG_JOIN_SWAP_EXTERN = "/osmosis.gamm.v1beta1.MsgJoinSwapExternAmountIn"
MSG_EXIT_POOL = "/osmosis.gamm.v1beta1.MsgExitPool"
MSG_EXIT_SWAP_SHARE = "/osmosis.gamm.v1beta1.MsgExitSwapShareAmountIn"
SWAP_TYPES = (
    "/osmosis.gamm.v1beta1.MsgSwapExactAmountIn",
    "/osmosis.gamm.v1beta1.MsgSwapExactAmountOut",
    "/osmosis.poolmanager.v1beta1.MsgSwapExactAmountIn",
    "/osmosis.poolmanager.v1beta1.MsgSwapExactAmountOut",
)

IBC_SYMBOLS = {
    "ibc/27394FB092D2ECCD56123C74F36E4C1F926001CEADA9CA97EA622B25F41E5EB2": "ATOM",
    "ibc/D189335C6E4A68B513C10AB227BF1C1D38C746766278BA3EEB4FB14124F1D858": "USDC",
    "ibc/4ABBEF4C8926DDDB320AE5188CFD63267ABBCEFC0583E4AE05D6E5AA2401DDAB": "USDT",
    "ibc/EA1D43981D5C9A1C4AAEA9C23BB1D4FA126BA9BC7020A25E0AE4AA841EA25DC5": "ETH",
}


def _is_lp_share(currency: str) -> bool:
    return currency.startswith("GAMM-")


class OsmosisAdapter(CosmosLcdAdapter):
    """Osmosis (OSMO) adapter."""

    chain_id = "osmosis"
    chain_name = "Osmosis"
    ticker = "OSMO"
    explorer_tx_url = "https://www.mintscan.io/osmosis/tx/{hash}"
    address_pattern = re.compile(r"osmo1[a-z0-9]{38}")

    LCD_BASE_URL = "https://lcd.osmosis.zone"
    PAGE_LIMIT = 100
    QUERY_PARAM = "events"
    PAGINATION_MODE = "offset"

    def denom_symbol(self, denom: str) -> str:
        if denom in ("uosmo", "osmo"):
            return "OSMO"
        if denom == "uion":
            return "ION"
        if denom.startswith("gamm/pool/"):
            return f"GAMM-{denom[len('gamm/pool/'):]}"
        if denom in IBC_SYMBOLS:
            return IBC_SYMBOLS[denom]
        if denom.startswith("u") and len(denom) > 1:
            return denom[1:].upper()
        return super().denom_symbol(denom)

    def _handlers(self) -> dict[str, Handler]:
        handlers = super()._handlers()
        handlers[MSG_JOIN_POOL] = self._map_lp_join
        handlers[MSG_JOIN_SWAP_EXTERN] = self._map_lp_join
        handlers[MSG_EXIT_POOL] = self._map_lp_exit
        handlers[MSG_EXIT_SWAP_SHARE] = self._map_lp_exit
        for msg_type in SWAP_TYPES:
            handlers[msg_type] = self._map_swap
        return handlers

    def _share_leg(self, amount: Optional[str], pool_id: str) -> Optional[Leg]:
        if not amount:
            return None
        return self.coin_leg({"amount": amount, "denom": f"gamm/pool/{pool_id}"})

    def _map_lp_join(self, record: dict[str, Any], msg: dict[str, Any], address: str) -> Transaction:
        pool_id = str(msg.get("pool_id", ""))
        sent = self.coin_legs(msg.get("token_in_maxs"))
        if not sent:
            sent = self.coin_legs([msg["token_in"]] if msg.get("token_in") else [])

        received = self._received_from_events(record, address, _is_lp_share)[:1]
        if not received:
            share = self._share_leg(msg.get("share_out_amount"), pool_id)
            received = [share] if share else []

        return build_transaction(
            self._date(record),
            TransactionType.LP_ADD,
            sent=sent,
            received=received,
            notes=f"Add liquidity to pool {pool_id}",
            **self._base(record, msg, address),
        )

    def _map_lp_exit(self, record: dict[str, Any], msg: dict[str, Any], address: str) -> Transaction:
        pool_id = str(msg.get("pool_id", ""))
        share = self._share_leg(msg.get("share_in_amount"), pool_id)

        received = self._received_from_events(
            record, address, lambda currency: not _is_lp_share(currency)
        )
        if not received:
            received = self.coin_legs(msg.get("token_out_mins"))
        if not received and msg.get("token_out_denom"):
            received = self.coin_legs([{
                "amount": msg.get("token_out_min_amount") or 0,
                "denom": msg["token_out_denom"],
            }])

        return build_transaction(
            self._date(record),
            TransactionType.LP_REMOVE,
            sent=[share] if share else [],
            received=received,
            notes=f"Remove liquidity from pool {pool_id}",
            **self._base(record, msg, address),
        )

    def _map_swap(self, record: dict[str, Any], msg: dict[str, Any], address: str) -> Transaction:
        routes = msg.get("routes") or []
        sent = self.coin_legs([msg["token_in"]] if msg.get("token_in") else [])
        received = self.coin_legs([msg["token_out"]] if msg.get("token_out") else [])

        if not sent and routes and msg.get("token_in_max_amount") and routes[0].get("token_in_denom"):
            sent = self.coin_legs([{
                "amount": msg["token_in_max_amount"],
                "denom": routes[0]["token_in_denom"],
            }])
        if not received and routes and msg.get("token_out_min_amount") and routes[-1].get("token_out_denom"):
            received = self.coin_legs([{
                "amount": msg["token_out_min_amount"],
                "denom": routes[-1]["token_out_denom"],
            }])

        pool_id = routes[0].get("pool_id", "unknown") if routes else "unknown"
        return build_transaction(
            self._date(record),
            TransactionType.TRADE,
            sent=sent,
            received=received,
            notes=f"Swap via pool {pool_id}",
            **self._base(record, msg, address),
        )
