"""
Cosmos LCD Adapter - shared base for Cosmos SDK chains.

History comes from ``/cosmos/tx/v1beta1/txs`` queried from two angles
(``message.sender`` and ``transfer.recipient``); the same tx reached from
both is kept once, keyed by ``txhash``.

Classification is driven by the first message's ``@type``. Known types
(bank send, staking, rewards, IBC, CosmWasm execute, authz/feegrant
grants) map to their domain type; anything else falls back to net-flow
inference over ``coin_spent`` / ``coin_received`` events.
"""

import logging
import re
from typing import Any, Callable, Optional

from chain_adapters.base import BaseChainAdapter
from chain_adapters.classification import (
    SELF_TRANSFER_TAG,
    Leg,
    Movement,
    build_transaction,
    fee_fields,
    infer_type,
    is_self_transfer,
    summarize_flows,
)
from chain_adapters.exceptions import NormalizationError
from chain_adapters.models import FetchOptions, Transaction, TransactionType, parse_iso8601
from chain_adapters.pagination import Page, accumulate, offset_start


logger = logging.getLogger(__name__)

MSG_SEND = "/cosmos.bank.v1beta1.MsgSend"
MSG_DELEGATE = "/cosmos.staking.v1beta1.MsgDelegate"
MSG_UNDELEGATE = "/cosmos.staking.v1beta1.MsgUndelegate"
MSG_REDELEGATE = "/cosmos.staking.v1beta1.MsgBeginRedelegate"
MSG_WITHDRAW_REWARDS = "/cosmos.distribution.v1beta1.MsgWithdrawDelegatorReward"
MSG_IBC_TRANSFER = "/ibc.applications.transfer.v1.MsgTransfer"
MSG_EXECUTE_CONTRACT = "/cosmwasm.wasm.v1.MsgExecuteContract"
MSG_GRANT = "/cosmos.authz.v1beta1.MsgGrant"
MSG_GRANT_ALLOWANCE = "/cosmos.feegrant.v1beta1.MsgGrantAllowance"

_COIN_RE = re.compile(r"^(\d+)(.+)$")

Handler = Callable[[dict[str, Any], dict[str, Any], str], Optional[Transaction]]


def parse_coin_string(value: str) -> list[tuple[str, str]]:
    """Split ``"100uatom,5ibc/ABC"`` into ``[(amount, denom), ...]``."""
    coins = []
    for part in (value or "").split(","):
        match = _COIN_RE.match(part.strip())
        if match:
            coins.append((match.group(1), match.group(2)))
    return coins


def short(value: str, length: int = 10) -> str:
    """Shorten an address for notes."""
    return f"{value[:length]}…" if value and len(value) > length else value


class CosmosLcdAdapter(BaseChainAdapter):
    """
    Base adapter for Cosmos SDK LCD endpoints.

    Subclasses set the endpoint, denom conventions and may add message
    handlers through ``_handlers()``.
    """

    LCD_BASE_URL = ""
    PAGE_LIMIT = 50
    THROTTLE_INTERVAL = 0.25
    QUERY_PARAM = "query"
    PAGINATION_MODE = "cursor"  # cursor (next_key) or offset (total)

    # ─────────────────────────────────────────────────────────────
    # Denom conventions
    # ─────────────────────────────────────────────────────────────

    def denom_decimals(self, denom: str) -> int:
        """Decimal places of a denom."""
        return 6

    def denom_symbol(self, denom: str) -> str:
        """Human readable symbol of a denom."""
        if denom.startswith("ibc/"):
            return f"IBC-{denom[4:10].upper()}"
        if denom.startswith("factory/"):
            return denom.split("/")[-1].upper()
        return denom.upper()

    def parse_amount(self, amount: Any, denom: str) -> float:
        """Convert a base-unit amount string to a decimal quantity."""
        raw = int(str(amount))
        return raw / (10 ** self.denom_decimals(denom))

    def coin_leg(self, coin: Optional[dict[str, Any]]) -> Optional[Leg]:
        """``{"amount", "denom"}`` to a (quantity, symbol) leg."""
        if not coin or not coin.get("denom"):
            return None
        quantity = self.parse_amount(coin.get("amount") or 0, coin["denom"])
        if quantity <= 0:
            return None
        return (quantity, self.denom_symbol(coin["denom"]))

    def coin_legs(self, coins: Optional[list[dict[str, Any]]]) -> list[Leg]:
        legs = [self.coin_leg(coin) for coin in coins or []]
        return [leg for leg in legs if leg is not None]

    # ─────────────────────────────────────────────────────────────
    # Fetching
    # ─────────────────────────────────────────────────────────────

    def validate_address(self, address: str) -> bool:
        if not isinstance(address, str) or self.address_pattern is None:
            return False
        return self.address_pattern.fullmatch(address.strip().lower()) is not None

    def _angle(self, query: str, options: FetchOptions, page_size: int, totals: list[int]):
        async def fetch_page(token: Optional[Any]) -> Page:
            params: dict[str, Any] = {
                self.QUERY_PARAM: query,
                "pagination.limit": page_size,
                "order_by": "ORDER_BY_DESC",
            }
            offset = 0
            if self.PAGINATION_MODE == "offset":
                offset = int(token or 0)
                params["pagination.offset"] = offset
                params["pagination.count_total"] = "true"
            elif token:
                params["pagination.key"] = token

            data = await self.fetcher.fetch_json(
                f"{self.LCD_BASE_URL}/cosmos/tx/v1beta1/txs",
                params=params,
                throttle_key=self.LCD_BASE_URL,
                throttle_interval=self.THROTTLE_INTERVAL,
                error_label=f"{self.chain_name} LCD API",
            )
            items = data.get("tx_responses") or []
            pagination = data.get("pagination") or {}
            total = int(pagination.get("total") or 0)
            if total and not totals:
                totals.append(total)
                self.emit_estimated_total(total, options)

            if self.PAGINATION_MODE == "offset":
                consumed = offset + len(items)
                next_token = None if total and consumed >= total else consumed
            else:
                next_token = pagination.get("next_key") or None
            return Page(items=items, next_token=next_token)

        return fetch_page

    async def _collect(self, address: str, options: FetchOptions) -> list[Transaction]:
        address = address.lower()
        page_size = options.limit or self.PAGE_LIMIT
        if self.PAGINATION_MODE == "offset":
            start_token = offset_start(options.cursor)
        else:
            start_token = options.cursor or None
        totals: list[int] = []
        transactions: list[Transaction] = []

        def on_page(records: list[dict[str, Any]]) -> None:
            classified = self.classify_records(records, address)
            transactions.extend(classified)
            self.emit_progress(classified, options)

        await accumulate(
            [
                self._angle(f"message.sender='{address}'", options, page_size, totals),
                self._angle(f"transfer.recipient='{address}'", options, page_size, totals),
            ],
            key_fn=lambda record: record.get("txhash"),
            page_size=page_size,
            on_page=on_page,
            start_token=start_token,
        )
        return transactions

    # ─────────────────────────────────────────────────────────────
    # Classification
    # ─────────────────────────────────────────────────────────────

    def _handlers(self) -> dict[str, Handler]:
        return {
            MSG_SEND: self._map_send,
            MSG_DELEGATE: self._map_delegate,
            MSG_REDELEGATE: self._map_redelegate,
            MSG_UNDELEGATE: self._map_undelegate,
            MSG_WITHDRAW_REWARDS: self._map_withdraw_rewards,
            MSG_IBC_TRANSFER: self._map_ibc_transfer,
            MSG_EXECUTE_CONTRACT: self._map_execute_contract,
            MSG_GRANT: self._map_grant,
            MSG_GRANT_ALLOWANCE: self._map_grant,
        }

    def classify(self, record: dict[str, Any], address: str) -> Optional[Transaction]:
        if int(record.get("code") or 0) != 0:
            return None
        if not record.get("txhash") or not record.get("timestamp"):
            raise NormalizationError(
                "LCD tx without hash or timestamp",
                chain=self.chain_id,
                raw_data=record,
            )
        messages = ((record.get("tx") or {}).get("body") or {}).get("messages") or []
        if not messages:
            return None

        msg = messages[0]
        handler = self._handlers().get(msg.get("@type", ""), self._map_by_net_flow)
        return handler(record, msg, address.lower())

    def _base(self, record: dict[str, Any], msg: dict[str, Any], address: str) -> dict[str, Any]:
        """Common keyword arguments: date, hash and payer-only fee."""
        fee_coins = (((record.get("tx") or {}).get("auth_info") or {}).get("fee") or {}).get("amount")
        fee_leg = self.coin_leg(fee_coins[0]) if fee_coins else None
        signer = self._signer(record, msg)
        return {
            "tx_hash": record["txhash"],
            **fee_fields(
                signer == address,
                fee_leg[0] if fee_leg else None,
                fee_leg[1] if fee_leg else None,
            ),
        }

    def _date(self, record: dict[str, Any]):
        return parse_iso8601(record["timestamp"])

    def _signer(self, record: dict[str, Any], msg: dict[str, Any]) -> Optional[str]:
        for key in ("from_address", "sender", "delegator_address", "granter", "signer"):
            if msg.get(key):
                return str(msg[key]).lower()
        for event_type, attributes in self._events(record):
            if event_type == "message":
                for key, value in attributes:
                    if key == "sender" and value:
                        return value.lower()
        return None

    def _events(self, record: dict[str, Any]) -> list[tuple[str, list[tuple[str, str]]]]:
        """Events as (type, [(key, value), ...]), message logs first."""
        raw_events = []
        for log in record.get("logs") or []:
            raw_events.extend(log.get("events") or [])
        if not raw_events:
            raw_events = record.get("events") or []
        return [
            (
                event.get("type", ""),
                [(attr.get("key", ""), attr.get("value", "")) for attr in event.get("attributes") or []],
            )
            for event in raw_events
        ]

    def _coin_movements(self, record: dict[str, Any]) -> list[Movement]:
        """coin_spent/coin_received events as movements."""
        movements = []
        for event_type, attributes in self._events(record):
            if event_type not in ("coin_spent", "coin_received"):
                continue
            party = None
            for key, value in attributes:
                if key in ("spender", "receiver"):
                    party = value
                elif key == "amount" and party:
                    for amount, denom in parse_coin_string(value):
                        quantity = self.parse_amount(amount, denom)
                        if event_type == "coin_spent":
                            movements.append(Movement(self.denom_symbol(denom), quantity, sender=party))
                        else:
                            movements.append(Movement(self.denom_symbol(denom), quantity, recipient=party))
        return movements

    def _received_from_events(
        self,
        record: dict[str, Any],
        address: str,
        predicate: Callable[[str], bool] = lambda currency: True,
    ) -> list[Leg]:
        legs: list[Leg] = []
        for movement in self._coin_movements(record):
            if movement.recipient and movement.recipient.lower() == address:
                legs.append((movement.amount, movement.currency))
        return [leg for leg in legs if predicate(leg[1])]

    # Message handlers

    def _map_send(self, record, msg, address) -> Optional[Transaction]:
        sender = (msg.get("from_address") or "").lower()
        recipient = (msg.get("to_address") or "").lower()
        legs = self.coin_legs(msg.get("amount"))
        if not legs:
            return None
        base = self._base(record, msg, address)
        date = self._date(record)

        if sender == address and is_self_transfer(sender, recipient):
            return build_transaction(
                date,
                TransactionType.SEND,
                sent=legs,
                received=legs,
                notes="Self-transfer",
                tag=SELF_TRANSFER_TAG,
                **base,
            )
        if sender == address:
            return build_transaction(
                date,
                TransactionType.SEND,
                sent=legs,
                notes=f"Transfer to {short(recipient)}",
                **base,
            )
        if recipient == address:
            return build_transaction(
                date,
                TransactionType.RECEIVE,
                received=legs,
                notes=f"Transfer from {short(sender)}",
                tx_hash=base["tx_hash"],
            )
        return None

    def _map_delegate(self, record, msg, address) -> Transaction:
        leg = self.coin_leg(msg.get("amount"))
        return build_transaction(
            self._date(record),
            TransactionType.STAKE,
            sent=[leg] if leg else [],
            notes=f"Delegate to {short(msg.get('validator_address', ''), 16)}",
            tag="staked",
            **self._base(record, msg, address),
        )

    def _map_redelegate(self, record, msg, address) -> Transaction:
        return build_transaction(
            self._date(record),
            TransactionType.STAKE,
            notes=f"Redelegate to {short(msg.get('validator_dst_address', ''), 16)}",
            tag="staked",
            **self._base(record, msg, address),
        )

    def _map_undelegate(self, record, msg, address) -> Transaction:
        leg = self.coin_leg(msg.get("amount"))
        return build_transaction(
            self._date(record),
            TransactionType.UNSTAKE,
            received=[leg] if leg else [],
            notes=f"Undelegate from {short(msg.get('validator_address', ''), 16)}",
            tag="unstaked",
            **self._base(record, msg, address),
        )

    def _map_withdraw_rewards(self, record, msg, address) -> Transaction:
        legs: list[Leg] = []
        for event_type, attributes in self._events(record):
            if event_type != "withdraw_rewards":
                continue
            for key, value in attributes:
                if key == "amount":
                    legs.extend(
                        (self.parse_amount(amount, denom), self.denom_symbol(denom))
                        for amount, denom in parse_coin_string(value)
                    )
        if not legs:
            legs = self._received_from_events(record, address)
        return build_transaction(
            self._date(record),
            TransactionType.CLAIM,
            received=[leg for leg in legs if leg[0] > 0],
            notes=f"Claim rewards from {short(msg.get('validator_address', ''), 16)}",
            **self._base(record, msg, address),
        )

    def _map_ibc_transfer(self, record, msg, address) -> Transaction:
        sender = (msg.get("sender") or "").lower()
        leg = self.coin_leg(msg.get("token"))
        legs = [leg] if leg else []
        base = self._base(record, msg, address)
        if sender == address:
            return build_transaction(
                self._date(record),
                TransactionType.BRIDGE,
                sent=legs,
                notes=f"IBC transfer to {short(msg.get('receiver', ''))}",
                **base,
            )
        return build_transaction(
            self._date(record),
            TransactionType.BRIDGE,
            received=legs,
            notes=f"IBC transfer from {short(sender)}",
            tx_hash=base["tx_hash"],
        )

    def _map_execute_contract(self, record, msg, address) -> Transaction:
        contract = msg.get("contract", "")
        inner = msg.get("msg")
        action = "Contract execution"
        if isinstance(inner, dict) and inner:
            action = next(iter(inner)).replace("_", " ")

        sent = self.coin_legs(msg.get("funds"))
        received = self._received_from_events(record, address)
        base = self._base(record, msg, address)

        if "swap" in action.lower() and sent and received:
            return build_transaction(
                self._date(record),
                TransactionType.TRADE,
                sent=sent,
                received=received,
                notes=f"Swap on {short(contract)}",
                **base,
            )
        return build_transaction(
            self._date(record),
            TransactionType.SEND if sent else TransactionType.OTHER,
            sent=sent,
            received=received,
            notes=f"{action} ({short(contract)})",
            **base,
        )

    def _map_grant(self, record, msg, address) -> Transaction:
        return build_transaction(
            self._date(record),
            TransactionType.APPROVAL,
            notes=f"Grant to {short(msg.get('grantee', ''))}",
            **self._base(record, msg, address),
        )

    def _map_by_net_flow(self, record, msg, address) -> Transaction:
        """Fallback for message types without a dedicated handler."""
        msg_type = msg.get("@type") or "Unknown"
        base = self._base(record, msg, address)
        movements = self._coin_movements(record)
        if base.get("fee_amount"):
            # tx-level events may include the fee payment itself
            fee_movement = Movement(base["fee_currency"], base["fee_amount"], sender=address)
            for movement in movements:
                if movement.currency == fee_movement.currency and movement.amount == fee_movement.amount \
                        and (movement.sender or "").lower() == address:
                    movements.remove(movement)
                    break

        summary = summarize_flows(movements, address)
        tx_type = infer_type(summary) or TransactionType.OTHER
        return build_transaction(
            self._date(record),
            tx_type,
            sent=summary.sent,
            received=summary.received,
            notes=f"{msg_type.rsplit('.', 1)[-1]} transaction",
            **base,
        )
