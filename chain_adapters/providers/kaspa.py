"""
Kaspa Adapter - UTXO history from the public Kaspa REST API.

API: https://api.kaspa.org/ (no key required)

Previous outpoints are resolved in light mode so every input carries its
source address and amount; direction is the net effect of the inputs
funded by the address against the outputs paid to it.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

from chain_adapters.base import BaseChainAdapter
from chain_adapters.classification import SELF_TRANSFER_TAG, build_transaction, fee_fields
from chain_adapters.exceptions import NormalizationError
from chain_adapters.models import FetchOptions, Transaction, TransactionType
from chain_adapters.pagination import Page, offset_start, paginate


logger = logging.getLogger(__name__)

SOMPI_PER_KAS = 100_000_000
COINBASE_OUTPOINT = "0" * 64


def sompi_to_kas(sompi: float) -> float:
    """Convert sompi to KAS."""
    return sompi / SOMPI_PER_KAS


class KaspaAdapter(BaseChainAdapter):
    """
    Kaspa (KAS) adapter.

    Offset pagination: pages of PAGE_LIMIT records; a short page ends the
    history. Unaccepted transactions are excluded; coinbase outputs are
    reported as mining rewards.
    """

    chain_id = "kaspa"
    chain_name = "Kaspa"
    ticker = "KAS"
    explorer_tx_url = "https://explorer.kaspa.org/txs/{hash}"
    address_pattern = re.compile(r"kaspa:[a-z0-9]{61,63}")

    BASE_URL = "https://api.kaspa.org"
    PAGE_LIMIT = 500
    THROTTLE_INTERVAL = 0.2

    async def _collect(self, address: str, options: FetchOptions) -> list[Transaction]:
        page_size = options.limit or self.PAGE_LIMIT

        async def fetch_page(offset: Optional[int]) -> Page:
            offset = offset or 0
            data = await self.fetcher.fetch_json(
                f"{self.BASE_URL}/addresses/{address}/full-transactions",
                params={
                    "limit": page_size,
                    "offset": offset,
                    "resolve_previous_outpoints": "light",
                },
                throttle_key="api.kaspa.org",
                throttle_interval=self.THROTTLE_INTERVAL,
                error_label="Kaspa API",
            )
            items = data if isinstance(data, list) else []
            return Page(items=items, next_token=offset + len(items))

        transactions: list[Transaction] = []
        async for page in paginate(fetch_page, page_size, start_token=offset_start(options.cursor)):
            classified = self.classify_records(page.items, address)
            transactions.extend(classified)
            self.emit_progress(classified, options)
        return transactions

    # ─────────────────────────────────────────────────────────────
    # Classification
    # ─────────────────────────────────────────────────────────────

    def classify(self, record: dict[str, Any], address: str) -> Optional[Transaction]:
        if not record.get("is_accepted"):
            return None

        tx_hash = record.get("transaction_id") or record.get("hash")
        timestamp = record.get("accepting_block_time") or record.get("block_time")
        if not tx_hash or timestamp is None:
            raise NormalizationError(
                "Kaspa transaction without id or time",
                chain=self.chain_id,
                raw_data=record,
            )
        date = datetime.fromtimestamp(int(timestamp) / 1000, tz=timezone.utc)

        inputs = record.get("inputs") or []
        outputs = record.get("outputs") or []
        coinbase = all(
            entry.get("previous_outpoint_hash") == COINBASE_OUTPOINT for entry in inputs
        )

        input_from_us = sum(
            _input_amount(entry) for entry in inputs if _input_address(entry) == address
        )
        output_to_us = sum(
            int(entry.get("amount") or 0)
            for entry in outputs
            if entry.get("script_public_key_address") == address
        )
        if input_from_us == 0 and output_to_us == 0:
            return None

        if coinbase:
            if output_to_us == 0:
                return None
            return build_transaction(
                date,
                TransactionType.RECEIVE,
                received=[(sompi_to_kas(output_to_us), self.ticker)],
                tx_hash=tx_hash,
                notes="Mining reward",
            )

        total_in = sum(_input_amount(entry) for entry in inputs)
        total_out = sum(int(entry.get("amount") or 0) for entry in outputs)
        tx_fee = total_in - total_out if total_in > total_out else 0

        if input_from_us and input_from_us == total_in and output_to_us == total_out:
            kept = [(sompi_to_kas(output_to_us), self.ticker)]
            return build_transaction(
                date,
                TransactionType.SEND,
                sent=kept,
                received=kept,
                tx_hash=tx_hash,
                notes="Self-transfer",
                tag=SELF_TRANSFER_TAG,
                **fee_fields(True, sompi_to_kas(tx_fee), self.ticker),
            )

        net_sent = input_from_us - output_to_us
        if input_from_us == 0 or net_sent <= 0:
            net_received = output_to_us - input_from_us
            if net_received <= 0:
                return None
            return build_transaction(
                date,
                TransactionType.RECEIVE,
                received=[(sompi_to_kas(net_received), self.ticker)],
                tx_hash=tx_hash,
            )

        sent_to_others = net_sent - tx_fee
        return build_transaction(
            date,
            TransactionType.SEND,
            sent=[(sompi_to_kas(sent_to_others if sent_to_others > 0 else net_sent), self.ticker)],
            tx_hash=tx_hash,
            **fee_fields(True, sompi_to_kas(tx_fee), self.ticker),
        )


def _input_address(entry: dict[str, Any]) -> Optional[str]:
    resolved = entry.get("previous_outpoint_resolved") or {}
    return entry.get("previous_outpoint_address") or resolved.get("script_public_key_address")


def _input_amount(entry: dict[str, Any]) -> int:
    resolved = entry.get("previous_outpoint_resolved") or {}
    amount = entry.get("previous_outpoint_amount")
    if amount is None:
        amount = resolved.get("amount")
    return int(amount or 0)
