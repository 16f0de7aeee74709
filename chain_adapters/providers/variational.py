"""
Variational Adapter - perpetuals history from the Variational Omni API.

Requires API credentials (VARIATIONAL_API_KEY / VARIATIONAL_API_SECRET).
Trades and funding payments are paged by offset, following
``pagination.next_page`` until the API stops returning one.

Perps view:
- settlement trade          -> funding_payment
- trade with realized P&L   -> close_position
- other trades              -> open_position
- funding payment           -> funding_payment (P&L = payment amount)

Standard view maps every trade to a ``trade`` row.
"""

import hashlib
import hmac
import logging
import os
import re
import time
from typing import Any, Optional
from urllib.parse import urlencode

from chain_adapters.base import BasePerpsAdapter
from chain_adapters.classification import build_transaction
from chain_adapters.exceptions import ConfigurationError
from chain_adapters.http import ResilientFetcher
from chain_adapters.models import (
    FetchOptions,
    PerpTag,
    PerpTransaction,
    Transaction,
    TransactionType,
    format_iso8601,
    parse_iso8601,
)
from chain_adapters.pagination import Page, offset_start, paginate


logger = logging.getLogger(__name__)

EXCLUDED_STATUSES = ("cancelled", "pending")
_INSTRUMENT_SUFFIX = re.compile(r"([-_]PERP|[-_]USD[CT]?)$", re.IGNORECASE)


def extract_asset(instrument_name: str) -> str:
    """``"BTC-PERP"`` / ``"ETH_USDC"`` -> ``"BTC"`` / ``"ETH"``."""
    if not instrument_name:
        return "UNKNOWN"
    cleaned = instrument_name
    for _ in range(2):
        cleaned = _INSTRUMENT_SUFFIX.sub("", cleaned)
    cleaned = cleaned.strip()
    return cleaned.upper() or instrument_name.upper()


def classify_trade(trade: dict[str, Any]) -> PerpTag:
    if trade.get("trade_type") == "settlement":
        return PerpTag.FUNDING_PAYMENT
    if float(trade.get("realized_pnl") or 0) != 0:
        return PerpTag.CLOSE_POSITION
    return PerpTag.OPEN_POSITION


class VariationalAdapter(BasePerpsAdapter):
    """Variational perpetuals adapter (settles on Arbitrum)."""

    chain_id = "variational"
    chain_name = "Variational"
    ticker = "VAR"
    explorer_tx_url = "https://arbiscan.io/tx/{hash}"
    address_pattern = re.compile(r"0x[0-9a-fA-F]{40}")

    BASE_URL = "https://omni-client-api.prod.ap-northeast-1.variational.io"
    PAGE_SIZE = 100
    THROTTLE_INTERVAL = 0.1

    def __init__(
        self,
        fetcher: Optional[ResilientFetcher] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
    ) -> None:
        super().__init__(fetcher)
        self._api_key = api_key or os.environ.get("VARIATIONAL_API_KEY", "")
        self._api_secret = api_secret or os.environ.get("VARIATIONAL_API_SECRET", "")

    def _auth_headers(self, path: str) -> dict[str, str]:
        """Signed request headers. Raises ConfigurationError without credentials."""
        if not self._api_key or not self._api_secret:
            raise ConfigurationError(
                "VARIATIONAL_API_KEY and VARIATIONAL_API_SECRET are required",
                chain=self.chain_id,
                config_key="VARIATIONAL_API_KEY",
            )
        timestamp = str(int(time.time() * 1000))
        signature = hmac.new(
            self._api_secret.encode(),
            f"{timestamp}GET{path}".encode(),
            hashlib.sha256,
        ).hexdigest()
        return {
            "X-Variational-Key": self._api_key,
            "X-Request-Timestamp-Ms": timestamp,
            "X-Variational-Signature": signature,
        }

    async def _fetch_all(self, endpoint: str, address: str, options: FetchOptions) -> list[dict[str, Any]]:
        async def fetch_page(offset: Optional[int]) -> Page:
            params: dict[str, Any] = {
                "wallet_address": address.lower(),
                "limit": self.PAGE_SIZE,
                "offset": offset or 0,
            }
            if options.from_date:
                params["from_date"] = format_iso8601(options.from_date)
            if options.to_date:
                params["to_date"] = format_iso8601(options.to_date)

            path = f"{endpoint}?{urlencode(params)}"
            data = await self.fetcher.fetch_json(
                f"{self.BASE_URL}{path}",
                headers=self._auth_headers(path),
                throttle_key="variational",
                throttle_interval=self.THROTTLE_INTERVAL,
                error_label="Variational API",
            )
            next_page = (data.get("pagination") or {}).get("next_page") or {}
            return Page(
                items=data.get("data") or [],
                next_token=next_page.get("offset"),
            )

        records: list[dict[str, Any]] = []
        async for page in paginate(fetch_page, start_token=offset_start(options.cursor)):
            records.extend(page.items)
        return records

    # ─────────────────────────────────────────────────────────────
    # Standard view
    # ─────────────────────────────────────────────────────────────

    async def _collect(self, address: str, options: FetchOptions) -> list[Transaction]:
        trades = await self._fetch_all("/v1/trades", address, options)
        transactions = self.classify_records(trades, address)
        self.emit_progress(transactions, options)
        return transactions

    def classify(self, record: dict[str, Any], address: str) -> Optional[Transaction]:
        if record.get("status") in EXCLUDED_STATUSES:
            return None
        tag = classify_trade(record)
        asset = extract_asset(record.get("instrument_name", ""))
        quantity = abs(float(record["quantity"]))
        fee = float(record.get("fee") or 0)
        settlement = (record.get("settlement_currency") or "USDC").upper()
        label = tag.value.replace("_", " ")

        return build_transaction(
            parse_iso8601(record["created_at"]),
            TransactionType.TRADE,
            sent=[(quantity, asset)] if tag is PerpTag.OPEN_POSITION else [],
            received=[(quantity, asset)] if tag is PerpTag.CLOSE_POSITION else [],
            fee_amount=abs(fee) if fee else None,
            fee_currency=settlement if fee else None,
            tx_hash=record.get("transaction_hash"),
            notes=f"Variational {label}",
            tag=label,
        )

    # ─────────────────────────────────────────────────────────────
    # Perps view
    # ─────────────────────────────────────────────────────────────

    async def _collect_perps(self, address: str, options: FetchOptions) -> list[PerpTransaction]:
        trades = await self._fetch_all("/v1/trades", address, options)
        funding = await self._fetch_all("/v1/funding-payments", address, options)

        rows = []
        for record, mapper in [(t, self.map_trade) for t in trades] + [
            (f, self.map_funding) for f in funding
        ]:
            try:
                row = mapper(record)
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"[{self.chain_id}] Skipping malformed perp record: {e}")
                continue
            if row is not None:
                rows.append(row)
        return rows

    def map_trade(self, trade: dict[str, Any]) -> Optional[PerpTransaction]:
        """Trade record to a perp row (None for cancelled/pending)."""
        if trade.get("status") in EXCLUDED_STATUSES:
            return None
        tag = classify_trade(trade)
        asset = extract_asset(trade.get("instrument_name", ""))
        pnl = float(trade.get("realized_pnl") or 0)
        fee = float(trade.get("fee") or 0)
        side = "long" if trade.get("side") == "buy" else "short"

        if tag is PerpTag.OPEN_POSITION:
            notes = f"{side.capitalize()} {asset}"
        elif tag is PerpTag.CLOSE_POSITION:
            notes = f"Close {side} {asset}"
        else:
            notes = None

        payment_token = (trade.get("settlement_currency") or "USDC").upper()
        if tag is PerpTag.OPEN_POSITION and pnl == 0:
            payment_token = ""

        return PerpTransaction(
            date=parse_iso8601(trade["created_at"]),
            asset=asset,
            amount=abs(float(trade["quantity"])),
            tag=tag,
            pnl=pnl,
            fee=abs(fee) if fee else None,
            payment_token=payment_token,
            notes=notes,
            tx_hash=trade.get("transaction_hash"),
        )

    def map_funding(self, funding: dict[str, Any]) -> PerpTransaction:
        """Funding payment record to a perp row."""
        return PerpTransaction(
            date=parse_iso8601(funding["created_at"]),
            asset=extract_asset(funding.get("instrument_name", "")),
            amount=abs(float(funding.get("position_size") or 0)),
            tag=PerpTag.FUNDING_PAYMENT,
            pnl=float(funding.get("payment_amount") or 0),
            payment_token=(funding.get("settlement_currency") or "USDC").upper(),
            notes=f"Funding payment (rate: {funding.get('funding_rate')})",
            tx_hash=funding.get("transaction_hash"),
        )
