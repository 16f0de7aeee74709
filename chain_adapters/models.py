"""
Chain Data Models - Canonical ledger records shared by every adapter.

Dict forms use the camelCase field names of the JSON/NDJSON wire format
so the same payload is used by the HTTP API, the stream and the cache.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional


class TransactionType(Enum):
    """Canonical ledger event types."""
    SEND = "send"
    RECEIVE = "receive"
    TRADE = "trade"
    LP_ADD = "lp_add"
    LP_REMOVE = "lp_remove"
    STAKE = "stake"
    UNSTAKE = "unstake"
    CLAIM = "claim"
    BRIDGE = "bridge"
    APPROVAL = "approval"
    OTHER = "other"


class PerpTag(Enum):
    """Derivatives ledger event tags."""
    OPEN_POSITION = "open_position"
    CLOSE_POSITION = "close_position"
    FUNDING_PAYMENT = "funding_payment"


# =============================================================================
# ISO-8601 helpers
# =============================================================================

def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso8601(value: str) -> datetime:
    """
    Parse an ISO-8601 string into an aware UTC datetime.

    Accepts a trailing ``Z`` and date-only strings.

    Raises:
        ValueError: If the string is not ISO-8601
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid ISO-8601 value: {value!r}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def format_iso8601(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with a ``Z`` suffix."""
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def _finite(value: Optional[float], name: str) -> Optional[float]:
    if value is None:
        return None
    number = float(value)
    if math.isnan(number) or math.isinf(number):
        raise ValueError(f"{name} must be a finite number, got {value!r}")
    return number


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


# =============================================================================
# Ledger records
# =============================================================================

@dataclass(frozen=True)
class AssetEntry:
    """One extra asset leg of a multi-asset send or receive side."""
    quantity: float
    currency: str
    fiat_amount: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", _finite(self.quantity, "quantity"))
        object.__setattr__(self, "fiat_amount", _finite(self.fiat_amount, "fiat_amount"))

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire dictionary."""
        return _compact({
            "quantity": self.quantity,
            "currency": self.currency,
            "fiatAmount": self.fiat_amount,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssetEntry":
        """Create from wire dictionary."""
        return cls(
            quantity=data["quantity"],
            currency=data["currency"],
            fiat_amount=data.get("fiatAmount"),
        )


@dataclass(frozen=True)
class Transaction:
    """
    Canonical ledger event - created once by an adapter's classifier.

    Quantities are stored as given; the CSV engine always emits magnitudes.
    """
    date: datetime
    type: TransactionType

    sent_quantity: Optional[float] = None
    sent_currency: Optional[str] = None
    sent_fiat_amount: Optional[float] = None
    received_quantity: Optional[float] = None
    received_currency: Optional[str] = None
    received_fiat_amount: Optional[float] = None
    fee_amount: Optional[float] = None
    fee_currency: Optional[str] = None

    tx_hash: Optional[str] = None
    notes: Optional[str] = None
    tag: Optional[str] = None

    # Only populated when a side spans more than one asset
    additional_sent: tuple[AssetEntry, ...] = field(default_factory=tuple)
    additional_received: tuple[AssetEntry, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", ensure_utc(self.date))
        if not isinstance(self.type, TransactionType):
            object.__setattr__(self, "type", TransactionType(self.type))
        for name in (
            "sent_quantity",
            "sent_fiat_amount",
            "received_quantity",
            "received_fiat_amount",
            "fee_amount",
        ):
            object.__setattr__(self, name, _finite(getattr(self, name), name))
        object.__setattr__(self, "additional_sent", tuple(self.additional_sent))
        object.__setattr__(self, "additional_received", tuple(self.additional_received))

    @property
    def is_multi_asset(self) -> bool:
        """True if either side carries additional asset legs."""
        return bool(self.additional_sent or self.additional_received)

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire dictionary (camelCase, ISO date, no null fields)."""
        data = _compact({
            "date": format_iso8601(self.date),
            "type": self.type.value,
            "sentQuantity": self.sent_quantity,
            "sentCurrency": self.sent_currency,
            "sentFiatAmount": self.sent_fiat_amount,
            "receivedQuantity": self.received_quantity,
            "receivedCurrency": self.received_currency,
            "receivedFiatAmount": self.received_fiat_amount,
            "feeAmount": self.fee_amount,
            "feeCurrency": self.fee_currency,
            "txHash": self.tx_hash,
            "notes": self.notes,
            "tag": self.tag,
        })
        if self.additional_sent:
            data["additionalSent"] = [entry.to_dict() for entry in self.additional_sent]
        if self.additional_received:
            data["additionalReceived"] = [entry.to_dict() for entry in self.additional_received]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Transaction":
        """Create from wire dictionary."""
        date = data["date"]
        return cls(
            date=date if isinstance(date, datetime) else parse_iso8601(date),
            type=TransactionType(data["type"]),
            sent_quantity=data.get("sentQuantity"),
            sent_currency=data.get("sentCurrency"),
            sent_fiat_amount=data.get("sentFiatAmount"),
            received_quantity=data.get("receivedQuantity"),
            received_currency=data.get("receivedCurrency"),
            received_fiat_amount=data.get("receivedFiatAmount"),
            fee_amount=data.get("feeAmount"),
            fee_currency=data.get("feeCurrency"),
            tx_hash=data.get("txHash"),
            notes=data.get("notes"),
            tag=data.get("tag"),
            additional_sent=tuple(
                AssetEntry.from_dict(entry) for entry in data.get("additionalSent") or []
            ),
            additional_received=tuple(
                AssetEntry.from_dict(entry) for entry in data.get("additionalReceived") or []
            ),
        )


@dataclass(frozen=True)
class PerpTransaction:
    """Derivatives ledger event. Only ``pnl`` is meaningfully signed."""
    date: datetime
    asset: str
    amount: float
    tag: PerpTag
    pnl: float = 0.0
    fee: Optional[float] = None
    payment_token: str = ""
    notes: Optional[str] = None
    tx_hash: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", ensure_utc(self.date))
        if not isinstance(self.tag, PerpTag):
            object.__setattr__(self, "tag", PerpTag(self.tag))
        object.__setattr__(self, "amount", _finite(self.amount, "amount"))
        object.__setattr__(self, "pnl", _finite(self.pnl, "pnl"))
        object.__setattr__(self, "fee", _finite(self.fee, "fee"))

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire dictionary."""
        return _compact({
            "date": format_iso8601(self.date),
            "asset": self.asset,
            "amount": self.amount,
            "fee": self.fee,
            "pnl": self.pnl,
            "paymentToken": self.payment_token,
            "notes": self.notes,
            "txHash": self.tx_hash,
            "tag": self.tag.value,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PerpTransaction":
        """Create from wire dictionary."""
        date = data["date"]
        return cls(
            date=date if isinstance(date, datetime) else parse_iso8601(date),
            asset=data["asset"],
            amount=data["amount"],
            tag=PerpTag(data["tag"]),
            pnl=data.get("pnl", 0.0),
            fee=data.get("fee"),
            payment_token=data.get("paymentToken", ""),
            notes=data.get("notes"),
            tx_hash=data.get("txHash"),
        )


# =============================================================================
# Request / metadata
# =============================================================================

ProgressCallback = Callable[[list[Transaction]], None]
EstimateCallback = Callable[[int], None]


@dataclass
class FetchOptions:
    """
    Request parameters for an adapter fetch.

    ``from_date``/``to_date`` form an inclusive window. ``on_progress``
    receives each newly classified page; ``on_estimated_total`` receives an
    upstream total when the provider reports one.
    """
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    cursor: Optional[str] = None
    limit: Optional[int] = None
    on_progress: Optional[ProgressCallback] = None
    on_estimated_total: Optional[EstimateCallback] = None

    def __post_init__(self) -> None:
        if self.from_date is not None:
            self.from_date = ensure_utc(self.from_date)
        if self.to_date is not None:
            self.to_date = ensure_utc(self.to_date)

    def validate(self) -> None:
        """Validate request parameters."""
        if self.from_date and self.to_date and self.from_date > self.to_date:
            raise ValueError("from_date must not be after to_date")
        if self.limit is not None and self.limit < 1:
            raise ValueError("limit must be positive")

    def in_window(self, moment: datetime) -> bool:
        """Check if a moment falls inside the inclusive date window."""
        moment = ensure_utc(moment)
        if self.from_date and moment < self.from_date:
            return False
        if self.to_date and moment > self.to_date:
            return False
        return True


@dataclass(frozen=True)
class ChainInfo:
    """Public metadata about a registered chain."""
    chain_id: str
    chain_name: str
    ticker: str
    perps_capable: bool = False
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire dictionary."""
        return {
            "id": self.chain_id,
            "name": self.chain_name,
            "ticker": self.ticker,
            "enabled": self.enabled,
            "perpsCapable": self.perps_capable,
        }
