"""
Classification helpers shared by every adapter.

Direction comes from the net flow of each asset into and out of the
queried address:

    inflow only                        -> receive
    outflow only                       -> send
    inflow and outflow (other assets)  -> trade
    nothing net                        -> no generic type

Providers override the generic type when they recognise the operation
(staking, rewards, bridging, liquidity, approvals).
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from chain_adapters.models import AssetEntry, Transaction, TransactionType


SELF_TRANSFER_TAG = "self_transfer"

Leg = tuple[float, str]


@dataclass(frozen=True)
class Movement:
    """One asset movement observed in an upstream record."""
    currency: str
    amount: float
    sender: Optional[str] = None
    recipient: Optional[str] = None


@dataclass
class FlowSummary:
    """Per-currency net flow for one address, in first-seen order."""
    received: list[Leg] = field(default_factory=list)
    sent: list[Leg] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.received and not self.sent


def _same_address(left: Optional[str], right: Optional[str]) -> bool:
    if not left or not right:
        return False
    return left.lower() == right.lower()


def is_self_transfer(sender: Optional[str], recipient: Optional[str]) -> bool:
    """True when source and destination are the same address."""
    return _same_address(sender, recipient)


def summarize_flows(movements: Iterable[Movement], address: str) -> FlowSummary:
    """
    Net every currency's movements relative to ``address``.

    Sums are done in Decimal so offsetting legs cancel exactly.
    """
    totals: dict[str, Decimal] = {}
    for movement in movements:
        incoming = _same_address(movement.recipient, address)
        outgoing = _same_address(movement.sender, address)
        if incoming == outgoing:
            continue
        amount = Decimal(repr(float(movement.amount)))
        totals.setdefault(movement.currency, Decimal(0))
        totals[movement.currency] += amount if incoming else -amount

    summary = FlowSummary()
    for currency, net in totals.items():
        if net > 0:
            summary.received.append((float(net), currency))
        elif net < 0:
            summary.sent.append((float(-net), currency))
    return summary


def infer_type(summary: FlowSummary) -> Optional[TransactionType]:
    """Generic direction from a flow summary, None when nothing moved."""
    if summary.received and summary.sent:
        return TransactionType.TRADE
    if summary.received:
        return TransactionType.RECEIVE
    if summary.sent:
        return TransactionType.SEND
    return None


def fee_fields(
    paid_by_address: bool,
    amount: Optional[float],
    currency: Optional[str],
) -> dict[str, object]:
    """
    Fee keyword arguments for ``build_transaction``.

    Empty unless the queried address paid a positive fee.
    """
    if not paid_by_address or not amount or amount <= 0 or not currency:
        return {}
    return {"fee_amount": amount, "fee_currency": currency}


def build_transaction(
    date: datetime,
    tx_type: TransactionType,
    *,
    sent: Sequence[Leg] = (),
    received: Sequence[Leg] = (),
    fee_amount: Optional[float] = None,
    fee_currency: Optional[str] = None,
    tx_hash: Optional[str] = None,
    notes: Optional[str] = None,
    tag: Optional[str] = None,
) -> Transaction:
    """
    Build a Transaction from asset legs.

    The first leg of each side fills the primary columns; any further legs
    go to ``additional_sent`` / ``additional_received``.
    """
    sent_quantity, sent_currency = sent[0] if sent else (None, None)
    received_quantity, received_currency = received[0] if received else (None, None)
    return Transaction(
        date=date,
        type=tx_type,
        sent_quantity=sent_quantity,
        sent_currency=sent_currency,
        received_quantity=received_quantity,
        received_currency=received_currency,
        fee_amount=fee_amount,
        fee_currency=fee_currency,
        tx_hash=tx_hash,
        notes=notes,
        tag=tag,
        additional_sent=tuple(AssetEntry(quantity, currency) for quantity, currency in sent[1:]),
        additional_received=tuple(
            AssetEntry(quantity, currency) for quantity, currency in received[1:]
        ),
    )


def sort_by_date(records: Iterable[Transaction]) -> list[Transaction]:
    """Stable ascending sort by date."""
    return sorted(records, key=lambda tx: tx.date)
