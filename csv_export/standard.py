"""
Standard ledger CSV renderer.

Uses the fixed 12-column layout unless some row carries additional asset
legs; then every row is rendered in the numbered multi-asset layout,
sized for the widest row of the batch.
"""

from typing import Sequence

from chain_adapters.models import AssetEntry, Transaction
from csv_export.constants import STANDARD_CSV_HEADER, multi_asset_header
from csv_export.formatting import escape_csv_field, format_date, format_quantity


def asset_group_width(transactions: Sequence[Transaction]) -> int:
    """Asset groups needed by the widest row (1 without multi-asset rows)."""
    width = 1
    for tx in transactions:
        width = max(width, 1 + len(tx.additional_received), 1 + len(tx.additional_sent))
    return width


def _trailing_fields(tx: Transaction) -> list[str]:
    return [
        format_quantity(tx.fee_amount),
        escape_csv_field(tx.fee_currency),
        escape_csv_field(tx.tx_hash),
        escape_csv_field(tx.notes),
        escape_csv_field(tx.tag),
    ]


def _entry_fields(entry: AssetEntry) -> list[str]:
    return [
        format_quantity(entry.quantity),
        escape_csv_field(entry.currency),
        format_quantity(entry.fiat_amount),
    ]


def _primary_fields(tx: Transaction) -> list[str]:
    return [
        format_quantity(tx.received_quantity),
        escape_csv_field(tx.received_currency),
        format_quantity(tx.received_fiat_amount),
        format_quantity(tx.sent_quantity),
        escape_csv_field(tx.sent_currency),
        format_quantity(tx.sent_fiat_amount),
    ]


def transaction_to_row(tx: Transaction) -> str:
    """One row of the single-asset layout."""
    return ",".join([format_date(tx.date), *_primary_fields(tx), *_trailing_fields(tx)])


def transaction_to_multi_asset_row(tx: Transaction, width: int) -> str:
    """One row of the numbered layout, padded to ``width`` groups."""
    fields = [format_date(tx.date), *_primary_fields(tx)]
    empty = ["", "", ""]
    for index in range(width - 1):
        received = tx.additional_received[index] if index < len(tx.additional_received) else None
        sent = tx.additional_sent[index] if index < len(tx.additional_sent) else None
        fields.extend(_entry_fields(received) if received else empty)
        fields.extend(_entry_fields(sent) if sent else empty)
    fields.extend(_trailing_fields(tx))
    return ",".join(fields)


def render_standard_csv(transactions: Sequence[Transaction]) -> str:
    """
    Render transactions as import CSV text.

    Lines are joined with ``\\n`` without a trailing newline; an empty
    list renders as the header alone.
    """
    if any(tx.is_multi_asset for tx in transactions):
        width = asset_group_width(transactions)
        lines = [multi_asset_header(width)]
        lines.extend(transaction_to_multi_asset_row(tx, width) for tx in transactions)
    else:
        lines = [STANDARD_CSV_HEADER]
        lines.extend(transaction_to_row(tx) for tx in transactions)
    return "\n".join(lines)
