"""Perpetuals CSV renderer (fixed 9-column layout)."""

from typing import Sequence

from chain_adapters.models import PerpTransaction
from csv_export.constants import PERP_CSV_HEADER
from csv_export.formatting import escape_csv_field, format_date, format_pnl, format_quantity


def perp_to_row(tx: PerpTransaction) -> str:
    """Only P&L keeps its sign."""
    return ",".join([
        format_date(tx.date),
        escape_csv_field(tx.asset),
        format_quantity(tx.amount),
        format_quantity(tx.fee),
        format_pnl(tx.pnl),
        escape_csv_field(tx.payment_token),
        escape_csv_field(tx.notes),
        escape_csv_field(tx.tx_hash),
        tx.tag.value,
    ])


def render_perp_csv(transactions: Sequence[PerpTransaction]) -> str:
    """Render perpetuals rows; an empty list renders as the header alone."""
    return "\n".join([PERP_CSV_HEADER, *(perp_to_row(tx) for tx in transactions)])
