"""
Formatting primitives shared by the CSV renderers.

Quantities are rendered as plain decimals (never exponent notation),
truncated to 8 fractional digits with trailing zeros stripped.
"""

import math
from datetime import datetime
from decimal import ROUND_DOWN, Context, Decimal
from typing import Any, Optional

from chain_adapters.models import ensure_utc


MAX_FRACTION_DIGITS = 8
_QUANTUM = Decimal(1).scaleb(-MAX_FRACTION_DIGITS)
# Wide enough for any finite float plus 8 fractional digits
_CONTEXT = Context(prec=400)


def format_date(value: datetime) -> str:
    """``MM/DD/YYYY HH:MM:SS`` in UTC (naive values are taken as UTC)."""
    moment = ensure_utc(value)
    return (
        f"{moment.month:02d}/{moment.day:02d}/{moment.year:04d} "
        f"{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )


def format_quantity(value: Optional[Any], signed: bool = False) -> str:
    """
    Render a number for the CSV.

    Args:
        value: Number (None, NaN and infinities render as "")
        signed: Keep the sign (P&L only); otherwise emit the magnitude

    Returns:
        Plain decimal string with at most 8 fractional digits
    """
    if value is None:
        return ""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return ""
    if math.isnan(number) or math.isinf(number):
        return ""

    amount = Decimal(repr(number))
    if not signed:
        amount = abs(amount)
    amount = amount.quantize(_QUANTUM, rounding=ROUND_DOWN, context=_CONTEXT)
    if amount.is_zero():
        return "0"

    text = format(amount, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_pnl(value: Optional[Any]) -> str:
    """Signed variant of format_quantity."""
    return format_quantity(value, signed=True)


def escape_csv_field(value: Optional[str]) -> str:
    """Quote a field containing a comma, quote or line break."""
    if value is None:
        return ""
    text = str(value)
    if any(ch in text for ch in (",", '"', "\n", "\r")):
        return '"' + text.replace('"', '""') + '"'
    return text
