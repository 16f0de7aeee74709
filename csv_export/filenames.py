"""Download filename convention."""

from datetime import datetime, timezone
from typing import Optional

from chain_adapters.models import ensure_utc


def build_csv_filename(
    chain: str,
    address: str,
    timestamp: Optional[datetime] = None,
    variant: str = "standard",
) -> str:
    """``awakenfetch_{chain}_{address[:8]}_{YYYYMMDD}[_perps].csv`` (UTC date)."""
    if variant not in ("standard", "perps"):
        raise ValueError(f"Unknown CSV variant: {variant}")
    moment = ensure_utc(timestamp) if timestamp else datetime.now(timezone.utc)
    suffix = "_perps" if variant == "perps" else ""
    return f"awakenfetch_{chain.lower()}_{address[:8]}_{moment:%Y%m%d}{suffix}.csv"
