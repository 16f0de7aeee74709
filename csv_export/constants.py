"""Column layouts of the import CSV formats."""

STANDARD_CSV_COLUMNS = (
    "Date",
    "Received Quantity",
    "Received Currency",
    "Received Fiat Amount",
    "Sent Quantity",
    "Sent Currency",
    "Sent Fiat Amount",
    "Fee Amount",
    "Fee Currency",
    "Transaction Hash",
    "Notes",
    "Tag",
)

STANDARD_CSV_HEADER = ",".join(STANDARD_CSV_COLUMNS)

# Trailing columns shared by the single- and multi-asset layouts
STANDARD_TRAILING_COLUMNS = STANDARD_CSV_COLUMNS[7:]

PERP_CSV_COLUMNS = (
    "Date",
    "Asset",
    "Amount",
    "Fee",
    "P&L",
    "Payment Token",
    "Notes",
    "Transaction Hash",
    "Tag",
)

PERP_CSV_HEADER = ",".join(PERP_CSV_COLUMNS)

PERP_TAGS = ("open_position", "close_position", "funding_payment")


def multi_asset_columns(n: int) -> tuple[str, ...]:
    """The six numbered columns of asset group ``n`` (1-based)."""
    return (
        f"Received Quantity {n}",
        f"Received Currency {n}",
        f"Received Fiat Amount {n}",
        f"Sent Quantity {n}",
        f"Sent Currency {n}",
        f"Sent Fiat Amount {n}",
    )


def multi_asset_header(width: int) -> str:
    """Numbered header sized for ``width`` asset groups."""
    columns = ["Date"]
    for n in range(1, width + 1):
        columns.extend(multi_asset_columns(n))
    columns.extend(STANDARD_TRAILING_COLUMNS)
    return ",".join(columns)
