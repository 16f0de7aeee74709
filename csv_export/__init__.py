"""
CSV Export Package - import-ready CSV text from canonical records.

Two layouts:
- Standard ledger rows (single- or multi-asset header)
- Perpetuals rows
"""

from csv_export.constants import (
    PERP_CSV_COLUMNS,
    PERP_CSV_HEADER,
    PERP_TAGS,
    STANDARD_CSV_COLUMNS,
    STANDARD_CSV_HEADER,
    multi_asset_columns,
    multi_asset_header,
)
from csv_export.filenames import build_csv_filename
from csv_export.formatting import escape_csv_field, format_date, format_pnl, format_quantity
from csv_export.perp import render_perp_csv
from csv_export.standard import render_standard_csv


__all__ = [
    "PERP_CSV_COLUMNS",
    "PERP_CSV_HEADER",
    "PERP_TAGS",
    "STANDARD_CSV_COLUMNS",
    "STANDARD_CSV_HEADER",
    "build_csv_filename",
    "escape_csv_field",
    "format_date",
    "format_pnl",
    "format_quantity",
    "multi_asset_columns",
    "multi_asset_header",
    "render_perp_csv",
    "render_standard_csv",
]
