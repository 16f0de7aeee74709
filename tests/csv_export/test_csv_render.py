"""
CSV Engine Tests.

Byte-exact output of the standard, multi-asset and perpetuals layouts.
"""

from datetime import datetime, timedelta, timezone

import pytest

from chain_adapters.models import AssetEntry, PerpTag, PerpTransaction, Transaction, TransactionType
from csv_export import (
    PERP_CSV_HEADER,
    STANDARD_CSV_HEADER,
    build_csv_filename,
    escape_csv_field,
    format_date,
    format_pnl,
    format_quantity,
    render_perp_csv,
    render_standard_csv,
)


WHEN = datetime(2025, 1, 15, 14, 30, tzinfo=timezone.utc)


# ============================================================
# FORMATTING PRIMITIVES
# ============================================================

class TestFormatQuantity:
    """Plain-decimal quantities."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (9.999, "9.999"),
            (1e-8, "0.00000001"),
            (1e12, "1000000000000"),
            (0.123456789, "0.12345678"),
            (2.50, "2.5"),
            (-0.0, "0"),
            (-3.25, "3.25"),
            (100, "100"),
        ],
    )
    def test_values(self, value, expected):
        assert format_quantity(value) == expected

    @pytest.mark.parametrize("value", [None, float("nan"), float("inf"), float("-inf")])
    def test_non_finite_is_empty(self, value):
        assert format_quantity(value) == ""

    def test_below_precision_truncates_to_zero(self):
        assert format_quantity(1e-9) == "0"

    def test_pnl_keeps_sign(self):
        assert format_pnl(-12.5) == "-12.5"
        assert format_pnl(3) == "3"


class TestFormatDate:
    def test_zero_padded_utc(self):
        assert format_date(datetime(2025, 3, 4, 5, 6, 7, tzinfo=timezone.utc)) == "03/04/2025 05:06:07"

    def test_converts_offset_to_utc(self):
        moment = datetime(2025, 1, 1, 1, 0, tzinfo=timezone(timedelta(hours=3)))
        assert format_date(moment) == "12/31/2024 22:00:00"


class TestEscape:
    def test_plain(self):
        assert escape_csv_field("hello") == "hello"

    def test_comma_and_quote(self):
        assert escape_csv_field('a,"b"') == '"a,""b"""'

    def test_newline(self):
        assert escape_csv_field("a\nb") == '"a\nb"'


# ============================================================
# RENDERERS
# ============================================================

class TestStandardCsv:
    """Standard ledger layout."""

    def test_empty_is_header_only(self):
        assert render_standard_csv([]) == STANDARD_CSV_HEADER

    def test_send_scenario(self):
        tx = Transaction(
            date=WHEN,
            type=TransactionType.SEND,
            sent_quantity=9.999,
            sent_currency="USDC",
            fee_amount=0.001,
            fee_currency="ETH",
            tx_hash="0xabc123",
        )

        lines = render_standard_csv([tx]).split("\n")

        assert lines == [STANDARD_CSV_HEADER, "01/15/2025 14:30:00,,,,9.999,USDC,,0.001,ETH,0xabc123,,"]

    def test_notes_with_comma_are_quoted(self):
        tx = Transaction(date=WHEN, type=TransactionType.OTHER, notes="Swap A, B")

        assert render_standard_csv([tx]).endswith(',"Swap A, B",')

    def test_multi_asset_header_and_padding(self, sample_transactions):
        lp = Transaction(
            date=WHEN,
            type=TransactionType.LP_ADD,
            sent_quantity=1.0,
            sent_currency="OSMO",
            received_quantity=0.5,
            received_currency="GAMM-1",
            additional_sent=(AssetEntry(2.0, "ATOM"), AssetEntry(3.0, "ION")),
        )

        lines = render_standard_csv([*sample_transactions, lp]).split("\n")
        header = lines[0].split(",")

        assert header[1:7] == [
            "Received Quantity 1",
            "Received Currency 1",
            "Received Fiat Amount 1",
            "Sent Quantity 1",
            "Sent Currency 1",
            "Sent Fiat Amount 1",
        ]
        assert "Sent Currency 3" in header
        assert header[-5:] == ["Fee Amount", "Fee Currency", "Transaction Hash", "Notes", "Tag"]
        assert len(header) == 1 + 3 * 6 + 5
        for line in lines[1:]:
            assert len(line.split(",")) == len(header)
        assert lines[3].split(",")[7:14] == ["", "", "", "2", "ATOM", "", ""]

    def test_render_is_idempotent(self, sample_transactions):
        assert render_standard_csv(sample_transactions) == render_standard_csv(sample_transactions)

    def test_negative_quantities_render_as_magnitude(self):
        tx = Transaction(date=WHEN, type=TransactionType.SEND, sent_quantity=-4.0, sent_currency="KAS")

        assert ",4,KAS," in render_standard_csv([tx])


class TestPerpCsv:
    """Perpetuals layout."""

    def test_empty_is_header_only(self):
        assert render_perp_csv([]) == PERP_CSV_HEADER

    def test_only_pnl_is_signed(self):
        row = PerpTransaction(
            date=datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc),
            asset="BTC",
            amount=-0.5,
            tag=PerpTag.CLOSE_POSITION,
            pnl=-12.34,
            fee=-0.25,
            payment_token="USDC",
            notes="Close short BTC",
            tx_hash="0x1",
        )

        line = render_perp_csv([row]).split("\n")[1]

        assert line == "05/01/2024 10:00:00,BTC,0.5,0.25,-12.34,USDC,Close short BTC,0x1,close_position"

    def test_open_position_with_empty_payment_token(self):
        row = PerpTransaction(date=WHEN, asset="ETH", amount=2, tag=PerpTag.OPEN_POSITION)

        assert render_perp_csv([row]).split("\n")[1] == "01/15/2025 14:30:00,ETH,2,,0,,,,open_position"


class TestFilename:
    def test_standard_and_perps(self):
        stamp = datetime(2025, 2, 3, tzinfo=timezone.utc)

        assert build_csv_filename("Kaspa", "kaspa:qqabcdef", stamp) == "awakenfetch_kaspa_kaspa:qq_20250203.csv"
        assert build_csv_filename("variational", "0x12345678ff", stamp, variant="perps") == (
            "awakenfetch_variational_0x123456_20250203_perps.csv"
        )

    def test_unknown_variant(self):
        with pytest.raises(ValueError):
            build_csv_filename("kaspa", "kaspa:qq", variant="spot")
