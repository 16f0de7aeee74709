"""
NDJSON Message and Line Decoder Tests.
"""

import json

from streaming.messages import (
    NdjsonLineDecoder,
    batch_message,
    done_message,
    encode_message,
    error_message,
    meta_message,
    parse_message,
)


class TestMessages:
    def test_encode_is_one_line(self, sample_transactions):
        line = encode_message(batch_message(sample_transactions))

        assert line.endswith(b"\n")
        assert line.count(b"\n") == 1
        decoded = json.loads(line)
        assert decoded["type"] == "batch"
        assert decoded["transactions"][0]["date"] == "2025-01-15T14:30:00Z"

    def test_shapes(self):
        assert meta_message(12) == {"type": "meta", "estimatedTotal": 12}
        assert done_message(3) == {"type": "done", "total": 3}
        assert error_message("boom") == {"type": "error", "error": "boom"}

    def test_parse_skips_malformed_and_unknown(self):
        assert parse_message("") is None
        assert parse_message("{broken") is None
        assert parse_message('{"type": "surprise"}') is None
        assert parse_message("[1, 2]") is None
        assert parse_message('  {"type": "done", "total": 0}  ') == {"type": "done", "total": 0}


class TestLineDecoder:
    """Partial lines and split characters across chunks."""

    def test_buffers_partial_line(self):
        decoder = NdjsonLineDecoder()

        assert decoder.feed(b'{"type":"do') == []
        assert decoder.feed(b'ne","total":1}\n{"type"') == ['{"type":"done","total":1}']
        assert decoder.pending == '{"type"'

    def test_multibyte_character_split(self):
        encoded = '{"notes":"café"}\n'.encode("utf-8")
        split = encoded.index(b"\xc3") + 1
        decoder = NdjsonLineDecoder()

        lines = decoder.feed(encoded[:split]) + decoder.feed(encoded[split:])

        assert lines == ['{"notes":"café"}']

    def test_blank_lines_dropped(self):
        assert NdjsonLineDecoder().feed(b"\n\n  \n") == []

    def test_flush_returns_unterminated_tail(self):
        decoder = NdjsonLineDecoder()
        decoder.feed(b'{"type":"done","total":0}')

        assert decoder.flush() == ['{"type":"done","total":0}']
        assert decoder.flush() == []

    def test_invalid_utf8_does_not_raise(self):
        decoder = NdjsonLineDecoder()

        lines = decoder.feed(b'{"type":"done","total":\xff}\n{"type":"done","total":1}\n')

        assert len(lines) == 2
        assert parse_message(lines[0]) is None
        assert parse_message(lines[1]) == {"type": "done", "total": 1}
