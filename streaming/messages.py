"""
NDJSON stream messages.

One JSON object per line:

    {"type": "meta",  "estimatedTotal": N}
    {"type": "batch", "transactions": [...]}
    {"type": "done",  "total": N}
    {"type": "error", "error": "..."}
"""

import codecs
import json
import logging
from typing import Any, Iterable, Optional

from chain_adapters.models import Transaction


logger = logging.getLogger(__name__)

NDJSON_CONTENT_TYPE = "application/x-ndjson"
MESSAGE_TYPES = ("meta", "batch", "done", "error")


def meta_message(estimated_total: int) -> dict[str, Any]:
    return {"type": "meta", "estimatedTotal": int(estimated_total)}


def batch_message(transactions: Iterable[Transaction]) -> dict[str, Any]:
    return {"type": "batch", "transactions": [tx.to_dict() for tx in transactions]}


def done_message(total: int) -> dict[str, Any]:
    return {"type": "done", "total": int(total)}


def error_message(error: str) -> dict[str, Any]:
    return {"type": "error", "error": error}


def encode_message(message: dict[str, Any]) -> bytes:
    """Serialize one message as a UTF-8 NDJSON line."""
    return (json.dumps(message, ensure_ascii=False) + "\n").encode("utf-8")


def parse_message(line: str) -> Optional[dict[str, Any]]:
    """
    Parse one complete line.

    Returns None for blank, malformed or unknown-type lines so the
    reader can skip them.
    """
    text = line.strip()
    if not text:
        return None
    try:
        message = json.loads(text)
    except ValueError:
        logger.debug(f"Skipping malformed stream line: {text[:80]!r}")
        return None
    if not isinstance(message, dict) or message.get("type") not in MESSAGE_TYPES:
        logger.debug(f"Skipping unknown stream message: {text[:80]!r}")
        return None
    return message


class NdjsonLineDecoder:
    """
    Incremental byte-chunk to line splitter.

    Multi-byte characters and lines may straddle chunk boundaries; the
    trailing partial line stays buffered until its newline arrives.
    Invalid UTF-8 becomes U+FFFD, so a damaged line fails JSON parsing
    and is skipped.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[str]:
        """Add a chunk and return the complete, non-blank lines it finished."""
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return [line for line in lines if line.strip()]

    def flush(self) -> list[str]:
        """Drain what is left at end of stream."""
        self._buffer += self._decoder.decode(b"", final=True)
        rest, self._buffer = self._buffer, ""
        return [rest] if rest.strip() else []

    @property
    def pending(self) -> str:
        return self._buffer
