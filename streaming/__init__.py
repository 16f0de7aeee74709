"""
Streaming Package - incremental NDJSON delivery of fetched transactions.

- producer: adapter fetch -> NDJSON lines (server side)
- consumer: NDJSON lines -> accumulated transactions (client side)
"""

from streaming.consumer import (
    MAX_RETRIES,
    RETRY_BASE_DELAY,
    CancellationToken,
    FetchState,
    FetchStatus,
    StreamingFetchClient,
    build_query_params,
)
from streaming.messages import (
    NDJSON_CONTENT_TYPE,
    NdjsonLineDecoder,
    batch_message,
    done_message,
    encode_message,
    error_message,
    meta_message,
    parse_message,
)
from streaming.producer import stream_transactions


__all__ = [
    "MAX_RETRIES",
    "NDJSON_CONTENT_TYPE",
    "RETRY_BASE_DELAY",
    "CancellationToken",
    "FetchState",
    "FetchStatus",
    "NdjsonLineDecoder",
    "StreamingFetchClient",
    "batch_message",
    "build_query_params",
    "done_message",
    "encode_message",
    "error_message",
    "meta_message",
    "parse_message",
    "stream_transactions",
]
