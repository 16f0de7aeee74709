"""
Server side of the stream: turn an adapter fetch into NDJSON lines.

The fetch runs as its own task and reports pages through the
FetchOptions callbacks; each callback enqueues a message that the
generator yields as soon as it is available.
"""

import asyncio
import contextlib
import logging
from typing import Any, AsyncIterator, Optional

from chain_adapters.base import BaseChainAdapter
from chain_adapters.exceptions import ChainAdapterError
from chain_adapters.models import FetchOptions, Transaction
from streaming.messages import (
    batch_message,
    done_message,
    encode_message,
    error_message,
    meta_message,
)


logger = logging.getLogger(__name__)

_FINISHED = object()


async def stream_transactions(
    adapter: BaseChainAdapter,
    address: str,
    options: Optional[FetchOptions] = None,
) -> AsyncIterator[bytes]:
    """
    Yield encoded stream messages for one adapter fetch.

    Sequence: optional ``meta``, zero or more ``batch``, then exactly one
    ``done`` or ``error``. If the adapter never reported progress, the
    whole result goes out as a single batch before ``done``. Closing the
    generator early cancels the fetch.
    """
    options = options or FetchOptions()
    queue: asyncio.Queue = asyncio.Queue()

    def on_progress(batch: list[Transaction]) -> None:
        if batch:
            queue.put_nowait(batch_message(batch))

    def on_estimated_total(total: int) -> None:
        queue.put_nowait(meta_message(total))

    options.on_progress = on_progress
    options.on_estimated_total = on_estimated_total

    task = asyncio.create_task(adapter.fetch_transactions(address, options))
    task.add_done_callback(lambda _: queue.put_nowait(_FINISHED))

    sent = 0
    try:
        while True:
            message: Any = await queue.get()
            if message is _FINISHED:
                break
            if message["type"] == "batch":
                sent += len(message["transactions"])
            yield encode_message(message)

        try:
            transactions = task.result()
        except ChainAdapterError as e:
            logger.warning(f"[{adapter.chain_id}] Stream fetch failed: {e}")
            yield encode_message(error_message(e.message))
            return
        except ValueError as e:
            yield encode_message(error_message(str(e)))
            return
        except Exception as e:
            logger.error(f"[{adapter.chain_id}] Unexpected stream failure: {e}", exc_info=True)
            yield encode_message(error_message(str(e) or "Unknown error occurred"))
            return

        if sent == 0 and transactions:
            yield encode_message(batch_message(transactions))
        yield encode_message(done_message(len(transactions)))
    finally:
        if not task.done():
            task.cancel()
            logger.info(f"[{adapter.chain_id}] Stream closed early, fetch cancelled")
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await task
