"""
Client side of the stream: incrementally assemble a fetch result.

State machine:

    idle -> loading -> streaming -> success
                    \-> error (after retries are exhausted)

An in-band ``error`` message, a stream that ends without ``done`` and
network failures all trigger exponential back-off retries. A stream
endpoint that answers with a non-OK status or a non-NDJSON body is
replaced by a single call to the non-streaming endpoint.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union
from urllib.parse import quote

import aiohttp

from chain_adapters.classification import sort_by_date
from chain_adapters.exceptions import FetchError, StreamProtocolError
from chain_adapters.models import Transaction, ensure_utc, parse_iso8601
from streaming.messages import NdjsonLineDecoder, parse_message
from transaction_cache.cache import TransactionCache, build_cache_key


logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0

DateInput = Union[str, date, datetime, None]


class FetchStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    STREAMING = "streaming"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class FetchState:
    """Snapshot published to ``on_state_change`` after every transition."""
    status: FetchStatus = FetchStatus.IDLE
    transactions: list[Transaction] = field(default_factory=list)
    transaction_count: int = 0
    estimated_total: Optional[int] = None
    error: Optional[str] = None
    warnings: list[str] = field(default_factory=list)
    retry_count: int = 0
    from_cache: bool = False


class CancellationToken:
    """Flag checked at every suspension point of a fetch."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class _Fallback(Exception):
    """Stream endpoint unusable; switch to the non-streaming call."""


def _to_datetime(value: Union[str, date, datetime]) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return parse_iso8601(value)


def _iso_millis(value: datetime) -> str:
    return ensure_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_query_params(
    address: str,
    from_date: DateInput = None,
    to_date: DateInput = None,
) -> dict[str, str]:
    """
    Query parameters for the proxy endpoints.

    ``toDate`` is moved to the last millisecond of its UTC day so the
    whole day is included.
    """
    params = {"address": address}
    if from_date:
        params["fromDate"] = _iso_millis(_to_datetime(from_date))
    if to_date:
        end_of_day = _to_datetime(to_date).replace(hour=23, minute=59, second=59, microsecond=999000)
        params["toDate"] = _iso_millis(end_of_day)
    return params


class StreamingFetchClient:
    """
    Consumer of the ``/api/proxy/{chain}/stream`` endpoint.

    Usage:
        async with StreamingFetchClient("http://127.0.0.1:8000", cache) as client:
            state = await client.fetch_transactions(address, "kaspa")
            if state.status is FetchStatus.SUCCESS:
                print(len(state.transactions))
    """

    def __init__(
        self,
        base_url: str,
        cache: Optional[TransactionCache] = None,
        session: Optional[aiohttp.ClientSession] = None,
        max_retries: int = MAX_RETRIES,
        base_delay: float = RETRY_BASE_DELAY,
        on_state_change: Optional[Callable[[FetchState], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._cache = cache
        self._session = session
        self._owns_session = session is None
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._on_state_change = on_state_change
        self._sleep = sleep

        self._state = FetchState()
        self._token: Optional[CancellationToken] = None
        self._last_request: Optional[tuple[str, str, DateInput, DateInput]] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    # ─────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────

    @property
    def state(self) -> FetchState:
        return self._state

    @property
    def can_retry(self) -> bool:
        """True in the error state while retries remain."""
        return (
            self._state.status is FetchStatus.ERROR
            and self._state.retry_count < self._max_retries
        )

    def _update(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        if self._on_state_change is not None:
            self._on_state_change(self._state)

    def _new_token(self) -> CancellationToken:
        if self._token is not None:
            self._token.cancel()
        self._token = CancellationToken()
        return self._token

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    async def fetch_transactions(
        self,
        address: str,
        chain_id: str,
        from_date: DateInput = None,
        to_date: DateInput = None,
    ) -> FetchState:
        """
        Fetch through the cache, then the stream, then the fallback.

        A new fetch cancels any fetch still in flight on this client.
        """
        token = self._new_token()
        self._last_request = (address, chain_id, from_date, to_date)

        cache_key = build_cache_key(chain_id, address, from_date, to_date)
        cached = self._cache.get(cache_key) if self._cache is not None else None
        if cached is not None:
            logger.info(f"[{chain_id}] Cache hit ({len(cached)} transactions)")
            self._state = FetchState()
            self._update(
                status=FetchStatus.SUCCESS,
                transactions=cached,
                transaction_count=len(cached),
                from_cache=True,
            )
            return self._state

        self._state = FetchState()
        self._update(status=FetchStatus.LOADING)
        await self._run(address, chain_id, from_date, to_date, 0, token)
        return self._state

    async def retry(self) -> FetchState:
        """Resume the last failed fetch from its retry count."""
        if self._last_request is None or not self.can_retry:
            return self._state

        token = self._new_token()
        self._update(status=FetchStatus.LOADING, error=None)
        address, chain_id, from_date, to_date = self._last_request
        await self._run(address, chain_id, from_date, to_date, self._state.retry_count, token)
        return self._state

    def cancel(self) -> None:
        """Abort the in-flight fetch, keeping any partial result."""
        if self._token is not None:
            self._token.cancel()
        status = FetchStatus.SUCCESS if self._state.transactions else FetchStatus.IDLE
        self._update(status=status, estimated_total=None)

    def reset(self) -> None:
        """Abort and return to idle."""
        if self._token is not None:
            self._token.cancel()
        self._last_request = None
        self._state = FetchState()
        if self._on_state_change is not None:
            self._on_state_change(self._state)

    # ─────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────

    async def _backoff(self, attempt: int, message: str, token: CancellationToken) -> bool:
        """Wait before the next attempt. False when retries are exhausted."""
        if attempt >= self._max_retries:
            self._update(status=FetchStatus.ERROR, error=message, retry_count=attempt)
            logger.warning(f"Fetch failed after {attempt} retries: {message}")
            return False

        delay = self._base_delay * (2 ** attempt)
        warning = f"Retry {attempt + 1}/{self._max_retries}: {message}. Retrying in {delay:.1f}s"
        logger.info(warning)
        self._update(warnings=self._state.warnings + [warning], retry_count=attempt + 1)
        await self._sleep(delay)
        return not token.cancelled

    async def _run(
        self,
        address: str,
        chain_id: str,
        from_date: DateInput,
        to_date: DateInput,
        attempt: int,
        token: CancellationToken,
    ) -> None:
        params = build_query_params(address, from_date, to_date)
        cache_key = build_cache_key(chain_id, address, from_date, to_date)
        path = f"{self.base_url}/api/proxy/{quote(chain_id, safe='')}"

        while True:
            try:
                await self._stream_once(f"{path}/stream", params, cache_key, token)
                return
            except _Fallback as e:
                if token.cancelled:
                    return
                logger.info(f"[{chain_id}] Stream unavailable ({e}), using non-streaming endpoint")
                await self._fallback(path, params, cache_key, attempt, token)
                return
            except (StreamProtocolError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                if token.cancelled:
                    return
                message = e.message if isinstance(e, StreamProtocolError) else (
                    str(e) or e.__class__.__name__
                )
                if not await self._backoff(attempt, message, token):
                    return
                attempt += 1

    async def _stream_once(
        self,
        url: str,
        params: dict[str, str],
        cache_key: str,
        token: CancellationToken,
    ) -> None:
        session = await self._get_session()
        accumulated: list[Transaction] = []

        async with session.get(url, params=params) as response:
            if token.cancelled:
                return
            if response.status < 200 or response.status >= 300:
                raise _Fallback(f"HTTP {response.status}")
            content_type = response.headers.get("Content-Type", "")
            if "ndjson" not in content_type:
                raise _Fallback(f"content type {content_type or 'missing'}")

            decoder = NdjsonLineDecoder()
            async for chunk in response.content.iter_any():
                if token.cancelled:
                    return
                for line in decoder.feed(chunk):
                    if self._handle_line(line, accumulated, cache_key, token):
                        return
            if token.cancelled:
                return
            for line in decoder.flush():
                if self._handle_line(line, accumulated, cache_key, token):
                    return

        raise StreamProtocolError("Stream ended before completion")

    def _handle_line(
        self,
        line: str,
        accumulated: list[Transaction],
        cache_key: str,
        token: CancellationToken,
    ) -> bool:
        """Apply one stream line. True once the stream reached ``done``."""
        if token.cancelled:
            return True
        message = parse_message(line)
        if message is None:
            return False

        kind = message["type"]
        if kind == "meta":
            self._update(estimated_total=message.get("estimatedTotal"))
        elif kind == "batch":
            batch = []
            for item in message.get("transactions") or []:
                try:
                    batch.append(Transaction.from_dict(item))
                except (KeyError, TypeError, ValueError) as e:
                    logger.debug(f"Skipping undecodable streamed transaction: {e}")
            accumulated.extend(batch)
            self._update(
                status=FetchStatus.STREAMING,
                transactions=list(accumulated),
                transaction_count=len(accumulated),
            )
        elif kind == "done":
            self._complete(sort_by_date(accumulated), cache_key)
            return True
        else:
            raise StreamProtocolError(str(message.get("error") or "Unknown stream error"))
        return False

    def _complete(self, transactions: list[Transaction], cache_key: str) -> None:
        if self._cache is not None:
            self._cache.set(cache_key, transactions)
        self._update(
            status=FetchStatus.SUCCESS,
            transactions=transactions,
            transaction_count=len(transactions),
            error=None,
        )

    async def _fallback(
        self,
        url: str,
        params: dict[str, str],
        cache_key: str,
        attempt: int,
        token: CancellationToken,
    ) -> None:
        while True:
            try:
                transactions = await self._fetch_once(url, params)
            except FetchError as e:
                if token.cancelled:
                    return
                retryable = e.status_code is None or e.status_code == 429 or e.status_code >= 500
                if not retryable:
                    self._update(status=FetchStatus.ERROR, error=e.message, retry_count=attempt)
                    return
                if not await self._backoff(attempt, e.message, token):
                    return
                attempt += 1
                continue

            if token.cancelled:
                return
            self._complete(sort_by_date(transactions), cache_key)
            return

    async def _fetch_once(self, url: str, params: dict[str, str]) -> list[Transaction]:
        """One non-streaming call. Raises FetchError (status None for network errors)."""
        session = await self._get_session()
        try:
            async with session.get(url, params=params) as response:
                status = response.status
                raw = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(str(e) or e.__class__.__name__, request_url=url, original_error=e)

        text = raw.decode("utf-8", errors="replace")
        try:
            body = json.loads(raw.decode("utf-8")) if raw else {}
        except ValueError:
            body = {}

        if status < 200 or status >= 300:
            message = body.get("error") if isinstance(body, dict) else None
            raise FetchError(
                message or f"Request failed with status {status}",
                status_code=status,
                response_body=text[:500],
                request_url=url,
            )

        if not isinstance(body, dict) or not isinstance(body.get("transactions"), list):
            raise FetchError("Malformed response: missing transactions", status_code=status, request_url=url)

        transactions = []
        for item in body["transactions"]:
            try:
                transactions.append(Transaction.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping undecodable transaction: {e}")
        return transactions

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Cancel any fetch and close the owned session."""
        if self._token is not None:
            self._token.cancel()
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "StreamingFetchClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
