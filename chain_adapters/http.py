"""
Resilient Fetch Layer - JSON over HTTP with retry, 429 back-off and throttling.

Retry policy:
- Network/transport failures retry with exponential back-off
  (``base_delay * 2**attempt``) for up to ``max_retries`` attempts.
- HTTP 429 never consumes a normal attempt. It draws on a separate,
  larger budget and waits ``Retry-After`` (capped) or an exponential
  delay capped at a few seconds. Exhausting it raises RateLimitError.
- Any other non-2xx status raises FetchError immediately.

Throttling is proactive: requests sharing a throttle key are spaced at
least ``throttle_interval`` seconds apart.
"""

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Optional

import aiohttp

from chain_adapters.exceptions import FetchError, RateLimitError


logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_RATE_LIMIT_RETRIES = 10
RATE_LIMIT_BASE_DELAY = 0.5
RATE_LIMIT_MAX_DELAY = 8.0
DEFAULT_TIMEOUT = 30.0


class RateLimiter:
    """
    Per-key proactive throttle.

    Holds the "last call" time of every throttle key. Access to one key is
    serialized by its own lock so two concurrent callers never both read a
    stale timestamp.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._last_call: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def wait(self, key: str, interval: float) -> float:
        """
        Sleep until ``interval`` seconds have passed since the last call
        under ``key``, then stamp the key.

        Returns:
            Seconds actually waited
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            waited = 0.0
            last = self._last_call.get(key)
            if last is not None:
                remaining = interval - (self._clock() - last)
                if remaining > 0:
                    await self._sleep(remaining)
                    waited = remaining
            self._last_call[key] = self._clock()
            return waited

    def mark(self, key: str) -> None:
        """Stamp a key without waiting."""
        self._last_call[key] = self._clock()

    def last_call(self, key: str) -> Optional[float]:
        """Get the last call time of a key."""
        return self._last_call.get(key)

    def reset(self) -> None:
        """Forget every key."""
        self._last_call.clear()
        self._locks.clear()


def rate_limit_delay(hits: int, retry_after: Optional[str]) -> float:
    """
    Delay before retrying the ``hits``-th consecutive 429.

    A numeric ``Retry-After`` header wins (capped); otherwise exponential
    back-off from RATE_LIMIT_BASE_DELAY, also capped.
    """
    if retry_after is not None:
        try:
            seconds = float(retry_after)
        except ValueError:
            seconds = None
        if seconds is not None and seconds >= 0:
            return min(seconds, RATE_LIMIT_MAX_DELAY)
    return min(RATE_LIMIT_BASE_DELAY * (2 ** (hits - 1)), RATE_LIMIT_MAX_DELAY)


class ResilientFetcher:
    """
    JSON fetcher shared by every adapter.

    Usage:
        async with ResilientFetcher() as fetcher:
            data = await fetcher.fetch_json(
                "https://api.kaspa.org/info/blockdag",
                throttle_key="api.kaspa.org",
                throttle_interval=0.2,
                error_label="Kaspa API",
            )
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_rate_limit_retries: int = DEFAULT_MAX_RATE_LIMIT_RETRIES,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout
        self._max_rate_limit_retries = max_rate_limit_retries
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._sleep = sleep
        self.rate_limiter = rate_limiter or RateLimiter(sleep=sleep)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
            self._owns_session = True
        return self._session

    async def fetch_json(
        self,
        url: str,
        *,
        headers: Optional[dict[str, str]] = None,
        method: str = "GET",
        body: Optional[str] = None,
        params: Optional[dict[str, Any]] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        throttle_key: Optional[str] = None,
        throttle_interval: Optional[float] = None,
        error_label: str = "API",
    ) -> Any:
        """
        Fetch and decode a JSON document.

        Args:
            url: Request URL
            headers: Extra headers (``accept: application/json`` is default)
            method: HTTP method
            body: Raw request body
            params: Query string parameters
            max_retries: Attempts allowed for network failures (fetcher default)
            base_delay: Back-off base in seconds (fetcher default)
            throttle_key: Key sharing a proactive spacing budget
            throttle_interval: Minimum seconds between calls under the key
            error_label: Prefix for error messages (e.g. "Kaspa API")

        Raises:
            RateLimitError: 429 budget exhausted
            FetchError: Non-429 HTTP error, bad JSON, or network failure
                after all attempts
        """
        max_retries = self._max_retries if max_retries is None else max_retries
        base_delay = self._base_delay if base_delay is None else base_delay
        session = await self._get_session()
        request_headers = {"accept": "application/json", **(headers or {})}

        attempt = 0
        rate_limit_hits = 0
        last_error: Optional[Exception] = None

        while attempt < max_retries:
            if throttle_key:
                if throttle_interval:
                    await self.rate_limiter.wait(throttle_key, throttle_interval)
                else:
                    self.rate_limiter.mark(throttle_key)

            try:
                async with session.request(
                    method,
                    url,
                    params=params,
                    headers=request_headers,
                    data=body,
                ) as response:
                    status = response.status
                    retry_after = response.headers.get("Retry-After")
                    raw = await response.read()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = e
                attempt += 1
                if attempt < max_retries:
                    delay = base_delay * (2 ** (attempt - 1))
                    logger.warning(
                        f"[{error_label}] Network error, retry {attempt}/{max_retries - 1} "
                        f"in {delay:.1f}s: {e!r}"
                    )
                    await self._sleep(delay)
                continue

            if status == 429:
                rate_limit_hits += 1
                if rate_limit_hits > self._max_rate_limit_retries:
                    raise RateLimitError(
                        f"{error_label} rate limit exceeded after {rate_limit_hits} retries",
                        retry_after_seconds=float(retry_after) if _is_number(retry_after) else None,
                        attempts=rate_limit_hits,
                        request_url=url,
                    )
                delay = rate_limit_delay(rate_limit_hits, retry_after)
                logger.warning(
                    f"[{error_label}] Rate limited (429 #{rate_limit_hits}), "
                    f"waiting {delay:.1f}s"
                )
                await self._sleep(delay)
                continue

            if status < 200 or status >= 300:
                raise FetchError(
                    f"{error_label} error: HTTP {status}",
                    status_code=status,
                    response_body=raw[:500].decode("utf-8", errors="replace"),
                    request_url=url,
                )

            # UnicodeDecodeError is a ValueError
            try:
                return json.loads(raw.decode("utf-8"))
            except ValueError as e:
                raise FetchError(
                    f"{error_label} returned invalid JSON",
                    status_code=status,
                    response_body=raw[:500].decode("utf-8", errors="replace"),
                    request_url=url,
                    original_error=e,
                )

        raise FetchError(
            f"{error_label} request failed after {max_retries} attempts",
            request_url=url,
            original_error=last_error,
        )

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "ResilientFetcher":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()


def _is_number(value: Optional[str]) -> bool:
    if value is None:
        return False
    try:
        float(value)
    except ValueError:
        return False
    return True
