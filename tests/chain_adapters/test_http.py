"""
Resilient Fetch Layer Tests.

Covers retry on network errors, the separate 429 budget, terminal
HTTP errors, JSON decoding and per-key throttling.
"""

import asyncio

import aiohttp
import pytest

from chain_adapters.exceptions import FetchError, RateLimitError
from chain_adapters.http import RATE_LIMIT_MAX_DELAY, RateLimiter, rate_limit_delay
from conftest import FakeResponse, FakeSession


URL = "https://api.example.org/items"


# ============================================================
# RETRY AND RATE LIMIT
# ============================================================

class TestFetchJson:
    """Tests for ResilientFetcher.fetch_json."""

    @pytest.mark.asyncio
    async def test_returns_decoded_json(self, make_fetcher):
        session = FakeSession([FakeResponse(200, {"ok": True})])
        fetcher = make_fetcher(session)

        assert await fetcher.fetch_json(URL) == {"ok": True}
        assert session.calls[0]["headers"]["accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_three_429s_then_success_makes_four_calls(self, make_fetcher):
        session = FakeSession([
            FakeResponse(429, "slow down"),
            FakeResponse(429, "slow down"),
            FakeResponse(429, "slow down"),
            FakeResponse(200, [1, 2, 3]),
        ])
        fetcher = make_fetcher(session)

        result = await fetcher.fetch_json(URL, max_retries=1)

        assert result == [1, 2, 3]
        assert len(session.calls) == 4

    @pytest.mark.asyncio
    async def test_retry_after_header_sets_delay(self, make_fetcher, recording_sleep):
        session = FakeSession([
            FakeResponse(429, "", headers={"Retry-After": "2"}),
            FakeResponse(200, {}),
        ])
        await make_fetcher(session).fetch_json(URL)

        assert recording_sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_rate_limit_budget_exhausted(self, make_fetcher):
        session = FakeSession([FakeResponse(429, "") for _ in range(3)])
        fetcher = make_fetcher(session, max_rate_limit_retries=2)

        with pytest.raises(RateLimitError) as exc_info:
            await fetcher.fetch_json(URL, error_label="Kaspa API")

        assert exc_info.value.attempts == 3
        assert "Kaspa API rate limit exceeded" in exc_info.value.message
        assert len(session.calls) == 3

    @pytest.mark.asyncio
    async def test_network_errors_retry_with_backoff(self, make_fetcher, recording_sleep):
        session = FakeSession([
            aiohttp.ClientConnectionError("reset"),
            asyncio.TimeoutError(),
            FakeResponse(200, {"done": 1}),
        ])
        fetcher = make_fetcher(session)

        assert await fetcher.fetch_json(URL, base_delay=1.0) == {"done": 1}
        assert recording_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_network_errors_exhaust_attempts(self, make_fetcher):
        session = FakeSession([aiohttp.ClientConnectionError("down") for _ in range(3)])
        fetcher = make_fetcher(session)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch_json(URL, max_retries=3)

        assert "failed after 3 attempts" in exc_info.value.message
        assert isinstance(exc_info.value.original_error, aiohttp.ClientConnectionError)
        assert len(session.calls) == 3

    @pytest.mark.asyncio
    async def test_http_error_is_not_retried(self, make_fetcher):
        session = FakeSession([FakeResponse(500, "boom"), FakeResponse(200, {})])
        fetcher = make_fetcher(session)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch_json(URL, error_label="LCD")

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "LCD error: HTTP 500"
        assert len(session.calls) == 1

    @pytest.mark.asyncio
    async def test_invalid_json(self, make_fetcher):
        session = FakeSession([FakeResponse(200, "<html>")])

        with pytest.raises(FetchError, match="invalid JSON"):
            await make_fetcher(session).fetch_json(URL)

    @pytest.mark.asyncio
    async def test_undecodable_body_is_fetch_error(self, make_fetcher):
        session = FakeSession([FakeResponse(200, b'{"a": "\xff\xfe"}')])

        with pytest.raises(FetchError, match="invalid JSON") as exc_info:
            await make_fetcher(session).fetch_json(URL, error_label="Kaspa API")
        assert isinstance(exc_info.value.original_error, UnicodeDecodeError)
        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_undecodable_error_body_kept(self, make_fetcher):
        session = FakeSession([FakeResponse(503, b"\xffdown")])

        with pytest.raises(FetchError) as exc_info:
            await make_fetcher(session).fetch_json(URL)
        assert exc_info.value.status_code == 503
        assert exc_info.value.response_body.endswith("down")

    @pytest.mark.asyncio
    async def test_fetcher_defaults_apply(self, make_fetcher):
        session = FakeSession([aiohttp.ClientConnectionError("x") for _ in range(2)])
        fetcher = make_fetcher(session, max_retries=2)

        with pytest.raises(FetchError):
            await fetcher.fetch_json(URL)
        assert len(session.calls) == 2


class TestRateLimitDelay:
    """Tests for rate_limit_delay."""

    def test_exponential_without_header(self):
        assert rate_limit_delay(1, None) == 0.5
        assert rate_limit_delay(2, None) == 1.0
        assert rate_limit_delay(3, None) == 2.0

    def test_capped(self):
        assert rate_limit_delay(20, None) == RATE_LIMIT_MAX_DELAY
        assert rate_limit_delay(1, "600") == RATE_LIMIT_MAX_DELAY

    def test_non_numeric_header_falls_back(self):
        assert rate_limit_delay(1, "Wed, 21 Oct 2015 07:28:00 GMT") == 0.5


# ============================================================
# THROTTLE
# ============================================================

class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestRateLimiter:
    """Tests for the per-key throttle."""

    @pytest.mark.asyncio
    async def test_first_call_does_not_wait(self, recording_sleep):
        limiter = RateLimiter(clock=FakeClock(), sleep=recording_sleep)

        assert await limiter.wait("api.kaspa.org", 0.2) == 0.0
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_second_call_waits_remaining_interval(self, recording_sleep):
        clock = FakeClock()
        limiter = RateLimiter(clock=clock, sleep=recording_sleep)

        await limiter.wait("api.kaspa.org", 0.5)
        clock.now += 0.2
        waited = await limiter.wait("api.kaspa.org", 0.5)

        assert waited == pytest.approx(0.3)
        assert recording_sleep.delays == [pytest.approx(0.3)]

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, recording_sleep):
        limiter = RateLimiter(clock=FakeClock(), sleep=recording_sleep)

        await limiter.wait("a", 1.0)
        await limiter.wait("b", 1.0)

        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_fetch_applies_throttle_key(self, make_fetcher, recording_sleep):
        session = FakeSession([FakeResponse(200, {}), FakeResponse(200, {})])
        fetcher = make_fetcher(session)

        await fetcher.fetch_json(URL, throttle_key="host", throttle_interval=10.0)
        await fetcher.fetch_json(URL, throttle_key="host", throttle_interval=10.0)

        assert fetcher.rate_limiter.last_call("host") is not None
        assert len(recording_sleep.delays) == 1
        assert 0 < recording_sleep.delays[0] <= 10.0

    @pytest.mark.asyncio
    async def test_concurrent_waits_on_one_key_are_serialized(self):
        clock = FakeClock()
        delays = []

        async def advancing_sleep(seconds: float) -> None:
            delays.append(seconds)
            clock.now += seconds
            await asyncio.sleep(0)

        limiter = RateLimiter(clock=clock, sleep=advancing_sleep)
        limiter.mark("host")
        clock.now += 0.5

        waited = await asyncio.gather(limiter.wait("host", 1.0), limiter.wait("host", 1.0))

        assert waited == [pytest.approx(0.5), pytest.approx(1.0)]
        assert delays == [pytest.approx(0.5), pytest.approx(1.0)]
