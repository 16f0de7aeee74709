"""
Shared fixtures: an aiohttp-shaped fake session and a recording sleep.

Nothing here touches the network.
"""

import asyncio
import json
import re
from datetime import datetime, timezone
from typing import Any, Optional, Union

import pytest

from chain_adapters.base import BaseChainAdapter
from chain_adapters.http import RateLimiter, ResilientFetcher
from chain_adapters.models import Transaction, TransactionType


# ============================================================
# FAKE HTTP
# ============================================================

class FakeContent:
    """Mimics ``response.content`` (a StreamReader)."""

    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = chunks

    async def iter_any(self):
        for chunk in self._chunks:
            yield chunk


class FakeResponse:
    """Minimal aiohttp response usable as an async context manager."""

    def __init__(
        self,
        status: int = 200,
        body: Union[bytes, str, dict, list, None] = None,
        headers: Optional[dict[str, str]] = None,
        chunks: Optional[list[bytes]] = None,
    ) -> None:
        self.status = status
        if body is None:
            self._raw = b""
        elif isinstance(body, bytes):
            self._raw = body
        elif isinstance(body, str):
            self._raw = body.encode("utf-8")
        else:
            self._raw = json.dumps(body).encode("utf-8")
        self.headers = headers or {"Content-Type": "application/json"}
        self.content = FakeContent(chunks if chunks is not None else [self._raw])

    async def read(self) -> bytes:
        return self._raw

    async def text(self) -> str:
        return self._raw.decode("utf-8")

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None


class _RequestContext:
    def __init__(self, outcome: Union[FakeResponse, Exception]) -> None:
        self._outcome = outcome

    async def __aenter__(self) -> FakeResponse:
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None


class FakeSession:
    """
    Replays queued responses (or exceptions) in order and records calls.

    A ``route`` callable may be given instead of a queue; it receives
    (method, url, params) and returns the outcome.
    """

    def __init__(self, outcomes: Optional[list] = None, route=None) -> None:
        self.outcomes = list(outcomes or [])
        self.route = route
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def _next(self, method: str, url: str, params: Optional[dict]) -> _RequestContext:
        self.calls.append({"method": method, "url": url, "params": dict(params or {})})
        if self.route is not None:
            return _RequestContext(self.route(method, url, dict(params or {})))
        if not self.outcomes:
            raise AssertionError(f"Unexpected request: {method} {url}")
        return _RequestContext(self.outcomes.pop(0))

    def request(self, method: str, url: str, params=None, headers=None, data=None) -> _RequestContext:
        context = self._next(method, url, params)
        self.calls[-1]["headers"] = dict(headers or {})
        return context

    def get(self, url: str, params=None, **kwargs) -> _RequestContext:
        return self._next("GET", url, params)

    async def close(self) -> None:
        self.closed = True


class RecordingSleep:
    """Async sleep replacement that only records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_fetcher(recording_sleep):
    """Build a ResilientFetcher over a FakeSession with instant sleeps."""

    def factory(session: FakeSession, **kwargs) -> ResilientFetcher:
        return ResilientFetcher(
            session=session,
            rate_limiter=RateLimiter(sleep=recording_sleep),
            sleep=recording_sleep,
            **kwargs,
        )

    return factory


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def sample_transactions() -> list[Transaction]:
    return [
        Transaction(
            date=utc(2025, 1, 15, 14, 30),
            type=TransactionType.SEND,
            sent_quantity=9.999,
            sent_currency="USDC",
            fee_amount=0.001,
            fee_currency="ETH",
            tx_hash="0xabc123",
        ),
        Transaction(
            date=utc(2025, 1, 16, 9, 0),
            type=TransactionType.RECEIVE,
            received_quantity=12.5,
            received_currency="KAS",
            tx_hash="0xdef456",
            notes="Mining reward",
        ),
    ]


# ============================================================
# STUB ADAPTERS
# ============================================================

class StubAdapter(BaseChainAdapter):
    """
    Adapter replaying prepared pages of transactions.

    ``report_progress=False`` imitates an adapter that never calls
    ``on_progress``; ``error`` is raised after the pages.
    """

    chain_id = "stub"
    chain_name = "Stub"
    ticker = "STB"
    address_pattern = re.compile(r"stub-[a-z0-9]+")

    def __init__(self, pages=None, error=None, estimated_total=None, report_progress=True):
        super().__init__()
        self.pages = pages or []
        self.error = error
        self.estimated_total = estimated_total
        self.report_progress = report_progress
        self.calls = 0

    async def _collect(self, address, options):
        self.calls += 1
        self.emit_estimated_total(self.estimated_total, options)
        collected = []
        for page in self.pages:
            collected.extend(page)
            if self.report_progress:
                self.emit_progress(page, options)
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return collected

    def classify(self, record, address):
        return None


@pytest.fixture
def stub_adapter_cls():
    return StubAdapter
