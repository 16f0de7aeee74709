"""
Proxy API Tests.

The app is built over a registry of stub adapters, so no request leaves
the process.
"""

import json

import pytest
from fastapi.testclient import TestClient

from chain_adapters.exceptions import FetchError, RateLimitError
from chain_adapters.registry import ChainAdapterRegistry
from proxy_api.main import create_app


ADDRESS = "stub-wallet1"


@pytest.fixture
def registry(stub_adapter_cls, sample_transactions):
    registry = ChainAdapterRegistry()
    registry.register(stub_adapter_cls(pages=[sample_transactions], estimated_total=2))

    failing = stub_adapter_cls(error=FetchError("Stub API error: HTTP 500", status_code=500))
    failing.chain_id = "failing"
    registry.register(failing)

    limited = stub_adapter_cls(error=RateLimitError("Stub API rate limit exceeded after 11 retries"))
    limited.chain_id = "limited"
    registry.register(limited)
    return registry


@pytest.fixture
def client(registry):
    with TestClient(create_app(registry)) as test_client:
        yield test_client


class TestMeta:
    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_chains(self, client):
        chains = client.get("/api/chains").json()["chains"]

        assert [chain["id"] for chain in chains] == ["stub", "failing", "limited"]
        assert chains[0] == {
            "id": "stub",
            "name": "Stub",
            "ticker": "STB",
            "enabled": True,
            "perpsCapable": False,
        }


class TestRequestValidation:
    """Every failure is a JSON body of the form {"error": ...}."""

    def test_missing_address(self, client):
        response = client.get("/api/proxy/stub")

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required query parameter: address"}

    def test_invalid_address(self, client):
        response = client.get("/api/proxy/stub", params={"address": "0xnope"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid Stub address format."}

    def test_invalid_date(self, client):
        response = client.get("/api/proxy/stub", params={"address": ADDRESS, "fromDate": "yesterday"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid fromDate format. Use ISO 8601."}

    def test_reversed_window(self, client):
        response = client.get(
            "/api/proxy/stub",
            params={"address": ADDRESS, "fromDate": "2025-02-01", "toDate": "2025-01-01"},
        )

        assert response.status_code == 400

    def test_unknown_chain(self, client):
        response = client.get("/api/proxy/dogecoin", params={"address": ADDRESS})

        assert response.status_code == 404
        assert "dogecoin" in response.json()["error"]

    def test_perps_not_supported(self, client):
        response = client.get("/api/proxy/stub/perps", params={"address": ADDRESS})

        assert response.status_code == 404
        assert response.json() == {"error": "Chain stub does not support perpetuals"}


class TestFetch:
    def test_transactions(self, client):
        response = client.get("/api/proxy/stub", params={"address": ADDRESS})

        assert response.status_code == 200
        transactions = response.json()["transactions"]
        assert [tx["txHash"] for tx in transactions] == ["0xabc123", "0xdef456"]
        assert transactions[0]["date"] == "2025-01-15T14:30:00Z"
        assert transactions[0]["type"] == "send"

    def test_date_window(self, client):
        response = client.get(
            "/api/proxy/stub",
            params={"address": ADDRESS, "fromDate": "2025-01-16T00:00:00.000Z"},
        )

        assert [tx["txHash"] for tx in response.json()["transactions"]] == ["0xdef456"]

    def test_upstream_failure_is_502(self, client):
        response = client.get("/api/proxy/failing", params={"address": ADDRESS})

        assert response.status_code == 502
        assert response.json() == {"error": "Stub API error: HTTP 500"}

    def test_rate_limit_is_429(self, client):
        response = client.get("/api/proxy/limited", params={"address": ADDRESS})

        assert response.status_code == 429


class TestStream:
    def test_ndjson_stream(self, client):
        response = client.get("/api/proxy/stub/stream", params={"address": ADDRESS})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        assert response.headers["cache-control"] == "no-cache"

        messages = [json.loads(line) for line in response.text.splitlines() if line.strip()]
        assert [m["type"] for m in messages] == ["meta", "batch", "done"]
        assert messages[-1]["total"] == 2

    def test_stream_rejects_bad_address_before_streaming(self, client):
        response = client.get("/api/proxy/stub/stream", params={"address": "bad"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid Stub address format."}

    def test_stream_upstream_failure_is_in_band(self, client):
        response = client.get("/api/proxy/failing/stream", params={"address": ADDRESS})

        assert response.status_code == 200
        last = json.loads(response.text.strip().splitlines()[-1])
        assert last == {"type": "error", "error": "Stub API error: HTTP 500"}
