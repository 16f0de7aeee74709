"""
Request dependencies for the proxy API.
"""

from datetime import datetime
from typing import Optional

from fastapi import Query

from chain_adapters.models import FetchOptions, parse_iso8601
from chain_adapters.registry import ChainAdapterRegistry, get_default_registry
from core.bootstrap import build_registry
from core.config import AppConfig
from proxy_api.errors import ApiError


def get_registry() -> ChainAdapterRegistry:
    """Default registry, populated with the built-in adapters on first use."""
    registry = get_default_registry()
    if len(registry) == 0:
        build_registry(AppConfig.from_env(), registry)
    return registry


def _parse_date(value: Optional[str], name: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parse_iso8601(value)
    except ValueError:
        raise ApiError(400, f"Invalid {name} format. Use ISO 8601.")


def get_fetch_options(
    from_date: Optional[str] = Query(default=None, alias="fromDate"),
    to_date: Optional[str] = Query(default=None, alias="toDate"),
) -> FetchOptions:
    """FetchOptions from the optional ``fromDate``/``toDate`` query window."""
    options = FetchOptions(
        from_date=_parse_date(from_date, "fromDate"),
        to_date=_parse_date(to_date, "toDate"),
    )
    try:
        options.validate()
    except ValueError as e:
        raise ApiError(400, str(e))
    return options


def get_address(address: Optional[str] = Query(default=None)) -> str:
    """Required ``address`` query parameter."""
    if not address or not address.strip():
        raise ApiError(400, "Missing required query parameter: address")
    return address.strip()
