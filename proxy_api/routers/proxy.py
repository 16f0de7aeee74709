"""
Proxy routes: fetch a wallet's history through a chain adapter.

GET /api/proxy/{chain}?address=&fromDate=&toDate=          -> {"transactions": [...]}
GET /api/proxy/{chain}/stream?address=&fromDate=&toDate=   -> NDJSON stream
GET /api/proxy/{chain}/perps?address=&fromDate=&toDate=    -> {"transactions": [...]}
"""

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from chain_adapters.models import FetchOptions
from chain_adapters.registry import ChainAdapterRegistry
from proxy_api.dependencies import get_address, get_fetch_options, get_registry
from proxy_api.schemas import ErrorResponse, TransactionsResponse
from streaming.messages import NDJSON_CONTENT_TYPE
from streaming.producer import stream_transactions

router = APIRouter(prefix="/api/proxy", tags=["Proxy"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


@router.get("/{chain}", response_model=TransactionsResponse, responses=ERROR_RESPONSES)
async def fetch_transactions(
    chain: str,
    address: str = Depends(get_address),
    options: FetchOptions = Depends(get_fetch_options),
    registry: ChainAdapterRegistry = Depends(get_registry),
):
    """
    Fetch the full classified history in one response.
    """
    adapter = registry.require(chain)
    address = adapter.require_valid_address(address)
    transactions = await adapter.fetch_transactions(address, options)
    return {"transactions": [tx.to_dict() for tx in transactions]}


@router.get("/{chain}/stream", responses=ERROR_RESPONSES)
async def stream_chain_transactions(
    chain: str,
    address: str = Depends(get_address),
    options: FetchOptions = Depends(get_fetch_options),
    registry: ChainAdapterRegistry = Depends(get_registry),
):
    """
    Stream the history as NDJSON batches while pages arrive.
    """
    adapter = registry.require(chain)
    address = adapter.require_valid_address(address)
    return StreamingResponse(
        stream_transactions(adapter, address, options),
        media_type=NDJSON_CONTENT_TYPE,
        headers={"Cache-Control": "no-cache"},
    )


@router.get("/{chain}/perps", response_model=TransactionsResponse, responses=ERROR_RESPONSES)
async def fetch_perp_transactions(
    chain: str,
    address: str = Depends(get_address),
    options: FetchOptions = Depends(get_fetch_options),
    registry: ChainAdapterRegistry = Depends(get_registry),
):
    """
    Fetch perpetuals activity (perps-capable chains only).
    """
    adapter = registry.require_perps(chain)
    address = adapter.require_valid_address(address)
    transactions = await adapter.fetch_perp_transactions(address, options)
    return {"transactions": [row.to_dict() for row in transactions]}
