from fastapi import APIRouter, Depends

from chain_adapters.registry import ChainAdapterRegistry
from proxy_api.dependencies import get_registry
from proxy_api.schemas import ChainListResponse

router = APIRouter(prefix="/api/chains", tags=["Chains"])


@router.get("", response_model=ChainListResponse)
def list_chains(registry: ChainAdapterRegistry = Depends(get_registry)):
    """
    List the chains an address can be fetched for.
    """
    return {"chains": [info.to_dict() for info in registry.available_chains()]}
