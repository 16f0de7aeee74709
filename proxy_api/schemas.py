"""
Pydantic schemas for the proxy API responses.
"""
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

# =======================
# COMMON
# =======================

class StatusResponse(BaseModel):
    status: str

class ErrorResponse(BaseModel):
    error: str

# =======================
# CHAINS
# =======================

class ChainSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    ticker: str
    enabled: bool = True
    perps_capable: bool = Field(default=False, alias="perpsCapable")

class ChainListResponse(BaseModel):
    chains: List[ChainSchema]

# =======================
# TRANSACTIONS
# =======================

class TransactionsResponse(BaseModel):
    # Wire dictionaries of Transaction / PerpTransaction (ISO dates)
    transactions: List[Dict[str, Any]]
