"""
Error responses for the proxy API.

Every failure is returned as ``{"error": "<message>"}``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from chain_adapters.exceptions import (
    ChainAdapterError,
    ChainNotSupportedError,
    InvalidAddressError,
    RateLimitError,
)


logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Request-level failure with an HTTP status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def status_for(error: ChainAdapterError) -> int:
    """HTTP status for an adapter failure."""
    if isinstance(error, InvalidAddressError):
        return 400
    if isinstance(error, ChainNotSupportedError):
        return 404
    if isinstance(error, RateLimitError):
        return 429
    return 502


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_error_handlers(app: FastAPI) -> None:
    """Map ApiError and adapter exceptions to JSON error responses."""

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(ChainAdapterError)
    async def handle_adapter_error(request: Request, exc: ChainAdapterError) -> JSONResponse:
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error(f"Upstream failure on {request.url.path}: {exc}")
        else:
            logger.info(f"Rejected {request.url.path}: {exc.message}")
        return error_response(status_code, exc.message)
