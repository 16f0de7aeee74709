"""
Chain Adapter Exceptions.

    ChainAdapterError
    ├── InvalidAddressError      address rejected before any network call
    ├── ChainNotSupportedError   no adapter (or no perps support) for the chain
    ├── ConfigurationError       provider credentials missing
    ├── FetchError               upstream HTTP/network failure
    ├── RateLimitError           429 budget exhausted
    ├── NormalizationError       one upstream record cannot be decoded
    └── StreamProtocolError      in-band stream error or truncated stream

Everything except NormalizationError propagates to the caller unchanged;
adapters skip undecodable records and keep going.
"""

from typing import Any, Optional


class ChainAdapterError(Exception):
    """Base class; ``message`` is the user-facing text."""

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.chain = chain
        self.original_error = original_error

    def __str__(self) -> str:
        text = f"{self.message} [chain={self.chain}]" if self.chain else self.message
        if self.original_error is not None:
            text += f" (caused by: {self.original_error!r})"
        return text


class InvalidAddressError(ChainAdapterError):
    def __init__(self, message: str, chain: Optional[str] = None, address: Optional[str] = None) -> None:
        super().__init__(message, chain)
        self.address = address


class ChainNotSupportedError(ChainAdapterError):
    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        supported_chains: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, chain)
        self.supported_chains = list(supported_chains or [])


class ConfigurationError(ChainAdapterError):
    def __init__(self, message: str, chain: Optional[str] = None, config_key: Optional[str] = None) -> None:
        super().__init__(message, chain)
        self.config_key = config_key


class FetchError(ChainAdapterError):
    """
    Upstream request failed.

    ``status_code`` is None for network-level failures (nothing came back),
    which callers treat as retryable.
    """

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, chain, original_error)
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url


class RateLimitError(ChainAdapterError):
    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        retry_after_seconds: Optional[float] = None,
        attempts: int = 0,
        request_url: Optional[str] = None,
    ) -> None:
        super().__init__(message, chain)
        self.retry_after_seconds = retry_after_seconds
        self.attempts = attempts
        self.request_url = request_url


class NormalizationError(ChainAdapterError):
    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        raw_data: Any = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, chain, original_error)
        # Truncated; records can be large
        self.raw_data = str(raw_data)[:500] if raw_data is not None else None


class StreamProtocolError(ChainAdapterError):
    """In-band stream error, or a stream that ended without completing."""
