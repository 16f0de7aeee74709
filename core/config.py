"""
Application configuration loaded from the environment (and .env).
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv


@dataclass
class AppConfig:
    """Runtime settings for the fetch layer, cache, API and CLI."""

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"

    # Fetch layer
    http_timeout_seconds: float = 30.0
    fetch_max_retries: int = 3
    fetch_base_delay_seconds: float = 1.0
    fetch_max_rate_limit_retries: int = 10

    # Cache
    cache_path: Optional[str] = ".awakenfetch/cache.json"
    cache_ttl_seconds: float = 1800.0
    cache_max_entries: int = 50

    # API server
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    proxy_base_url: str = "http://127.0.0.1:8000"

    # Provider credentials
    variational_api_key: Optional[str] = field(default=None, repr=False)
    variational_api_secret: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "AppConfig":
        """Load configuration from environment variables."""
        load_dotenv(dotenv_path)
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "30")),
            fetch_max_retries=int(os.getenv("FETCH_MAX_RETRIES", "3")),
            fetch_base_delay_seconds=float(os.getenv("FETCH_BASE_DELAY_SECONDS", "1.0")),
            fetch_max_rate_limit_retries=int(os.getenv("FETCH_MAX_RATE_LIMIT_RETRIES", "10")),
            cache_path=os.getenv("CACHE_PATH", ".awakenfetch/cache.json") or None,
            cache_ttl_seconds=float(os.getenv("CACHE_TTL_SECONDS", "1800")),
            cache_max_entries=int(os.getenv("CACHE_MAX_ENTRIES", "50")),
            api_host=os.getenv("API_HOST", "127.0.0.1"),
            api_port=int(os.getenv("API_PORT", "8000")),
            proxy_base_url=os.getenv("PROXY_BASE_URL", "http://127.0.0.1:8000"),
            variational_api_key=os.getenv("VARIATIONAL_API_KEY") or None,
            variational_api_secret=os.getenv("VARIATIONAL_API_SECRET") or None,
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.log_format not in ("json", "text"):
            errors.append("log_format must be 'json' or 'text'")

        if self.http_timeout_seconds <= 0:
            errors.append("http_timeout_seconds must be positive")

        if self.fetch_max_retries < 1:
            errors.append("fetch_max_retries must be at least 1")

        if self.fetch_base_delay_seconds < 0:
            errors.append("fetch_base_delay_seconds must not be negative")

        if self.fetch_max_rate_limit_retries < 0:
            errors.append("fetch_max_rate_limit_retries must not be negative")

        if self.cache_ttl_seconds <= 0:
            errors.append("cache_ttl_seconds must be positive")

        if self.cache_max_entries < 1:
            errors.append("cache_max_entries must be at least 1")

        if not 0 < self.api_port < 65536:
            errors.append("api_port must be between 1 and 65535")

        if bool(self.variational_api_key) != bool(self.variational_api_secret):
            errors.append("VARIATIONAL_API_KEY and VARIATIONAL_API_SECRET must be set together")

        return errors
