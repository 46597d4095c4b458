"""
stratostream - Client Configuration

Explicit options win over environment variables, which win over defaults.

Environment:
    ANTHROPIC_API_KEY               API key (required)
    ANTHROPIC_BASE_URL              API base URL
    STRATOSTREAM_DEFAULT_MODEL      Model used when a request names none
    STRATOSTREAM_MAX_RETRIES        Retry budget for whole-exchange requests
    STRATOSTREAM_BASE_DELAY_MS      Backoff base delay
    STRATOSTREAM_MAX_DELAY_MS       Backoff cap
    STRATOSTREAM_CONNECT_TIMEOUT    Connect timeout in seconds
    STRATOSTREAM_RECEIVE_TIMEOUT    Read timeout in seconds
    STRATOSTREAM_BETA_FEATURES      Comma-separated anthropic-beta values
"""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Callable, List, Optional

import httpx

from .errors import AuthenticationError


DEFAULT_BASE_URL = "https://api.anthropic.com"
API_VERSION = "2023-06-01"


@dataclass
class ClientConfig:
    """Configuration shared by the sync and async clients."""
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    default_model: Optional[str] = None
    max_retries: int = 3
    base_delay_ms: int = 500
    max_delay_ms: int = 30_000
    connect_timeout: float = 5.0
    receive_timeout: float = 120.0
    beta_features: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.api_key:
            raise AuthenticationError(
                "API key required. Set ANTHROPIC_API_KEY environment variable or pass api_key parameter."
            )
        self.base_url = self.base_url.rstrip("/")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_ms < 1 or self.max_delay_ms < 1:
            raise ValueError("retry delays must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> "ClientConfig":
        """
        Build a config from the environment.

        Keyword arguments that are not None take precedence.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown config option(s): {', '.join(sorted(unknown))}")

        values = {
            "api_key": os.getenv("ANTHROPIC_API_KEY"),
            "base_url": os.getenv("ANTHROPIC_BASE_URL"),
            "default_model": os.getenv("STRATOSTREAM_DEFAULT_MODEL"),
            "max_retries": _env("STRATOSTREAM_MAX_RETRIES", int),
            "base_delay_ms": _env("STRATOSTREAM_BASE_DELAY_MS", int),
            "max_delay_ms": _env("STRATOSTREAM_MAX_DELAY_MS", int),
            "connect_timeout": _env("STRATOSTREAM_CONNECT_TIMEOUT", float),
            "receive_timeout": _env("STRATOSTREAM_RECEIVE_TIMEOUT", float),
            "beta_features": _env("STRATOSTREAM_BETA_FEATURES", _split_csv),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})

        kwargs = {k: v for k, v in values.items() if v is not None}
        kwargs.setdefault("api_key", "")
        return cls(**kwargs)

    def to_httpx_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.receive_timeout, connect=self.connect_timeout)


def _env(name: str, convert: Callable[[str], Any]) -> Any:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return convert(raw.strip())
    except ValueError:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from None


def _split_csv(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]
