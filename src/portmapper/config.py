"""Portmapper configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .errors import ConfigurationError
from .retry import RetryPolicy

DEFAULT_REGISTRY_PATH = "/opsee.co/portmapper"
DEFAULT_ENDPOINT = "http://127.0.0.1:2379"
BACKENDS = frozenset({"etcd", "consul", "memory"})


def _get_env(key: str, default: str) -> str:
    """Get environment variable with default value."""
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def _get_env_int(key: str, default: int) -> int:
    """Get integer environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_env_float(key: str, default: float) -> float:
    """Get float environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_env_endpoints() -> tuple[str, ...]:
    """Read store endpoints, falling back to the legacy ETCD_HOST."""
    raw = os.getenv("PORTMAPPER_ENDPOINTS") or os.getenv("ETCD_HOST") or ""
    endpoints = tuple(item.strip() for item in raw.split(",") if item.strip())
    return endpoints or (DEFAULT_ENDPOINT, )


@dataclass(frozen=True, slots=True)
class PortMapperConfig:
    """Configuration for a portmapper client."""

    # Store endpoint addresses, tried in order on connection failure
    endpoints: tuple[str, ...] = field(default_factory=_get_env_endpoints)

    # Store backend: etcd, consul or memory
    backend: str = field(
        default_factory=lambda: _get_env("PORTMAPPER_BACKEND", "etcd").lower())

    # Key prefix under which every service record lives
    registry_path: str = field(default_factory=lambda: _get_env(
        "PORTMAPPER_REGISTRY_PATH", DEFAULT_REGISTRY_PATH))

    # Per-request timeout in seconds
    request_timeout: float = field(
        default_factory=lambda: _get_env_float("PORTMAPPER_REQUEST_TIMEOUT",
                                               5.0))

    # Attempts per logical operation
    max_retries: int = field(
        default_factory=lambda: _get_env_int("PORTMAPPER_MAX_RETRIES", 11))

    # Backoff before retry n is min(backoff_base * 2**n, backoff_max)
    backoff_base: float = field(
        default_factory=lambda: _get_env_float("PORTMAPPER_BACKOFF_BASE",
                                               0.002))
    backoff_max: float = field(
        default_factory=lambda: _get_env_float("PORTMAPPER_BACKOFF_MAX", 2.0))

    # Environment variable holding the local origin identifier
    origin_env_var: str = field(default_factory=lambda: _get_env(
        "PORTMAPPER_ORIGIN_ENV", "HOSTNAME"))

    def __post_init__(self) -> None:
        if not self.endpoints:
            raise ConfigurationError("At least one store endpoint is required")
        if self.backend not in BACKENDS:
            raise ConfigurationError(
                f"Unknown backend {self.backend!r}; "
                f"expected one of {sorted(BACKENDS)}")
        if not self.registry_path.strip("/"):
            raise ConfigurationError("registry_path must not be empty")
        if self.request_timeout <= 0:
            raise ConfigurationError(
                f"request_timeout must be positive, got {self.request_timeout}")
        if self.max_retries < 1:
            raise ConfigurationError(
                f"max_retries must be at least 1, got {self.max_retries}")
        if self.backoff_base < 0 or self.backoff_max < 0:
            raise ConfigurationError("backoff values must not be negative")

    @property
    def registry_root(self) -> str:
        """Registry path without a trailing slash."""
        return self.registry_path.rstrip("/")

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            backoff_base=self.backoff_base,
            backoff_max=self.backoff_max,
        )


def load_config() -> PortMapperConfig:
    """Load portmapper configuration from the environment and a .env file."""
    load_dotenv(override=False)
    return PortMapperConfig()
