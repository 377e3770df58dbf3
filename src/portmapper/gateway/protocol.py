"""Store gateway protocol definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class KeyValue:
    """One entry returned by a prefix read."""

    key: str
    value: bytes


@runtime_checkable
class StoreGatewayProtocol(Protocol):
    """Narrow synchronous view of the external key-value store.

    Every call is bounded by ``timeout`` seconds, or the gateway's default
    per-request timeout when ``timeout`` is None. Gateways never retry and
    never inspect payloads.
    """

    def get(self, key: str, *, timeout: float | None = None) -> bytes:
        """Return the value stored at ``key``.

        Raises:
            KeyNotFoundError: If the key does not exist
            StoreTimeoutError: If the request deadline elapsed
            StoreError: On any other failure
        """
        ...

    def get_prefix(
        self,
        prefix: str,
        *,
        timeout: float | None = None,
    ) -> list[KeyValue]:
        """Return the direct children of ``prefix`` ordered by key.

        A prefix that does not exist yields an empty list.

        Raises:
            StoreTimeoutError: If the request deadline elapsed
            StoreError: On any other failure
        """
        ...

    def set(
        self,
        key: str,
        value: bytes,
        *,
        timeout: float | None = None,
    ) -> None:
        """Create or overwrite ``key``.

        Raises:
            StoreTimeoutError: If the request deadline elapsed
            StoreError: On any other failure
        """
        ...

    def delete(self, key: str, *, timeout: float | None = None) -> None:
        """Remove ``key``.

        Raises:
            KeyNotFoundError: If the store reports the key missing
            StoreTimeoutError: If the request deadline elapsed
            StoreError: On any other failure
        """
        ...

    def is_healthy(self) -> bool:
        """Return True if the store answers a health check."""
        ...


class BaseStoreGateway(ABC):
    """Abstract base for gateway implementations."""

    @abstractmethod
    def get(self, key: str, *, timeout: float | None = None) -> bytes:
        ...

    @abstractmethod
    def get_prefix(
        self,
        prefix: str,
        *,
        timeout: float | None = None,
    ) -> list[KeyValue]:
        ...

    @abstractmethod
    def set(
        self,
        key: str,
        value: bytes,
        *,
        timeout: float | None = None,
    ) -> None:
        ...

    @abstractmethod
    def delete(self, key: str, *, timeout: float | None = None) -> None:
        ...

    @abstractmethod
    def is_healthy(self) -> bool:
        ...
