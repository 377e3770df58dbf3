"""In-memory store gateway for testing."""

from __future__ import annotations

import threading
from collections import defaultdict, deque
from typing import override

from ...errors import KeyNotFoundError
from ..protocol import BaseStoreGateway, KeyValue

OPERATIONS = ("get", "get_prefix", "set", "delete")


class MemoryGateway(BaseStoreGateway):
    """A dict-backed gateway useful for unit tests.

    Failures can be queued per operation with ``inject_failures``; each call
    pops one queued exception and raises it before touching the data. Every
    call, failed or not, is appended to ``calls``.
    """

    _data: dict[str, bytes]
    _failures: dict[str, deque[BaseException]]
    _healthy: bool
    _lock: threading.RLock
    calls: list[tuple[str, str, float | None]]

    def __init__(
        self,
        entries: dict[str, bytes] | None = None,
        *,
        healthy: bool = True,
    ) -> None:
        self._data = dict(entries or {})
        self._failures = defaultdict(deque)
        self._healthy = healthy
        self._lock = threading.RLock()
        self.calls = []

    @override
    def get(self, key: str, *, timeout: float | None = None) -> bytes:
        with self._lock:
            self._enter("get", key, timeout)
            if key not in self._data:
                raise KeyNotFoundError(f"Key not found: {key}", key=key)
            return self._data[key]

    @override
    def get_prefix(
        self,
        prefix: str,
        *,
        timeout: float | None = None,
    ) -> list[KeyValue]:
        base = f"{prefix.rstrip('/')}/"
        with self._lock:
            self._enter("get_prefix", prefix, timeout)
            return [
                KeyValue(key=key, value=self._data[key])
                for key in sorted(self._data)
                if key.startswith(base) and "/" not in key[len(base):]
            ]

    @override
    def set(
        self,
        key: str,
        value: bytes,
        *,
        timeout: float | None = None,
    ) -> None:
        with self._lock:
            self._enter("set", key, timeout)
            self._data[key] = bytes(value)

    @override
    def delete(self, key: str, *, timeout: float | None = None) -> None:
        with self._lock:
            self._enter("delete", key, timeout)
            if key not in self._data:
                raise KeyNotFoundError(f"Key not found: {key}", key=key)
            del self._data[key]

    @override
    def is_healthy(self) -> bool:
        return self._healthy

    def set_health(self, healthy: bool) -> None:
        """Toggle gateway health for testing."""
        with self._lock:
            self._healthy = healthy

    def inject_failures(self, operation: str, *errors: BaseException) -> None:
        """Queue ``errors`` to be raised by the next calls of ``operation``."""
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation!r}")
        with self._lock:
            self._failures[operation].extend(errors)

    def snapshot(self) -> dict[str, bytes]:
        """Return a copy of the stored entries."""
        with self._lock:
            return dict(self._data)

    def count(self, operation: str) -> int:
        """Number of recorded calls of ``operation``."""
        return sum(1 for call in self.calls if call[0] == operation)

    def _enter(self, operation: str, key: str, timeout: float | None) -> None:
        self.calls.append((operation, key, timeout))
        queued = self._failures[operation]
        if queued:
            raise queued.popleft()
