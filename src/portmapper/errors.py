"""Portmapper error definitions."""

from __future__ import annotations


class PortMapperError(Exception):
    """Base exception for portmapper errors."""


class ConfigurationError(PortMapperError):
    """Raised when a configuration value is impossible to honour."""


class InvalidRecordError(PortMapperError):
    """Raised when a service record fails validation.

    Invalid records never reach the store.
    """


class InvalidNameError(InvalidRecordError):
    """Service name is empty or not usable as a key segment."""


class InvalidPortError(InvalidRecordError):
    """Service port is outside 1-65535."""


class StoreError(PortMapperError):
    """Any failure reported by the key-value store."""

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.key = key
        self.status = status


class StoreTimeoutError(StoreError):
    """The per-request deadline elapsed. Retryable."""


class RetriesExhaustedError(StoreTimeoutError):
    """Every attempt of a retried operation timed out."""

    def __init__(
        self,
        message: str,
        *,
        attempts: int,
        last_error: StoreTimeoutError,
    ) -> None:
        super().__init__(message, key=last_error.key, status=last_error.status)
        self.attempts = attempts
        self.last_error = last_error


class StoreConnectionError(StoreError):
    """The store could not be reached."""


class KeyNotFoundError(StoreError):
    """The requested key does not exist in the store."""


class DecodeError(PortMapperError):
    """A stored payload could not be decoded into a service record."""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key
