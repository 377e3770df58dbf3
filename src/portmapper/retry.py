"""Bounded exponential-backoff retries for single store operations."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TypeVar

from .errors import (
    ConfigurationError,
    RetriesExhaustedError,
    StoreTimeoutError,
)
from .logging import get_event_logger

_LOGGER = logging.getLogger(__name__)
_EVENT_LOGGER = get_event_logger()

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """How many attempts to make and how long to wait between them."""

    max_retries: int = 11
    backoff_base: float = 0.002
    backoff_max: float = 2.0

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ConfigurationError(
                f"max_retries must be at least 1, got {self.max_retries}")
        if self.backoff_base < 0 or self.backoff_max < 0:
            raise ConfigurationError("backoff values must not be negative")

    def delay(self, attempt: int) -> float:
        """Seconds to sleep after the 0-based ``attempt`` timed out."""
        return min(self.backoff_base * (2**attempt), self.backoff_max)


class RetryController:
    """Runs one store operation, retrying only on timeouts.

    Example:
        >>> controller = RetryController(RetryPolicy(max_retries=3))
        >>> controller.run(lambda: gateway.set(key, payload), action="register")
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def run(
        self,
        operation: Callable[[], T],
        *,
        action: str,
        fields: Mapping[str, object] | None = None,
    ) -> T:
        """Execute ``operation`` with up to ``policy.max_retries`` attempts.

        Args:
            operation: Zero-argument callable performing one store request.
            action: Name of the logical operation, used in log records.
            fields: Extra structured fields attached to every log record.

        Returns:
            Whatever ``operation`` returns on its first successful attempt.

        Raises:
            RetriesExhaustedError: If every attempt timed out.
            Exception: Any non-timeout failure, re-raised on first sight.
        """
        base_fields = {"action": action, **(fields or {})}
        last_timeout: StoreTimeoutError | None = None
        attempts = self._policy.max_retries

        for attempt in range(attempts):
            try:
                return operation()
            except StoreTimeoutError as e:
                last_timeout = e
                _EVENT_LOGGER.warning(
                    "%s exceeded request deadline (attempt %d of %d)",
                    action,
                    attempt + 1,
                    attempts,
                    logger=_LOGGER,
                    extra={
                        **base_fields,
                        "attempt": attempt,
                        "errstr": str(e),
                    },
                )
            except Exception as e:
                _EVENT_LOGGER.error(
                    "%s failed",
                    action,
                    logger=_LOGGER,
                    extra={
                        **base_fields,
                        "attempt": attempt,
                        "errstr": str(e),
                    },
                )
                raise

            if attempt + 1 < attempts:
                self._sleep(self._policy.delay(attempt))

        if last_timeout is None:
            raise ConfigurationError(
                f"{action} made no attempts; max_retries is {attempts}")
        _EVENT_LOGGER.error(
            "%s gave up after %d attempts",
            action,
            attempts,
            logger=_LOGGER,
            extra={**base_fields, "errstr": str(last_timeout)},
        )
        raise RetriesExhaustedError(
            f"{action} timed out after {attempts} attempts: {last_timeout}",
            attempts=attempts,
            last_error=last_timeout,
        ) from last_timeout
