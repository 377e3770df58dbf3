from __future__ import annotations

import logging
from collections.abc import Mapping
from types import TracebackType
from typing import Protocol, TypeAlias

ExcInfo: TypeAlias = (
    bool
    | BaseException
    | tuple[type[BaseException], BaseException, TracebackType | None]
    | None
)


class LoggingConfiguratorProtocol(Protocol):
    """Protocol for logging configurators."""

    def configure(self) -> None:
        """Apply logging configuration."""


class LoggingEventLoggerProtocol(Protocol):
    """Emits structured events on behalf of library modules."""

    def log(
        self,
        level: int,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = None,
    ) -> None:
        ...

    def debug(
        self,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = None,
    ) -> None:
        ...

    def info(
        self,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = None,
    ) -> None:
        ...

    def warning(
        self,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = None,
    ) -> None:
        ...

    def error(
        self,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = None,
    ) -> None:
        ...

    def exception(
        self,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = True,
    ) -> None:
        ...
