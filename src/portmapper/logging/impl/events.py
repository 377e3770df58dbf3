from __future__ import annotations

import logging
from collections.abc import Mapping

from ..protocol import ExcInfo, LoggingEventLoggerProtocol

# _emit -> public method -> caller
_CALLER_STACKLEVEL = 3


class StandardLoggingEventLogger(LoggingEventLoggerProtocol):
    """Forwards events to stdlib loggers, attributing them to the caller."""

    def log(
        self,
        level: int,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = None,
    ) -> None:
        self._emit(level, message, args, logger, extra, exc_info)

    def debug(
        self,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = None,
    ) -> None:
        self._emit(logging.DEBUG, message, args, logger, extra, exc_info)

    def info(
        self,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = None,
    ) -> None:
        self._emit(logging.INFO, message, args, logger, extra, exc_info)

    def warning(
        self,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = None,
    ) -> None:
        self._emit(logging.WARNING, message, args, logger, extra, exc_info)

    def error(
        self,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = None,
    ) -> None:
        self._emit(logging.ERROR, message, args, logger, extra, exc_info)

    def exception(
        self,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = True,
    ) -> None:
        self._emit(logging.ERROR, message, args, logger, extra, exc_info)

    @staticmethod
    def _emit(
        level: int,
        message: str,
        args: tuple[object, ...],
        logger: logging.Logger | None,
        extra: Mapping[str, object] | None,
        exc_info: ExcInfo,
    ) -> None:
        target = logger or logging.getLogger("portmapper")
        if not target.isEnabledFor(level):
            return
        kwargs: dict[str, object] = {"stacklevel": _CALLER_STACKLEVEL}
        if extra is not None:
            kwargs["extra"] = dict(extra)
        if exc_info is not None:
            kwargs["exc_info"] = exc_info
        target.log(level, message, *args, **kwargs)
