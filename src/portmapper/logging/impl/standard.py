from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler

from ..protocol import LoggingConfiguratorProtocol
from ..settings import LoggingSettings

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_CONFIGURED_MARKER = "_portmapper_logging_configured"

_BUILTIN_LOG_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {
        "message",
        "asctime",
    }


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra`` fields become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "process": record.process,
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = record.stack_info
        for key, value in record.__dict__.items():
            if key not in _BUILTIN_LOG_RECORD_ATTRS:
                payload[key] = value
        return json.dumps(payload, ensure_ascii=True, default=str)


class StandardLoggingConfigurator(LoggingConfiguratorProtocol):
    def __init__(self, settings: LoggingSettings) -> None:
        self._settings = settings

    @property
    def settings(self) -> LoggingSettings:
        return self._settings

    def configure(self) -> None:
        logger = logging.getLogger()
        if getattr(logger, _CONFIGURED_MARKER, False):
            return
        logger.setLevel(self._settings.level)
        for handler in self._build_handlers(self._build_formatter()):
            logger.addHandler(handler)
        setattr(logger, _CONFIGURED_MARKER, True)

    def _build_formatter(self) -> logging.Formatter:
        if self._settings.log_format == "text":
            return logging.Formatter(_TEXT_FORMAT)
        return JsonFormatter()

    def _build_handlers(
        self, formatter: logging.Formatter
    ) -> list[logging.Handler]:
        handlers: list[logging.Handler] = []
        if self._settings.console_enabled:
            console = logging.StreamHandler()
            console.setLevel(self._settings.level)
            console.setFormatter(formatter)
            handlers.append(console)
        if self._settings.log_dir:
            handlers.append(
                self._build_file_handler(self._settings.log_dir, formatter))
        return handlers

    def _build_file_handler(
        self, directory: str, formatter: logging.Formatter
    ) -> logging.Handler:
        os.makedirs(directory, exist_ok=True)
        handler = TimedRotatingFileHandler(
            os.path.join(directory, "portmapper.log"),
            when=self._settings.rotate_when,
            backupCount=self._settings.backup_count,
            encoding="utf-8",
            delay=True,
        )
        handler.setLevel(self._settings.level)
        handler.setFormatter(formatter)
        return handler
