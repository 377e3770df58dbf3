"""Logging helpers for portmapper.

The library only emits records; applications call ``configure_logging`` to
install handlers.
"""

from .factory import configure_logging, get_event_logger
from .protocol import LoggingConfiguratorProtocol, LoggingEventLoggerProtocol
from .settings import LoggingSettings, load_logging_settings

__all__ = [
    "LoggingConfiguratorProtocol",
    "LoggingEventLoggerProtocol",
    "LoggingSettings",
    "configure_logging",
    "get_event_logger",
    "load_logging_settings",
]
