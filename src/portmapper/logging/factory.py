from __future__ import annotations

from .impl.events import StandardLoggingEventLogger
from .impl.standard import StandardLoggingConfigurator
from .protocol import LoggingConfiguratorProtocol, LoggingEventLoggerProtocol
from .settings import LoggingSettings, load_logging_settings

_EVENT_LOGGER: LoggingEventLoggerProtocol = StandardLoggingEventLogger()


def get_event_logger() -> LoggingEventLoggerProtocol:
    """Return the process-wide event logger used by portmapper modules."""
    return _EVENT_LOGGER


def configure_logging(
    settings: LoggingSettings | None = None,
) -> LoggingConfiguratorProtocol:
    """Install portmapper handlers on the root logger.

    Settings default to ``LoggingSettings.from_env()``. Calling this more
    than once is a no-op.
    """
    configurator = StandardLoggingConfigurator(
        settings or load_logging_settings())
    configurator.configure()
    return configurator
