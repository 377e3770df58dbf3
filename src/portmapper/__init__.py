"""Public API entry point for portmapper.

Use this module for supported imports. Subpackages are internal.
"""

from .config import DEFAULT_REGISTRY_PATH, PortMapperConfig, load_config
from .errors import (
    ConfigurationError,
    DecodeError,
    InvalidNameError,
    InvalidPortError,
    InvalidRecordError,
    KeyNotFoundError,
    PortMapperError,
    RetriesExhaustedError,
    StoreConnectionError,
    StoreError,
    StoreTimeoutError,
)
from .gateway import (
    BaseStoreGateway,
    ConsulGateway,
    EtcdGateway,
    KeyValue,
    MemoryGateway,
    StoreGatewayProtocol,
    build_gateway,
)
from .logging import LoggingSettings, configure_logging
from .record import ServiceRecord, decode_record, encode_record, record_key
from .registry import PortMapper
from .retry import RetryController, RetryPolicy

__all__ = [
    # Registry API
    "PortMapper",
    "ServiceRecord",
    "record_key",
    "encode_record",
    "decode_record",
    # Config
    "DEFAULT_REGISTRY_PATH",
    "PortMapperConfig",
    "load_config",
    "LoggingSettings",
    "configure_logging",
    # Retry
    "RetryPolicy",
    "RetryController",
    # Gateway
    "BaseStoreGateway",
    "StoreGatewayProtocol",
    "KeyValue",
    "EtcdGateway",
    "ConsulGateway",
    "MemoryGateway",
    "build_gateway",
    # Errors
    "PortMapperError",
    "ConfigurationError",
    "InvalidRecordError",
    "InvalidNameError",
    "InvalidPortError",
    "StoreError",
    "StoreTimeoutError",
    "RetriesExhaustedError",
    "StoreConnectionError",
    "KeyNotFoundError",
    "DecodeError",
]
