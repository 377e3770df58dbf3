"""Service registration and discovery over the store gateway."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from pydantic import ValidationError

from .config import PortMapperConfig, load_config
from .errors import (
    DecodeError,
    InvalidRecordError,
    KeyNotFoundError,
    PortMapperError,
)
from .gateway import StoreGatewayProtocol, build_gateway
from .logging import get_event_logger
from .record import ServiceRecord, decode_record
from .retry import RetryController

_LOGGER = logging.getLogger(__name__)
_EVENT_LOGGER = get_event_logger()


class PortMapper:
    """Registers (name, port) pairs and lists every registered service.

    Each call builds a fresh record, runs exactly one store operation under
    the retry policy and keeps no state between calls.

    Example:
        >>> mapper = PortMapper(PortMapperConfig(endpoints=("etcd:2379",)))
        >>> mapper.register("web", 8080)
        >>> [svc.port for svc in mapper.list_services("web")]
        [8080]
    """

    def __init__(
        self,
        config: PortMapperConfig | None = None,
        *,
        gateway: StoreGatewayProtocol | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config or load_config()
        self._gateway = gateway
        self._retry = RetryController(self._config.retry_policy(), sleep=sleep)

    @property
    def config(self) -> PortMapperConfig:
        return self._config

    @property
    def gateway(self) -> StoreGatewayProtocol:
        if self._gateway is None:
            self._gateway = build_gateway(self._config)
        return self._gateway

    def register(self, name: str, port: int) -> ServiceRecord:
        """Advertise ``name`` at ``port``, overwriting any earlier entry.

        Returns:
            The record that was written.

        Raises:
            InvalidRecordError: If name or port is invalid; nothing is written
            RetriesExhaustedError: If every attempt timed out
            StoreError: On the first non-timeout store failure
        """
        record = self._build_record(name, port, action="register")
        key = record.key(self._config.registry_root)
        payload = record.encode()
        fields = {"service": name, "port": port, "path": key}

        self._retry.run(
            lambda: self.gateway.set(
                key, payload, timeout=self._config.request_timeout),
            action="register",
            fields=fields,
        )
        _EVENT_LOGGER.info(
            "Registered service %s:%d",
            name,
            port,
            logger=_LOGGER,
            extra={"action": "register", **fields},
        )
        return record

    def unregister(self, name: str, port: int) -> None:
        """Remove the entry for ``name`` at ``port``.

        Removing an entry that does not exist succeeds.
        """
        record = self._build_record(name, port, action="unregister")
        key = record.key(self._config.registry_root)
        fields = {"service": name, "port": port, "path": key}

        def delete() -> bool:
            try:
                self.gateway.delete(key,
                                    timeout=self._config.request_timeout)
            except KeyNotFoundError:
                return False
            return True

        existed = self._retry.run(delete, action="unregister", fields=fields)
        if existed:
            _EVENT_LOGGER.info(
                "Unregistered service %s:%d",
                name,
                port,
                logger=_LOGGER,
                extra={"action": "unregister", **fields},
            )
        else:
            _EVENT_LOGGER.debug(
                "Service %s:%d was not registered",
                name,
                port,
                logger=_LOGGER,
                extra={"action": "unregister", **fields},
            )

    def list_services(self, name: str | None = None) -> list[ServiceRecord]:
        """Return every registered service in store order.

        Args:
            name: Only return records with this service name.

        Raises:
            DecodeError: If any stored entry is malformed
            RetriesExhaustedError: If every attempt timed out
            StoreError: On the first non-timeout store failure
        """
        root = self._config.registry_root
        entries = self._retry.run(
            lambda: self.gateway.get_prefix(
                root, timeout=self._config.request_timeout),
            action="list_services",
            fields={"path": root},
        )

        services: list[ServiceRecord] = []
        for entry in entries:
            try:
                record = decode_record(entry.value, key=entry.key)
            except DecodeError as e:
                _EVENT_LOGGER.error(
                    "Failed to decode service entry %s",
                    entry.key,
                    logger=_LOGGER,
                    extra={
                        "action": "list_services",
                        "path": entry.key,
                        "errstr": str(e),
                    },
                )
                raise
            if name is None or record.name == name:
                services.append(record)
        return services

    def get_service(self, name: str, port: int) -> ServiceRecord | None:
        """Return the stored record for ``name`` at ``port``, if any."""
        wanted = self._build_record(name, port, action="get_service")
        key = wanted.key(self._config.registry_root)

        def fetch() -> bytes | None:
            try:
                return self.gateway.get(key,
                                        timeout=self._config.request_timeout)
            except KeyNotFoundError:
                return None

        payload = self._retry.run(fetch,
                                  action="get_service",
                                  fields={
                                      "service": name,
                                      "port": port,
                                      "path": key
                                  })
        if payload is None:
            return None
        return decode_record(payload, key=key)

    @contextmanager
    def registration(self, name: str, port: int) -> Iterator[ServiceRecord]:
        """Keep ``name`` at ``port`` registered for the duration of a block."""
        record = self.register(name, port)
        try:
            yield record
        except BaseException:
            # The block's exception wins over a failed cleanup.
            try:
                self.unregister(name, port)
            except PortMapperError:
                _EVENT_LOGGER.exception(
                    "Failed to unregister service %s:%d",
                    name,
                    port,
                    logger=_LOGGER,
                    extra={
                        "action": "unregister",
                        "service": name,
                        "port": port,
                    },
                )
            raise
        self.unregister(name, port)

    def is_healthy(self) -> bool:
        return self.gateway.is_healthy()

    def _build_record(self, name: str, port: int, *,
                      action: str) -> ServiceRecord:
        try:
            record = ServiceRecord(name=name, port=port, origin=self._origin())
            record.validate_record()
        except ValidationError as e:
            error = InvalidRecordError(f"Service record is malformed: {e}")
            self._log_invalid(error, action=action, name=name, port=port)
            raise error from e
        except InvalidRecordError as e:
            self._log_invalid(e, action=action, name=name, port=port)
            raise
        return record

    @staticmethod
    def _log_invalid(error: InvalidRecordError, *, action: str, name: object,
                     port: object) -> None:
        _EVENT_LOGGER.error(
            "Service validation failed",
            logger=_LOGGER,
            extra={
                "action": action,
                "service": name,
                "port": port,
                "errstr": str(error),
            },
        )

    def _origin(self) -> str | None:
        return os.getenv(self._config.origin_env_var)
