"""etcd v2 keys API gateway."""

from __future__ import annotations

import logging
import urllib.parse
import urllib.request
from collections.abc import Mapping
from typing import ClassVar, cast, override

from ...config import PortMapperConfig, load_config
from ...errors import KeyNotFoundError, StoreConnectionError, StoreError
from ..protocol import BaseStoreGateway, KeyValue
from .transport import HttpReply, normalize_endpoint, raise_for_reply, send

logger = logging.getLogger(__name__)

# etcd v2 "Key not found"
_ETCD_KEY_NOT_FOUND = 100


def _as_object_dict(value: object) -> dict[str, object]:
    """Ensure the value is a dict[str, object] or return empty."""
    if isinstance(value, Mapping):
        mapping = cast(Mapping[object, object], value)
        return {str(k): v for k, v in mapping.items()}
    return {}


class EtcdGateway(BaseStoreGateway):
    """Store gateway speaking the etcd v2 keys HTTP API.

    Endpoints are tried in order when one refuses the connection; a timeout
    is reported immediately so the caller's retry policy stays in charge.

    Example:
        >>> gateway = EtcdGateway(PortMapperConfig(endpoints=("etcd:2379",)))
        >>> gateway.set("/opsee.co/portmapper/web:8080", b"{...}")
    """

    KEYS_PATH: ClassVar[str] = "/v2/keys"

    _config: PortMapperConfig
    _endpoints: tuple[str, ...]
    _timeout: float

    def __init__(self, config: PortMapperConfig | None = None) -> None:
        self._config = config or load_config()
        self._endpoints = tuple(
            normalize_endpoint(e) for e in self._config.endpoints)
        self._timeout = self._config.request_timeout

    @property
    def config(self) -> PortMapperConfig:
        return self._config

    @property
    def endpoints(self) -> tuple[str, ...]:
        return self._endpoints

    @override
    def get(self, key: str, *, timeout: float | None = None) -> bytes:
        reply = self._request("GET", key, timeout=timeout)
        self._check(reply, "get", key)
        node = self._parse_node(reply, key)
        if node.get("dir"):
            raise StoreError(f"Key is a directory: {key}", key=key)
        value = node.get("value")
        if not isinstance(value, str):
            raise StoreError(f"Key has no value: {key}", key=key)
        return value.encode("utf-8")

    @override
    def get_prefix(
        self,
        prefix: str,
        *,
        timeout: float | None = None,
    ) -> list[KeyValue]:
        reply = self._request(
            "GET", prefix, query={"sorted": "true"}, timeout=timeout)
        if self._error_code(reply) == _ETCD_KEY_NOT_FOUND:
            return []
        self._check(reply, "get_prefix", prefix)
        node = self._parse_node(reply, prefix)
        children = node.get("nodes")
        if not isinstance(children, list):
            return []

        entries: list[KeyValue] = []
        for item in cast(list[object], children):
            child = _as_object_dict(item)
            key = child.get("key")
            value = child.get("value")
            if child.get("dir") or not isinstance(key, str):
                continue
            if not isinstance(value, str):
                continue
            entries.append(KeyValue(key=key, value=value.encode("utf-8")))
        return entries

    @override
    def set(
        self,
        key: str,
        value: bytes,
        *,
        timeout: float | None = None,
    ) -> None:
        body = urllib.parse.urlencode({
            "value": value.decode("utf-8")
        }).encode("ascii")
        reply = self._request("PUT", key, body=body, timeout=timeout)
        self._check(reply, "set", key)
        logger.debug("Set key %s", key)

    @override
    def delete(self, key: str, *, timeout: float | None = None) -> None:
        reply = self._request("DELETE", key, timeout=timeout)
        self._check(reply, "delete", key)
        logger.debug("Deleted key %s", key)

    @override
    def is_healthy(self) -> bool:
        for endpoint in self._endpoints:
            request = urllib.request.Request(f"{endpoint}/health",
                                             method="GET")
            try:
                reply = send(request, timeout=self._timeout)
                payload = _as_object_dict(reply.json())
            except (StoreError, ValueError):
                logger.warning("etcd health check failed for %s", endpoint)
                continue
            if reply.ok and str(payload.get("health")).lower() == "true":
                return True
        return False

    def _request(
        self,
        method: str,
        key: str,
        *,
        query: Mapping[str, str] | None = None,
        body: bytes | None = None,
        timeout: float | None = None,
    ) -> HttpReply:
        path = urllib.parse.quote(key if key.startswith("/") else f"/{key}",
                                  safe="/:")
        suffix = f"?{urllib.parse.urlencode(query)}" if query else ""
        last_error: StoreConnectionError | None = None

        for endpoint in self._endpoints:
            request = urllib.request.Request(
                f"{endpoint}{self.KEYS_PATH}{path}{suffix}",
                data=body,
                method=method,
            )
            request.add_header("Accept", "application/json")
            if body is not None:
                request.add_header("Content-Type",
                                   "application/x-www-form-urlencoded")
            try:
                return send(request, timeout=timeout or self._timeout)
            except StoreConnectionError as e:
                logger.warning("etcd endpoint %s unreachable: %s", endpoint, e)
                last_error = e

        if last_error is None:
            raise StoreConnectionError(
                f"No etcd endpoints configured for {key}", key=key)
        raise StoreConnectionError(
            f"No etcd endpoint reachable for {key}: {last_error}",
            key=key) from last_error

    def _check(self, reply: HttpReply, operation: str, key: str) -> None:
        if self._error_code(reply) == _ETCD_KEY_NOT_FOUND:
            raise KeyNotFoundError(f"Key not found: {key}",
                                   key=key,
                                   status=reply.status)
        detail = ""
        if not reply.ok:
            detail = _to_str(self._error_body(reply).get("message"))
        raise_for_reply(reply, operation=operation, key=key, detail=detail)

    def _error_code(self, reply: HttpReply) -> int | None:
        if reply.ok:
            return None
        code = self._error_body(reply).get("errorCode")
        if isinstance(code, int):
            return code
        if reply.status == 404:
            return _ETCD_KEY_NOT_FOUND
        return None

    @staticmethod
    def _error_body(reply: HttpReply) -> dict[str, object]:
        try:
            return _as_object_dict(reply.json())
        except ValueError:
            return {}

    @staticmethod
    def _parse_node(reply: HttpReply, key: str) -> dict[str, object]:
        try:
            payload = _as_object_dict(reply.json())
        except ValueError as e:
            raise StoreError(f"Malformed etcd response for {key}: {e}",
                             key=key,
                             status=reply.status) from e
        node = _as_object_dict(payload.get("node"))
        if not node:
            raise StoreError(f"etcd response for {key} has no node",
                             key=key,
                             status=reply.status)
        return node


def _to_str(value: object) -> str:
    if value is None:
        return ""
    return str(value)
