"""Consul KV gateway."""

from __future__ import annotations

import base64
import binascii
import logging
import urllib.parse
import urllib.request
from collections.abc import Iterable, Mapping
from typing import ClassVar, cast, override

from ...config import PortMapperConfig, load_config
from ...errors import KeyNotFoundError, StoreConnectionError, StoreError
from ..protocol import BaseStoreGateway, KeyValue
from .transport import HttpReply, normalize_endpoint, raise_for_reply, send

logger = logging.getLogger(__name__)


def _coerce_dict_list(result: object) -> list[dict[str, object]]:
    """Convert a JSON result to a list of object dictionaries."""
    items: Iterable[object]
    if isinstance(result, list):
        items = cast(list[object], result)
    elif isinstance(result, Mapping):
        items = [result]
    else:
        return []
    dicts: list[dict[str, object]] = []
    for item in items:
        if isinstance(item, Mapping):
            mapping = cast(Mapping[object, object], item)
            dicts.append({str(k): v for k, v in mapping.items()})
    return dicts


def _decode_value(encoded_value: object) -> bytes | None:
    """Consul returns values base64 encoded; a null value means empty."""
    if encoded_value is None:
        return b""
    if isinstance(encoded_value, str):
        encoded = encoded_value.encode("utf-8")
    elif isinstance(encoded_value, (bytes, bytearray)):
        encoded = bytes(encoded_value)
    else:
        return None
    try:
        return base64.b64decode(encoded, validate=True)
    except binascii.Error:
        return None


class ConsulGateway(BaseStoreGateway):
    """Store gateway backed by the Consul KV HTTP API.

    Consul keys carry no leading slash; keys handed back by ``get_prefix``
    use the same form as the prefix they were requested with.
    """

    KV_PATH: ClassVar[str] = "/v1/kv"

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

    @override
    def get(self, key: str, *, timeout: float | None = None) -> bytes:
        reply = self._request("GET", self._kv_url_path(key), timeout=timeout)
        if reply.status == 404:
            raise KeyNotFoundError(f"Key not found: {key}",
                                   key=key,
                                   status=404)
        raise_for_reply(reply, operation="get", key=key)
        entries = _coerce_dict_list(self._json(reply, key))
        if not entries:
            raise KeyNotFoundError(f"Key not found: {key}", key=key)
        value = _decode_value(entries[0].get("Value"))
        if value is None:
            raise StoreError(f"Undecodable Consul value at {key}", key=key)
        return value

    @override
    def get_prefix(
        self,
        prefix: str,
        *,
        timeout: float | None = None,
    ) -> list[KeyValue]:
        base = prefix.rstrip("/")
        reply = self._request("GET",
                              f"{self._kv_url_path(base)}/",
                              query={"recurse": "true"},
                              timeout=timeout)
        if reply.status == 404:
            return []
        raise_for_reply(reply, operation="get_prefix", key=prefix)

        consul_base = base.lstrip("/")
        entries: list[KeyValue] = []
        for item in _coerce_dict_list(self._json(reply, prefix)):
            consul_key = item.get("Key")
            if not isinstance(consul_key, str):
                continue
            child = consul_key[len(consul_base) + 1:]
            if not consul_key.startswith(f"{consul_base}/") or not child:
                continue
            if "/" in child:
                continue
            entry_key = f"{base}/{child}"
            value = _decode_value(item.get("Value"))
            if value is None:
                raise StoreError(f"Undecodable Consul value at {entry_key}",
                                 key=entry_key,
                                 status=reply.status)
            entries.append(KeyValue(key=entry_key, value=value))
        entries.sort(key=lambda entry: entry.key)
        return entries

    @override
    def set(
        self,
        key: str,
        value: bytes,
        *,
        timeout: float | None = None,
    ) -> None:
        reply = self._request("PUT",
                              self._kv_url_path(key),
                              body=value,
                              timeout=timeout)
        raise_for_reply(reply, operation="set", key=key)
        if self._json(reply, key) is False:
            raise StoreError(f"Consul rejected write to {key}",
                             key=key,
                             status=reply.status)
        logger.debug("Set KV: %s", key)

    @override
    def delete(self, key: str, *, timeout: float | None = None) -> None:
        # Consul acknowledges deletes of absent keys.
        reply = self._request("DELETE", self._kv_url_path(key), timeout=timeout)
        raise_for_reply(reply, operation="delete", key=key)
        logger.debug("Deleted KV: %s", key)

    @override
    def is_healthy(self) -> bool:
        try:
            reply = self._request("GET", "/v1/status/leader")
            leader = self._json(reply, "/v1/status/leader")
        except StoreError:
            logger.warning("Consul health check failed")
            return False
        return reply.ok and bool(leader)

    def _kv_url_path(self, key: str) -> str:
        quoted = urllib.parse.quote(key.lstrip("/"), safe="/:")
        return f"{self.KV_PATH}/{quoted}"

    def _request(
        self,
        method: str,
        url_path: str,
        *,
        query: Mapping[str, str] | None = None,
        body: bytes | None = None,
        timeout: float | None = None,
    ) -> HttpReply:
        suffix = f"?{urllib.parse.urlencode(query)}" if query else ""
        last_error: StoreConnectionError | None = None

        for endpoint in self._endpoints:
            request = urllib.request.Request(f"{endpoint}{url_path}{suffix}",
                                             data=body,
                                             method=method)
            request.add_header("Accept", "application/json")
            try:
                return send(request, timeout=timeout or self._timeout)
            except StoreConnectionError as e:
                logger.warning("Consul endpoint %s unreachable: %s", endpoint,
                               e)
                last_error = e

        if last_error is None:
            raise StoreConnectionError(
                f"No Consul endpoints configured for {url_path}")
        raise StoreConnectionError(
            f"No Consul endpoint reachable for {url_path}: {last_error}"
        ) from last_error

    @staticmethod
    def _json(reply: HttpReply, key: str) -> object:
        try:
            return reply.json()
        except ValueError as e:
            raise StoreError(f"Malformed Consul response for {key}: {e}",
                             key=key,
                             status=reply.status) from e
