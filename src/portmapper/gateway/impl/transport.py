"""urllib transport shared by the HTTP gateways."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass
from http.client import HTTPResponse
from typing import cast

from ...errors import StoreConnectionError, StoreError, StoreTimeoutError

# Statuses a proxy or the store uses to report an elapsed deadline
TIMEOUT_STATUSES = frozenset({408, 504})


@dataclass(frozen=True, slots=True)
class HttpReply:
    status: int
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> object:
        if not self.body:
            return None
        return cast(object, json.loads(self.body.decode("utf-8")))


def normalize_endpoint(endpoint: str) -> str:
    """Strip trailing slashes and default the scheme to http."""
    endpoint = endpoint.strip().rstrip("/")
    if "://" not in endpoint:
        endpoint = f"http://{endpoint}"
    return endpoint


def send(request: urllib.request.Request, *, timeout: float) -> HttpReply:
    """Perform one HTTP request.

    Error statuses are returned, not raised, so callers can interpret
    store-specific codes. Transport failures are classified.

    Raises:
        StoreTimeoutError: If the request deadline elapsed
        StoreConnectionError: If the endpoint could not be reached
    """
    url = request.full_url
    try:
        with cast(
                HTTPResponse,
                urllib.request.urlopen(request, timeout=timeout),
        ) as response:
            return HttpReply(status=response.status, body=response.read())
    except urllib.error.HTTPError as e:
        try:
            body = e.read()
        except OSError:
            body = b""
        return HttpReply(status=e.code, body=body or b"")
    except urllib.error.URLError as e:
        if isinstance(e.reason, TimeoutError):
            raise StoreTimeoutError(
                f"Request to {url} timed out after {timeout}s") from e
        raise StoreConnectionError(
            f"Failed to connect to {url}: {e.reason}") from e
    except TimeoutError as e:
        raise StoreTimeoutError(
            f"Request to {url} timed out after {timeout}s") from e
    except OSError as e:
        raise StoreConnectionError(f"Connection to {url} failed: {e}") from e


def raise_for_reply(
    reply: HttpReply,
    *,
    operation: str,
    key: str,
    detail: str = "",
) -> None:
    """Raise the ``StoreError`` matching a non-2xx reply."""
    if reply.ok:
        return
    message = f"{operation} {key} failed with status {reply.status}"
    if detail:
        message = f"{message}: {detail}"
    if reply.status in TIMEOUT_STATUSES:
        raise StoreTimeoutError(message, key=key, status=reply.status)
    raise StoreError(message, key=key, status=reply.status)
