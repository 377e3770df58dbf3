"""Service records and their wire encoding.

A record is stored as JSON at ``<registry-root>/<name>:<port>``::

    {"name": "web", "port": 8080, "hostname": "web-7f9c"}

``hostname`` carries the record's origin and is omitted when unknown.
"""

from __future__ import annotations

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .errors import (
    DecodeError,
    InvalidNameError,
    InvalidPortError,
    InvalidRecordError,
)

MIN_PORT = 1
MAX_PORT = 65535


def record_key(name: str, port: int, root: str) -> str:
    """Return the store key of the (name, port) pair under ``root``."""
    return f"{root.rstrip('/')}/{name}:{port}"


class ServiceRecord(BaseModel):
    """One advertised (name, port, origin) triple."""

    name: str
    port: int = Field(strict=True)
    origin: str | None = Field(default=None, alias="hostname")

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("origin", mode="before")
    @classmethod
    def _blank_origin_is_absent(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def validate_record(self) -> None:
        """Raise ``InvalidRecordError`` unless the record may be stored."""
        if not self.name:
            raise InvalidNameError(f"Service lacks a name: {self!r}")
        if "/" in self.name:
            raise InvalidNameError(
                f"Service name must not contain '/': {self.name!r}")
        if not MIN_PORT <= self.port <= MAX_PORT:
            raise InvalidPortError(
                f"Service port is outside {MIN_PORT}-{MAX_PORT}: {self!r}")

    def key(self, root: str) -> str:
        return record_key(self.name, self.port, root)

    def encode(self) -> bytes:
        return encode_record(self)

    @classmethod
    def decode(
        cls,
        payload: bytes | str,
        *,
        key: str | None = None,
    ) -> "ServiceRecord":
        return decode_record(payload, key=key)


def encode_record(record: ServiceRecord) -> bytes:
    """Serialize a record to its JSON wire form."""
    return record.model_dump_json(by_alias=True, exclude_none=True).encode(
        "utf-8")


def decode_record(
    payload: bytes | str,
    *,
    key: str | None = None,
) -> ServiceRecord:
    """Parse a stored payload, rejecting anything ``encode`` would not write.

    Raises:
        DecodeError: If the payload is not a valid service record.
    """
    where = f" at {key}" if key else ""
    try:
        record = ServiceRecord.model_validate_json(payload)
    except ValidationError as e:
        raise DecodeError(f"Malformed service record{where}: {e}",
                          key=key) from e
    try:
        record.validate_record()
    except InvalidRecordError as e:
        raise DecodeError(f"Invalid service record{where}: {e}",
                          key=key) from e
    return record
