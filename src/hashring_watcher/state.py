"""Hashring definitions and their stable wire encoding."""

import json
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError, field_validator

from hashring_watcher.errors import DecodeError, SourceReadError


def parse_endpoint(endpoint: str) -> tuple[str, int]:
    """Split a ``host:port`` member address.

    Raises ValueError for anything that is not a host followed by a numeric port.
    """
    host, sep, port_str = endpoint.rpartition(":")
    if not sep or not host:
        raise ValueError(f"invalid endpoint {endpoint!r}, expected host:port")
    if not (port_str.isascii() and port_str.isdigit()):
        raise ValueError(f"invalid port in endpoint {endpoint!r}")
    port = int(port_str)
    if port > 65535:
        raise ValueError(f"port out of range in endpoint {endpoint!r}")
    return host, port


class HashringDefinition(BaseModel):
    """One hashring a receive node knows about."""

    model_config = ConfigDict(frozen=True)

    hashring: Optional[str] = None
    tenants: Optional[list[str]] = None
    endpoints: list[str]

    # Empty name and tenants are omitted on encode, so normalize them away
    # to keep decode(encode(x)) == x.
    @field_validator("hashring")
    @classmethod
    def _empty_hashring(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @field_validator("tenants")
    @classmethod
    def _empty_tenants(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        return value or None

    @field_validator("endpoints")
    @classmethod
    def _valid_endpoints(cls, value: list[str]) -> list[str]:
        for endpoint in value:
            parse_endpoint(endpoint)
        return value

    def with_endpoints(self, endpoints: list[str]) -> "HashringDefinition":
        """Copy of this definition with its member list replaced."""
        return self.model_copy(update={"endpoints": list(endpoints)})

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary in wire key order."""
        data: dict[str, Any] = {}
        if self.hashring:
            data["hashring"] = self.hashring
        if self.tenants:
            data["tenants"] = list(self.tenants)
        data["endpoints"] = list(self.endpoints)
        return data


_HASHRING_SET = TypeAdapter(list[HashringDefinition])


def decode_hashrings(content: bytes | str, path: Optional[str] = None) -> list[HashringDefinition]:
    """Decode a hashring file body into definitions, preserving file order."""
    try:
        return _HASHRING_SET.validate_json(content)
    except ValidationError as e:
        raise DecodeError(f"Unable to json decode file {path}: {e}", path) from e


def encode_hashrings(hashrings: list[HashringDefinition]) -> bytes:
    """Encode definitions to compact JSON.

    Identical logical content always yields identical bytes.
    """
    return json.dumps(
        [h.to_dict() for h in hashrings],
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def load_hashrings(path: str | Path) -> list[HashringDefinition]:
    """Read and decode a source hashring file."""
    try:
        body = Path(path).read_bytes()
    except OSError as e:
        raise SourceReadError(f"Unable to read file {path}: {e}", path) from e
    return decode_hashrings(body, str(path))
