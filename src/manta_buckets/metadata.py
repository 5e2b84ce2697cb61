"""
Object metadata header codec.

User metadata travels as ``m-`` prefixed request/response headers. Header names
are case-insensitive, so keys are normalized to lower case in both directions.
"""
from __future__ import annotations

from typing import Dict, Mapping, Optional

from .errors import InvalidArgument

__all__ = ["METADATA_PREFIX", "encode_metadata", "decode_metadata", "check_headers"]

METADATA_PREFIX = "m-"


def _check_header_text(value: object, what: str) -> str:
    if not isinstance(value, str):
        raise InvalidArgument(f"{what} must be a string, got {type(value).__name__}")
    if "\r" in value or "\n" in value:
        raise InvalidArgument(f"{what} must not contain CR or LF: {value!r}")
    return value


def check_headers(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """
    Validate caller-supplied raw headers and lower-case their names.

    Raw ``m-*`` headers pass through verbatim, matching how other Manta
    clients let callers set metadata directly.

    Raises:
        InvalidArgument: If a name is empty or a name/value is not header-safe
    """
    checked: Dict[str, str] = {}
    for key, value in (headers or {}).items():
        if not _check_header_text(key, "header name"):
            raise InvalidArgument("header name must not be empty")
        checked[key.lower()] = _check_header_text(value, f"header {key!r}")
    return checked


def encode_metadata(metadata: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """
    Encode a user metadata map as ``m-`` headers.

    Args:
        metadata: Unprefixed user keys mapped to string values

    Returns:
        Header dict, e.g. ``{"foo": "bar"}`` -> ``{"m-foo": "bar"}``

    Keys are lower-cased, so keys differing only by case would share a header.

    Raises:
        InvalidArgument: If a key is empty, a key/value is not header-safe, or
            two keys differ only by case
    """
    headers: Dict[str, str] = {}
    for key, value in (metadata or {}).items():
        if not _check_header_text(key, "metadata key"):
            raise InvalidArgument("metadata key must not be empty")
        name = METADATA_PREFIX + key.lower()
        if name in headers:
            raise InvalidArgument(f"metadata key {key!r} collides with another key as header {name!r}")
        headers[name] = _check_header_text(value, f"metadata value for {key!r}")
    return headers


def decode_metadata(headers: Mapping[str, str]) -> Dict[str, str]:
    """Recover the user metadata map from response headers, dropping all others."""
    metadata: Dict[str, str] = {}
    for key, value in headers.items():
        name = key.lower()
        if name.startswith(METADATA_PREFIX) and len(name) > len(METADATA_PREFIX):
            metadata[name[len(METADATA_PREFIX):]] = value
    return metadata
