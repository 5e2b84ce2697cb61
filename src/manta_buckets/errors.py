"""
Buckets client error classes.

Provides the error taxonomy surfaced by every public client operation.
HTTP statuses, httpx failures and local stream failures are mapped onto these
classes so callers can branch on a stable ``kind`` regardless of which layer
failed.
"""
from __future__ import annotations

import json
from typing import Mapping, Optional


class MantaBucketsError(Exception):
    """
    Base class for all buckets client errors.
    
    Every subclass carries a stable ``kind`` string that does not change
    across releases, suitable for logging and exit-code mapping.
    """
    kind = "MantaBucketsError"


class InvalidArgument(MantaBucketsError, ValueError):
    """
    Bad local input, detected before anything is sent over the network.
    
    Raised when:
    - a bucket or object name is empty or not a string
    - metadata keys/values are not header-safe strings
    - listing parameters are out of range
    """
    kind = "InvalidArgument"


class TransportError(MantaBucketsError):
    """
    Network-level failure reported by the transport.
    
    Raised when:
    - connecting, reading or writing fails
    - a configured timeout expires
    - a response body ends before its declared content-length
    """
    kind = "TransportError"


class HTTPStatusError(MantaBucketsError):
    """
    The service answered with a non-success status.
    
    Carries the status code, the raw response body and headers. When the body
    is a service JSON error document, its ``code`` and ``message`` are exposed
    as ``code`` and ``service_message``.
    """
    kind = "HTTPStatusError"

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: bytes = b"",
        headers: Optional[Mapping[str, str]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.headers = dict(headers or {})
        self.code, self.service_message = _parse_error_body(body)


class NotFoundError(HTTPStatusError):
    """
    The bucket or object does not exist (HTTP 404).
    
    Split out from HTTPStatusError because callers commonly branch on
    existence after head/get/delete.
    """
    kind = "NotFoundError"


class DecodeError(MantaBucketsError):
    """
    A listing stream line could not be decoded into a record.
    
    Raised when:
    - a line is not valid UTF-8 or not valid JSON
    - a decoded record does not match the listing schema
    """
    kind = "DecodeError"

    def __init__(self, message: str, *, line_number: int, line: bytes = b""):
        super().__init__(message)
        self.line_number = line_number
        self.line = line


class PayloadStreamError(MantaBucketsError):
    """
    The local upload source failed mid-transfer.
    
    The in-flight request is aborted instead of being completed with a
    truncated body.
    """
    kind = "PayloadStreamError"

    def __init__(self, message: str, *, bytes_sent: int = 0):
        super().__init__(message)
        self.bytes_sent = bytes_sent


class ClientClosedError(MantaBucketsError):
    """An operation was attempted after the client was closed."""
    kind = "ClientClosedError"


def error_for_status(
    status_code: int,
    *,
    method: str,
    path: str,
    body: bytes = b"",
    headers: Optional[Mapping[str, str]] = None,
) -> HTTPStatusError:
    """
    Build the error for a non-success response.
    
    Args:
        status_code: HTTP status returned by the service
        method: Request method (for the message)
        path: Request path (for the message)
        body: Raw (possibly truncated) response body
        headers: Response headers
        
    Returns:
        NotFoundError for 404, HTTPStatusError otherwise
    """
    cls = NotFoundError if status_code == 404 else HTTPStatusError
    code, message = _parse_error_body(body)
    detail = f": {code}: {message}" if code else ""
    return cls(
        f"{method} {path} failed with status {status_code}{detail}",
        status_code=status_code,
        body=body,
        headers=headers,
    )


def _parse_error_body(body: bytes) -> tuple[Optional[str], Optional[str]]:
    """Extract ``code``/``message`` from a JSON error body, if there is one."""
    if not body:
        return None, None
    try:
        doc = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None, None
    if not isinstance(doc, dict):
        return None, None
    return doc.get("code"), doc.get("message")


__all__ = [
    "MantaBucketsError",
    "InvalidArgument",
    "TransportError",
    "HTTPStatusError",
    "NotFoundError",
    "DecodeError",
    "PayloadStreamError",
    "ClientClosedError",
    "error_for_status",
]
