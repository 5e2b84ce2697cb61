"""
Object transfer pipeline.

Uploads pipe an arbitrary payload source into a PUT request body; downloads
hand the GET response body back as a lazily consumed ``PayloadStream``. Neither
direction buffers the whole payload.

Integrity contract:
- upload success is the transport's acknowledgment only; no hash is injected
- downloads deliver exactly the bytes the server sent, and a body that ends
  short of (or runs past) its ``content-length`` is a TransportError, never a
  clean end of stream
- ``content-md5``/``content-length`` headers are exposed verbatim
"""
from __future__ import annotations

import asyncio
import base64
import hashlib
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

from .errors import InvalidArgument, PayloadStreamError, TransportError, error_for_status
from .metadata import decode_metadata
from .paths import RequestSpec
from .storage.base import ERROR_BODY_LIMIT, RequestBody, Transport, TransportResponse

__all__ = [
    "BucketsResponse",
    "ObjectDownload",
    "PayloadStream",
    "Payload",
    "CHUNK_SIZE",
    "iter_payload",
    "exchange",
    "upload",
    "download",
]

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1 MiB

# bytes, a file-like object with read(), or a (async) iterable of bytes
Payload = Any


@dataclass(frozen=True)
class BucketsResponse:
    """
    Status and headers of a completed, body-less exchange.

    Returned by bucket calls, uploads, heads, metadata updates and deletes.
    """
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def metadata(self) -> Dict[str, str]:
        """User metadata decoded from ``m-*`` headers."""
        return decode_metadata(self.headers)

    @property
    def content_md5(self) -> Optional[str]:
        return self.headers.get("content-md5")

    @property
    def content_length(self) -> Optional[int]:
        value = self.headers.get("content-length")
        return int(value) if value is not None else None


def _as_bytes(chunk: Any, sent: int) -> bytes:
    if isinstance(chunk, (bytes, bytearray, memoryview)):
        return bytes(chunk)
    raise PayloadStreamError(
        f"Payload produced {type(chunk).__name__}, expected bytes",
        bytes_sent=sent,
    )


async def _iter_source(payload: Payload, chunk_size: int) -> AsyncIterator[Any]:
    """
    Yield raw chunks from any supported payload source.

    Blocking ``read()`` calls on sync file objects run in a worker thread so
    large reads do not stall the event loop.
    """
    read = getattr(payload, "read", None)
    if read is not None:
        while True:
            if inspect.iscoroutinefunction(read):
                chunk = read(chunk_size)
            else:
                chunk = await asyncio.to_thread(read, chunk_size)
            if inspect.isawaitable(chunk):
                chunk = await chunk
            if not chunk:
                return
            yield chunk
    elif hasattr(payload, "__aiter__"):
        async for chunk in payload:
            yield chunk
    elif hasattr(payload, "__iter__") and not isinstance(payload, (str, dict)):
        for chunk in payload:
            yield chunk
    else:
        raise PayloadStreamError(f"Unsupported payload type: {type(payload).__name__}")


async def iter_payload(
    payload: Payload,
    *,
    expected_length: Optional[int] = None,
    chunk_size: int = CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """
    Normalize a payload source into an async iterator of bytes.

    Any failure of the source surfaces as PayloadStreamError raised from
    inside the iterator, so a transport consuming it as a request body aborts
    the request instead of completing it.

    Args:
        payload: File-like object (sync or async ``read()``), sync iterable
            or async iterable of bytes
        expected_length: Declared content-length; a source yielding a different
            number of bytes is an error
        chunk_size: Read size for file-like sources

    Raises:
        PayloadStreamError: If the source raises, yields non-bytes, or does
            not match ``expected_length``
    """
    sent = 0
    source = _iter_source(payload, chunk_size)
    try:
        async for raw in source:
            chunk = _as_bytes(raw, sent)
            sent += len(chunk)
            if expected_length is not None and sent > expected_length:
                raise PayloadStreamError(
                    f"Payload exceeded declared content-length {expected_length}",
                    bytes_sent=sent,
                )
            if chunk:
                yield chunk
    except PayloadStreamError:
        raise
    except Exception as e:
        raise PayloadStreamError(f"Payload source failed after {sent} bytes: {e}", bytes_sent=sent) from e
    finally:
        await source.aclose()

    if expected_length is not None and sent != expected_length:
        raise PayloadStreamError(
            f"Payload ended after {sent} of {expected_length} declared bytes",
            bytes_sent=sent,
        )


def _check_payload(payload: Payload) -> None:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return
    if isinstance(payload, (str, dict)):
        raise InvalidArgument(f"Payload must be bytes or a byte stream, got {type(payload).__name__}")
    if not (hasattr(payload, "read") or hasattr(payload, "__aiter__") or hasattr(payload, "__iter__")):
        raise InvalidArgument(f"Unsupported payload type: {type(payload).__name__}")


def _request_body(payload: Payload, expected_length: Optional[int]) -> RequestBody:
    _check_payload(payload)
    if isinstance(payload, (bytes, bytearray, memoryview)):
        data = bytes(payload)
        if expected_length is not None and len(data) != expected_length:
            raise PayloadStreamError(
                f"Payload is {len(data)} bytes but content-length is {expected_length}",
                bytes_sent=0,
            )
        return data
    return iter_payload(payload, expected_length=expected_length)


def _declared_length(headers: Dict[str, str]) -> Optional[int]:
    declared = headers.get("content-length")
    if declared is None:
        return None
    if not declared.isascii() or not declared.isdigit():
        raise InvalidArgument(f"content-length must be a non-negative integer, got {declared!r}")
    return int(declared)


async def _raise_for_status(response: TransportResponse, spec: RequestSpec) -> None:
    if response.ok:
        return
    body = await response.aread(ERROR_BODY_LIMIT)
    raise error_for_status(
        response.status_code,
        method=spec.method,
        path=spec.path,
        body=body,
        headers=response.headers,
    )


async def exchange(transport: Transport, spec: RequestSpec) -> BucketsResponse:
    """
    Perform a request/response exchange with no body in either direction.

    Used for head, delete, bucket creation and metadata-only updates.

    Raises:
        NotFoundError: On 404
        HTTPStatusError: On any other non-success status
        TransportError: On network failure
    """
    response = await transport.request(spec.method, spec.path, headers=spec.headers, params=spec.params)
    await _raise_for_status(response, spec)
    await response.aclose()
    return BucketsResponse(status_code=response.status_code, headers=response.headers)


async def upload(
    transport: Transport,
    spec: RequestSpec,
    payload: Payload,
) -> BucketsResponse:
    """
    PUT a payload as the request body.

    Completes only once the transport reports a success status. A declared
    ``content-length`` in ``spec.headers`` is enforced against the payload.

    Raises:
        PayloadStreamError: If the payload source fails or mismatches its length
        InvalidArgument: If a declared content-length is not a non-negative integer
        NotFoundError: On 404 (e.g. the bucket does not exist)
        HTTPStatusError: On any other non-success status
        TransportError: On network failure
    """
    body = _request_body(payload, _declared_length(spec.headers))
    try:
        response = await transport.request(spec.method, spec.path, headers=spec.headers, body=body)
    except PayloadStreamError as e:
        logger.debug(f"{spec.method} {spec.path} aborted: {e}")
        raise
    finally:
        aclose_body = getattr(body, "aclose", None)
        if aclose_body is not None:
            await aclose_body()

    await _raise_for_status(response, spec)
    await response.aclose()
    return BucketsResponse(status_code=response.status_code, headers=response.headers)


class PayloadStream:
    """
    Async iterator over a downloaded object's body.

    Yields the server's bytes unmodified and in order while keeping a running
    byte count and MD5, so callers can compare against the ``content-length``
    and ``content-md5`` response headers once the stream is drained.
    """

    def __init__(self, response: TransportResponse, *, description: str = "download"):
        self._response = response
        self._chunks = response.stream.__aiter__() if response.stream is not None else None
        self._description = description
        self._md5 = hashlib.md5()
        self._expected: Optional[int] = None
        declared = response.headers.get("content-length")
        if declared is not None and declared.isdigit():
            self._expected = int(declared)
        self.bytes_read = 0
        self.completed = False
        self._closed = False

    @property
    def content_md5(self) -> str:
        """Base64 MD5 of the bytes delivered so far (same encoding as ``content-md5``)."""
        return base64.b64encode(self._md5.digest()).decode("ascii")

    def __aiter__(self) -> PayloadStream:
        return self

    async def __anext__(self) -> bytes:
        if self.completed:
            raise StopAsyncIteration
        if self._closed:
            raise TransportError(f"{self._description}: stream was closed before the body was fully read")

        try:
            chunk = await self._next_chunk()
        except BaseException:
            await self._release()
            raise

        if chunk is None:
            await self._finish()
            raise StopAsyncIteration

        self.bytes_read += len(chunk)
        if self._expected is not None and self.bytes_read > self._expected:
            await self._release()
            raise TransportError(
                f"{self._description}: received more than the declared {self._expected} bytes"
            )
        self._md5.update(chunk)
        return chunk

    async def _next_chunk(self) -> Optional[bytes]:
        if self._chunks is None:
            return None
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            return None

    async def _finish(self) -> None:
        await self._release()
        if self._expected is not None and self.bytes_read != self._expected:
            raise TransportError(
                f"{self._description}: body ended after {self.bytes_read} of {self._expected} bytes"
            )
        self.completed = True
        logger.debug(f"{self._description}: received {self.bytes_read} bytes")

    async def _release(self) -> None:
        self._closed = True
        await self._response.aclose()

    async def read(self) -> bytes:
        """Drain the remaining body into memory."""
        return b"".join([chunk async for chunk in self])

    async def aclose(self) -> None:
        """
        Release the connection.

        Closing before the body is drained aborts the response; any further
        read raises TransportError instead of ending cleanly.
        """
        if not self.completed and not self._closed:
            logger.debug(f"{self._description}: closed after {self.bytes_read} bytes")
        await self._release()


@dataclass
class ObjectDownload:
    """
    Response headers plus the not-yet-consumed object body.

    Headers are available immediately, before the payload is drained.

    Usage:
        async with await client.get_bucket_object("b1", "o1") as download:
            data = await download.stream.read()
    """
    status_code: int
    headers: Dict[str, str]
    stream: PayloadStream

    @property
    def metadata(self) -> Dict[str, str]:
        return decode_metadata(self.headers)

    @property
    def content_md5(self) -> Optional[str]:
        return self.headers.get("content-md5")

    @property
    def content_length(self) -> Optional[int]:
        value = self.headers.get("content-length")
        return int(value) if value is not None else None

    async def aclose(self) -> None:
        await self.stream.aclose()

    async def __aenter__(self) -> ObjectDownload:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


async def download(transport: Transport, spec: RequestSpec) -> ObjectDownload:
    """
    GET an object, returning as soon as response headers arrive.

    Raises:
        NotFoundError: On 404
        HTTPStatusError: On any other non-success status
        TransportError: On network failure
    """
    response = await transport.request(spec.method, spec.path, headers=spec.headers, params=spec.params)
    await _raise_for_status(response, spec)
    return ObjectDownload(
        status_code=response.status_code,
        headers=response.headers,
        stream=PayloadStream(response, description=f"{spec.method} {spec.path}"),
    )
