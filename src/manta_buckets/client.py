"""
Manta buckets client.

Public entry points for the buckets API. Each call builds its request, hands it
to the transport and returns a result or raises one error from
``manta_buckets.errors``; no call retries. Listings come back as lazy
``ListingStream`` iterators and downloads as ``ObjectDownload`` objects whose
body has not been read yet.
"""
from __future__ import annotations

import logging
from typing import Mapping, Optional

from .errors import ClientClosedError, HTTPStatusError, InvalidArgument
from .listing import ListingStream
from .metadata import check_headers, encode_metadata
from .models import BucketEntry, BucketObjectEntry
from .paths import Operation, RequestSpec, build_request
from .settings import Settings, create_settings_from_env
from .storage.base import Transport
from .transfer import BucketsResponse, ObjectDownload, Payload, download, exchange, upload

__all__ = ["MantaBucketsClient", "UNSUPPORTED_STATUSES"]

logger = logging.getLogger(__name__)

# Statuses from the capability probe that mean "no buckets API here".
UNSUPPORTED_STATUSES = frozenset({404, 405, 501})

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class MantaBucketsClient:
    """
    Async client for one account's buckets.

    Design Notes: Client lifecycle

    A client binds one Transport and is ``Open`` until ``close()``; afterwards
    every call raises ClientClosedError before touching the network. Calls are
    independent coroutines and may run concurrently, sharing only the
    transport's connection pool. The client keeps no per-call state.

    Usage:
        async with MantaBucketsClient.from_env() as client:
            await client.create_bucket("b1")
            await client.create_bucket_object(b"hello", "b1", "o1", metadata={"foo": "bar"})
            head = await client.head_bucket_object("b1", "o1")
    """

    def __init__(self, settings: Settings, *, transport: Optional[Transport] = None, auth=None):
        """
        Initialize the client.

        Args:
            settings: Endpoint and account configuration
            transport: Transport to use; when omitted an HttpTransport is created
                (and closed by ``close()``)
            auth: httpx.Auth for the created HttpTransport; ignored when
                ``transport`` is given
        """
        self.settings = settings
        self._owns_transport = transport is None
        if transport is None:
            from .storage.http_transport import HttpTransport
            transport = HttpTransport(settings, auth=auth)
        self.transport = transport
        self._closed = False

    @classmethod
    def from_env(cls, *, auth=None) -> MantaBucketsClient:
        """Create a client from MANTA_* environment variables."""
        return cls(create_settings_from_env(), auth=auth)

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self, operation: Operation) -> None:
        """
        Raise ClientClosedError if the client is closed.

        Calls that check headers or lengths run this first, so a closed client
        reports ClientClosedError rather than an argument error; ``_build``
        repeats it for the calls that go straight to building.
        """
        if self._closed:
            raise ClientClosedError(f"Cannot {operation.value}: client is closed")

    def _build(self, operation: Operation, *args, **kwargs) -> RequestSpec:
        self._ensure_open(operation)
        spec = build_request(operation, self.settings.user, *args, **kwargs)
        logger.debug(f"{operation.value}: request built ({spec.method} {spec.path})")
        return spec

    async def _run(self, spec: RequestSpec, call):
        logger.debug(f"{spec.operation.value}: in flight")
        try:
            result = await call
        except Exception as e:
            logger.debug(f"{spec.operation.value}: failed ({type(e).__name__}: {e})")
            raise
        logger.debug(f"{spec.operation.value}: completed")
        return result

    # Buckets

    async def is_buckets_supported(self) -> bool:
        """
        Probe whether the service offers the buckets API.

        Returns:
            True on success; False when the probe answers 404, 405 or 501

        Raises:
            HTTPStatusError: For any other non-success status
            TransportError: On network failure
        """
        spec = self._build(Operation.IS_BUCKETS_SUPPORTED)
        try:
            await self._run(spec, exchange(self.transport, spec))
        except HTTPStatusError as e:
            if e.status_code in UNSUPPORTED_STATUSES:
                logger.debug(f"Buckets API not supported (status {e.status_code})")
                return False
            raise
        return True

    async def create_bucket(self, bucket: str, *, headers: Optional[Mapping[str, str]] = None) -> BucketsResponse:
        """Create a bucket."""
        self._ensure_open(Operation.CREATE_BUCKET)
        spec = self._build(Operation.CREATE_BUCKET, bucket, headers=check_headers(headers))
        return await self._run(spec, exchange(self.transport, spec))

    async def head_bucket(self, bucket: str) -> BucketsResponse:
        """
        Check that a bucket exists.

        Raises:
            NotFoundError: If the bucket does not exist
        """
        spec = self._build(Operation.HEAD_BUCKET, bucket)
        return await self._run(spec, exchange(self.transport, spec))

    async def delete_bucket(self, bucket: str) -> BucketsResponse:
        """
        Delete an (empty) bucket.

        Raises:
            NotFoundError: If the bucket does not exist
        """
        spec = self._build(Operation.DELETE_BUCKET, bucket)
        return await self._run(spec, exchange(self.transport, spec))

    def list_buckets(
        self,
        *,
        prefix: Optional[str] = None,
        limit: Optional[int] = None,
        marker: Optional[str] = None,
    ) -> ListingStream[BucketEntry]:
        """
        Stream the account's buckets.

        The request is sent on the first pull of the returned stream.

        Raises:
            ClientClosedError: Immediately, if the client is closed
            InvalidArgument: Immediately, for bad listing parameters
        """
        spec = self._build(Operation.LIST_BUCKETS, prefix=prefix, limit=limit, marker=marker)
        return self._listing(spec, BucketEntry)

    # Objects

    def list_bucket_objects(
        self,
        bucket: str,
        *,
        prefix: Optional[str] = None,
        limit: Optional[int] = None,
        marker: Optional[str] = None,
    ) -> ListingStream[BucketObjectEntry]:
        """
        Stream the objects in a bucket.

        Each record carries name, type, mtime, etag, size, contentType and
        contentMD5. The request is sent on the first pull.

        Raises:
            ClientClosedError: Immediately, if the client is closed
            InvalidArgument: Immediately, for an empty bucket name or bad parameters
        """
        spec = self._build(Operation.LIST_BUCKET_OBJECTS, bucket, prefix=prefix, limit=limit, marker=marker)
        return self._listing(spec, BucketObjectEntry)

    def _listing(self, spec: RequestSpec, record_type) -> ListingStream:
        async def open_response():
            self._ensure_open(spec.operation)
            logger.debug(f"{spec.operation.value}: in flight")
            return await self.transport.request(
                spec.method, spec.path, headers=spec.headers, params=spec.params
            )

        return ListingStream(open_response, record_type, description=spec.path)

    async def create_bucket_object(
        self,
        payload: Payload,
        bucket: str,
        name: str,
        *,
        metadata: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        content_type: Optional[str] = None,
        content_length: Optional[int] = None,
    ) -> BucketsResponse:
        """
        Upload an object in a single PUT.

        Args:
            payload: bytes, a file-like object (sync or async ``read()``), or a
                sync/async iterable of bytes
            bucket: Bucket name
            name: Object name
            metadata: User metadata, sent as ``m-<key>`` headers
            headers: Raw header overrides (e.g. ``{"m-foo": "bar"}``), applied last
            content_type: Stored content type (default application/octet-stream)
            content_length: Declared payload size; enforced against the payload

        Returns:
            BucketsResponse with the service's response headers

        Raises:
            PayloadStreamError: If the payload source fails; the request is aborted
            NotFoundError: If the bucket does not exist
            HTTPStatusError: For other non-success statuses
        """
        self._ensure_open(Operation.CREATE_BUCKET_OBJECT)
        request_headers = {"content-type": content_type or DEFAULT_CONTENT_TYPE}
        if content_length is not None:
            if isinstance(content_length, bool) or not isinstance(content_length, int) or content_length < 0:
                raise InvalidArgument(f"content_length must be a non-negative integer, got {content_length!r}")
            request_headers["content-length"] = str(content_length)
        request_headers.update(encode_metadata(metadata))
        request_headers.update(check_headers(headers))

        spec = self._build(Operation.CREATE_BUCKET_OBJECT, bucket, name, headers=request_headers)
        return await self._run(spec, upload(self.transport, spec, payload))

    async def head_bucket_object(self, bucket: str, name: str) -> BucketsResponse:
        """
        Fetch an object's headers (content-md5, content-length, m-* metadata).

        Raises:
            NotFoundError: If the bucket or object does not exist
        """
        spec = self._build(Operation.HEAD_BUCKET_OBJECT, bucket, name)
        return await self._run(spec, exchange(self.transport, spec))

    async def get_bucket_object(
        self,
        bucket: str,
        name: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> ObjectDownload:
        """
        Download an object.

        Returns once headers arrive; the body is read through
        ``ObjectDownload.stream``. Close the download (or use ``async with``)
        to release the connection if the body is not fully read.

        Raises:
            NotFoundError: If the bucket or object does not exist
        """
        self._ensure_open(Operation.GET_BUCKET_OBJECT)
        spec = self._build(Operation.GET_BUCKET_OBJECT, bucket, name, headers=check_headers(headers))
        return await self._run(spec, download(self.transport, spec))

    async def put_bucket_object_metadata(
        self,
        bucket: str,
        name: str,
        *,
        metadata: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> BucketsResponse:
        """
        Replace an object's metadata without re-uploading its payload.

        Only the metadata headers are sent, with no body.

        Raises:
            NotFoundError: If the bucket or object does not exist
        """
        self._ensure_open(Operation.PUT_BUCKET_OBJECT_METADATA)
        request_headers = encode_metadata(metadata)
        request_headers.update(check_headers(headers))
        spec = self._build(Operation.PUT_BUCKET_OBJECT_METADATA, bucket, name, headers=request_headers)
        return await self._run(spec, exchange(self.transport, spec))

    async def delete_bucket_object(self, bucket: str, name: str) -> BucketsResponse:
        """
        Delete an object.

        Raises:
            NotFoundError: If the bucket or object does not exist
        """
        spec = self._build(Operation.DELETE_BUCKET_OBJECT, bucket, name)
        return await self._run(spec, exchange(self.transport, spec))

    # Lifecycle

    async def close(self) -> None:
        """Close the client; later calls raise ClientClosedError. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._owns_transport:
            await self.transport.aclose()

    async def __aenter__(self) -> MantaBucketsClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
