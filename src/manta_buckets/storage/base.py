"""
Transport interface for the buckets client.

This protocol defines the boundary between the client core and the HTTP
layer, enabling clean dependency injection and testing with fakes. The core
never imports httpx; it only talks to a Transport.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Dict, Mapping, Optional, Protocol, Union, runtime_checkable

__all__ = ["Transport", "TransportResponse", "RequestBody", "ERROR_BODY_LIMIT"]

# Error bodies are read up to this many bytes.
ERROR_BODY_LIMIT = 64 * 1024

RequestBody = Union[bytes, AsyncIterator[bytes]]


@dataclass
class TransportResponse:
    """
    Status, headers and (streamed) body of one HTTP exchange.

    Invariants:
    - headers: lower-cased names, values exactly as sent by the server
    - stream: raw body bytes in arrival order, None for body-less responses
    - close: releases the underlying connection; safe to call more than once
    """
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    stream: Optional[AsyncIterator[bytes]] = None
    close: Optional[Callable[[], Awaitable[None]]] = None
    _closed: bool = field(default=False, init=False, repr=False)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    async def aread(self, limit: Optional[int] = None) -> bytes:
        """
        Read the body, stopping after ``limit`` bytes, then release the response.

        Used for error bodies and other small payloads only.
        """
        chunks = []
        total = 0
        try:
            if self.stream is not None:
                async for chunk in self.stream:
                    chunks.append(chunk)
                    total += len(chunk)
                    if limit is not None and total >= limit:
                        break
        finally:
            await self.aclose()
        body = b"".join(chunks)
        return body[:limit] if limit is not None else body

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        aclose_stream = getattr(self.stream, "aclose", None)
        if aclose_stream is not None:
            await aclose_stream()
        if self.close is not None:
            await self.close()


@runtime_checkable
class Transport(Protocol):
    """Protocol for authenticated HTTP exchanges with the storage service."""

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, str]] = None,
        body: Optional[RequestBody] = None,
    ) -> TransportResponse:
        """
        Perform one HTTP request and return once response headers arrive.

        The response body is not read; callers consume ``stream`` and must
        ``aclose()`` the response when done.

        Args:
            method: HTTP method
            path: Percent-encoded resource path
            headers: Request headers
            params: Query parameters
            body: Request body, bytes or an async iterator of bytes

        Returns:
            TransportResponse for any status code (non-2xx is not an error here)

        Raises:
            TransportError: For connection, timeout and protocol failures
            Exception: Anything raised by the ``body`` iterator, unchanged
        """
        ...

    async def aclose(self) -> None:
        """Release pooled connections."""
        ...
