"""
HTTP transport for the Manta buckets API.

Implements the Transport protocol on top of httpx.AsyncClient with connection
pooling, timeouts and an optional connection retry policy for body-less
requests. Authentication is delegated to an injected ``httpx.Auth``.
"""
from __future__ import annotations

import logging
from typing import AsyncIterator, Mapping, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import TransportError
from ..settings import Settings
from .base import RequestBody, TransportResponse

__all__ = ["HttpTransport"]

logger = logging.getLogger(__name__)

# Only failures that happen before a request is on the wire are retried.
RETRYABLE_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


class HttpTransport:
    """
    Transport backed by a pooled ``httpx.AsyncClient``.

    Responses are always opened in streaming mode: ``request()`` returns as
    soon as headers arrive and the body is read lazily through
    ``TransportResponse.stream``. Closing the response before the body is
    drained releases the connection instead of reading the rest.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        auth: Optional[httpx.Auth] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_wait=None,
    ):
        """
        Initialize the HTTP transport.

        Args:
            settings: Endpoint, TLS and timeout configuration
            auth: Request signer/authenticator applied to every request
            transport: httpx transport override (e.g. httpx.MockTransport in tests)
            retry_wait: tenacity wait strategy for connection retries
        """
        self.settings = settings
        self.retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=10)

        self.client = httpx.AsyncClient(
            base_url=settings.base_url,
            auth=auth,
            transport=transport,
            timeout=httpx.Timeout(settings.http_timeout_s, connect=settings.connect_timeout_s),
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
            follow_redirects=False,
            verify=not settings.insecure,
            headers={"User-Agent": settings.user_agent},
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, str]] = None,
        body: Optional[RequestBody] = None,
    ) -> TransportResponse:
        request = self.client.build_request(
            method,
            path,
            headers=dict(headers or {}),
            params=dict(params or {}),
            content=body,
        )
        logger.debug(f"{method} {request.url}")

        try:
            response = await self._send(request, retryable=body is None)
        except httpx.TimeoutException as e:
            raise TransportError(f"Timeout during {method} {path}: {e}") from e
        except httpx.TransportError as e:
            raise TransportError(f"Network error during {method} {path}: {e}") from e

        logger.debug(f"{method} {path} -> {response.status_code}")
        return TransportResponse(
            status_code=response.status_code,
            headers={key.lower(): value for key, value in response.headers.items()},
            stream=_iter_raw(response, method, path),
            close=response.aclose,
        )

    async def _send(self, request: httpx.Request, *, retryable: bool) -> httpx.Response:
        if not retryable or self.settings.http_retry == 0:
            return await self.client.send(request, stream=True)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.settings.http_retry + 1),
            wait=self.retry_wait,
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.debug(
                        f"Retrying {request.method} {request.url.path} "
                        f"(attempt {attempt.retry_state.attempt_number})"
                    )
                return await self.client.send(request, stream=True)

    async def aclose(self) -> None:
        """Close the HTTP client and release pooled connections."""
        await self.client.aclose()

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


async def _iter_raw(response: httpx.Response, method: str, path: str) -> AsyncIterator[bytes]:
    """Yield raw body bytes, mapping httpx failures to TransportError."""
    try:
        async for chunk in response.aiter_raw():
            if chunk:
                yield chunk
    except httpx.TimeoutException as e:
        raise TransportError(f"Timeout reading {method} {path} response: {e}") from e
    except (httpx.TransportError, httpx.StreamError) as e:
        raise TransportError(f"Network error reading {method} {path} response: {e}") from e
