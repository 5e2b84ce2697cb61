"""
Streaming decoder for buckets listings.

Listing responses are ``application/x-json-stream`` bodies: one JSON object per
LF-terminated line, no enclosing array. ``ListingStream`` turns such a body into
an async iterator of validated records without buffering the whole listing.

Design Notes: Backpressure

The stream is pull-based. A network chunk is only read when every record
decoded from earlier chunks has been handed to the consumer, so at most one
chunk's worth of records plus one partial line is held in memory no matter how
large the listing is. A consumer that stops pulling stops the network reads.
"""
from __future__ import annotations

import json
import logging
from collections import deque
from typing import AsyncIterator, Awaitable, Callable, Deque, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import DecodeError, error_for_status
from .storage.base import ERROR_BODY_LIMIT, TransportResponse

__all__ = ["ListingStream", "LineDecoder"]

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class LineDecoder:
    """
    Reassembles LF-delimited lines from arbitrarily split chunks.

    ``feed()`` returns only complete lines; the trailing partial line is kept
    until a later chunk terminates it or ``finish()`` is called at end of body.
    """

    def __init__(self) -> None:
        self._partial = bytearray()

    def feed(self, chunk: bytes) -> list[bytes]:
        self._partial.extend(chunk)
        if b"\n" not in chunk:
            return []
        *lines, rest = bytes(self._partial).split(b"\n")
        self._partial = bytearray(rest)
        return lines

    def finish(self) -> list[bytes]:
        """Return the final unterminated line, if any."""
        rest = bytes(self._partial)
        self._partial.clear()
        return [rest] if rest else []

    @property
    def pending(self) -> int:
        return len(self._partial)


class ListingStream(Generic[RecordT]):
    """
    Lazy async iterator over the records of one listing response.

    The request is issued on the first pull. Records are yielded in body order;
    end of stream is signalled once, and every later pull also stops. A decode
    or network error terminates the stream; records already yielded stay valid.

    Usage:
        async with client.list_bucket_objects("b1") as objects:
            async for entry in objects:
                print(entry.name, entry.size)
    """

    def __init__(
        self,
        open_response: Callable[[], Awaitable[TransportResponse]],
        record_type: Type[RecordT],
        *,
        description: str = "listing",
    ):
        """
        Args:
            open_response: Issues the listing request and returns the response
            record_type: Pydantic model each line is validated into
            description: Label used in log and error messages
        """
        self._open_response = open_response
        self._record_type = record_type
        self._description = description

        self._response: Optional[TransportResponse] = None
        self._chunks: Optional[AsyncIterator[bytes]] = None
        self._lines = LineDecoder()
        self._ready: Deque[RecordT] = deque()
        self._line_number = 0
        self._started = False
        self._done = False
        self._error: Optional[DecodeError] = None
        self.next_marker: Optional[str] = None

    def __aiter__(self) -> ListingStream[RecordT]:
        return self

    async def __anext__(self) -> RecordT:
        while not self._ready:
            if self._error is not None:
                error, self._error = self._error, None
                raise error
            if self._done:
                raise StopAsyncIteration
            try:
                await self._fill()
            except BaseException:
                await self._terminate()
                raise
        return self._ready.popleft()

    async def _fill(self) -> None:
        """Decode records from the next chunk, or finish at end of body."""
        if not self._started:
            await self._open()
            if self._done:
                return

        try:
            chunk = await self._chunks.__anext__()
        except StopAsyncIteration:
            self._decode_lines(self._lines.finish())
            if self._error is None:
                logger.debug(f"{self._description}: end of stream after {self._line_number} lines")
            await self._terminate()
            return

        self._decode_lines(self._lines.feed(chunk))
        if self._error is not None:
            await self._terminate()

    async def _open(self) -> None:
        self._started = True
        response = await self._open_response()
        self._response = response

        if not response.ok:
            body = await response.aread(ERROR_BODY_LIMIT)
            raise error_for_status(
                response.status_code,
                method="GET",
                path=self._description,
                body=body,
                headers=response.headers,
            )

        self.next_marker = response.headers.get("next-marker")
        if response.stream is None:
            await self._terminate()
            return
        self._chunks = response.stream.__aiter__()

    def _decode_lines(self, lines: list[bytes]) -> None:
        # A bad line is raised only after the records before it are delivered.
        for raw in lines:
            self._line_number += 1
            line = raw.rstrip(b"\r")
            if not line.strip():
                continue
            try:
                self._ready.append(self._decode(line))
            except DecodeError as e:
                logger.debug(f"{self._description}: {e}")
                self._error = e
                return

    def _decode(self, line: bytes) -> RecordT:
        try:
            doc = json.loads(line.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise DecodeError(
                f"{self._description}: line {self._line_number} is not valid UTF-8: {e}",
                line_number=self._line_number,
                line=line,
            ) from e
        except json.JSONDecodeError as e:
            raise DecodeError(
                f"{self._description}: line {self._line_number} is not valid JSON: {e}",
                line_number=self._line_number,
                line=line,
            ) from e

        if not isinstance(doc, dict):
            raise DecodeError(
                f"{self._description}: line {self._line_number} is not a JSON object",
                line_number=self._line_number,
                line=line,
            )

        try:
            return self._record_type.model_validate(doc)
        except ValidationError as e:
            raise DecodeError(
                f"{self._description}: line {self._line_number} is not a valid "
                f"{self._record_type.__name__}: {e}",
                line_number=self._line_number,
                line=line,
            ) from e

    async def _terminate(self) -> None:
        self._done = True
        self._started = True
        if self._response is not None:
            await self._response.aclose()

    async def aclose(self) -> None:
        """
        Stop the listing and release its connection.

        Records decoded but not yet delivered are dropped. Safe to call at any
        point, including before the first pull.
        """
        if not self._done and self._response is not None:
            logger.debug(f"{self._description}: closed by consumer after {self._line_number} lines")
        self._ready.clear()
        self._error = None
        await self._terminate()

    async def collect(self) -> list[RecordT]:
        """Drain the stream into a list."""
        return [record async for record in self]

    async def __aenter__(self) -> ListingStream[RecordT]:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
