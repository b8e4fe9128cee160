"""Interactive-channel output streams.

A session owns one :class:`OutputChannel` (the producer end). Each call to
``receive()`` attaches a fresh :class:`OutputStream`; attaching retires the
previous stream so at most one consumer is live per session.
"""

from __future__ import annotations

import asyncio
import logging as py_logging
from collections.abc import AsyncIterator
from typing import cast

logger = py_logging.getLogger(__name__)

DEFAULT_BACKLOG_LIMIT = 64 * 1024

_END = object()


class OutputStream:
    """Single-pass async sequence of output chunks; ends when closed.

    Unread output is capped at ``limit`` bytes; when a consumer falls behind
    the oldest chunks are dropped, the newest chunk is always kept.
    """

    def __init__(self, *, limit: int = DEFAULT_BACKLOG_LIMIT) -> None:
        self.limit = limit
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._buffered = 0
        self._dropped = 0
        self._closed = False
        self._exhausted = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def buffered_bytes(self) -> int:
        return self._buffered

    @property
    def dropped_bytes(self) -> int:
        return self._dropped

    def push(self, data: bytes) -> bool:
        if self._closed:
            return False
        chunk = bytes(data)
        self._queue.put_nowait(chunk)
        self._buffered += len(chunk)
        dropped = 0
        while self._buffered > self.limit and self._queue.qsize() > 1:
            stale = cast(bytes, self._queue.get_nowait())
            self._buffered -= len(stale)
            dropped += len(stale)
        if dropped:
            self._dropped += dropped
            logger.debug("output-stream dropped unread bytes=%s limit=%s", dropped, self.limit)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_END)

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self

    async def __anext__(self) -> bytes:
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._exhausted = True
            raise StopAsyncIteration
        chunk = cast(bytes, item)
        self._buffered -= len(chunk)
        return chunk

    def drain_nowait(self) -> bytes:
        """Return every chunk already buffered without waiting."""
        chunks: list[bytes] = []
        while not self._exhausted and not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _END:
                self._exhausted = True
                break
            chunks.append(cast(bytes, item))
        self._buffered = 0
        return b"".join(chunks)


class OutputChannel:
    def __init__(self, *, backlog_limit: int = DEFAULT_BACKLOG_LIMIT) -> None:
        self.backlog_limit = backlog_limit
        self._stream: OutputStream | None = None
        self._backlog = bytearray()
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def has_consumer(self) -> bool:
        return self._stream is not None and not self._stream.closed

    def reopen(self) -> None:
        self._finished = False

    def attach(self) -> OutputStream:
        stream = OutputStream(limit=self.backlog_limit)
        previous, self._stream = self._stream, stream
        if previous is not None and not previous.closed:
            logger.debug("output-stream retired superseded consumer")
            previous.close()
        if self._finished:
            stream.close()
            return stream
        if self._backlog:
            stream.push(bytes(self._backlog))
            self._backlog.clear()
        return stream

    def feed(self, data: bytes) -> None:
        if self._finished or not data:
            return
        if self._stream is not None and self._stream.push(data):
            return
        self._backlog.extend(data)
        overflow = len(self._backlog) - self.backlog_limit
        if overflow > 0:
            del self._backlog[:overflow]

    def feed_threadsafe(self, loop: asyncio.AbstractEventLoop, data: bytes) -> None:
        try:
            loop.call_soon_threadsafe(self.feed, data)
        except RuntimeError:
            logger.debug("output-stream dropped chunk after loop shutdown bytes=%s", len(data))

    def finish(self) -> None:
        self._finished = True
        self._backlog.clear()
        if self._stream is not None:
            self._stream.close()
        self._stream = None
