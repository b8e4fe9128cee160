from __future__ import annotations

import asyncio

import pytest

from cognis.terminal.stream import OutputChannel, OutputStream


async def _collect(stream: OutputStream) -> list[bytes]:
    return [chunk async for chunk in stream]


@pytest.mark.anyio
async def test_stream_yields_pushed_chunks_until_closed() -> None:
    stream = OutputStream()
    stream.push(b"a")
    stream.push(b"b")
    stream.close()

    assert await _collect(stream) == [b"a", b"b"]
    assert await _collect(stream) == []


@pytest.mark.anyio
async def test_closed_stream_rejects_pushes() -> None:
    stream = OutputStream()
    stream.close()

    assert stream.push(b"late") is False
    assert stream.closed


@pytest.mark.anyio
async def test_drain_nowait_returns_buffered_bytes() -> None:
    stream = OutputStream()
    stream.push(b"hello ")
    stream.push(b"world")

    assert stream.drain_nowait() == b"hello world"
    assert stream.drain_nowait() == b""


@pytest.mark.anyio
async def test_channel_buffers_output_until_consumer_attaches() -> None:
    channel = OutputChannel()
    channel.feed(b"banner")

    stream = channel.attach()
    channel.feed(b" prompt")
    channel.finish()

    assert b"".join(await _collect(stream)) == b"banner prompt"


@pytest.mark.anyio
async def test_backlog_is_bounded() -> None:
    channel = OutputChannel(backlog_limit=4)
    channel.feed(b"abcdef")

    stream = channel.attach()

    assert stream.drain_nowait() == b"cdef"


@pytest.mark.anyio
async def test_slow_consumer_keeps_only_newest_output() -> None:
    stream = OutputStream(limit=4)
    for chunk in (b"ab", b"cd", b"ef"):
        stream.push(chunk)

    assert stream.buffered_bytes == 4
    assert stream.dropped_bytes == 2
    assert await stream.__anext__() == b"cd"
    assert stream.buffered_bytes == 2
    assert stream.drain_nowait() == b"ef"


@pytest.mark.anyio
async def test_oversized_chunk_is_still_delivered() -> None:
    stream = OutputStream(limit=4)
    stream.push(b"abc")
    stream.push(b"defghij")

    assert stream.drain_nowait() == b"defghij"
    assert stream.dropped_bytes == 3


@pytest.mark.anyio
async def test_attached_consumer_is_bounded_by_backlog_limit() -> None:
    channel = OutputChannel(backlog_limit=8)
    stream = channel.attach()

    for index in range(100):
        channel.feed(f"{index:04d}".encode())

    assert stream.buffered_bytes <= 8
    assert stream.drain_nowait() == b"00980099"


@pytest.mark.anyio
async def test_attaching_retires_previous_consumer() -> None:
    channel = OutputChannel()
    first = channel.attach()
    second = channel.attach()
    channel.feed(b"x")
    channel.finish()

    assert await _collect(first) == []
    assert await _collect(second) == [b"x"]


@pytest.mark.anyio
async def test_attach_after_finish_returns_ended_stream() -> None:
    channel = OutputChannel()
    channel.finish()
    channel.feed(b"ignored")

    stream = channel.attach()

    assert stream.closed
    assert await _collect(stream) == []
    assert not channel.has_consumer


@pytest.mark.anyio
async def test_reopen_allows_new_output_after_finish() -> None:
    channel = OutputChannel()
    channel.finish()
    channel.reopen()

    stream = channel.attach()
    channel.feed(b"again")

    assert channel.has_consumer
    assert stream.drain_nowait() == b"again"


@pytest.mark.anyio
async def test_feed_threadsafe_delivers_on_loop() -> None:
    channel = OutputChannel()
    stream = channel.attach()
    loop = asyncio.get_running_loop()

    await asyncio.to_thread(channel.feed_threadsafe, loop, b"from-thread")
    chunk = await asyncio.wait_for(stream.__anext__(), timeout=1)

    assert chunk == b"from-thread"
