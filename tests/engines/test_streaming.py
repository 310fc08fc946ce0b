"""Tests for the thread-to-async bridge used by streamed responses."""

import asyncio
import time
from collections.abc import Generator
from concurrent.futures import ThreadPoolExecutor

import pytest

from sqlagent.core import errors
from sqlagent.core.config import settings
from sqlagent.engines import encode_csv, encode_ldjson
from sqlagent.engines.streaming import (
    _DONE,
    QueueSink,
    prepend,
    shutdown_stream_executor,
    stream_encoded,
)
from tests.utils.rows import PEOPLE_ROWS, FakeIterator


class FailingIterator(FakeIterator):
    """Yields one row, then fails the way a dropped server connection would."""

    def next(self) -> bool:
        if self._pos >= 0:
            raise errors.QueryError("server closed the connection unexpectedly")
        return super().next()


async def _collect(agen) -> list[bytes]:
    return [chunk async for chunk in agen]


def _numbers(n: int) -> FakeIterator:
    return FakeIterator(["n"], [(i,) for i in range(n)])


def _wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def one_stream_worker(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    shutdown_stream_executor()
    monkeypatch.setattr(settings, "STREAM_MAX_WORKERS", 1)
    yield
    shutdown_stream_executor()


# --- QueueSink ---


def test_queue_sink_buffers_until_flush() -> None:
    async def run() -> bytes:
        sink = QueueSink(chunk_size=1024, maxsize=4)
        sink.write("ab")
        sink.write("cé")
        sink.flush()
        return await sink.get()

    assert asyncio.run(run()) == "abcé".encode()


def test_queue_sink_flushes_at_chunk_size() -> None:
    async def run() -> list:
        sink = QueueSink(chunk_size=4, maxsize=4)
        sink.write("abcd")
        sink.write("e")
        first = await sink.get()
        sink.finish()
        return [first, await sink.get(), await sink.get()]

    assert asyncio.run(run()) == [b"abcd", b"e", _DONE]


def test_queue_sink_finish_with_error_drops_buffer() -> None:
    err = errors.QueryError("boom")

    async def run():
        sink = QueueSink(chunk_size=1024, maxsize=4)
        sink.write("partial")
        sink.finish(err)
        return await sink.get()

    assert asyncio.run(run()) is err


def test_queue_sink_closed_rejects_writes() -> None:
    async def run():
        sink = QueueSink(chunk_size=1, maxsize=1)
        sink.close()
        assert sink.closed
        with pytest.raises(errors.EncodingError, match="client disconnected"):
            sink.write("x")
        return await sink.get()

    assert asyncio.run(run()) is _DONE


def test_queue_sink_finish_after_close_is_quiet() -> None:
    async def run() -> None:
        sink = QueueSink(chunk_size=1024, maxsize=1)
        sink.write("x")
        sink.close()
        sink.finish()

    asyncio.run(run())


def test_queue_sink_wakes_consumer_from_another_thread() -> None:
    async def run() -> bytes:
        sink = QueueSink(chunk_size=1, maxsize=1)
        waiter = asyncio.ensure_future(sink.get())
        await asyncio.sleep(0)
        assert not waiter.done()
        await asyncio.to_thread(sink.write, "late")
        return await asyncio.wait_for(waiter, timeout=5)

    assert asyncio.run(run()) == b"late"


# --- stream_encoded ---


def test_stream_encoded_full_output() -> None:
    it = FakeIterator(["name", "age"], PEOPLE_ROWS)
    chunks = asyncio.run(_collect(stream_encoded(encode_csv, it, chunk_size=8, queue_size=2)))
    assert b"".join(chunks) == b"name,age\nalice,30\nbob,\ncarol,41\n"
    assert len(chunks) > 1
    assert it.closed


def test_stream_encoded_empty_output() -> None:
    it = FakeIterator(["a"], [])
    chunks = asyncio.run(_collect(stream_encoded(encode_ldjson, it)))
    assert chunks == []
    assert it.closed


def test_stream_encoded_error_before_output_is_raised() -> None:
    it = FailingIterator(["a"], [(1,), (2,)])
    with pytest.raises(errors.QueryError, match="server closed"):
        asyncio.run(_collect(stream_encoded(encode_csv, it, chunk_size=1024)))
    assert it.closed


def test_stream_encoded_error_after_output_truncates() -> None:
    it = FailingIterator(["a"], [(1,), (2,)])
    chunks = asyncio.run(_collect(stream_encoded(encode_csv, it, chunk_size=1)))
    assert b"".join(chunks) == b"a\n1\n"
    assert it.closed


def test_stream_encoded_consumer_stops_early() -> None:
    it = _numbers(1000)

    async def first_chunk() -> bytes:
        agen = stream_encoded(encode_ldjson, it, chunk_size=1, queue_size=1)
        try:
            return await agen.__anext__()
        finally:
            await agen.aclose()

    assert asyncio.run(first_chunk()) == b'{"n": 0}\n'
    assert _wait_until(lambda: it.closed)


def test_concurrent_streams_do_not_use_the_default_executor() -> None:
    async def run() -> list:
        loop = asyncio.get_running_loop()
        loop.set_default_executor(ThreadPoolExecutor(max_workers=2))
        streams = [
            _collect(stream_encoded(encode_ldjson, _numbers(200), chunk_size=1, queue_size=1))
            for _ in range(3)
        ]
        blocking_call = asyncio.to_thread(sum, [1, 2])
        return await asyncio.wait_for(asyncio.gather(blocking_call, *streams), timeout=10)

    total, *outputs = asyncio.run(run())
    assert total == 3
    for chunks in outputs:
        assert len(b"".join(chunks).splitlines()) == 200


def test_streams_share_a_single_encoder_worker(one_stream_worker: None) -> None:
    async def run() -> list:
        streams = [
            _collect(stream_encoded(encode_ldjson, _numbers(50), chunk_size=1, queue_size=1))
            for _ in range(2)
        ]
        return await asyncio.wait_for(asyncio.gather(*streams), timeout=10)

    for chunks in asyncio.run(run()):
        assert len(b"".join(chunks).splitlines()) == 50


def test_prepend() -> None:
    async def rest():
        yield b"b"
        yield b"c"

    assert asyncio.run(_collect(prepend(b"a", rest()))) == [b"a", b"b", b"c"]
    assert asyncio.run(_collect(prepend(b"", rest()))) == [b"b", b"c"]
