"""
Bridge a blocking encoder to an async HTTP response body.

The encoder runs on a dedicated worker pool and writes into a QueueSink; the
response generator drains the sink's bounded queue from the event loop without
holding a thread. A slow client fills the queue and blocks the encoder
(backpressure). When the client goes away the sink is closed, the encoder's
next write raises EncodingError, and the worker closes the iterator and exits.

Encoder workers never run on the loop's default executor, so blocked producers
cannot starve the pool and query calls made with asyncio.to_thread.
"""

import asyncio
import logging
import queue
import threading
from collections.abc import AsyncIterator
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from sqlagent.core import errors
from sqlagent.core.config import settings
from sqlagent.engines.encoders import Encoder
from sqlagent.engines.executor import RowIterator

_log = logging.getLogger(__name__)

_DONE = object()
_POLL_SEC = 0.1

_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()


def _stream_executor() -> ThreadPoolExecutor:
    """Worker pool for encoders, created on first use."""
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=settings.STREAM_MAX_WORKERS,
                thread_name_prefix="sqlagent-stream",
            )
        return _executor


def shutdown_stream_executor() -> None:
    """Stop the encoder pool; the next stream creates a fresh one."""
    global _executor
    with _executor_lock:
        executor, _executor = _executor, None
    if executor is not None:
        executor.shutdown(wait=False, cancel_futures=True)


class QueueSink:
    """
    Text sink that hands output from a worker thread to the event loop as UTF-8 chunks.

    Must be created on the loop that calls get(). write/flush/finish may be called
    from any thread.
    """

    def __init__(self, *, chunk_size: int, maxsize: int) -> None:
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=maxsize)
        self._chunk_size = chunk_size
        self._parts: list[str] = []
        self._size = 0
        self._closed = threading.Event()
        self._loop = asyncio.get_running_loop()
        self._ready = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def write(self, data: str) -> int:
        if self._closed.is_set():
            raise errors.EncodingError("client disconnected")
        self._parts.append(data)
        self._size += len(data)
        if self._size >= self._chunk_size:
            self.flush()
        return len(data)

    def flush(self) -> None:
        if not self._parts:
            return
        chunk = "".join(self._parts).encode("utf-8")
        self._parts.clear()
        self._size = 0
        self._put(chunk)

    def finish(self, error: BaseException | None = None) -> None:
        """Producer side: deliver what is buffered, then the end marker or *error*."""
        try:
            if error is None:
                self.flush()
            self._put(error if error is not None else _DONE)
        except errors.EncodingError:
            _log.debug("sink closed before the end of the stream was delivered")

    async def get(self) -> Any:
        """Consumer side: next chunk, an exception, or the end marker."""
        while True:
            try:
                return self._queue.get_nowait()
            except queue.Empty:
                pass
            if self._closed.is_set():
                return _DONE
            self._ready.clear()
            # A put may have landed between the first check and clear().
            try:
                return self._queue.get_nowait()
            except queue.Empty:
                await self._ready.wait()

    def close(self) -> None:
        """Consumer side: stop accepting output."""
        self._closed.set()

    def _put(self, item: Any) -> None:
        while True:
            if self._closed.is_set():
                raise errors.EncodingError("client disconnected")
            try:
                self._queue.put(item, timeout=_POLL_SEC)
                break
            except queue.Full:
                continue
        try:
            self._loop.call_soon_threadsafe(self._ready.set)
        except RuntimeError:
            # Event loop is gone; nobody will read the rest.
            self._closed.set()
            raise errors.EncodingError("event loop closed") from None


def _produce(encoder: Encoder, sink: QueueSink, iterator: RowIterator) -> None:
    error: BaseException | None = None
    try:
        try:
            encoder(sink, iterator)
        finally:
            iterator.close()
    except Exception as e:
        error = e
    sink.finish(error)


async def stream_encoded(
    encoder: Encoder,
    iterator: RowIterator,
    *,
    chunk_size: int | None = None,
    queue_size: int | None = None,
) -> AsyncIterator[bytes]:
    """
    Yield the encoded output of *iterator* as byte chunks.

    An error before the first chunk is raised to the caller, which can still
    send a proper error response. After that the stream is abandoned and the
    error logged; the client sees a truncated body.
    """
    loop = asyncio.get_running_loop()
    sink = QueueSink(
        chunk_size=chunk_size or settings.STREAM_CHUNK_SIZE,
        maxsize=queue_size or settings.STREAM_QUEUE_SIZE,
    )
    producer = loop.run_in_executor(
        _stream_executor(), _produce, encoder, sink, iterator
    )
    sent = False
    try:
        while True:
            item = await sink.get()
            if item is _DONE:
                break
            if isinstance(item, BaseException):
                if not sent:
                    raise item
                _log.warning("stream abandoned after partial output: %s", item)
                break
            sent = True
            yield item
    finally:
        sink.close()
        if not producer.done():
            # The worker sees the closed sink on its next write and exits.
            producer.cancel()
        elif not producer.cancelled() and producer.exception():
            _log.warning("encoder worker failed: %s", producer.exception())


async def prepend(first: bytes, rest: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """Re-attach a chunk already pulled from *rest*."""
    if first:
        yield first
    async for chunk in rest:
        yield chunk
