"""
Streaming encoders: CSV, JSON (array of records) and line-delimited JSON.

Each encoder takes a text sink (anything with ``write(str)``; ``flush()`` is
used when present) and a RowIterator, and writes row by row. At most one row
is held at a time. A failing sink write raises EncodingError; since earlier
rows may already be out, the caller can only abandon the stream. Errors from
the iterator itself (QueryError) pass through unchanged.

The encoders do not close the iterator; the caller owns it.
"""

import csv
import json
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Protocol

from sqlagent.core import errors
from sqlagent.core.config import settings
from sqlagent.engines.executor import Record, RowIterator


class Sink(Protocol):
    def write(self, data: str, /) -> Any: ...


Encoder = Callable[[Sink, RowIterator], None]


@contextmanager
def _writing() -> Iterator[None]:
    """Turn sink failures (broken pipe, closed file, ...) into EncodingError."""
    try:
        yield
    except errors.SQLAgentError:
        raise
    except (OSError, ValueError) as e:
        raise errors.EncodingError(str(e)) from e


def _flush(sink: Sink) -> None:
    flush = getattr(sink, "flush", None)
    if callable(flush):
        with _writing():
            flush()


def _json_default(obj: Any) -> Any:
    """JSON fallback for native DB values: dates, Decimal, UUID, bytes, sets."""
    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return obj.total_seconds()
    if isinstance(obj, Decimal):
        # Preserve integer-valued decimals as int, otherwise float
        if obj == obj.to_integral_value():
            return int(obj)
        return float(obj)
    if isinstance(obj, uuid.UUID):
        return str(obj)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return bytes(obj).decode("utf-8", errors="replace")
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    return str(obj)


def _dumps(record: Record) -> str:
    return json.dumps(record, default=_json_default, ensure_ascii=False)


def _text(value: Any) -> str:
    """CSV field text for a non-null value."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def encode_csv(sink: Sink, iterator: RowIterator) -> None:
    """Header row of column names, then one line per row. NULL -> empty field."""
    writer = csv.writer(sink, lineterminator="\n")
    buffer: list[Any] = []

    with _writing():
        writer.writerow(iterator.columns)

    while iterator.next():
        iterator.scan_positional(buffer)
        fields = ["" if v is None else _text(v) for v in buffer]
        with _writing():
            writer.writerow(fields)

    _flush(sink)


def encode_json(sink: Sink, iterator: RowIterator) -> None:
    """``[`` record ``,\\n`` record ... ``]``: a JSON array built one row at a time."""
    record: Record = {}
    count = 0

    with _writing():
        sink.write("[")

    while iterator.next():
        iterator.scan_named(record)
        chunk = _dumps(record)
        with _writing():
            if count:
                sink.write(",\n")
            sink.write(chunk)
        count += 1

    with _writing():
        sink.write("]")


def encode_ldjson(
    sink: Sink, iterator: RowIterator, *, flush_every: int | None = None
) -> None:
    """
    One JSON object per line, no enclosing array.

    The sink is flushed every *flush_every* rows (LDJSON_FLUSH_EVERY by default)
    when it supports flushing, and once at the end.
    """
    every = flush_every if flush_every is not None else settings.LDJSON_FLUSH_EVERY
    record: Record = {}
    count = 0

    while iterator.next():
        iterator.scan_named(record)
        chunk = _dumps(record) + "\n"
        with _writing():
            sink.write(chunk)
        count += 1
        if every > 0 and count % every == 0:
            _flush(sink)

    _flush(sink)


ENCODERS: dict[str, Encoder] = {
    "csv": encode_csv,
    "json": encode_json,
    "ldjson": encode_ldjson,
}
