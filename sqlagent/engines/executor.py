"""
Run a statement against a pooled handle and expose the rows lazily.

Statements with named parameters are bound with SQLAlchemy ``text()``, which
compiles ``:name`` placeholders into each driver's paramstyle (``::`` casts are
left alone). Statements without parameters go to the driver verbatim, with
no parameter argument, so a literal ``%`` is never read as a placeholder.

The iterator checks out one connection from the handle and holds it until
close(). Rows are fetched one at a time from a streaming cursor; nothing is
materialised.
"""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Connection, CursorResult, Engine

from sqlagent.core import errors

_log = logging.getLogger(__name__)

Record = dict[str, Any]
"""One decoded row keyed by column name. Duplicate column names overwrite each other."""


def _bytes_to_str(value: Any) -> Any:
    # Some drivers return byte buffers for what are conceptually text columns.
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


class RowIterator:
    """
    Forward-only, single-pass cursor over one result set.

    Not safe for concurrent use. close() must be called once the iterator is no
    longer needed, on every exit path; the context-manager form does that.
    """

    def __init__(self, conn: Connection, result: CursorResult | None, columns: list[str]) -> None:
        self.columns = columns
        self._conn = conn
        self._result = result
        self._row: tuple[Any, ...] | None = None
        self._exhausted = result is None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def next(self) -> bool:
        """Advance to the next row. False means the result set is exhausted."""
        if self._closed:
            raise RuntimeError("iterator is closed")
        if self._exhausted:
            self._row = None
            return False
        try:
            row = self._result.fetchone()
        except Exception as e:
            raise errors.QueryError(errors.driver_message(e)) from e
        if row is None:
            self._exhausted = True
            self._row = None
            return False
        self._row = tuple(row)
        return True

    def _current(self) -> tuple[Any, ...]:
        if self._closed:
            raise RuntimeError("iterator is closed")
        if self._row is None:
            raise RuntimeError("no current row; call next() first")
        return self._row

    def scan_named(self, record: Record) -> None:
        """Fill *record* with the current row by column name; bytes become text."""
        for name, value in zip(self.columns, self._current()):
            record[name] = _bytes_to_str(value)

    def scan_positional(self, buffer: list[Any]) -> None:
        """Fill *buffer* with the current row's raw values in column order."""
        buffer[:] = self._current()

    def close(self) -> None:
        """
        Release the cursor and return the connection to its pool.

        A fully consumed result is committed, so statements that modify data
        persist as they would under driver autocommit; anything else is rolled
        back when the connection goes back to the pool.
        """
        if self._closed:
            return
        self._closed = True
        self._row = None
        try:
            if self._result is not None:
                self._result.close()
            if self._exhausted and self._conn.in_transaction():
                self._conn.commit()
        finally:
            self._conn.close()

    def __enter__(self) -> "RowIterator":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def execute(
    engine: Engine,
    sql: str,
    params: Mapping[str, Any] | None = None,
) -> RowIterator:
    """
    Execute *sql* on a connection from *engine* and return a RowIterator.

    - params: non-empty -> named query with ``:name`` placeholders; else plain statement.

    Raises ConnectionError if no connection can be checked out and QueryError
    if the statement fails (driver message kept verbatim).
    """
    try:
        conn = engine.connect()
    except Exception as e:
        raise errors.ConnectionError(errors.driver_message(e)) from e

    try:
        if params:
            streaming = conn.execution_options(stream_results=True)
            result = streaming.execute(text(sql), dict(params))
        else:
            # No parameter argument at all, so drivers leave a literal % alone.
            verbatim = conn.execution_options(stream_results=True, no_parameters=True)
            result = verbatim.exec_driver_sql(sql)
    except Exception as e:
        try:
            conn.close()
        except Exception:
            _log.debug("closing connection after failed query", exc_info=True)
        raise errors.QueryError(errors.driver_message(e)) from e

    if not result.returns_rows:
        result.close()
        return RowIterator(conn, None, [])
    return RowIterator(conn, result, list(result.keys()))
