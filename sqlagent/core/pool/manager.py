"""
Process-wide cache of pooled connection handles.

One handle (a SQLAlchemy Engine owning a QueuePool) per canonical driver +
connection parameters. Construct one ConnectionPool at startup, pass it to every
request path, and call shutdown_all() once at graceful termination.

All cache access goes through a single lock, including the first connect on a
miss. Pool operations are rare next to query execution, but a slow first
connect blocks every other lookup until it finishes.
"""

import json
import logging
import threading
from collections.abc import Mapping
from typing import Any

from sqlalchemy.engine import Engine

from sqlagent.core import errors
from sqlagent.core.config import settings
from sqlagent.core.drivers import Driver, resolve
from sqlagent.core.logging import key_digest, redact_params

from .connect import create_pooled_engine
from .dsn import build_dsn, clean_params

_log = logging.getLogger(__name__)


def cache_key(driver: Driver, params: Mapping[str, Any]) -> str:
    """
    Canonical identity of (driver, cleaned params).

    Keys are sorted so that maps with the same pairs in a different insertion
    order share one cache entry.
    """
    return json.dumps(
        {"driver": Driver(driver).value, "params": dict(params)},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )


class ConnectionPool:
    """Cache of pooled handles keyed by canonical connection identity."""

    def __init__(
        self,
        *,
        max_idle_conns: int | None = None,
        max_overflow: int | None = None,
        conn_max_lifetime: float | None = None,
        connect_timeout: int | None = None,
    ) -> None:
        self._engines: dict[str, Engine] = {}
        self._lock = threading.Lock()
        self._max_idle_conns = (
            max_idle_conns if max_idle_conns is not None else settings.POOL_MAX_IDLE_CONNS
        )
        self._max_overflow = (
            max_overflow if max_overflow is not None else settings.POOL_MAX_OVERFLOW
        )
        self._conn_max_lifetime = float(
            conn_max_lifetime
            if conn_max_lifetime is not None
            else settings.POOL_CONN_MAX_LIFETIME
        )
        self._connect_timeout = (
            connect_timeout if connect_timeout is not None else settings.CONNECT_TIMEOUT
        )

    def get_or_create(self, alias: str, params: Mapping[str, Any] | None) -> Engine:
        """
        Return the cached handle for (alias, params), opening one on a miss.

        Raises UnknownDriver for an alias outside the table and ConnectionError
        when the first connect fails. Failed opens are not cached.
        """
        driver = resolve(alias)
        cleaned = clean_params(params)
        key = cache_key(driver, cleaned)

        with self._lock:
            engine = self._engines.get(key)
            if engine is not None:
                return engine

            engine = self._open(driver, cleaned, key)
            self._engines[key] = engine
            return engine

    def shutdown_all(self) -> None:
        """
        Dispose every cached handle and empty the cache.

        Callers must ensure no get_or_create runs concurrently.
        """
        with self._lock:
            engines = list(self._engines.values())
            self._engines.clear()
            for engine in engines:
                self._dispose_quiet(engine)
        _log.info("connection pool shut down (%d handles closed)", len(engines))

    def stats(self) -> dict[str, Any]:
        """Return pool statistics for monitoring."""
        with self._lock:
            return {
                "handles": len(self._engines),
                "checked_out": sum(
                    e.pool.checkedout() for e in self._engines.values()
                ),
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._engines)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open(self, driver: Driver, cleaned: dict[str, Any], key: str) -> Engine:
        try:
            dsn = build_dsn(driver, cleaned)
            engine = create_pooled_engine(
                driver,
                dsn,
                max_idle_conns=self._max_idle_conns,
                max_overflow=self._max_overflow,
                conn_max_lifetime=self._conn_max_lifetime,
                connect_timeout=self._connect_timeout,
            )
        except Exception as e:
            _log.warning(
                "could not create %s handle %s: %s", driver.value, key_digest(key), e
            )
            raise errors.ConnectionError(errors.driver_message(e)) from e

        # Verify the handle with one real connection, like a connect-and-ping.
        try:
            with engine.connect():
                pass
        except Exception as e:
            self._dispose_quiet(engine)
            _log.warning(
                "connect failed for %s handle %s: %s", driver.value, key_digest(key), e
            )
            raise errors.ConnectionError(errors.driver_message(e)) from e

        _log.info(
            "opened %s handle %s params=%s",
            driver.value,
            key_digest(key),
            redact_params(cleaned),
        )
        return engine

    @staticmethod
    def _dispose_quiet(engine: Engine) -> None:
        try:
            engine.dispose()
        except Exception:
            _log.debug("engine dispose failed", exc_info=True)
