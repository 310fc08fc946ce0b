"""
Native connections for each driver, and the pooled engine that wraps them.

Each opener turns the connection string produced by ``dsn.build_dsn`` into a
live DB-API connection using the backend's Python driver: psycopg (Postgres),
pymysql (MySQL/MariaDB), sqlite3 (SQLite), pyodbc (SQL Server) and oracledb
(Oracle). pyodbc and oracledb are optional extras and are imported on first use.

A pooled handle is a SQLAlchemy Engine whose ``creator`` is the native opener:
the engine owns a QueuePool of physical connections, so one handle is safe to
share between concurrent requests.
"""

import sqlite3
from collections.abc import Callable
from typing import Any
from urllib.parse import parse_qsl

import psycopg
import pymysql
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool

from sqlagent.core.drivers import Driver


def _coerce(value: str) -> Any:
    """Query-string value -> bool/int when it looks like one, else the string."""
    low = value.lower()
    if low in ("true", "false"):
        return low == "true"
    if value.isdigit():
        return int(value)
    return value


def _query_kwargs(query: str) -> dict[str, Any]:
    return {k: _coerce(v) for k, v in parse_qsl(query, keep_blank_values=True)}


def parse_mysql_dsn(dsn: str) -> dict[str, Any]:
    """
    Parse ``user:password@tcp(host:port)/database?opts`` into pymysql.connect kwargs.

    The database segment starts after the last ``/``; credentials end at the
    last ``@`` before it. Options are unescaped and coerced (see _coerce).
    """
    head, slash, tail = dsn.rpartition("/")
    if not slash:
        raise ValueError("invalid MySQL DSN: missing '/' before database name")
    database, _, query = tail.partition("?")
    creds, at, netaddr = head.rpartition("@")

    kwargs: dict[str, Any] = {}
    if at:
        user, colon, password = creds.partition(":")
        if user:
            kwargs["user"] = user
        if colon:
            kwargs["password"] = password

    net, paren, addr = netaddr.partition("(")
    if net and net != "tcp":
        raise ValueError(f"unsupported MySQL network {net!r}; only tcp is supported")
    if paren:
        host, _, port = addr.rstrip(")").rpartition(":")
        if host:
            kwargs["host"] = host
        if port:
            kwargs["port"] = int(port)
    if database:
        kwargs["database"] = database
    kwargs.update(_query_kwargs(query))
    return kwargs


def open_postgres(dsn: str, *, connect_timeout: int) -> Any:
    if "connect_timeout" in dsn:
        return psycopg.connect(dsn)
    return psycopg.connect(dsn, connect_timeout=connect_timeout)


def open_mysql(dsn: str, *, connect_timeout: int) -> Any:
    kwargs = parse_mysql_dsn(dsn)
    kwargs.setdefault("connect_timeout", connect_timeout)
    return pymysql.connect(**kwargs)


def open_sqlite3(dsn: str, *, connect_timeout: int) -> Any:
    # Pooled connections are handed to whichever worker thread checks them out.
    target, sep, _ = dsn.partition("?")
    if sep:
        uri = dsn if target.startswith("file:") else f"file:{dsn}"
        return sqlite3.connect(
            uri, uri=True, timeout=connect_timeout, check_same_thread=False
        )
    return sqlite3.connect(dsn, timeout=connect_timeout, check_same_thread=False)


def open_mssql(dsn: str, *, connect_timeout: int) -> Any:
    import pyodbc

    return pyodbc.connect(dsn, timeout=connect_timeout)


def open_oci8(dsn: str, *, connect_timeout: int) -> Any:
    import oracledb

    target, _, query = dsn.partition("?")
    creds, at, address = target.rpartition("@")
    kwargs = _query_kwargs(query)
    if at:
        user, slash, password = creds.partition("/")
        if user:
            kwargs["user"] = user
        if slash:
            kwargs["password"] = password
    kwargs.setdefault("tcp_connect_timeout", connect_timeout)
    return oracledb.connect(dsn=address, **kwargs)


_OPENERS: dict[Driver, Callable[..., Any]] = {
    Driver.POSTGRES: open_postgres,
    Driver.MYSQL: open_mysql,
    Driver.SQLITE3: open_sqlite3,
    Driver.MSSQL: open_mssql,
    Driver.OCI8: open_oci8,
}

# SQLAlchemy dialect per driver; connections come from the opener, never from the URL.
_DIALECT_URLS: dict[Driver, str] = {
    Driver.POSTGRES: "postgresql+psycopg://",
    Driver.MYSQL: "mysql+pymysql://",
    Driver.SQLITE3: "sqlite+pysqlite://",
    Driver.MSSQL: "mssql+pyodbc://",
    Driver.OCI8: "oracle+oracledb://",
}


def connect(driver: Driver, dsn: str, *, connect_timeout: int = 10) -> Any:
    """Open one unpooled native connection for *driver* from *dsn*."""
    return _OPENERS[Driver(driver)](dsn, connect_timeout=connect_timeout)


def create_pooled_engine(
    driver: Driver,
    dsn: str,
    *,
    max_idle_conns: int,
    max_overflow: int,
    conn_max_lifetime: float,
    connect_timeout: int,
) -> Engine:
    """
    Build the pooled handle for *dsn*. No connection is opened here.

    - max_idle_conns: connections kept open in the pool when idle (QueuePool pool_size).
    - conn_max_lifetime: seconds before a connection is recycled on checkout; <= 0 disables.
    """
    driver = Driver(driver)
    opener = _OPENERS[driver]

    def creator() -> Any:
        return opener(dsn, connect_timeout=connect_timeout)

    return create_engine(
        _DIALECT_URLS[driver],
        creator=creator,
        poolclass=QueuePool,
        pool_size=max_idle_conns,
        max_overflow=max_overflow,
        pool_recycle=conn_max_lifetime if conn_max_lifetime > 0 else -1,
    )
