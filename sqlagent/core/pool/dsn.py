"""
Connection-string (DSN) builders, one per canonical driver.

A connection descriptor is a flat mapping of scalar parameters. The common keys
``host``, ``port``, ``user``, ``password`` and ``database`` are understood by
every builder; anything else is driver specific and passed through in the
backend's native syntax. The reserved key ``dsn`` (when a string) is used
verbatim and skips building altogether.

Builders are pure: the same driver and cleaned parameters always give the same
string. Keys are emitted in sorted order. Malformed combinations are not
rejected here; they surface later as connection failures.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, quote_plus

from sqlagent.core.drivers import Driver

Scalar = str | int | float | bool

KNOWN_KEYS = ("host", "port", "user", "password", "database")
DSN_OVERRIDE_KEY = "dsn"


def clean_params(params: Mapping[str, Any] | None) -> dict[str, Any]:
    """Drop keys whose value is an empty string. Other falsy values (0, False) stay."""
    if not params:
        return {}
    return {k: v for k, v in params.items() if not (isinstance(v, str) and v == "")}


@dataclass(frozen=True)
class ConnectionConfig:
    """Known connection fields plus an open bag of driver-specific options."""

    host: Scalar | None = None
    port: Scalar | None = None
    user: Scalar | None = None
    password: Scalar | None = None
    database: Scalar | None = None
    options: dict[str, Scalar] = field(default_factory=dict)

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "ConnectionConfig":
        """Split cleaned params into known fields and options. Values must be scalars."""
        for k, v in params.items():
            if not isinstance(k, str):
                raise TypeError(f"connection parameter names must be strings, got {k!r}")
            if not isinstance(v, Scalar):
                raise TypeError(
                    f"connection parameter {k!r} must be a string, number or boolean, "
                    f"got {type(v).__name__}"
                )
        known = {k: params[k] for k in KNOWN_KEYS if k in params}
        options = {k: v for k, v in params.items() if k not in KNOWN_KEYS}
        return cls(**known, options=options)

    def items(self) -> list[tuple[str, Scalar]]:
        """Every present parameter (known fields and options), sorted by key."""
        present = {k: getattr(self, k) for k in KNOWN_KEYS if getattr(self, k) is not None}
        present.update(self.options)
        return sorted(present.items())


def format_value(v: Scalar) -> str:
    """Render a scalar the way JSON-decoded values print: true/false, 5432 not 5432.0."""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def _query_string(
    pairs: list[tuple[str, Scalar]], escape: Callable[..., str] = quote_plus
) -> str:
    return "&".join(f"{k}={escape(format_value(v), safe='')}" for k, v in pairs)


def _credentials(config: ConnectionConfig, sep: str) -> str:
    """``user<sep>password@`` with absent segments omitted (no ``@`` when both absent)."""
    out = ""
    if config.user is not None:
        out += format_value(config.user)
    if config.password is not None:
        out += sep + format_value(config.password)
    if out:
        out += "@"
    return out


def _database(config: ConnectionConfig) -> str:
    return format_value(config.database) if config.database is not None else ""


def postgres_dsn(config: ConnectionConfig) -> str:
    """libpq conninfo: space-delimited ``key=value``, keys as given, no defaults."""
    return " ".join(f"{k}={format_value(v)}" for k, v in config.items())


def mysql_dsn(config: ConnectionConfig) -> str:
    """``user:password@tcp(host:port)/database?opts``; host/port default localhost:3306."""
    host = config.host if config.host is not None else "localhost"
    port = config.port if config.port is not None else 3306
    conn = _credentials(config, ":")
    conn += f"tcp({format_value(host)}:{format_value(port)})/{_database(config)}"
    if config.options:
        conn += "?" + _query_string(sorted(config.options.items()))
    return conn


def sqlite3_dsn(config: ConnectionConfig) -> str:
    """
    Database path (default ``:memory:``); every other key goes in the query string.

    Values are percent-encoded (space as ``%20``) since SQLite reads them as a URI.
    """
    db = format_value(config.database) if config.database is not None else ":memory:"
    query = [(k, v) for k, v in config.items() if k != "database"]
    if not query:
        return db
    return f"{db}?{_query_string(query, quote)}"


_MSSQL_RENAMES = {"host": "server", "user": "user id"}


def mssql_dsn(config: ConnectionConfig) -> str:
    """Semicolon-delimited ``key=value`` with host->server and user->user id."""
    return ";".join(
        f"{_MSSQL_RENAMES.get(k, k)}={format_value(v)}" for k, v in config.items()
    )


def oci8_dsn(config: ConnectionConfig) -> str:
    """``user/password@host:port/database?opts``; host/port default localhost:1521."""
    host = config.host if config.host is not None else "localhost"
    port = config.port if config.port is not None else 1521
    conn = _credentials(config, "/")
    conn += f"{format_value(host)}:{format_value(port)}/{_database(config)}"
    if config.options:
        conn += "?" + _query_string(sorted(config.options.items()))
    return conn


_BUILDERS: dict[Driver, Callable[[ConnectionConfig], str]] = {
    Driver.POSTGRES: postgres_dsn,
    Driver.MYSQL: mysql_dsn,
    Driver.SQLITE3: sqlite3_dsn,
    Driver.MSSQL: mssql_dsn,
    Driver.OCI8: oci8_dsn,
}

if set(_BUILDERS) != set(Driver):
    raise RuntimeError(f"DSN builders missing for {set(Driver) - set(_BUILDERS)}")


def build_dsn(driver: Driver, params: Mapping[str, Any]) -> str:
    """
    Build the native connection string for *driver* from cleaned *params*.

    A string ``dsn`` parameter bypasses building and is returned as is.
    """
    override = params.get(DSN_OVERRIDE_KEY)
    if isinstance(override, str):
        return override
    return _BUILDERS[Driver(driver)](ConnectionConfig.from_params(params))
