"""
Connection strings and pooled connections for external databases.

Flow: alias -> drivers.resolve -> dsn.build_dsn -> ConnectionPool.get_or_create.
"""

from .connect import connect, create_pooled_engine, parse_mysql_dsn
from .dsn import ConnectionConfig, build_dsn, clean_params
from .health import ping
from .manager import ConnectionPool, cache_key

__all__ = [
    "ConnectionConfig",
    "ConnectionPool",
    "build_dsn",
    "cache_key",
    "clean_params",
    "connect",
    "create_pooled_engine",
    "parse_mysql_dsn",
    "ping",
]
