"""
Driver registry: public driver aliases -> canonical driver ids.

The alias table is fixed at import time and read-only afterwards. The transport
layer checks it to reject unknown drivers before attempting a connection.
"""

from enum import Enum
from types import MappingProxyType

from sqlagent.core.errors import UnknownDriver


class Driver(str, Enum):
    """Canonical driver ids, one per supported backend."""

    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLITE3 = "sqlite3"
    MSSQL = "mssql"
    OCI8 = "oci8"


DRIVERS: MappingProxyType[str, Driver] = MappingProxyType(
    {
        "postgresql": Driver.POSTGRES,
        "postgres": Driver.POSTGRES,
        "mysql": Driver.MYSQL,
        "mariadb": Driver.MYSQL,
        "sqlite": Driver.SQLITE3,
        "mssql": Driver.MSSQL,
        "sqlserver": Driver.MSSQL,
        "oracle": Driver.OCI8,
    }
)


def resolve(alias: str) -> Driver:
    """Return the canonical driver for *alias*; raise UnknownDriver if absent."""
    try:
        return DRIVERS[alias]
    except (KeyError, TypeError):
        raise UnknownDriver(alias) from None
