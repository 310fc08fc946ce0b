"""
Connectivity check for pooled handles, without running the caller's SQL.
"""

from sqlalchemy.engine import Engine

from sqlagent.core import errors


def ping(engine: Engine) -> None:
    """
    Check out a connection and ping it with the dialect's own liveness check.

    The check goes to the raw driver connection. MySQL (pymysql) and Oracle
    (oracledb) answer with a protocol-level ping and run no statement. Postgres,
    SQLite and SQL Server have no such call in their drivers, so the dialect
    sends its fixed check statement (``SELECT 1``) instead.

    Raises ConnectionError when the database cannot be reached.
    """
    try:
        with engine.connect() as conn:
            engine.dialect.do_ping(conn.connection.dbapi_connection)
    except Exception as e:
        raise errors.ConnectionError(errors.driver_message(e)) from e
