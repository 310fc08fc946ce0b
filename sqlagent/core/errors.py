"""
Error taxonomy for the agent core.

All errors are raised to the immediate caller; nothing here is retried or
logged-and-swallowed. The transport layer maps them to HTTP statuses.
"""


class SQLAgentError(Exception):
    """Base class for errors raised by the agent core."""

    pass


class UnknownDriver(SQLAgentError, ValueError):
    """Raised when a driver alias is not in the alias table."""

    def __init__(self, alias: object) -> None:
        super().__init__(f"unknown driver: {alias}")
        self.alias = alias


class ConnectionError(SQLAgentError):
    """Opening (or reusing) a connection failed. Failed opens are never cached."""

    pass


class QueryError(SQLAgentError):
    """Statement execution or row fetching failed. Carries the driver message verbatim."""

    pass


class EncodingError(SQLAgentError):
    """
    Writing to the output sink failed mid-stream.

    Output may already be partially written, so this cannot be turned into a
    clean error response; the stream is abandoned.
    """

    pass


def driver_message(exc: BaseException) -> str:
    """The underlying driver's message, without SQLAlchemy's statement/background wrapping."""
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)
