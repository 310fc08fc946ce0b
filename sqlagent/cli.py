"""
sql-agent: serve the HTTP interface.

Usage:
  sql-agent [--host HOST] [--port PORT] [--log-level LEVEL]
  Or set env: SQL_AGENT_HOST, SQL_AGENT_PORT, SQL_AGENT_LOG_LEVEL
"""

import argparse
import logging

import uvicorn

from sqlagent.core.config import settings
from sqlagent.core.logging import setup_logging

logger = logging.getLogger(__name__)

EXAMPLE = """\
Example:

  POST /
  Content-Type: application/json
  Accept: text/csv

  {
    "driver": "postgres",
    "connection": {
      "host": "pghost.org",
      "port": 5432
    },
    "sql": "SELECT * FROM users WHERE zipcode = :zipcode",
    "params": {
      "zipcode": 19104
    }
  }
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sql-agent",
        description="SQL Agent - HTTP interface. Runs SQL against a database and "
        "streams the rows back as CSV, JSON or line-delimited JSON.",
        epilog=EXAMPLE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--host", default=settings.HOST, help="Host of the agent.")
    parser.add_argument(
        "--port", type=int, default=settings.PORT, help="Port of the agent."
    )
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    settings.HOST = args.host
    settings.PORT = args.port
    settings.LOG_LEVEL = args.log_level

    setup_logging(args.log_level)
    logger.info("* Listening on %s:%d...", args.host, args.port)
    uvicorn.run(
        "sqlagent.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
