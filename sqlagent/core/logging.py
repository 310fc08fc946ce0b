"""Logging setup and log-safe rendering of connection parameters."""

import hashlib
import logging
from collections.abc import Mapping
from typing import Any

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(filename)s:%(lineno)d %(message)s"

_SECRET_KEYS = frozenset({"password", "dsn"})


def setup_logging(level: str | int = "INFO") -> None:
    """Configure the root logger once; later calls only change the level."""
    if isinstance(level, str):
        level = level.upper()
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        return
    logging.basicConfig(level=level, format=LOG_FORMAT)


def redact_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of *params* with secrets (password, raw dsn) masked."""
    return {k: ("***" if k in _SECRET_KEYS else v) for k, v in params.items()}


def key_digest(key: str) -> str:
    """Short digest of a pool cache key, safe to log."""
    return hashlib.sha256(key.encode()).hexdigest()[:12]
