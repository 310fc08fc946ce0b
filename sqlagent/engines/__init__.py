"""
Query execution and streaming output.

Exports: execute, RowIterator, Record, encode_csv, encode_json, encode_ldjson, ENCODERS.
"""

from sqlagent.engines.encoders import ENCODERS, encode_csv, encode_json, encode_ldjson
from sqlagent.engines.executor import Record, RowIterator, execute

__all__ = [
    "ENCODERS",
    "Record",
    "RowIterator",
    "encode_csv",
    "encode_json",
    "encode_ldjson",
    "execute",
]
