"""
SQL Agent: run SQL against any supported database and stream the rows back
as CSV, JSON or line-delimited JSON.
"""

__version__ = "0.3.0"
