"""
Query execution for in-memory documents.

Provides the mongomock-backed query engine, query safety checks and the URL
query string parser.
"""

from .engine import Cursor, QueryEngine, default_engine
from .querystring import QueryStringParser
from .validator import QueryValidator

__all__ = [
    "Cursor",
    "QueryEngine",
    "default_engine",
    "QueryStringParser",
    "QueryValidator",
]
