"""
Utility functions for MDB_MANGO.

This module provides helpers for working with plain documents.
"""

from .documents import deep_merge, freeze_documents, omit, uniq

__all__ = [
    "deep_merge",
    "freeze_documents",
    "omit",
    "uniq",
]
