"""
Enums for search options.
"""

from enum import IntEnum


class SortOrder(IntEnum):
    """Sort directions for the `sort` search option."""

    ASCENDING = 1
    DESCENDING = -1


class ProjectRule(IntEnum):
    """Field rules for the `$project` search option."""

    OMIT = 0
    PICK = 1
