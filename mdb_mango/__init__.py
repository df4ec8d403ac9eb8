"""
MDB_MANGO - in-memory MongoDB-style document store

Finders run MongoDB queries and aggregation pipelines over a frozen
collection of plain documents; repositories add identity-indexed CRUD with
entity validation. Both come in sync and async flavors.
"""

# Configuration
from .config import (FinderOptions, MangoOptions, ParserOptions,
                     RepositoryOptions, ValidatorOptions)
# Core
from .core import (FinderCache, MangoParser, MangoValidator, RepositoryCache,
                   create_cache)
from .enums import ProjectRule, SortOrder
# Errors
from .exceptions import (BadRequestError, ConflictError, ErrorCode,
                         InternalError, MangoError, NotFoundError,
                         QueryValidationError, UnprocessableError)
# Stores
from .finders import MangoFinder, MangoFinderAsync
from .repositories import MangoRepository, MangoRepositoryAsync

__version__ = "0.1.0"

__all__ = [
    # Stores
    "MangoFinder",
    "MangoFinderAsync",
    "MangoRepository",
    "MangoRepositoryAsync",
    # Core
    "FinderCache",
    "RepositoryCache",
    "create_cache",
    "MangoParser",
    "MangoValidator",
    # Configuration
    "MangoOptions",
    "ParserOptions",
    "ValidatorOptions",
    "FinderOptions",
    "RepositoryOptions",
    # Enums
    "SortOrder",
    "ProjectRule",
    # Errors
    "ErrorCode",
    "MangoError",
    "BadRequestError",
    "NotFoundError",
    "ConflictError",
    "UnprocessableError",
    "InternalError",
    "QueryValidationError",
]
