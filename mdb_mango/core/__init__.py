"""
Core store components.

Caches, stateless search and write primitives, the query parameter
translator, the entity validator, and the finder and repository cores the
public facades delegate to.
"""

from . import crud, search
from .cache import UID, Document, FinderCache, RepositoryCache, create_cache
from .finder import MangoFinderCore
from .parser import MangoParser
from .repository import MangoRepositoryCore
from .validator import EntityModel, MangoValidator

__all__ = [
    "crud",
    "search",
    "UID",
    "Document",
    "FinderCache",
    "RepositoryCache",
    "create_cache",
    "MangoFinderCore",
    "MangoParser",
    "MangoRepositoryCore",
    "EntityModel",
    "MangoValidator",
]
