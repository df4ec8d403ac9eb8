"""
Finder core.

MangoFinderCore binds the stateless search primitives in `search` to its own
frozen cache, engine and URL query parser. The sync and async finder facades
delegate every read to one instance of this class.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from ..config import FinderOptions, coerce_options
from ..observability import get_logger
from ..query.engine import QueryEngine
from . import search
from .cache import UID, Document, FinderCache
from .parser import MangoParser

Params = Mapping[str, Any]
Query = Mapping[str, Any] | str


class MangoFinderCore:
    """
    Read-only search and aggregation over a frozen document collection.

    Example:
        core = MangoFinderCore({"cache": {"collection": cars}, "mingo": {"id_key": "vin"}})
        core.find({"model_year": {"$gte": 2000}, "options": {"sort": {"make": 1}}})
        core.query("make=Scion&fields=model")
    """

    options_model: type[FinderOptions] = FinderOptions

    def __init__(self, options: FinderOptions | Mapping[str, Any] | None = None):
        """
        Initialize the finder.

        Args:
            options: Finder options (initial cache, engine and parser options)
        """
        self.options = coerce_options(self.options_model, options)
        self.engine = QueryEngine(**self.options.mingo.engine_options)
        self.parser = MangoParser(self.options.parser)
        self.logger = get_logger(
            type(self).__module__, store=type(self).__name__, id_key=self.id_key
        )
        self._cache = self._initial_cache(self.options.cache.collection)

    def _initial_cache(self, documents: Iterable[Mapping[str, Any]]) -> FinderCache:
        return FinderCache.of(documents)

    @property
    def cache(self) -> FinderCache:
        """Current cache. Replaced, never modified, by cache updates."""
        return self._cache

    @property
    def id_key(self) -> str:
        return self.options.mingo.id_key

    def uid(self) -> str:
        """Return the name of the document identity field."""
        return self.id_key

    def _is_empty(self, operation: str) -> bool:
        if self._cache.collection:
            return False
        self.logger.debug(f"Cache empty; skipping {operation}. Call set_cache to load documents.")
        return True

    # ============================================================================
    # Searches
    # ============================================================================

    def aggregate(
        self, pipeline: Mapping[str, Any] | list[Mapping[str, Any]] | None = None
    ) -> list[Document]:
        """Run an aggregation pipeline over the cached collection."""
        if self._is_empty("aggregate"):
            return []
        return search.aggregate(pipeline, self._cache.collection, self.engine)

    def find(self, params: Params | None = None) -> list[Document]:
        """Search the cached collection."""
        if self._is_empty("find"):
            return []
        return search.find(params, self._cache.collection, self.engine)

    def find_by_ids(
        self, uids: Iterable[UID] | None = None, params: Params | None = None
    ) -> list[Document]:
        """Search the cached collection for documents with the given identities."""
        if self._is_empty("find_by_ids"):
            return []
        return search.find_by_ids(uids, params, self._cache.collection, self.id_key, self.engine)

    def find_one(self, uid: UID, params: Params | None = None) -> Document | None:
        """Find a document by identity; None if it does not exist."""
        return search.find_one(uid, params, self._cache.collection, self.id_key, self.engine)

    def find_one_or_fail(self, uid: UID, params: Params | None = None) -> Document:
        """Find a document by identity; raise NotFoundError if it does not exist."""
        return search.find_one_or_fail(
            uid, params, self._cache.collection, self.id_key, self.engine
        )

    # ============================================================================
    # URL queries
    # ============================================================================

    def query(self, query: Query | None = None) -> list[Document]:
        return self.find(self.parser.params(query))

    def query_by_ids(
        self, uids: Iterable[UID] | None = None, query: Query | None = None
    ) -> list[Document]:
        return self.find_by_ids(uids, self.parser.params(query))

    def query_one(self, uid: UID, query: Query | None = None) -> Document | None:
        return self.find_one(uid, self.parser.params(query))

    def query_one_or_fail(self, uid: UID, query: Query | None = None) -> Document:
        return self.find_one_or_fail(uid, self.parser.params(query))

    # ============================================================================
    # Cache
    # ============================================================================

    def set_cache(self, collection: Iterable[Mapping[str, Any]] | None = None) -> FinderCache:
        """
        Replace the cache with a frozen copy of `collection`.

        A non-list `collection` is treated as empty.

        Returns:
            The new cache
        """
        if not isinstance(collection, (list, tuple)):
            collection = []
        self._cache = FinderCache.of(collection)
        return self._cache
