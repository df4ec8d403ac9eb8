"""
Synchronous finder.

Usage:
    from mdb_mango import MangoFinder

    cars = MangoFinder({"cache": {"collection": documents}, "mingo": {"id_key": "vin"}})
    cars.find({"make": "Scion"})
    cars.query_one_or_fail("3221085d-6f55-4d23-842a-aeb0e413fca8", "fields=make")
"""

from collections.abc import Iterable, Mapping
from typing import Any

from ..config import FinderOptions
from ..core import UID, Document, FinderCache, MangoFinderCore, MangoParser
from ..core.finder import Params, Query


class MangoFinder:
    """
    Read-only MongoDB-style queries over a frozen document collection.

    All work is done by a MangoFinderCore; this class only exposes it.
    """

    def __init__(self, options: FinderOptions | Mapping[str, Any] | None = None):
        self._core = MangoFinderCore(options)

    @property
    def cache(self) -> FinderCache:
        return self._core.cache

    @property
    def options(self) -> FinderOptions:
        return self._core.options

    @property
    def parser(self) -> MangoParser:
        return self._core.parser

    def aggregate(
        self, pipeline: Mapping[str, Any] | list[Mapping[str, Any]] | None = None
    ) -> list[Document]:
        """
        Run an aggregation pipeline over the cache.

        Returns an empty list, without running the pipeline, if the cache is
        empty.
        """
        return self._core.aggregate(pipeline)

    def find(self, params: Params | None = None) -> list[Document]:
        """
        Search the cache.

        Args:
            params: Query criteria plus optional `options`
                (`$project`, `sort`, `skip`, `limit`)

        Returns:
            Search results
        """
        return self._core.find(params)

    def find_by_ids(
        self, uids: Iterable[UID] | None = None, params: Params | None = None
    ) -> list[Document]:
        return self._core.find_by_ids(uids, params)

    def find_one(self, uid: UID, params: Params | None = None) -> Document | None:
        """Find a document by identity. Returns None if it does not exist."""
        return self._core.find_one(uid, params)

    def find_one_or_fail(self, uid: UID, params: Params | None = None) -> Document:
        """Find a document by identity. Raises NotFoundError if it does not exist."""
        return self._core.find_one_or_fail(uid, params)

    def query(self, query: Query | None = None) -> list[Document]:
        """Search the cache with a URL query object or string."""
        return self._core.query(query)

    def query_by_ids(
        self, uids: Iterable[UID] | None = None, query: Query | None = None
    ) -> list[Document]:
        return self._core.query_by_ids(uids, query)

    def query_one(self, uid: UID, query: Query | None = None) -> Document | None:
        return self._core.query_one(uid, query)

    def query_one_or_fail(self, uid: UID, query: Query | None = None) -> Document:
        return self._core.query_one_or_fail(uid, query)

    def set_cache(self, collection: Iterable[Mapping[str, Any]] | None = None) -> FinderCache:
        """Replace the cache with a frozen copy of `collection`."""
        return self._core.set_cache(collection)

    def uid(self) -> str:
        """Name of the document identity field."""
        return self._core.uid()
