"""
Asynchronous finder.

Same operations as MangoFinder, as coroutines. Searches run synchronously
in memory; the coroutine interface lets the finder sit behind async call
sites without wrapping:

    cars = MangoFinderAsync({"cache": {"collection": documents}})
    results = await cars.query("make=Scion")
"""

from collections.abc import Iterable, Mapping
from typing import Any

from ..config import FinderOptions
from ..core import UID, Document, FinderCache, MangoFinderCore, MangoParser
from ..core.finder import Params, Query


class MangoFinderAsync:
    """Read-only MongoDB-style queries over a frozen document collection."""

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

    async def aggregate(
        self, pipeline: Mapping[str, Any] | list[Mapping[str, Any]] | None = None
    ) -> list[Document]:
        return self._core.aggregate(pipeline)

    async def find(self, params: Params | None = None) -> list[Document]:
        return self._core.find(params)

    async def find_by_ids(
        self, uids: Iterable[UID] | None = None, params: Params | None = None
    ) -> list[Document]:
        return self._core.find_by_ids(uids, params)

    async def find_one(self, uid: UID, params: Params | None = None) -> Document | None:
        return self._core.find_one(uid, params)

    async def find_one_or_fail(self, uid: UID, params: Params | None = None) -> Document:
        return self._core.find_one_or_fail(uid, params)

    async def query(self, query: Query | None = None) -> list[Document]:
        return self._core.query(query)

    async def query_by_ids(
        self, uids: Iterable[UID] | None = None, query: Query | None = None
    ) -> list[Document]:
        return self._core.query_by_ids(uids, query)

    async def query_one(self, uid: UID, query: Query | None = None) -> Document | None:
        return self._core.query_one(uid, query)

    async def query_one_or_fail(self, uid: UID, query: Query | None = None) -> Document:
        return self._core.query_one_or_fail(uid, query)

    async def set_cache(
        self, collection: Iterable[Mapping[str, Any]] | None = None
    ) -> FinderCache:
        return self._core.set_cache(collection)

    def uid(self) -> str:
        """Name of the document identity field."""
        return self._core.uid()
