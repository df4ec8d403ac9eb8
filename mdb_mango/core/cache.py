"""
Immutable data caches.

A FinderCache is a frozen snapshot of a document collection. A RepositoryCache
adds `root`, a read-only mapping of identity -> entity, from which the
collection is derived: both always hold the same entities.

Caches are never modified. Every state change builds a new cache and
replaces the old one wholesale.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

from ..exceptions import InternalError
from ..utils.documents import freeze_documents

UID = Union[str, int]
Document = dict[str, Any]


@dataclass(frozen=True)
class FinderCache:
    """Frozen document collection."""

    collection: tuple[Document, ...] = ()

    @classmethod
    def of(cls, documents: Iterable[Mapping[str, Any]] | None = None) -> "FinderCache":
        """Snapshot `documents` into a new cache."""
        return cls(collection=freeze_documents(documents))


@dataclass(frozen=True)
class RepositoryCache(FinderCache):
    """Frozen document collection plus its identity index."""

    root: Mapping[UID, Document] = field(default_factory=lambda: MappingProxyType({}))

    def uids(self) -> list[UID]:
        return list(self.root.keys())


def create_cache(
    id_key: str, documents: Iterable[Mapping[str, Any]] | None = None
) -> RepositoryCache:
    """
    Build a repository cache from `documents`.

    Each document is indexed under its `id_key` value. When two documents
    share an identity, the later one wins.

    Args:
        id_key: Name of the identity field
        documents: Entities to index

    Returns:
        New repository cache

    Raises:
        InternalError: If a document cannot be indexed (missing identity,
            unhashable identity value or non-mapping document); no cache is
            produced in that case
    """
    root: dict[UID, Document] = {}

    try:
        for entity in freeze_documents(documents):
            root[entity[id_key]] = entity
    except (KeyError, TypeError, ValueError) as e:
        raise InternalError(
            f"Cannot index entity by {id_key}: {e!r}",
            context={"collection": documents, "root": dict(root)},
        ) from e

    return RepositoryCache(collection=tuple(root.values()), root=MappingProxyType(root))
