"""
Synchronous repository.

Usage:
    from pydantic import BaseModel
    from mdb_mango import MangoRepository

    class Car(BaseModel):
        vin: str
        make: str
        model: str
        model_year: int

    cars = MangoRepository(Car, {"mingo": {"id_key": "vin"}})
    car = cars.create({"make": "Scion", "model": "tC", "model_year": 2010})
    cars.patch(car["vin"], {"model_year": 2011})
"""

from collections.abc import Iterable, Mapping
from typing import Any

from ..config import RepositoryOptions
from ..core import UID, Document, EntityModel, MangoRepositoryCore, MangoValidator, RepositoryCache
from ..finders.finder import MangoFinder


class MangoRepository(MangoFinder):
    """
    Identity-indexed CRUD over a frozen entity collection.

    Every write replaces the cache with a new one; caches returned earlier
    are never modified.
    """

    _core: MangoRepositoryCore

    def __init__(
        self,
        model: EntityModel | None = None,
        options: RepositoryOptions | Mapping[str, Any] | None = None,
    ):
        """
        Initialize the repository.

        Args:
            model: Pydantic model class or JSON schema for entities
            options: Repository options (cache, mingo, parser, validation)
        """
        self._core = MangoRepositoryCore(model, options)

    @property
    def cache(self) -> RepositoryCache:
        return self._core.cache

    @property
    def options(self) -> RepositoryOptions:
        return self._core.options

    @property
    def validator(self) -> MangoValidator:
        return self._core.validator

    def clear(self) -> bool:
        """Remove every entity. Returns True."""
        return self._core.clear()

    def create(self, dto: Mapping[str, Any] | None = None) -> Document:
        """
        Create a new entity.

        If the DTO has no identity, a random UUID string is assigned.

        Raises:
            BadRequestError: If validation is enabled and fails
            ConflictError: If an entity with the same identity exists
        """
        return self._core.create(dto)

    def delete(
        self, uid_or_uids: UID | Iterable[UID] | None = None, should_exist: bool = False
    ) -> list[UID]:
        """
        Delete one or more entities.

        Args:
            uid_or_uids: Entity identity or list of identities
            should_exist: Raise NotFoundError if any entity does not exist

        Returns:
            Identities that were deleted
        """
        return self._core.delete(uid_or_uids, should_exist)

    def patch(
        self,
        uid: UID,
        dto: Mapping[str, Any] | None = None,
        rfields: Iterable[str] | None = None,
    ) -> Document:
        """
        Partially update an entity. The identity field cannot be updated.

        Args:
            uid: Entity identity
            dto: Data to merge into the entity
            rfields: Additional readonly fields

        Returns:
            Updated entity
        """
        return self._core.patch(uid, dto, rfields)

    def save(
        self, dto_or_dtos: Mapping[str, Any] | Iterable[Mapping[str, Any]] | None = None
    ) -> list[Document]:
        """Create or patch one or more entities."""
        return self._core.save(dto_or_dtos)

    def set_cache(
        self, collection: Iterable[Mapping[str, Any]] | None = None
    ) -> RepositoryCache:
        """Replace the cache with entities indexed from `collection`."""
        return self._core.set_cache(collection)
