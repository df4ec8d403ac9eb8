"""
Asynchronous repository.

Same operations as MangoRepository, as coroutines. Writes await the entity
validator, so any awaitable check runs between formatting and committing:

    cars = MangoRepositoryAsync(Car, {"mingo": {"id_key": "vin"}})
    car = await cars.create({"make": "Scion", "model": "tC", "model_year": 2010})
"""

from collections.abc import Iterable, Mapping
from typing import Any

from ..config import RepositoryOptions
from ..core import UID, Document, EntityModel, MangoRepositoryCore, MangoValidator, RepositoryCache
from ..finders.finder_async import MangoFinderAsync
from ..observability import correlation_scope


class MangoRepositoryAsync(MangoFinderAsync):
    """Identity-indexed CRUD over a frozen entity collection."""

    _core: MangoRepositoryCore

    def __init__(
        self,
        model: EntityModel | None = None,
        options: RepositoryOptions | Mapping[str, Any] | None = None,
    ):
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

    async def clear(self) -> bool:
        return self._core.clear()

    async def create(self, dto: Mapping[str, Any] | None = None) -> Document:
        """
        Create a new entity.

        Raises:
            BadRequestError: If validation is enabled and fails
            ConflictError: If an entity with the same identity exists
        """
        with self._core.operation("create"):
            candidate = self._core.prepare_create(dto)
            entity = await self._core.validator.check(candidate)
            return self._core.commit(entity, candidate[self._core.id_key])

    async def delete(
        self, uid_or_uids: UID | Iterable[UID] | None = None, should_exist: bool = False
    ) -> list[UID]:
        return self._core.delete(uid_or_uids, should_exist)

    async def patch(
        self,
        uid: UID,
        dto: Mapping[str, Any] | None = None,
        rfields: Iterable[str] | None = None,
    ) -> Document:
        """
        Partially update an entity. The identity field cannot be updated.

        Raises:
            NotFoundError: If the entity does not exist
            BadRequestError: If validation is enabled and fails
        """
        with self._core.operation("patch", uid=uid):
            candidate = self._core.prepare_patch(uid, dto, rfields)
            entity = await self._core.validator.check(candidate)
            return self._core.commit(entity, uid)

    async def save(
        self, dto_or_dtos: Mapping[str, Any] | Iterable[Mapping[str, Any]] | None = None
    ) -> list[Document]:
        """Create or patch one or more entities, committing each in turn."""
        results = []
        with correlation_scope():
            for dto in self._core.save_dtos(dto_or_dtos):
                uid = self._core.existing_uid(dto)
                if uid is None:
                    results.append(await self.create(dto))
                else:
                    results.append(await self.patch(uid, dto))
        return results

    async def set_cache(
        self, collection: Iterable[Mapping[str, Any]] | None = None
    ) -> RepositoryCache:
        return self._core.set_cache(collection)
