"""
Repository core.

MangoRepositoryCore adds identity-indexed writes to MangoFinderCore. Every
write builds a complete new RepositoryCache and publishes it in a single
assignment; the previous cache object is left untouched.

Writes are split into three steps so the sync and async facades can share
them and differ only in how the validator is called:

    candidate = core.prepare_create(dto)      # format + conflict check
    entity = core.validator.check_sync(candidate)
    core.commit(entity, candidate[core.id_key])   # publish new cache
"""

import logging
import time
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from ..config import RepositoryOptions
from ..observability import correlation_scope, log_operation
from . import crud
from .cache import UID, Document, RepositoryCache, create_cache
from .finder import MangoFinderCore
from .validator import EntityModel, MangoValidator


class MangoRepositoryCore(MangoFinderCore):
    """
    Identity-indexed CRUD over a frozen entity collection.

    Example:
        core = MangoRepositoryCore(Car, {"mingo": {"id_key": "vin"}})
        car = core.create({"make": "Scion", "model": "tC", "model_year": 2010})
        core.patch(car["vin"], {"model_year": 2011})
        core.delete(car["vin"])
    """

    options_model: type[RepositoryOptions] = RepositoryOptions

    def __init__(
        self,
        model: EntityModel | None = None,
        options: RepositoryOptions | Mapping[str, Any] | None = None,
    ):
        """
        Initialize the repository.

        Args:
            model: Entity model (Pydantic model class or JSON schema);
                validation is disabled without one
            options: Repository options
        """
        super().__init__(options)
        self.model = model
        self.validator = MangoValidator(model, self.options.validation)

    def _initial_cache(self, documents: Iterable[Mapping[str, Any]]) -> RepositoryCache:
        return create_cache(self.id_key, documents)

    @property
    def cache(self) -> RepositoryCache:
        return self._cache

    @contextmanager
    def operation(self, name: str, **context: Any) -> Iterator[None]:
        """
        Time and log a write.

        Successful writes log at DEBUG, failed writes at WARNING; the error
        is re-raised unchanged. The write runs in a correlation scope, joining
        the enclosing one when called from `save`.
        """
        start = time.time()
        with correlation_scope():
            try:
                yield
            except Exception as e:
                log_operation(
                    self.logger,
                    name,
                    level=logging.WARNING,
                    success=False,
                    duration_ms=(time.time() - start) * 1000,
                    error=str(e),
                    error_type=type(e).__name__,
                    **context,
                )
                raise

            log_operation(
                self.logger,
                name,
                duration_ms=(time.time() - start) * 1000,
                size=len(self._cache.collection),
                **context,
            )

    # ============================================================================
    # Write steps
    # ============================================================================

    def prepare_create(self, dto: Mapping[str, Any] | None = None) -> Document:
        """Format a create DTO; raises ConflictError for a taken identity."""
        return crud.format_create_entity_dto(dto, self._cache, self.id_key, self.engine)

    def prepare_patch(
        self,
        uid: UID,
        dto: Mapping[str, Any] | None = None,
        rfields: Iterable[str] | None = None,
    ) -> Document:
        """Format a patch DTO; raises NotFoundError for a missing entity."""
        return crud.format_patch_entity_dto(
            uid, dto, self._cache, self.id_key, rfields, self.engine
        )

    def commit(self, entity: Mapping[str, Any], uid: UID | None = None) -> Document:
        """
        Publish a new cache holding `entity`.

        The entity is stored with `uid` as its identity, whatever the validator
        returned for the identity field. A patched entity keeps its position
        in the collection.

        Args:
            entity: Validated entity
            uid: Identity to store the entity under (defaults to the
                entity's own identity)

        Returns:
            The stored entity
        """
        stored = dict(entity)
        if uid is not None:
            stored[self.id_key] = uid

        root = {**self._cache.root, stored[self.id_key]: stored}
        self._cache = create_cache(self.id_key, list(root.values()))
        return stored

    # ============================================================================
    # Writes
    # ============================================================================

    def clear(self) -> bool:
        """Remove every entity."""
        with self.operation("clear"):
            self._cache = create_cache(self.id_key, [])
        return True

    def create(self, dto: Mapping[str, Any] | None = None) -> Document:
        """
        Create a new entity.

        An entity without an identity is assigned a random UUID string.

        Raises:
            ConflictError: If an entity with the same identity exists
            BadRequestError: If validation is enabled and fails
        """
        with self.operation("create"):
            candidate = self.prepare_create(dto)
            entity = self.validator.check_sync(candidate)
            return self.commit(entity, candidate[self.id_key])

    def patch(
        self,
        uid: UID,
        dto: Mapping[str, Any] | None = None,
        rfields: Iterable[str] | None = None,
    ) -> Document:
        """
        Partially update an entity.

        The identity field, and any field named in `rfields`, cannot be
        updated.

        Raises:
            NotFoundError: If the entity does not exist
            BadRequestError: If validation is enabled and fails
        """
        with self.operation("patch", uid=uid):
            entity = self.validator.check_sync(self.prepare_patch(uid, dto, rfields))
            return self.commit(entity, uid)

    def delete(
        self, uid_or_uids: UID | Iterable[UID] | None = None, should_exist: bool = False
    ) -> list[UID]:
        """
        Delete one or more entities.

        Args:
            uid_or_uids: Identity or list of identities
            should_exist: Raise NotFoundError, deleting nothing, if any
                identity does not exist

        Returns:
            Identities that were deleted
        """
        if uid_or_uids is None:
            uid_or_uids = []

        with self.operation("delete", should_exist=should_exist):
            cache, uids = crud.delete(
                uid_or_uids, should_exist, self._cache, self.id_key, self.engine
            )
            self._cache = cache
        return uids

    def save(
        self, dto_or_dtos: Mapping[str, Any] | Iterable[Mapping[str, Any]] | None = None
    ) -> list[Document]:
        """
        Create or patch one or more entities.

        Each DTO is committed as soon as it is processed; a failure leaves the
        entities saved before it in place. All writes of one call log under
        the same correlation ID.
        """
        results = []
        with correlation_scope():
            for dto in self.save_dtos(dto_or_dtos):
                uid = self.existing_uid(dto)
                if uid is None:
                    results.append(self.create(dto))
                else:
                    results.append(self.patch(uid, dto))
        return results

    def set_cache(
        self, collection: Iterable[Mapping[str, Any]] | None = None
    ) -> RepositoryCache:
        """
        Replace the cache with entities indexed from `collection`.

        Raises:
            InternalError: If an entity cannot be indexed; the cache is left
                unchanged
        """
        if not isinstance(collection, (list, tuple)):
            collection = []

        with self.operation("set_cache"):
            self._cache = create_cache(self.id_key, collection)
        return self._cache

    # ============================================================================
    # Save helpers
    # ============================================================================

    @staticmethod
    def save_dtos(
        dto_or_dtos: Mapping[str, Any] | Iterable[Mapping[str, Any]] | None,
    ) -> list[Mapping[str, Any]]:
        if dto_or_dtos is None:
            return []
        if isinstance(dto_or_dtos, Mapping):
            return [dto_or_dtos]
        return list(dto_or_dtos)

    def existing_uid(self, dto: Mapping[str, Any]) -> UID | None:
        """Identity of the stored entity `dto` refers to, or None."""
        uid = dto.get(self.id_key)
        if uid is None or uid == "":
            return None
        return uid if self.find_one(uid) is not None else None
