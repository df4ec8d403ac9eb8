"""
Pure helpers behind repository writes.

Each function takes a cache and returns data for a new one; nothing here
mutates a cache or decides whether a change is committed.
"""

import uuid
from collections.abc import Iterable, Mapping
from typing import Any

from ..constants import DEFAULT_ID_KEY
from ..exceptions import ConflictError, InternalError, MangoError
from ..query.engine import QueryEngine
from ..utils.documents import deep_merge, omit, uniq
from . import search
from .cache import UID, Document, RepositoryCache, create_cache


def _quote(uid: Any) -> str:
    return str(uid) if isinstance(uid, int) and not isinstance(uid, bool) else f'"{uid}"'


def format_create_entity_dto(
    dto: Mapping[str, Any] | None,
    cache: RepositoryCache,
    id_key: str = DEFAULT_ID_KEY,
    engine: QueryEngine | None = None,
) -> Document:
    """
    Prepare a create DTO.

    String identities are trimmed; a missing or empty identity is replaced by
    a new UUID v4 string.

    Args:
        dto: Create data
        cache: Current repository cache
        id_key: Name of the identity field
        engine: Query engine

    Returns:
        Candidate entity (not yet validated)

    Raises:
        ConflictError: If an entity with the same identity already exists
        UnprocessableError: If the identity is not a string or integer
        InternalError: If the DTO cannot be prepared
    """
    data: dict[str, Any] = {}

    try:
        data = dict(dto or {})
        uid = data.get(id_key)
        if isinstance(uid, str):
            uid = uid.strip()
        if uid is None or uid == "":
            uid = str(uuid.uuid4())

        if search.find_one(uid, {}, cache.collection, id_key, engine) is not None:
            raise ConflictError(
                f"Entity with {id_key} {_quote(uid)} already exists",
                context={"dto": data, "errors": {id_key: uid}},
            )

        return deep_merge(data, {id_key: uid})
    except MangoError:
        raise
    except Exception as e:
        raise InternalError(str(e), context={"dto": data}) from e


def format_patch_entity_dto(
    uid: UID,
    dto: Mapping[str, Any] | None,
    cache: RepositoryCache,
    id_key: str = DEFAULT_ID_KEY,
    rfields: Iterable[str] | None = None,
    engine: QueryEngine | None = None,
) -> Document:
    """
    Prepare a patch DTO.

    The DTO is deep merged onto the existing entity. The identity field and
    any `rfields` are readonly: DTO values for them are ignored.

    Args:
        uid: Identity of the entity to patch
        dto: Patch data
        cache: Current repository cache
        id_key: Name of the identity field
        rfields: Additional readonly fields
        engine: Query engine

    Returns:
        Candidate entity (not yet validated)

    Raises:
        NotFoundError: If the entity does not exist
        UnprocessableError: If `uid` is not a string or integer
        InternalError: If the DTO cannot be prepared
    """
    readonly = uniq([id_key, *(rfields or [])])
    data = dict(dto or {})

    try:
        search.find_one_or_fail(uid, {}, cache.collection, id_key, engine)
        return deep_merge(cache.root[uid], omit(data, readonly))
    except MangoError as e:
        e.merge_context({"uid": uid, "dto": data, "rfields": readonly})
        raise
    except Exception as e:
        raise InternalError(
            str(e), context={"uid": uid, "dto": data, "rfields": readonly}
        ) from e


def delete(
    uid_or_uids: UID | Iterable[UID],
    should_exist: bool = False,
    cache: RepositoryCache | None = None,
    id_key: str = DEFAULT_ID_KEY,
    engine: QueryEngine | None = None,
) -> tuple[RepositoryCache, list[UID]]:
    """
    Remove one or more entities.

    Args:
        uid_or_uids: Identity or list of identities
        should_exist: Raise NotFoundError when an identity is missing
        cache: Current repository cache
        id_key: Name of the identity field
        engine: Query engine

    Returns:
        Tuple of (new cache, identities that were removed)

    Raises:
        NotFoundError: If `should_exist` and an identity is missing
        UnprocessableError: If an identity is not a string or integer
    """
    if cache is None:
        cache = RepositoryCache()
    many = isinstance(uid_or_uids, (list, tuple, set, frozenset))
    uids = list(uid_or_uids) if many else [uid_or_uids]

    try:
        root = dict(cache.root)
        removed: list[UID] = []

        for uid in uids:
            search.check_uid(uid, id_key)
            if should_exist:
                search.find_one_or_fail(uid, {}, cache.collection, id_key, engine)
            if uid in root:
                del root[uid]
                removed.append(uid)

        return create_cache(id_key, list(root.values())), uniq(removed)
    except MangoError as e:
        e.merge_context({"uids": uids, "should_exist": should_exist})
        raise
    except Exception as e:
        raise InternalError(
            str(e), context={"uids": uids, "should_exist": should_exist}
        ) from e
