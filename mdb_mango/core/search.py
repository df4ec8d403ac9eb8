"""
Stateless search primitives.

These functions run pipelines and searches against any document collection.
Finders and repositories call them with their own cache; they can also be
used directly:

    from mdb_mango.core import search

    search.find({"make": "Scion", "options": {"limit": 1}}, cars)
    search.find_one_or_fail("bad-vin", {}, cars, id_key="vin")

Error policy: a MangoError raised below gets the caller's arguments merged
into its context and is re-raised as is; any other exception is wrapped
exactly once.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from ..constants import (
    DEFAULT_ID_KEY,
    LIMIT_OPTION,
    PROJECT_OPTION,
    SEARCH_OPTIONS_KEY,
    SKIP_OPTION,
    SORT_OPTION,
)
from ..exceptions import BadRequestError, MangoError, NotFoundError, UnprocessableError
from ..query.engine import QueryEngine, default_engine
from .cache import UID, Document


def check_uid(uid: Any, id_key: str = DEFAULT_ID_KEY) -> UID:
    """
    Ensure `uid` is a string or integer.

    Raises:
        UnprocessableError: For any other type
    """
    if isinstance(uid, bool) or not isinstance(uid, (str, int)):
        raise UnprocessableError(
            f"{id_key} must be a string or integer, got {type(uid).__name__}",
            context={"errors": {id_key: uid}},
        )
    return uid


def split_params(params: Mapping[str, Any] | None) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split search parameters into (criteria, options)."""
    criteria = dict(params or {})
    options = dict(criteria.pop(SEARCH_OPTIONS_KEY, None) or {})
    return criteria, options


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def aggregate(
    pipeline: Mapping[str, Any] | list[Mapping[str, Any]] | None = None,
    collection: Iterable[Mapping[str, Any]] = (),
    engine: QueryEngine | None = None,
) -> list[Document]:
    """
    Run an aggregation pipeline over `collection`.

    Args:
        pipeline: One stage or a list of stages
        collection: Documents to aggregate
        engine: Query engine (shared default when omitted)

    Returns:
        Pipeline results

    Raises:
        BadRequestError: If the pipeline is malformed
    """
    stages = [pipeline] if isinstance(pipeline, Mapping) else list(pipeline or [])
    engine = engine or default_engine()

    try:
        return engine.aggregate(collection, stages)
    except MangoError as e:
        e.merge_context({"pipeline": stages})
        raise
    except Exception as e:
        raise BadRequestError(str(e), context={"pipeline": stages}) from e


def find(
    params: Mapping[str, Any] | None = None,
    collection: Iterable[Mapping[str, Any]] = (),
    engine: QueryEngine | None = None,
) -> list[Document]:
    """
    Search `collection`.

    Criteria are matched against whole documents, then sorting, skipping and
    limiting are applied in that order. The `$project` option runs last, over
    the page of results, so a search may match on fields it leaves out of the
    results. This differs from mingo-based Mango finders, which run `$project`
    as an aggregation before matching and so cannot match on omitted fields.

    Results are copies of the documents in `collection`; picked and kept
    fields hold their original values.

    Args:
        params: Query criteria plus an optional `options` mapping with
            `$project`, `sort`, `skip` and `limit`
        collection: Documents to search
        engine: Query engine (shared default when omitted)

    Returns:
        Search results

    Raises:
        BadRequestError: If the criteria or options are malformed
    """
    criteria, options = split_params(params)
    engine = engine or default_engine()

    project = options.get(PROJECT_OPTION)
    sort = options.get(SORT_OPTION)
    skip = options.get(SKIP_OPTION)
    limit = options.get(LIMIT_OPTION)

    try:
        cursor = engine.find(collection, criteria, project or None)

        if sort:
            cursor = cursor.sort(sort)
        if _is_number(skip):
            cursor = cursor.skip(int(skip))
        if _is_number(limit):
            cursor = cursor.limit(int(limit))

        return cursor.all()
    except MangoError as e:
        e.merge_context({"params": dict(params or {})})
        raise
    except Exception as e:
        raise BadRequestError(str(e), context={"params": dict(params or {})}) from e


def find_by_ids(
    uids: Iterable[UID] | None = None,
    params: Mapping[str, Any] | None = None,
    collection: Iterable[Mapping[str, Any]] = (),
    id_key: str = DEFAULT_ID_KEY,
    engine: QueryEngine | None = None,
) -> list[Document]:
    """
    Search `collection`, keeping only documents whose identity is in `uids`.

    Raises:
        BadRequestError: If the search parameters are malformed
    """
    uids = list(uids or [])

    try:
        documents = find(params, collection, engine)
        return [doc for doc in documents if doc.get(id_key) in uids]
    except MangoError as e:
        e.merge_context({"uids": uids, "params": dict(params or {})})
        raise
    except Exception as e:
        raise BadRequestError(
            str(e), context={"uids": uids, "params": dict(params or {})}
        ) from e


def find_one(
    uid: UID,
    params: Mapping[str, Any] | None = None,
    collection: Iterable[Mapping[str, Any]] = (),
    id_key: str = DEFAULT_ID_KEY,
    engine: QueryEngine | None = None,
) -> Document | None:
    """
    Find a document by identity.

    The returned document's identity is checked against `uid` as well, so a
    projection that drops the identity field yields None.

    Returns:
        Document, or None if not found

    Raises:
        UnprocessableError: If `uid` is not a string or integer
        BadRequestError: If the search parameters are malformed
    """
    check_uid(uid, id_key)

    documents = find({**dict(params or {}), id_key: uid}, collection, engine)
    document = documents[0] if documents else None

    if document is not None and document.get(id_key) == uid:
        return document
    return None


def find_one_or_fail(
    uid: UID,
    params: Mapping[str, Any] | None = None,
    collection: Iterable[Mapping[str, Any]] = (),
    id_key: str = DEFAULT_ID_KEY,
    engine: QueryEngine | None = None,
) -> Document:
    """
    Find a document by identity, raising if it does not exist.

    Raises:
        NotFoundError: If the document does not exist
        UnprocessableError: If `uid` is not a string or integer
        BadRequestError: If the search parameters are malformed
    """
    document = find_one(uid, params, collection, id_key, engine)

    if document is None:
        uidstr = uid if isinstance(uid, int) else f'"{uid}"'
        raise NotFoundError(
            f"Document with {id_key} {uidstr} does not exist",
            context={"errors": {id_key: uid}, "params": dict(params or {})},
        )

    return document
