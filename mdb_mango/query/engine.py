"""
In-memory query engine.

Runs MongoDB query criteria and aggregation pipelines over plain lists of
documents using mongomock collections.

Documents are never round-tripped through the engine. Each call loads an
encoded copy of every document, tagged with its position, into a throwaway
collection. Searches only read back the positions of the matches and return
deep copies of the caller's documents, so values BSON cannot store exactly
(tz-aware datetimes, microseconds, tuples, Decimals, arbitrary objects) come
back unchanged.

Encoded copies follow BSON: datetimes become naive UTC with millisecond
precision, Decimals become floats, tuples and sets become lists, integers
outside the 64-bit range become floats, and any other non-BSON value is
compared by its string form. Criteria and pipeline stages are encoded the
same way, so both sides of a comparison agree.

Usage:
    engine = QueryEngine()
    engine.aggregate(documents, [{"$group": {"_id": "$make"}}])
    engine.find(documents, {"model_year": {"$gt": 2000}}).sort({"vin": 1}).all()
"""

import copy
import datetime
import decimal
import functools
import logging
import re
import uuid
from collections.abc import Iterable, Mapping
from typing import Any

import mongomock
from bson.binary import Binary
from bson.code import Code
from bson.dbref import DBRef
from bson.decimal128 import Decimal128
from bson.max_key import MaxKey
from bson.min_key import MinKey
from bson.objectid import ObjectId
from bson.regex import Regex
from bson.timestamp import Timestamp

from ..constants import ENGINE_DATABASE_NAME, ENGINE_ID_FIELD, ENGINE_POSITION_FIELD
from .validator import QueryValidator

logger = logging.getLogger(__name__)

BSON_SCALARS = (
    str,
    bytes,
    float,
    type(None),
    ObjectId,
    Decimal128,
    Binary,
    Code,
    DBRef,
    MaxKey,
    MinKey,
    Regex,
    Timestamp,
    re.Pattern,
)

MIN_INT64 = -(2**63)
MAX_INT64 = 2**63 - 1


def sort_pairs(rules: Mapping[str, int] | Iterable[Any]) -> list[tuple[str, int]]:
    """Normalize `{field: direction}` or `[(field, direction)]` sort rules."""
    if isinstance(rules, Mapping):
        return [(str(field), int(direction)) for field, direction in rules.items()]
    return [(str(field), int(direction)) for field, direction in rules]


def encode(value: Any) -> Any:
    """
    Convert `value` into the form the engine stores and compares.

    Args:
        value: Document, criteria or any nested value

    Returns:
        A BSON-encodable copy of `value`
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value if MIN_INT64 <= value <= MAX_INT64 else float(value)
    if isinstance(value, datetime.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
        return value.replace(microsecond=value.microsecond // 1000 * 1000)
    if isinstance(value, datetime.date):
        return datetime.datetime(value.year, value.month, value.day)
    if isinstance(value, decimal.Decimal):
        return float(value)
    if isinstance(value, BSON_SCALARS):
        return value
    if isinstance(value, Mapping):
        return {str(key): encode(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [encode(item) for item in value]
    return str(value)


def restore(result: Any, stored: Any, original: Any) -> Any:
    """
    Put original values back into an engine result.

    Walks `result` alongside `stored` (the engine's copy of the document it
    came from) and `original` (the caller's document). Wherever the result
    still equals the stored value, the original value is used instead;
    computed or reshaped values are kept as the engine produced them.
    """
    if result == stored:
        return copy.deepcopy(original)

    if isinstance(result, dict) and isinstance(stored, dict) and isinstance(original, Mapping):
        return {
            key: restore(value, stored[key], original[key])
            if key in stored and key in original
            else value
            for key, value in result.items()
        }

    if (
        isinstance(result, list)
        and isinstance(stored, list)
        and isinstance(original, (list, tuple))
        and len(result) == len(stored) == len(original)
    ):
        return [restore(r, s, o) for r, s, o in zip(result, stored, original)]

    return result


def is_inclusion(rule: Mapping[str, Any]) -> bool:
    """Whether a `$project` rule picks fields (as opposed to omitting them)."""
    return any(
        not (isinstance(value, (bool, int, float)) and value == 0)
        for key, value in rule.items()
        if key != ENGINE_ID_FIELD
    )


class _Workspace:
    """A throwaway collection holding encoded copies of one call's documents."""

    def __init__(self, client: mongomock.MongoClient, documents: Iterable[Mapping[str, Any]]):
        self.collection = client[ENGINE_DATABASE_NAME][f"q_{uuid.uuid4().hex}"]
        self.originals: list[Mapping[str, Any]] = list(documents)
        self.generated_ids: set[ObjectId] = set()
        self._stored: dict[int, dict[str, Any]] | None = None

        docs: list[dict[str, Any]] = []
        for position, document in enumerate(self.originals):
            doc = encode(dict(document))
            if ENGINE_ID_FIELD not in doc:
                doc[ENGINE_ID_FIELD] = ObjectId()
                self.generated_ids.add(doc[ENGINE_ID_FIELD])
            doc[ENGINE_POSITION_FIELD] = position
            docs.append(doc)

        if docs:
            self.collection.insert_many(docs)
        logger.debug(f"Loaded {len(docs)} document(s) into {self.collection.name}")

    def original(self, position: int) -> dict[str, Any]:
        """Deep copy of the caller's document at `position`."""
        return copy.deepcopy(dict(self.originals[position]))

    def stored(self, position: int) -> dict[str, Any]:
        if self._stored is None:
            self._stored = {}
            for doc in self.collection.find():
                self._stored[doc.pop(ENGINE_POSITION_FIELD)] = doc
        return self._stored[position]

    def clean(self, document: dict[str, Any]) -> dict[str, Any]:
        """
        Turn a pipeline result back into a caller-facing document.

        Results still tagged with a position get their original values
        restored; engine-generated ids are removed.
        """
        position = document.pop(ENGINE_POSITION_FIELD, None)
        if isinstance(position, int) and not isinstance(position, bool):
            document = dict(restore(document, self.stored(position), self.originals[position]))

        value = document.get(ENGINE_ID_FIELD)
        if isinstance(value, ObjectId) and value in self.generated_ids:
            del document[ENGINE_ID_FIELD]
        return document

    def drop(self) -> None:
        self.collection.drop()


class Cursor:
    """
    Lazy search result.

    Supports chained `sort`, `skip` and `limit` calls; `all` materializes the
    results and releases the underlying collection.
    """

    def __init__(
        self,
        cursor: Any,
        workspace: _Workspace,
        engine: "QueryEngine",
        projection: Mapping[str, Any] | None = None,
    ):
        self._cursor = cursor
        self._workspace = workspace
        self._engine = engine
        self._projection = projection

    def sort(self, rules: Mapping[str, int] | Iterable[Any]) -> "Cursor":
        self._engine.validator.validate_sort(rules)
        pairs = sort_pairs(rules)
        if pairs:
            self._cursor = self._cursor.sort(pairs)
        return self

    def skip(self, count: int) -> "Cursor":
        self._cursor = self._cursor.skip(count)
        return self

    def limit(self, count: int) -> "Cursor":
        self._cursor = self._cursor.limit(count)
        return self

    def all(self) -> list[dict[str, Any]]:
        """
        Return copies of the matching documents.

        A projection given to `QueryEngine.find` is applied to this page of
        results, after sorting, skipping and limiting.
        """
        try:
            documents = [
                self._workspace.original(doc[ENGINE_POSITION_FIELD]) for doc in self._cursor
            ]
        finally:
            self._workspace.drop()

        if self._projection:
            return self._engine.project(documents, self._projection)
        return documents


class QueryEngine:
    """
    MongoDB query language client for in-memory document lists.

    Engine options configure the safety limits enforced before a query runs
    (see QueryValidator). All errors propagate to the caller unchanged.
    """

    def __init__(self, validator: QueryValidator | None = None, **limits: Any):
        """
        Initialize the query engine.

        Args:
            validator: Query validator (built from `limits` if omitted)
            **limits: QueryValidator keyword arguments (max_depth, ...)
        """
        self.validator = validator or QueryValidator(**limits)
        self._client = mongomock.MongoClient()

    def _run(
        self, collection: Iterable[Mapping[str, Any]], stages: list[Mapping[str, Any]]
    ) -> list[dict[str, Any]]:
        workspace = _Workspace(self._client, collection)
        try:
            results = workspace.collection.aggregate([encode(stage) for stage in stages])
            return [workspace.clean(doc) for doc in results]
        finally:
            workspace.drop()

    def aggregate(
        self,
        collection: Iterable[Mapping[str, Any]],
        stages: list[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        """
        Run an aggregation pipeline over `collection`.

        Results that are still recognisably one of the input documents (after
        `$match`, `$sort`, `$addFields`, an omitting `$project`, ...) carry the
        caller's original values for every field the pipeline left as is.

        Args:
            collection: Documents to aggregate
            stages: Aggregation stages

        Returns:
            Pipeline results

        Raises:
            QueryValidationError: If the pipeline fails safety checks
            Exception: Any engine error for malformed stages
        """
        self.validator.validate_pipeline(stages)
        return self._run(collection, stages)

    def project(
        self, collection: Iterable[Mapping[str, Any]], rule: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        """
        Apply a `$project` rule to every document in `collection`.

        Picked and kept fields hold the caller's original values.

        Raises:
            QueryValidationError: If the rule fails safety checks
            Exception: Any engine error for a malformed rule
        """
        self.validator.validate_pipeline([{"$project": rule}])

        stage = dict(rule)
        if is_inclusion(stage):
            stage[ENGINE_POSITION_FIELD] = 1
        return self._run(collection, [{"$project": stage}])

    def find(
        self,
        collection: Iterable[Mapping[str, Any]],
        criteria: Mapping[str, Any] | None = None,
        projection: Mapping[str, Any] | None = None,
    ) -> Cursor:
        """
        Start a search over `collection`.

        Args:
            collection: Documents to search
            criteria: Query criteria
            projection: Optional `$project` rule applied to the final results

        Returns:
            Cursor over matching documents

        Raises:
            QueryValidationError: If the criteria fail safety checks
            Exception: Any engine error for malformed criteria
        """
        self.validator.validate_criteria(criteria)

        workspace = _Workspace(self._client, collection)
        try:
            cursor = workspace.collection.find(
                encode(dict(criteria or {})), {ENGINE_POSITION_FIELD: 1, ENGINE_ID_FIELD: 0}
            )
        except Exception:
            workspace.drop()
            raise

        return Cursor(cursor, workspace, self, projection)


@functools.lru_cache(maxsize=1)
def default_engine() -> QueryEngine:
    """Shared engine with default limits, used when no engine is passed."""
    return QueryEngine()
