"""
URL query string parser.

Converts URL queries into MongoDB query criteria and search options, following
the qs-to-mongo conventions:

    ?make=Scion&model_year>=2000&fields=make,model&sort=-model_year&limit=10

becomes

    {
        "criteria": {"make": "Scion", "model_year": {"$gte": 2000}},
        "options": {
            "projection": {"make": 1, "model": 1},
            "sort": {"model_year": -1},
            "limit": 10,
        },
    }
"""

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any
from urllib.parse import parse_qsl, unquote_plus

from ..constants import RESERVED_QUERY_KEYS

_COMPARISON = re.compile(r"^(?P<key>[^<>!=]+?)(?P<op>>=|<=|!=|>|<)(?P<value>.*)$")
_REGEX_VALUE = re.compile(r"^/(?P<pattern>.*)/(?P<flags>[imsx]*)$", re.DOTALL)
_INTEGER = re.compile(r"^[-+]?\d+$")
_FLOAT = re.compile(r"^[-+]?(\d+\.\d*|\.\d+|\d+)([eE][-+]?\d+)?$")

_OPERATORS = {">": "$gt", ">=": "$gte", "<": "$lt", "<=": "$lte"}


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


class QueryStringParser:
    """
    Parses URL query strings (or already-split query mappings).

    Args:
        date_fields: Fields whose values are parsed as ISO-8601 datetimes
        full_text_fields: Fields searched by the `text` parameter
        ignored_fields: Parameters ignored in addition to the reserved ones
        max_limit: Upper bound for the `limit` parameter
    """

    def __init__(
        self,
        date_fields: Any = None,
        full_text_fields: Any = None,
        ignored_fields: Any = None,
        max_limit: int | None = None,
        **unused: Any,
    ):
        self.date_fields = _as_list(date_fields)
        self.full_text_fields = _as_list(full_text_fields)
        self.ignored_fields = _as_list(ignored_fields)
        self.max_limit = max_limit

    def parse(self, query: Mapping[str, Any] | str | None = None) -> dict[str, Any]:
        """
        Parse `query` into `{"criteria": {...}, "options": {...}}`.

        Raises:
            ValueError: If a parameter is malformed
        """
        pairs = self._pairs(query)

        options: dict[str, Any] = {}
        grouped: dict[str, list[tuple[str, str]]] = {}

        for raw_key, raw_value in pairs:
            key, op, value = self._split(raw_key, raw_value)
            if not key or key in self.ignored_fields:
                continue
            if key in RESERVED_QUERY_KEYS and op in ("=", "exists"):
                self._option(options, key, value)
                continue
            grouped.setdefault(key, []).append((op, value))

        criteria: dict[str, Any] = {}
        for key, entries in grouped.items():
            self._criterion(criteria, key, entries)

        text = options.pop("text", None)
        if text:
            criteria.update(self.text_criteria(text))

        return {"criteria": criteria, "options": options}

    def _pairs(self, query: Mapping[str, Any] | str | None) -> list[tuple[str, str]]:
        if query is None:
            return []
        if isinstance(query, str):
            return parse_qsl(query.lstrip("?"), keep_blank_values=True)
        if isinstance(query, Mapping):
            pairs: list[tuple[str, str]] = []
            for key, value in query.items():
                values = value if isinstance(value, (list, tuple)) else [value]
                for item in values:
                    pairs.append((str(key), "" if item is None else str(item)))
            return pairs
        raise ValueError(f"Query must be a string or mapping, got {type(query).__name__}")

    def _split(self, raw_key: str, raw_value: str) -> tuple[str, str, str]:
        """
        Recover the comparison operator from a `key=value` pair.

        `a>=5` arrives as key `a>` with value `5`; `a>5` arrives as key `a>5`
        with an empty value.
        """
        if raw_key.endswith(("<", ">", "!")):
            return raw_key[:-1].strip(), raw_key[-1] + "=", raw_value

        match = _COMPARISON.match(raw_key)
        if match and raw_value == "":
            return match["key"].strip(), match["op"], unquote_plus(match["value"])

        if raw_value == "" and "=" not in raw_key:
            if raw_key.startswith("!"):
                return raw_key[1:].strip(), "!exists", ""
            return raw_key.strip(), "exists", ""

        return raw_key.strip(), "=", raw_value

    def _option(self, options: dict[str, Any], key: str, value: str) -> None:
        if key == "fields":
            options["projection"] = {f: 1 for f in self._fields(value)}
        elif key == "omit":
            options["projection"] = {f: 0 for f in self._fields(value)}
        elif key == "sort":
            sort: dict[str, int] = {}
            for field in self._fields(value):
                if field.startswith("-"):
                    sort[field[1:]] = -1
                else:
                    sort[field.lstrip("+")] = 1
            options["sort"] = sort
        elif key in ("offset", "skip"):
            options["skip"] = self._count(key, value)
        elif key == "limit":
            limit = self._count(key, value)
            if self.max_limit is not None:
                limit = min(limit, self.max_limit)
            options["limit"] = limit
        elif key == "text" and value and self.full_text_fields:
            options["text"] = value

    def _criterion(self, criteria: dict[str, Any], key: str, entries: list[tuple[str, str]]) -> None:
        condition: dict[str, Any] = {}
        equals: list[Any] = []

        for op, raw in entries:
            if op == "exists":
                condition["$exists"] = True
            elif op == "!exists":
                condition["$exists"] = False
            elif op == "=":
                regex = _REGEX_VALUE.match(raw)
                if regex:
                    condition.update(self._regex(regex))
                else:
                    equals.extend(self._coerce(key, v) for v in raw.split(","))
            elif op == "!=":
                values = [self._coerce(key, v) for v in raw.split(",")]
                if len(values) > 1:
                    condition["$nin"] = values
                else:
                    condition["$ne"] = values[0]
            else:
                condition[_OPERATORS[op]] = self._coerce(key, raw)

        if equals:
            if len(equals) > 1:
                condition["$in"] = equals
            elif not condition:
                criteria[key] = equals[0]
                return
            else:
                condition["$eq"] = equals[0]

        criteria[key] = condition

    def _regex(self, match: re.Match) -> dict[str, Any]:
        pattern = match["pattern"]
        try:
            re.compile(pattern)
        except re.error as e:
            raise ValueError(f"Invalid regular expression /{pattern}/: {e}") from e

        rule: dict[str, Any] = {"$regex": pattern}
        if match["flags"]:
            rule["$options"] = match["flags"]
        return rule

    def _coerce(self, key: str, value: str) -> Any:
        if key in self.date_fields:
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError as e:
                raise ValueError(f"Invalid date for '{key}': {value!r}") from e
        if value == "true":
            return True
        if value == "false":
            return False
        if value == "null":
            return None
        if _INTEGER.match(value):
            return int(value)
        if _FLOAT.match(value):
            return float(value)
        return value

    def _count(self, key: str, value: str) -> int:
        if not _INTEGER.match(value.strip()):
            raise ValueError(f"'{key}' must be an integer, got {value!r}")
        count = int(value)
        if count < 0:
            raise ValueError(f"'{key}' must be >= 0, got {count}")
        return count

    @staticmethod
    def _fields(value: str) -> list[str]:
        return [f.strip() for f in value.split(",") if f.strip()]

    def text_criteria(self, text: str) -> dict[str, Any]:
        """Build the criteria for a full-text search over full_text_fields."""
        pattern = re.escape(text)
        return {
            "$or": [
                {field: {"$regex": pattern, "$options": "i"}}
                for field in self.full_text_fields
            ]
        }
