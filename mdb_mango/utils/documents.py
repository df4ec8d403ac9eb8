"""
Document utility functions for MDB_MANGO.

Plain-dict helpers used by the cache and repository layers. None of these
functions mutate their inputs.
"""

import copy
from collections.abc import Iterable, Mapping
from typing import Any


def deep_merge(target: dict[str, Any], *sources: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Recursively merge `sources` into a copy of `target`.

    Nested mappings are merged key-wise; any other value (lists included)
    from a later source replaces the earlier one. `None` sources are skipped.

    Args:
        target: Base dictionary
        *sources: Mappings merged left to right

    Returns:
        New merged dictionary

    Example:
        ```python
        deep_merge({"a": {"b": 1, "c": 2}}, {"a": {"c": 3}})
        # {"a": {"b": 1, "c": 3}}
        ```
    """
    merged: dict[str, Any] = copy.deepcopy(dict(target))

    for source in sources:
        if not source:
            continue
        for key, value in source.items():
            current = merged.get(key)
            if isinstance(current, Mapping) and isinstance(value, Mapping):
                merged[key] = deep_merge(dict(current), value)
            else:
                merged[key] = copy.deepcopy(value)

    return merged


def omit(data: Mapping[Any, Any], keys: Iterable[Any]) -> dict[Any, Any]:
    """Return a shallow copy of `data` without `keys`."""
    excluded = list(keys)
    return {k: v for k, v in data.items() if k not in excluded}


def uniq(values: Iterable[Any]) -> list[Any]:
    """De-duplicate `values`, keeping first-seen order."""
    seen: list[Any] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def freeze_documents(documents: Iterable[Mapping[str, Any]] | None) -> tuple[dict[str, Any], ...]:
    """
    Snapshot `documents` into an immutable tuple of copies.

    Later changes to the caller's dictionaries are not visible through the
    snapshot. Non-iterable input (e.g. None) yields an empty tuple.
    """
    if documents is None or isinstance(documents, (str, bytes, Mapping)):
        return ()
    return tuple(copy.deepcopy(dict(doc)) for doc in documents)
