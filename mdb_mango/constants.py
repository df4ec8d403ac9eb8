"""
Constants for MDB_MANGO.

This module contains all shared constants used across the codebase to avoid
magic numbers and improve maintainability.
"""

import os
from typing import Any, Final

# ============================================================================
# IDENTITY CONSTANTS
# ============================================================================

DEFAULT_ID_KEY: Final[str] = os.getenv("MANGO_ID_KEY", "").strip() or "id"
"""Default name of the document identity field (MANGO_ID_KEY overrides)."""

ENGINE_ID_FIELD: Final[str] = "_id"
"""Primary key field used by the underlying query engine."""

# ============================================================================
# QUERY ENGINE CONSTANTS
# ============================================================================

ENGINE_DATABASE_NAME: Final[str] = "mango"
"""Name of the throwaway in-memory database queries are executed against."""

ENGINE_POSITION_FIELD: Final[str] = "__mango_pos__"
"""Field holding each loaded document's position in the searched collection."""

MAX_QUERY_DEPTH: Final[int] = 10
"""Maximum nesting depth for query criteria and pipeline stages."""

MAX_PIPELINE_STAGES: Final[int] = 50
"""Maximum number of stages in an aggregation pipeline."""

MAX_SORT_FIELDS: Final[int] = 10
"""Maximum number of fields in a sort specification."""

MAX_REGEX_LENGTH: Final[int] = 1000
"""Maximum length of a $regex pattern."""

MAX_REGEX_COMPLEXITY: Final[int] = 50
"""Maximum complexity score of a $regex pattern (see QueryValidator)."""

DANGEROUS_OPERATORS: Final[tuple[str, ...]] = (
    "$where",
    "$eval",
    "$function",
    "$accumulator",
)
"""Operators that execute arbitrary code and are never allowed."""

# ============================================================================
# SEARCH OPTION CONSTANTS
# ============================================================================

SEARCH_OPTIONS_KEY: Final[str] = "options"
"""Key of the options object inside search parameters."""

PROJECT_OPTION: Final[str] = "$project"
SORT_OPTION: Final[str] = "sort"
SKIP_OPTION: Final[str] = "skip"
LIMIT_OPTION: Final[str] = "limit"

# ============================================================================
# URL QUERY PARSER CONSTANTS
# ============================================================================

RESERVED_QUERY_KEYS: Final[tuple[str, ...]] = (
    "fields",
    "limit",
    "offset",
    "omit",
    "skip",
    "sort",
    "text",
)
"""Query parameters that map to search options instead of criteria."""

STRIPPED_PARSER_OPTIONS: Final[tuple[str, ...]] = (
    "object_id_fields",
    "objectIdFields",
    "parameters",
)
"""Parser options removed before parsing (no database object ids here)."""

_max_limit = os.getenv("MANGO_MAX_LIMIT", "").strip()
DEFAULT_MAX_LIMIT: Final[int | None] = int(_max_limit) if _max_limit else None
"""Default cap for the `limit` query parameter (MANGO_MAX_LIMIT overrides)."""

# ============================================================================
# VALIDATION CONSTANTS
# ============================================================================

VALIDATION_DEFAULTS: Final[dict[str, dict[str, Any]]] = {
    "transformer_opts": {"mode": "python"},
    "validator_opts": {"strict": False},
}
"""Defaults merged into validator options (model_dump / model_validate kwargs)."""

DEFAULT_MODEL_NAME: Final[str] = "Entity"
"""Model name used for JSON-schema models without a title."""
