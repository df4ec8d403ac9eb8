"""
Safety checks for query criteria, aggregation pipelines and sort rules.

The query engine runs these checks before touching any documents:
- Blocks code-executing operators ($where, $eval, $function, $accumulator)
- Limits nesting depth of criteria and pipeline stages
- Limits regex length and complexity
- Limits pipeline length and number of sort fields
"""

import logging
import re
from collections.abc import Mapping
from typing import Any

from ..constants import (
    DANGEROUS_OPERATORS,
    MAX_PIPELINE_STAGES,
    MAX_QUERY_DEPTH,
    MAX_REGEX_COMPLEXITY,
    MAX_REGEX_LENGTH,
    MAX_SORT_FIELDS,
)
from ..exceptions import QueryValidationError

logger = logging.getLogger(__name__)


class QueryValidator:
    """
    Validates query criteria, pipelines and sort rules before execution.
    """

    def __init__(
        self,
        max_depth: int = MAX_QUERY_DEPTH,
        max_pipeline_stages: int = MAX_PIPELINE_STAGES,
        max_regex_length: int = MAX_REGEX_LENGTH,
        max_regex_complexity: int = MAX_REGEX_COMPLEXITY,
        max_sort_fields: int = MAX_SORT_FIELDS,
        dangerous_operators: set[str] | None = None,
    ):
        """
        Initialize the query validator.

        Args:
            max_depth: Maximum nesting depth for criteria and stages
            max_pipeline_stages: Maximum stages in aggregation pipelines
            max_regex_length: Maximum length for regex patterns
            max_regex_complexity: Maximum complexity score for regex patterns
            max_sort_fields: Maximum number of sort fields
            dangerous_operators: Extra operators to block, in addition to
                DANGEROUS_OPERATORS
        """
        self.max_depth = max_depth
        self.max_pipeline_stages = max_pipeline_stages
        self.max_regex_length = max_regex_length
        self.max_regex_complexity = max_regex_complexity
        self.max_sort_fields = max_sort_fields
        self.dangerous_operators = set(DANGEROUS_OPERATORS) | set(dangerous_operators or ())

    def validate_criteria(self, criteria: Mapping[str, Any] | None, path: str = "") -> None:
        """
        Validate query criteria.

        Args:
            criteria: Query criteria to validate
            path: Path prefix for error reporting

        Raises:
            QueryValidationError: If criteria are not a mapping, contain a
                dangerous operator or are nested too deeply
        """
        if not criteria:
            return

        if not isinstance(criteria, Mapping):
            raise QueryValidationError(
                f"Query criteria must be a mapping, got {type(criteria).__name__}",
                query_type="criteria",
                path=path,
            )

        self._check(criteria, path, depth=0)

    def validate_pipeline(self, pipeline: list[Mapping[str, Any]]) -> None:
        """
        Validate an aggregation pipeline.

        Args:
            pipeline: Aggregation stages

        Raises:
            QueryValidationError: If the pipeline is malformed, too long or
                contains a dangerous operator
        """
        if not pipeline:
            return

        if not isinstance(pipeline, list):
            raise QueryValidationError(
                f"Aggregation pipeline must be a list, got {type(pipeline).__name__}",
                query_type="pipeline",
            )

        if len(pipeline) > self.max_pipeline_stages:
            raise QueryValidationError(
                f"Aggregation pipeline exceeds maximum stages: "
                f"{len(pipeline)} > {self.max_pipeline_stages}",
                query_type="pipeline",
                context={
                    "stages": len(pipeline),
                    "max_stages": self.max_pipeline_stages,
                },
            )

        for idx, stage in enumerate(pipeline):
            stage_path = f"$[{idx}]"
            if not isinstance(stage, Mapping):
                raise QueryValidationError(
                    f"Pipeline stage {idx} must be a mapping, got {type(stage).__name__}",
                    query_type="pipeline",
                    path=stage_path,
                )
            if len(stage) != 1:
                raise QueryValidationError(
                    f"Pipeline stage {idx} must have exactly one operator, got {len(stage)}",
                    query_type="pipeline",
                    path=stage_path,
                )
            self._check(stage, stage_path, depth=0)

    def validate_sort(self, sort: Any | None) -> None:
        """
        Validate sort rules.

        Args:
            sort: Mapping of field -> direction, or list of (field, direction)

        Raises:
            QueryValidationError: If the rules have too many fields or an
                invalid direction
        """
        if not sort:
            return

        rules = list(sort.items()) if isinstance(sort, Mapping) else list(sort)

        if len(rules) > self.max_sort_fields:
            raise QueryValidationError(
                f"Sort specification exceeds maximum fields: "
                f"{len(rules)} > {self.max_sort_fields}",
                query_type="sort",
                context={"fields": len(rules), "max_fields": self.max_sort_fields},
            )

        for rule in rules:
            if not isinstance(rule, (list, tuple)) or len(rule) != 2:
                raise QueryValidationError(
                    f"Invalid sort rule: {rule!r}", query_type="sort"
                )
            field, direction = rule
            if direction not in (1, -1) or isinstance(direction, bool):
                raise QueryValidationError(
                    f"Invalid sort direction for '{field}': {direction!r}",
                    query_type="sort",
                    path=str(field),
                )

    def validate_regex(self, pattern: str, path: str = "") -> None:
        """
        Validate a regex pattern.

        Raises:
            QueryValidationError: If the pattern is too long, too complex or
                does not compile
        """
        if not isinstance(pattern, str):
            return

        if len(pattern) > self.max_regex_length:
            raise QueryValidationError(
                f"Regex pattern exceeds maximum length: "
                f"{len(pattern)} > {self.max_regex_length}",
                query_type="regex",
                path=path,
                context={"length": len(pattern), "max_length": self.max_regex_length},
            )

        complexity = self._regex_complexity(pattern)
        if complexity > self.max_regex_complexity:
            raise QueryValidationError(
                f"Regex pattern exceeds maximum complexity: "
                f"{complexity} > {self.max_regex_complexity}",
                query_type="regex",
                path=path,
                context={
                    "complexity": complexity,
                    "max_complexity": self.max_regex_complexity,
                },
            )

        try:
            re.compile(pattern)
        except re.error as e:
            raise QueryValidationError(
                f"Invalid regex pattern: {e}",
                query_type="regex",
                path=path,
            ) from e

    def _check(self, query: Mapping[str, Any], path: str, depth: int) -> None:
        """Walk `query`, enforcing depth, operator and regex rules."""
        if depth > self.max_depth:
            raise QueryValidationError(
                f"Query exceeds maximum nesting depth: {depth} > {self.max_depth}",
                query_type="criteria",
                path=path,
                context={"depth": depth, "max_depth": self.max_depth},
            )

        for key, value in query.items():
            current_path = f"{path}.{key}" if path else str(key)

            if key in self.dangerous_operators:
                logger.warning(
                    f"Dangerous operator '{key}' rejected at path '{current_path}'"
                )
                raise QueryValidationError(
                    f"Operator '{key}' is not allowed. Found at path: {current_path}",
                    query_type="criteria",
                    operator=key,
                    path=current_path,
                )

            if key == "$regex":
                self.validate_regex(value, current_path)

            if isinstance(value, Mapping):
                self._check(value, current_path, depth + 1)
            elif isinstance(value, (list, tuple)):
                for idx, item in enumerate(value):
                    if isinstance(item, Mapping):
                        self._check(item, f"{current_path}[{idx}]", depth + 1)

    def _regex_complexity(self, pattern: str) -> int:
        """
        Heuristic complexity score: quantifiers, alternations, nested groups
        and lookarounds each add to it.
        """
        complexity = len(re.findall(r"[*+?{]", pattern))
        complexity += len(re.findall(r"\|", pattern))
        complexity += len(re.findall(r"\([^)]*\([^)]*\)", pattern))
        complexity += len(re.findall(r"\(\?[=!<>]", pattern))
        return complexity
