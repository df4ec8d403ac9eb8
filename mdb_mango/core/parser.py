"""
Converts URL queries into search parameters objects.
"""

from collections.abc import Mapping
from typing import Any

from ..config import ParserOptions, coerce_options
from ..constants import (
    PROJECT_OPTION,
    SEARCH_OPTIONS_KEY,
    SORT_OPTION,
    STRIPPED_PARSER_OPTIONS,
)
from ..exceptions import BadRequestError
from ..query.querystring import QueryStringParser
from ..utils.documents import omit


class MangoParser:
    """
    Turns URL query objects and strings into search parameters:

        parser.params("make=Scion&sort=-model_year&limit=2")
        # {"make": "Scion", "options": {"$project": None, "sort": {...}, "limit": 2}}
    """

    def __init__(self, options: ParserOptions | Mapping[str, Any] | None = None):
        """
        Initialize the parser.

        Args:
            options: Parser options; object-id options are discarded since
                documents here have no database object ids
        """
        parsed = coerce_options(ParserOptions, options)
        self.options: dict[str, Any] = omit(parsed.to_dict(), STRIPPED_PARSER_OPTIONS)
        self.parser = QueryStringParser(**self.options)

    def params(self, query: Mapping[str, Any] | str | None = None) -> dict[str, Any]:
        """
        Convert a URL query object or string into search parameters.

        Args:
            query: Query object or string

        Returns:
            Search parameters (criteria plus `options`)

        Raises:
            BadRequestError: If the query cannot be parsed
        """
        try:
            build = self.parser.parse(query if query is not None else "")
        except Exception as e:
            raise BadRequestError(
                str(e), context={"parser_options": self.options, "query": query}
            ) from e

        return {
            **build["criteria"],
            SEARCH_OPTIONS_KEY: self.query_criteria_options(build["options"]),
        }

    @staticmethod
    def query_criteria_options(base: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Rename parsed options (`projection` becomes `$project`)."""
        base = dict(base or {})
        projection = base.pop("projection", None)
        sort = base.pop("sort", None)

        return {**base, PROJECT_OPTION: projection, SORT_OPTION: sort}
