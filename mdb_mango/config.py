"""
Configuration management for MDB_MANGO.

Finders and repositories take a single constructor-time options object. Every
section is a Pydantic model so options may be passed either as model instances
or as plain dictionaries (camelCase keys are accepted too):

    MangoRepository(Car, {
        "cache": {"collection": cars},
        "mingo": {"id_key": "vin"},
        "parser": {"full_text_fields": ["make", "model"]},
        "validation": {"enabled": True},
    })

Process-wide defaults come from environment variables (see constants.py):
MANGO_ID_KEY and MANGO_MAX_LIMIT.
"""

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import DEFAULT_ID_KEY, DEFAULT_MAX_LIMIT, VALIDATION_DEFAULTS
from .utils.documents import deep_merge

OptionsT = TypeVar("OptionsT", bound=BaseModel)


def _one_or_many(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


class MangoOptions(BaseModel):
    """
    Query engine options.

    `id_key` names the document identity field. Any other key is passed to
    the query engine (e.g. `max_depth`, `max_pipeline_stages`).
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id_key: str = Field(DEFAULT_ID_KEY, alias="idKey", description="Name of document uid field")

    @field_validator("id_key", mode="before")
    @classmethod
    def _default_blank_id_key(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_ID_KEY
        return value

    @property
    def engine_options(self) -> dict[str, Any]:
        """Pass-through options for the query engine."""
        return dict(self.model_extra or {})


class ParserOptions(BaseModel):
    """URL query parser options."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    date_fields: list[str] = Field(default_factory=list, alias="dateFields")
    full_text_fields: list[str] = Field(default_factory=list, alias="fullTextFields")
    ignored_fields: list[str] = Field(default_factory=list, alias="ignoredFields")
    max_limit: int | None = Field(DEFAULT_MAX_LIMIT, alias="maxLimit", ge=0)

    @field_validator("date_fields", "full_text_fields", "ignored_fields", mode="before")
    @classmethod
    def _normalize_fields(cls, value: Any) -> list[str]:
        return _one_or_many(value)

    def to_dict(self) -> dict[str, Any]:
        """All options, extra keys included, as snake_case keys."""
        return self.model_dump()


class ValidatorOptions(BaseModel):
    """
    Entity validation options.

    `transformer_opts` are passed to `model_dump()` and `validator_opts` to
    `model_validate()` when the entity model is a Pydantic model.
    """

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = True
    transformer_opts: dict[str, Any] = Field(default_factory=dict, alias="transformer")
    validator_opts: dict[str, Any] = Field(default_factory=dict, alias="validator")

    def with_defaults(self) -> "ValidatorOptions":
        """Return a copy with VALIDATION_DEFAULTS merged underneath."""
        return ValidatorOptions(
            enabled=self.enabled,
            transformer_opts=deep_merge(
                VALIDATION_DEFAULTS["transformer_opts"], self.transformer_opts
            ),
            validator_opts=deep_merge(VALIDATION_DEFAULTS["validator_opts"], self.validator_opts),
        )


class CacheSeed(BaseModel):
    """Initial documents for a finder or repository."""

    collection: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("collection", mode="before")
    @classmethod
    def _list_or_empty(cls, value: Any) -> Any:
        return value if isinstance(value, (list, tuple)) else []


class FinderOptions(BaseModel):
    """Finder options: initial cache, engine options and parser options."""

    model_config = ConfigDict(populate_by_name=True)

    cache: CacheSeed = Field(default_factory=CacheSeed)
    mingo: MangoOptions = Field(default_factory=MangoOptions)
    parser: ParserOptions = Field(default_factory=ParserOptions)

    @field_validator("cache", "mingo", "parser", mode="before")
    @classmethod
    def _none_as_default(cls, value: Any) -> Any:
        return {} if value is None else value


class RepositoryOptions(FinderOptions):
    """Repository options: finder options plus validation options."""

    validation: ValidatorOptions = Field(default_factory=ValidatorOptions)

    @field_validator("validation", mode="before")
    @classmethod
    def _validation_none_as_default(cls, value: Any) -> Any:
        return {} if value is None else value


def coerce_options(model: type[OptionsT], value: Any = None) -> OptionsT:
    """
    Build `model` from `value`.

    Args:
        model: Options model class
        value: None, a dictionary, or an instance of `model`

    Returns:
        Options model instance
    """
    if isinstance(value, model):
        return value
    if isinstance(value, BaseModel):
        value = value.model_dump(by_alias=False)
    return model.model_validate(value or {})
