"""
Entity validation.

An entity model is either a Pydantic model class or a JSON schema dictionary.
Validation can be turned off per repository, in which case candidates pass
through unchanged.
"""

import logging
from collections.abc import Mapping
from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError
from pydantic import BaseModel, ValidationError

from ..config import ValidatorOptions, coerce_options
from ..constants import DEFAULT_MODEL_NAME
from ..exceptions import BadRequestError, InternalError, MangoError

logger = logging.getLogger(__name__)

EntityModel = type[BaseModel] | Mapping[str, Any]


class EntityValidationFailure(Exception):
    """Field-level validation failures raised by a schema check."""

    def __init__(self, errors: list[dict[str, Any]]):
        super().__init__(f"{len(errors)} validation error(s)")
        self.errors = errors


class MangoValidator:
    """
    Validates repository entities against an entity model.

    Example:
        class Car(BaseModel):
            vin: str
            make: str
            model_year: int

        validator = MangoValidator(Car)
        validator.check_sync({"vin": "1", "make": "Scion", "model_year": 2010})
    """

    def __init__(
        self,
        model: EntityModel | None = None,
        options: ValidatorOptions | Mapping[str, Any] | None = None,
    ):
        """
        Initialize the validator.

        Args:
            model: Pydantic model class or JSON schema; validation is disabled
                when no model is given
            options: Validation options
        """
        opts = coerce_options(ValidatorOptions, options).with_defaults()

        self.model = model
        self.enabled = opts.enabled and model is not None
        self.tvo = opts.model_copy(update={"enabled": self.enabled})
        self.model_name = self._model_name(model)
        self._schema = None

        if isinstance(model, Mapping):
            try:
                Draft7Validator.check_schema(model)
            except SchemaError as e:
                raise InternalError(
                    f"Invalid JSON schema for {self.model_name}: {e.message}",
                    context={"model_name": self.model_name},
                ) from e
            self._schema = Draft7Validator(model)

    async def check(self, value: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """
        Validate `value` if validation is enabled.

        Returns:
            Validated entity, or `value` unchanged when validation is disabled

        Raises:
            BadRequestError: If `value` fails validation
            InternalError: If the validation engine itself fails
        """
        return self.check_sync(value)

    def check_sync(self, value: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Synchronous version of `check`."""
        value = {} if value is None else value
        if not self.enabled:
            return value

        try:
            if self._schema is not None:
                errors = [
                    {
                        "property": ".".join(str(p) for p in error.absolute_path)
                        or self._required_property(error),
                        "message": error.message,
                        "type": error.validator,
                    }
                    for error in self._schema.iter_errors(dict(value))
                ]
                if errors:
                    raise EntityValidationFailure(errors)
                return dict(value)

            entity = self.model.model_validate(dict(value), **self.tvo.validator_opts)
            return entity.model_dump(**self.tvo.transformer_opts)
        except ValidationError as e:
            raise self.handle_error(
                EntityValidationFailure(
                    [
                        {
                            "property": ".".join(str(p) for p in err["loc"]),
                            "message": err["msg"],
                            "type": err["type"],
                        }
                        for err in e.errors()
                    ]
                )
            ) from e
        except Exception as e:
            raise self.handle_error(e) from e

    def handle_error(self, error: Exception) -> MangoError:
        """
        Convert a validation failure into a MangoError.

        Field-level failures become BadRequestError; anything else becomes
        InternalError.
        """
        options = self.tvo.model_dump(exclude={"enabled"})
        data: dict[str, Any] = {"model_name": self.model_name, "options": options}

        if isinstance(error, EntityValidationFailure):
            properties = ",".join(e["property"] for e in error.errors)
            return BadRequestError(
                f"{self.model_name} entity validation failure: [{properties}]",
                context={**data, "errors": error.errors},
            )

        logger.error(f"Validation engine failure for {self.model_name}: {error!r}")
        return InternalError(str(error), context=data)

    @staticmethod
    def _model_name(model: EntityModel | None) -> str:
        if isinstance(model, Mapping):
            return str(model.get("title") or DEFAULT_MODEL_NAME)
        if model is None:
            return DEFAULT_MODEL_NAME
        return model.__name__

    @staticmethod
    def _required_property(error: Any) -> str:
        # "'vin' is a required property"
        if error.validator == "required" and "'" in error.message:
            return error.message.split("'")[1]
        return ""
