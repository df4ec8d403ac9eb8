"""
Custom exceptions for MDB_MANGO.

Every error raised by the store is a MangoError carrying an ErrorCode (the
error *kind*) and a structured context. Errors that are already MangoErrors
are never re-wrapped: callers merge extra context into them and re-raise.
"""

from enum import IntEnum
from typing import Any, Dict, Optional, Type

from .utils.documents import deep_merge


class ErrorCode(IntEnum):
    """Error kinds, valued after their HTTP status counterparts."""

    BAD_REQUEST = 400
    NOT_FOUND = 404
    CONFLICT = 409
    UNPROCESSABLE = 422
    INTERNAL_SERVER_ERROR = 500


class MangoError(RuntimeError):
    """
    Base exception for MDB_MANGO errors.

    Attributes:
        message: Error message
        code: Error kind
        context: Dictionary with structured error data (params, uids, dto, ...)
    """

    default_code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        code: Optional[ErrorCode] = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            context: Optional dictionary with additional context information
            code: Error kind (defaults to the class default)
        """
        super().__init__(message)
        self.message = message
        self.code = ErrorCode(code) if code is not None else self.default_code
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message

    @property
    def errors(self) -> Any:
        """Field-level errors, if any were recorded."""
        return self.context.get("errors", {})

    def merge_context(self, data: Dict[str, Any]) -> "MangoError":
        """
        Deep merge `data` into the error context.

        Returns the same error so callers can `raise error.merge_context(...)`.
        """
        self.context = deep_merge({}, self.context, data)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error (code, name, message, data, errors)."""
        return {
            "code": int(self.code),
            "name": self.code.name,
            "message": self.message,
            "data": dict(self.context),
            "errors": self.errors,
        }

    @staticmethod
    def from_code(
        code: ErrorCode, message: str, context: Optional[Dict[str, Any]] = None
    ) -> "MangoError":
        """Build the MangoError subclass matching `code`."""
        cls: Type[MangoError] = _ERRORS_BY_CODE.get(ErrorCode(code), MangoError)
        return cls(message, context=context, code=code)


class BadRequestError(MangoError):
    """Malformed query, criteria or pipeline; parser or validation failure."""

    default_code = ErrorCode.BAD_REQUEST


class NotFoundError(MangoError):
    """A required entity does not exist."""

    default_code = ErrorCode.NOT_FOUND


class ConflictError(MangoError):
    """An entity with the same identity already exists."""

    default_code = ErrorCode.CONFLICT


class UnprocessableError(MangoError):
    """An identity value has the wrong type."""

    default_code = ErrorCode.UNPROCESSABLE


class InternalError(MangoError):
    """Unexpected engine or validator failure, or cache corruption."""

    default_code = ErrorCode.INTERNAL_SERVER_ERROR


class QueryValidationError(BadRequestError):
    """
    Raised when query criteria, a pipeline or sort rules fail safety checks.

    Attributes:
        query_type: Kind of query that failed (filter, pipeline, regex, sort)
        operator: Offending operator (if available)
        path: Path to the offending value (if available)
    """

    def __init__(
        self,
        message: str,
        query_type: Optional[str] = None,
        operator: Optional[str] = None,
        path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if query_type:
            context["query_type"] = query_type
        if operator:
            context["operator"] = operator
        if path:
            context["path"] = path
        super().__init__(message, context=context)
        self.query_type = query_type
        self.operator = operator
        self.path = path


_ERRORS_BY_CODE: Dict[ErrorCode, Type[MangoError]] = {
    ErrorCode.BAD_REQUEST: BadRequestError,
    ErrorCode.NOT_FOUND: NotFoundError,
    ErrorCode.CONFLICT: ConflictError,
    ErrorCode.UNPROCESSABLE: UnprocessableError,
    ErrorCode.INTERNAL_SERVER_ERROR: InternalError,
}
