"""
Logging utilities for MDB_MANGO.

Stores log through a ContextualLoggerAdapter bound to the store class and its
identity field. Every write runs inside a correlation scope, so all records
emitted by one write (or by one multi-DTO `save`) share a correlation ID.
"""

import contextvars
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def get_correlation_id() -> str | None:
    """Get the current correlation ID from context."""
    return _correlation_id.get()


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """
    Run a block under a correlation ID.

    Nested scopes without an explicit ID join the enclosing one, so a batch
    and the writes it performs log under the same ID.

    Args:
        correlation_id: ID to use (the enclosing ID, or a new UUID, if None)

    Yields:
        The correlation ID in effect inside the block
    """
    if correlation_id is None:
        correlation_id = _correlation_id.get() or str(uuid.uuid4())

    token = _correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds a timestamp, the correlation ID and bound store
    context to each record.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context: dict[str, Any] = {"timestamp": datetime.now().isoformat()}

        correlation_id = get_correlation_id()
        if correlation_id:
            context["correlation_id"] = correlation_id

        context.update(self.extra or {})
        context.update(kwargs.get("extra") or {})

        kwargs["extra"] = context
        return msg, kwargs


def get_logger(name: str, **bound: Any) -> ContextualLoggerAdapter:
    """
    Get a contextual logger.

    Args:
        name: Logger name (typically __name__)
        **bound: Context attached to every record from this adapter
            (store, id_key, ...)

    Returns:
        ContextualLoggerAdapter instance
    """
    return ContextualLoggerAdapter(logging.getLogger(name), bound)


def log_operation(
    logger: logging.Logger | logging.LoggerAdapter,
    operation: str,
    level: int = logging.DEBUG,
    success: bool = True,
    duration_ms: float | None = None,
    **context: Any,
) -> None:
    """
    Log a store operation with structured context.

    Args:
        logger: Logger instance
        operation: Operation name
        level: Log level
        success: Whether operation succeeded
        duration_ms: Operation duration in milliseconds
        **context: Additional context
    """
    log_context: dict[str, Any] = {"operation": operation, "success": success, **context}

    message = f"Operation: {operation}" if success else f"Operation failed: {operation}"
    if duration_ms is not None:
        log_context["duration_ms"] = round(duration_ms, 2)
        message += f" (duration: {duration_ms:.2f}ms)"

    logger.log(level, message, extra=log_context)
