"""
Observability components.

Structured logging with store context and per-write correlation IDs.
"""

from .logging import (
    ContextualLoggerAdapter,
    correlation_scope,
    get_correlation_id,
    get_logger,
    log_operation,
)

__all__ = [
    "ContextualLoggerAdapter",
    "correlation_scope",
    "get_correlation_id",
    "get_logger",
    "log_operation",
]
