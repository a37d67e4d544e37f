"""FastAPI middleware for error handling."""

from .error_handlers import (
    classify_domain_error,
    domain_exception_handler,
    http_exception_handler,
    internal_exception_handler,
    register_error_handlers,
    validation_exception_handler,
    value_error_handler,
)

__all__ = [
    "classify_domain_error",
    "register_error_handlers",
    "validation_exception_handler",
    "http_exception_handler",
    "domain_exception_handler",
    "value_error_handler",
    "internal_exception_handler",
]
