"""Domain errors raised by the diagram stores."""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class DiagramStoreError(Exception):
    """Base class for diagram persistence failures."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(DiagramStoreError):
    """Referenced node, edge, snapshot, diagram or file does not exist."""


class DuplicateNameError(DiagramStoreError):
    """A label (or file name) collides with an existing one."""


class FormatError(DiagramStoreError):
    """Document is unparseable or has an unrecognized version or shape."""


class SchemaValidationError(DiagramStoreError):
    """Converted output failed referential checks; nothing was written."""

    def __init__(
        self,
        message: str,
        violations: List[str],
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, {**(details or {}), "violations": list(violations)})
        self.violations = list(violations)


class DanglingReferenceError(DiagramStoreError):
    """A link or edge points at an entity that does not exist."""


class StorageError(DiagramStoreError):
    """Underlying file store failure (not retried)."""


class OperationRejectedError(DiagramStoreError):
    """Operation refused by a store rule (e.g. deleting the last snapshot)."""


__all__ = [
    "DiagramStoreError",
    "NotFoundError",
    "DuplicateNameError",
    "FormatError",
    "SchemaValidationError",
    "DanglingReferenceError",
    "StorageError",
    "OperationRejectedError",
]
