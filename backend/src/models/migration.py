"""Migration, validation and inference result models."""

from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import Field

from .base import DocumentModel

MigrationOutcome = Literal["migrated", "skipped", "failed"]


class Inference(DocumentModel):
    """Result of a best-effort heuristic; ``confident`` is False on fallback."""

    value: str
    confident: bool
    reason: str


class ValidationResult(DocumentModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(valid=True, errors=[])

    @classmethod
    def failure(cls, errors: List[str]) -> "ValidationResult":
        return cls(valid=False, errors=list(errors))


class ReviewItem(DocumentModel):
    """A heuristic guess that an operator should confirm by hand."""

    file: str
    field: str
    value: str
    reason: str


class FileMigrationResult(DocumentModel):
    path: str
    status: MigrationOutcome
    version_before: Optional[str] = None
    version_after: Optional[str] = None
    message: Optional[str] = None
    needs_review: List[ReviewItem] = Field(default_factory=list)
    written: List[str] = Field(default_factory=list)


class MigrationErrorEntry(DocumentModel):
    file: str
    error: str


class MigrationReport(DocumentModel):
    total: int = 0
    migrated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[MigrationErrorEntry] = Field(default_factory=list)
    needs_review: List[ReviewItem] = Field(default_factory=list)
    results: List[FileMigrationResult] = Field(default_factory=list)
    dry_run: bool = False
    target_version: str
    stopped_early: bool = False
    started: str
    finished: Optional[str] = None


class RollbackReport(DocumentModel):
    restored: int = 0
    failed: int = 0
    restored_files: List[str] = Field(default_factory=list)
    errors: List[MigrationErrorEntry] = Field(default_factory=list)


class MigrationStatusInfo(DocumentModel):
    path: str
    version: str
    needs_migration: bool
    has_backup: bool
    has_graph_file: bool


class ValidationReport(DocumentModel):
    """Output of an external graph validator (pattern checks over nodes/edges)."""

    valid: bool = True
    issues: List[Any] = Field(default_factory=list)


__all__ = [
    "MigrationOutcome",
    "Inference",
    "ValidationResult",
    "ReviewItem",
    "FileMigrationResult",
    "MigrationErrorEntry",
    "MigrationReport",
    "RollbackReport",
    "MigrationStatusInfo",
    "ValidationReport",
]
