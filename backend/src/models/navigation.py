"""Navigation models: relationship index rows, breadcrumbs, rename reports."""

from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from .base import DocumentModel


class DiagramEntry(DocumentModel):
    id: str
    file_path: str
    display_name: str
    type: str = "context"
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class DiagramRelationship(DocumentModel):
    parent_diagram_id: str
    child_diagram_id: str
    parent_node_id: str
    parent_node_label: Optional[str] = None
    created_at: Optional[str] = None


class RelationshipIndex(DocumentModel):
    """``diagram-relationships.json``: read-only registry of older vaults."""

    version: str = "1.0.0"
    diagrams: List[DiagramEntry] = Field(default_factory=list)
    relationships: List[DiagramRelationship] = Field(default_factory=list)
    updated_at: Optional[str] = None


class BreadcrumbItem(DocumentModel):
    label: str
    path: str
    type: str


class ChildLink(DocumentModel):
    """A drill-down link from a node in ``parent_path`` to ``child_path``."""

    parent_path: str
    node_id: str
    node_label: str = ""
    child_path: str


class NodeReference(DocumentModel):
    """One occurrence of a node label in a diagram that embeds its nodes."""

    node_id: str
    diagram_path: str
    diagram_name: str
    node_type: str = "unknown"
    label: str


class RenameFailure(DocumentModel):
    path: str
    error: str


class FanOutReport(DocumentModel):
    """Outcome of an update applied to many diagrams; failures do not roll back."""

    updated: List[str] = Field(default_factory=list)
    failed: List[RenameFailure] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed


class RenameReport(DocumentModel):
    old_path: str
    new_path: str
    updated: List[str] = Field(default_factory=list)
    failed: List[RenameFailure] = Field(default_factory=list)
    hierarchy_links_updated: int = 0

    @property
    def succeeded(self) -> bool:
        return not self.failed


__all__ = [
    "DiagramEntry",
    "DiagramRelationship",
    "RelationshipIndex",
    "BreadcrumbItem",
    "ChildLink",
    "NodeReference",
    "RenameFailure",
    "FanOutReport",
    "RenameReport",
]
