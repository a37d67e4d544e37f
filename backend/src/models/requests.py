"""Request and response bodies of the HTTP API."""

from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from .base import DocumentModel
from .diagram import DEFAULT_NODE_X, DEFAULT_NODE_Y
from .graph import GlobalEdge, GlobalNode


class DiagramCreate(DocumentModel):
    path: str = Field(..., description="Vault-relative path ending in .bac4")
    name: Optional[str] = None
    diagram_type: str = "context"


class NodePlacement(DocumentModel):
    node_id: str
    x: float = DEFAULT_NODE_X
    y: float = DEFAULT_NODE_Y


class LayoutUpdate(DocumentModel):
    x: float
    y: float
    width: Optional[float] = None
    height: Optional[float] = None


class SnapshotRename(DocumentModel):
    label: str


class DiagramTypeUpdate(DocumentModel):
    diagram_type: str


class ChildDiagramRequest(DocumentModel):
    path: str = Field(..., description="Parent diagram path")
    node_id: str
    label: str
    parent_type: str = "context"
    child_type: str = "container"
    suggested_name: Optional[str] = None


class LinkRequest(DocumentModel):
    path: str
    node_id: str
    child_path: str


class RenameRequest(DocumentModel):
    path: str
    new_name: str


class ChildLinkResult(DocumentModel):
    child_path: Optional[str] = None


class ParentResult(DocumentModel):
    parent_path: Optional[str] = None


class OrphanReport(DocumentModel):
    nodes: List[GlobalNode] = Field(default_factory=list)
    edges: List[GlobalEdge] = Field(default_factory=list)


class CleanupResult(DocumentModel):
    removed: int


__all__ = [
    "DiagramCreate",
    "NodePlacement",
    "LayoutUpdate",
    "SnapshotRename",
    "DiagramTypeUpdate",
    "ChildDiagramRequest",
    "LinkRequest",
    "RenameRequest",
    "ChildLinkResult",
    "ParentResult",
    "OrphanReport",
    "CleanupResult",
]
