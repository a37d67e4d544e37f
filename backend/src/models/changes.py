"""Snapshot comparison models."""

from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from .base import DocumentModel


class ComparableNode(DocumentModel):
    id: str
    label: str = ""
    color: Optional[str] = None
    x: float = 0
    y: float = 0


class ComparableEdge(DocumentModel):
    id: str
    source: str
    target: str
    label: Optional[str] = None


class ComparableSnapshot(DocumentModel):
    """Minimal view of a snapshot, independent of the file generation."""

    label: str
    nodes: List[ComparableNode] = Field(default_factory=list)
    edges: List[ComparableEdge] = Field(default_factory=list)


class ChangeSet(DocumentModel):
    added_nodes: List[str] = Field(default_factory=list)
    removed_nodes: List[str] = Field(default_factory=list)
    modified_nodes: List[str] = Field(default_factory=list)
    unchanged_nodes: List[str] = Field(default_factory=list)
    added_edges: List[str] = Field(default_factory=list)
    removed_edges: List[str] = Field(default_factory=list)
    unchanged_edges: List[str] = Field(default_factory=list)


class SnapshotComparison(DocumentModel):
    before: str
    after: str
    changes: ChangeSet
    summary: str


__all__ = [
    "ComparableNode",
    "ComparableEdge",
    "ComparableSnapshot",
    "ChangeSet",
    "SnapshotComparison",
]
