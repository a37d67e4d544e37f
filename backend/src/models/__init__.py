"""Pydantic models for diagram documents and service results."""

from .base import DocumentModel
from .changes import ChangeSet, ComparableEdge, ComparableNode, ComparableSnapshot, SnapshotComparison
from .diagram import (
    ALLOWED_NODE_TYPES,
    Annotation,
    DiagramFile,
    DiagramMetadata,
    DiagramSummary,
    DiagramView,
    HydratedDiagram,
    HydratedEdge,
    HydratedNode,
    LayoutEntry,
    LocalEdge,
    LocalEdgeDraft,
    LocalNode,
    LocalNodeDraft,
    Snapshot,
    SnapshotCreate,
    Viewport,
)
from .graph import (
    EdgeChangeInfo,
    EdgeDraft,
    EdgePatch,
    GlobalEdge,
    GlobalNode,
    GraphFile,
    HierarchyLink,
    NameCheckResult,
    NodeDeletionInfo,
    NodeDraft,
    NodePatch,
    NodeUsage,
)
from .legacy import CanvasDiagramFile, CanvasEdge, CanvasNode, TimelineDiagramFile
from .migration import (
    FileMigrationResult,
    Inference,
    MigrationReport,
    MigrationStatusInfo,
    RollbackReport,
    ValidationResult,
)
from .navigation import BreadcrumbItem, FanOutReport, RelationshipIndex, RenameReport
from .split import GraphFileV2, NodeFileV2

__all__ = [
    "DocumentModel",
    "ChangeSet",
    "ComparableEdge",
    "ComparableNode",
    "ComparableSnapshot",
    "SnapshotComparison",
    "ALLOWED_NODE_TYPES",
    "Annotation",
    "DiagramFile",
    "DiagramMetadata",
    "DiagramSummary",
    "DiagramView",
    "HydratedDiagram",
    "HydratedEdge",
    "HydratedNode",
    "LayoutEntry",
    "LocalEdge",
    "LocalEdgeDraft",
    "LocalNode",
    "LocalNodeDraft",
    "Snapshot",
    "SnapshotCreate",
    "Viewport",
    "EdgeChangeInfo",
    "EdgeDraft",
    "EdgePatch",
    "GlobalEdge",
    "GlobalNode",
    "GraphFile",
    "HierarchyLink",
    "NameCheckResult",
    "NodeDeletionInfo",
    "NodeDraft",
    "NodePatch",
    "NodeUsage",
    "CanvasDiagramFile",
    "CanvasEdge",
    "CanvasNode",
    "TimelineDiagramFile",
    "FileMigrationResult",
    "Inference",
    "MigrationReport",
    "MigrationStatusInfo",
    "RollbackReport",
    "ValidationResult",
    "BreadcrumbItem",
    "FanOutReport",
    "RelationshipIndex",
    "RenameReport",
    "GraphFileV2",
    "NodeFileV2",
]
