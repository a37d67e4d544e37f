"""Diagram view documents (v3.0.0): view, layout, snapshots, annotations."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator

from .base import DocumentModel
from .graph import Direction, EdgeStyle, EdgeType, NodeStyle, NodeType

DIAGRAM_VERSION = "3.0.0"
CURRENT_SNAPSHOT_ID = "snapshot-current"
CURRENT_SNAPSHOT_LABEL = "Current State"
DEFAULT_NODE_X = 250.0
DEFAULT_NODE_Y = 250.0

DiagramType = Literal[
    "context",
    "container",
    "component",
    "code",
    "market",
    "organisation",
    "capability",
    "graph",
]
DIAGRAM_TYPES: tuple[str, ...] = (
    "context",
    "container",
    "component",
    "code",
    "market",
    "organisation",
    "capability",
    "graph",
)

ALLOWED_NODE_TYPES: Dict[str, tuple[str, ...]] = {
    "context": ("system", "person"),
    "container": ("container", "person"),
    "component": ("component",),
    "code": ("code",),
    "market": ("market",),
    "organisation": ("organisation",),
    "capability": ("capability",),
    "graph": ("system", "person", "container", "component"),
}

AnnotationType = Literal["comment", "highlight", "arrow", "text", "shape"]


def is_local_node_id(node_id: str) -> bool:
    return node_id.startswith("local-")


def is_local_edge_id(edge_id: str) -> bool:
    return edge_id.startswith("local-edge-")


class LayoutEntry(DocumentModel):
    x: float
    y: float
    width: Optional[float] = None
    height: Optional[float] = None


class Viewport(DocumentModel):
    x: float = 0
    y: float = 0
    zoom: float = 1


class Point(DocumentModel):
    x: float
    y: float


class Size(DocumentModel):
    width: float
    height: float


class Annotation(DocumentModel):
    id: str
    type: AnnotationType
    position: Point
    size: Optional[Size] = None
    content: Optional[str] = None
    style: Optional[Dict[str, Any]] = None
    created: str
    created_by: Optional[str] = None


class LocalNode(DocumentModel):
    """Snapshot-scoped node that has not been promoted to the graph."""

    id: str
    type: NodeType
    label: str
    description: str = ""
    technology: Optional[str] = None
    team: Optional[str] = None
    style: NodeStyle = Field(default_factory=NodeStyle)


class LocalEdge(DocumentModel):
    id: str
    source: str
    target: str
    type: EdgeType = "default"
    label: Optional[str] = None
    direction: Direction = "right"
    style: EdgeStyle = Field(default_factory=EdgeStyle)


class Snapshot(DocumentModel):
    id: str
    label: str
    description: str = ""
    timestamp: Optional[str] = None
    created: str
    is_current: bool = False
    local_nodes: Dict[str, LocalNode] = Field(default_factory=dict)
    layout: Dict[str, LayoutEntry] = Field(default_factory=dict)
    local_edges: List[LocalEdge] = Field(default_factory=list)

    def node_ids(self, view_nodes: List[str]) -> List[str]:
        """Ids present in this snapshot: laid-out view nodes plus local nodes."""
        in_view = set(view_nodes)
        ids = [
            node_id
            for node_id in self.layout
            if node_id in in_view or node_id in self.local_nodes
        ]
        for node_id in self.local_nodes:
            if node_id not in self.layout:
                ids.append(node_id)
        return ids


class DiagramMetadata(DocumentModel):
    diagram_name: str
    diagram_type: DiagramType
    created: str
    updated: str


class DiagramView(DocumentModel):
    nodes: List[str] = Field(default_factory=list)
    layout: Dict[str, LayoutEntry] = Field(default_factory=dict)
    viewport: Viewport = Field(default_factory=Viewport)


class DiagramFile(DocumentModel):
    """A ``.bac4`` diagram in the global-graph generation."""

    version: Literal["3.0.0"] = DIAGRAM_VERSION
    metadata: DiagramMetadata
    view: DiagramView = Field(default_factory=DiagramView)
    snapshots: List[Snapshot] = Field(default_factory=list)
    current_snapshot_id: str = CURRENT_SNAPSHOT_ID
    annotations: List[Annotation] = Field(default_factory=list)

    def get_snapshot(self, snapshot_id: str) -> Optional[Snapshot]:
        for snapshot in self.snapshots:
            if snapshot.id == snapshot_id:
                return snapshot
        return None

    def current_snapshot(self) -> Optional[Snapshot]:
        return self.get_snapshot(self.current_snapshot_id)


class LocalNodeDraft(DocumentModel):
    type: NodeType
    label: str
    description: str = ""
    technology: Optional[str] = None
    team: Optional[str] = None
    style: Optional[NodeStyle] = None
    x: float = DEFAULT_NODE_X
    y: float = DEFAULT_NODE_Y

    @field_validator("label")
    @classmethod
    def _validate_label(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("Label must not be empty")
        return cleaned


class LocalEdgeDraft(DocumentModel):
    source: str
    target: str
    type: EdgeType = "default"
    label: Optional[str] = None
    direction: Direction = "right"
    style: Optional[EdgeStyle] = None


class SnapshotCreate(DocumentModel):
    label: str
    description: str = ""
    timestamp: Optional[str] = None

    @field_validator("label")
    @classmethod
    def _validate_label(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("Snapshot label cannot be empty")
        return cleaned


class HydratedNode(DocumentModel):
    """Node merged from the graph (or snapshot) with its position."""

    id: str
    type: str
    label: str
    description: str = ""
    technology: Optional[str] = None
    team: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    shape: Optional[str] = None
    x: float = 0
    y: float = 0
    width: Optional[float] = None
    height: Optional[float] = None
    is_local: bool = False


class HydratedEdge(DocumentModel):
    id: str
    source: str
    target: str
    type: str = "default"
    label: Optional[str] = None
    direction: str = "right"
    color: Optional[str] = None
    is_local: bool = False


class HydratedDiagram(DocumentModel):
    path: str
    diagram_name: str
    diagram_type: str
    snapshot_id: str
    snapshot_label: str
    nodes: List[HydratedNode] = Field(default_factory=list)
    edges: List[HydratedEdge] = Field(default_factory=list)
    viewport: Viewport = Field(default_factory=Viewport)


class DiagramSummary(DocumentModel):
    path: str
    diagram_name: str
    diagram_type: str
    node_count: int
    snapshot_count: int


__all__ = [
    "DIAGRAM_VERSION",
    "CURRENT_SNAPSHOT_ID",
    "CURRENT_SNAPSHOT_LABEL",
    "DEFAULT_NODE_X",
    "DEFAULT_NODE_Y",
    "DiagramType",
    "DIAGRAM_TYPES",
    "ALLOWED_NODE_TYPES",
    "AnnotationType",
    "is_local_node_id",
    "is_local_edge_id",
    "LayoutEntry",
    "Viewport",
    "Point",
    "Size",
    "Annotation",
    "LocalNode",
    "LocalEdge",
    "Snapshot",
    "DiagramMetadata",
    "DiagramView",
    "DiagramFile",
    "LocalNodeDraft",
    "LocalEdgeDraft",
    "SnapshotCreate",
    "HydratedNode",
    "HydratedEdge",
    "HydratedDiagram",
    "DiagramSummary",
]
