"""Split-file generation (v2.5.x): ``.bac4`` node file + ``.bac4-graph`` sibling."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from .base import DocumentModel
from .graph import NodeKnowledge, NodeStyle

SPLIT_VERSION = "2.5.1"
SPLIT_VERSIONS: tuple[str, ...] = ("2.5.0", "2.5.1")
NODE_FILE_SUFFIX = ".bac4"
GRAPH_FILE_SUFFIX = ".bac4-graph"

LayerType = Literal[
    "market",
    "organisation",
    "capability",
    "context",
    "container",
    "component",
    "code",
]
ViewType = Literal["c4-context", "c4-container", "c4-component", "wardley", "custom"]
MarkerType = Literal["arrow", "arrowclosed", "none"]
HandlePosition = Literal["top", "right", "bottom", "left"]


def graph_path_for(node_file_path: str) -> str:
    """Sibling ``.bac4-graph`` path for a ``.bac4`` node file."""
    if node_file_path.endswith(NODE_FILE_SUFFIX):
        return node_file_path[: -len(NODE_FILE_SUFFIX)] + GRAPH_FILE_SUFFIX
    return node_file_path + "-graph"


def node_path_for(graph_file_path: str) -> str:
    if graph_file_path.endswith(GRAPH_FILE_SUFFIX):
        return graph_file_path[: -len(GRAPH_FILE_SUFFIX)] + NODE_FILE_SUFFIX
    return graph_file_path


class NodePropertiesV2(DocumentModel):
    label: str
    description: str = ""
    technology: Optional[str] = None
    team: Optional[str] = None
    status: Optional[str] = None


class LinkedDiagram(DocumentModel):
    path: str
    relationship: str = "decomposes-to"


class NodeLinksV2(DocumentModel):
    parent: Optional[str] = None
    children: List[str] = Field(default_factory=list)
    linked_diagrams: List[LinkedDiagram] = Field(default_factory=list)
    external_systems: List[str] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)


class NodeV2(DocumentModel):
    id: str
    type: str
    properties: NodePropertiesV2
    knowledge: NodeKnowledge = Field(default_factory=NodeKnowledge)
    metrics: Dict[str, Any] = Field(default_factory=dict)
    wardley: Optional[Dict[str, Any]] = None
    links: NodeLinksV2 = Field(default_factory=NodeLinksV2)
    style: NodeStyle = Field(default_factory=NodeStyle)

    def child_diagram(self) -> Optional[str]:
        for link in self.links.linked_diagrams:
            if link.relationship == "decomposes-to":
                return link.path
        return None


class NodeFileMetadataV2(DocumentModel):
    id: str
    title: str
    description: str = ""
    layer: LayerType
    diagram_type: str
    created: str
    updated: str
    tags: Optional[List[str]] = None
    authors: Optional[List[str]] = None
    status: Optional[str] = None


class NodeFileV2(DocumentModel):
    version: Literal["2.5.0", "2.5.1"] = SPLIT_VERSION
    metadata: NodeFileMetadataV2
    nodes: Dict[str, NodeV2] = Field(default_factory=dict)


class LayoutInfo(DocumentModel):
    x: float
    y: float
    width: float = 200
    height: float = 100
    locked: bool = False


class EdgeStyleV2(DocumentModel):
    direction: Literal["left", "right", "both"] = "right"
    line_type: Literal["solid", "dashed", "dotted"] = "solid"
    color: str = "#888888"
    marker_end: MarkerType = "arrowclosed"


class EdgeHandles(DocumentModel):
    source_handle: HandlePosition = "right"
    target_handle: HandlePosition = "left"


class EdgeV2(DocumentModel):
    id: str
    source: str
    target: str
    type: str = "default"
    properties: Dict[str, Any] = Field(default_factory=dict)
    style: EdgeStyleV2 = Field(default_factory=EdgeStyleV2)
    handles: EdgeHandles = Field(default_factory=EdgeHandles)


class SnapshotV2(DocumentModel):
    id: str
    label: str
    timestamp: Optional[str] = None
    description: str = ""
    created: str
    layout: Dict[str, LayoutInfo] = Field(default_factory=dict)
    edges: List[EdgeV2] = Field(default_factory=list)
    groups: List[Any] = Field(default_factory=list)
    annotations: List[Any] = Field(default_factory=list)
    node_properties: Optional[Dict[str, Any]] = None


class TimelineV2(DocumentModel):
    snapshots: List[SnapshotV2] = Field(default_factory=list)
    current_snapshot_id: str
    snapshot_order: List[str] = Field(default_factory=list)

    def current(self) -> Optional[SnapshotV2]:
        for snapshot in self.snapshots:
            if snapshot.id == self.current_snapshot_id:
                return snapshot
        return None


class GraphConfigV2(DocumentModel):
    grid_enabled: bool = True
    grid_size: int = 20
    snap_to_grid: bool = False
    show_minimap: bool = False
    layout_algorithm: str = "manual"


class GraphFileMetadataV2(DocumentModel):
    node_file: str
    graph_id: str
    title: str
    view_type: ViewType
    created: str
    updated: str


class GraphFileV2(DocumentModel):
    version: Literal["2.5.0", "2.5.1"] = SPLIT_VERSION
    metadata: GraphFileMetadataV2
    timeline: TimelineV2
    config: GraphConfigV2 = Field(default_factory=GraphConfigV2)


__all__ = [
    "SPLIT_VERSION",
    "SPLIT_VERSIONS",
    "NODE_FILE_SUFFIX",
    "GRAPH_FILE_SUFFIX",
    "LayerType",
    "ViewType",
    "MarkerType",
    "HandlePosition",
    "graph_path_for",
    "node_path_for",
    "NodePropertiesV2",
    "LinkedDiagram",
    "NodeLinksV2",
    "NodeV2",
    "NodeFileMetadataV2",
    "NodeFileV2",
    "LayoutInfo",
    "EdgeStyleV2",
    "EdgeHandles",
    "EdgeV2",
    "SnapshotV2",
    "TimelineV2",
    "GraphConfigV2",
    "GraphFileMetadataV2",
    "GraphFileV2",
]
