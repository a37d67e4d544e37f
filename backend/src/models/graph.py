"""Global graph models (nodes and edges shared by every diagram)."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator

from .base import DocumentModel

GRAPH_VERSION = "3.0.0"

NodeType = Literal[
    "person",
    "system",
    "container",
    "component",
    "code",
    "market",
    "organisation",
    "capability",
]
EdgeType = Literal["uses", "sends-data-to", "depends-on", "contains", "implements", "default"]
Direction = Literal["left", "right", "both"]
LineType = Literal["solid", "dashed", "dotted"]
NodeShape = Literal["rectangle", "rounded", "circle", "diamond"]

NODE_TYPES: tuple[str, ...] = (
    "person",
    "system",
    "container",
    "component",
    "code",
    "market",
    "organisation",
    "capability",
)
EDGE_TYPES: tuple[str, ...] = (
    "uses",
    "sends-data-to",
    "depends-on",
    "contains",
    "implements",
    "default",
)

DEFAULT_NODE_COLORS: Dict[str, str] = {
    "person": "#08427B",
    "system": "#1168BD",
    "external-system": "#999999",
    "container": "#438DD5",
    "component": "#85BBF0",
    "code": "#6366f1",
    "market": "#ec4899",
    "organisation": "#8b5cf6",
    "capability": "#3b82f6",
}
FALLBACK_NODE_COLOR = "#3b82f6"
DEFAULT_EDGE_COLOR = "#888888"


def default_color_for(node_type: str) -> str:
    return DEFAULT_NODE_COLORS.get(node_type, FALLBACK_NODE_COLOR)


def _clean_label(value: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValueError("Label must not be empty")
    return cleaned


class NodeKnowledge(DocumentModel):
    """Free-form documentation attached to a node."""

    notes: List[Any] = Field(default_factory=list)
    urls: List[Any] = Field(default_factory=list)
    attachments: List[Any] = Field(default_factory=list)


class NodeStyle(DocumentModel):
    color: str = FALLBACK_NODE_COLOR
    icon: Optional[str] = None
    shape: Optional[NodeShape] = None


class EdgeStyle(DocumentModel):
    color: str = DEFAULT_EDGE_COLOR
    line_type: LineType = "solid"
    stroke_width: float = 2


class GlobalNode(DocumentModel):
    """A node owned by the graph store; diagrams only reference its id."""

    id: str = Field(..., min_length=1)
    type: NodeType
    label: str = Field(..., description="Unique across the whole vault")
    description: str = ""
    technology: Optional[str] = None
    team: Optional[str] = None
    knowledge: NodeKnowledge = Field(default_factory=NodeKnowledge)
    metrics: Dict[str, float] = Field(default_factory=dict)
    style: NodeStyle = Field(default_factory=NodeStyle)
    created: str
    updated: str


class GlobalEdge(DocumentModel):
    id: str = Field(..., min_length=1)
    source: str
    target: str
    type: EdgeType = "default"
    label: Optional[str] = None
    direction: Direction = "right"
    style: EdgeStyle = Field(default_factory=EdgeStyle)
    created: str
    updated: str


class HierarchyLink(DocumentModel):
    """Drill-down link from a global node to its child diagram."""

    parent_node_id: str
    child_diagram_path: str
    created: str


class GraphMetadata(DocumentModel):
    created: str
    updated: str
    node_count: int = 0
    edge_count: int = 0


class GraphRelationships(DocumentModel):
    edges: List[GlobalEdge] = Field(default_factory=list)
    hierarchy: List[HierarchyLink] = Field(default_factory=list)


class GraphFile(DocumentModel):
    """The single ``__graph__.json`` document."""

    version: Literal["3.0.0"] = GRAPH_VERSION
    metadata: GraphMetadata
    nodes: Dict[str, GlobalNode] = Field(default_factory=dict)
    relationships: GraphRelationships = Field(default_factory=GraphRelationships)


class NodeDraft(DocumentModel):
    """Payload for creating a global node."""

    id: Optional[str] = Field(default=None, description="Explicit id; generated when omitted")
    type: NodeType
    label: str
    description: str = ""
    technology: Optional[str] = None
    team: Optional[str] = None
    knowledge: Optional[NodeKnowledge] = None
    metrics: Optional[Dict[str, float]] = None
    style: Optional[NodeStyle] = None

    @field_validator("label")
    @classmethod
    def _validate_label(cls, value: str) -> str:
        return _clean_label(value)


class NodePatch(DocumentModel):
    """Partial update for a global node; ``None`` means unchanged."""

    type: Optional[NodeType] = None
    label: Optional[str] = None
    description: Optional[str] = None
    technology: Optional[str] = None
    team: Optional[str] = None
    knowledge: Optional[NodeKnowledge] = None
    metrics: Optional[Dict[str, float]] = None
    style: Optional[NodeStyle] = None

    @field_validator("label")
    @classmethod
    def _validate_label(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _clean_label(value)


class EdgeDraft(DocumentModel):
    id: Optional[str] = None
    source: str
    target: str
    type: EdgeType = "default"
    label: Optional[str] = None
    direction: Direction = "right"
    style: Optional[EdgeStyle] = None


class EdgePatch(DocumentModel):
    source: Optional[str] = None
    target: Optional[str] = None
    type: Optional[EdgeType] = None
    label: Optional[str] = None
    direction: Optional[Direction] = None
    style: Optional[EdgeStyle] = None


class NameCheckResult(DocumentModel):
    is_unique: bool
    existing_node: Optional[GlobalNode] = None
    usage_count: Optional[int] = None


class NodeDeletionInfo(DocumentModel):
    """Impact of deleting a node, for confirmation before the cascade."""

    node: GlobalNode
    diagram_count: int
    diagrams: List[str] = Field(default_factory=list)
    edge_count: int
    edges: List[GlobalEdge] = Field(default_factory=list)


class EdgeChangeInfo(DocumentModel):
    edge: GlobalEdge
    diagram_count: int
    diagrams: List[str] = Field(default_factory=list)


class NodeUsage(DocumentModel):
    node_id: str
    diagrams: List[str] = Field(default_factory=list)
    edges_as_source: List[GlobalEdge] = Field(default_factory=list)
    edges_as_target: List[GlobalEdge] = Field(default_factory=list)


__all__ = [
    "GRAPH_VERSION",
    "NodeType",
    "EdgeType",
    "Direction",
    "LineType",
    "NodeShape",
    "NODE_TYPES",
    "EDGE_TYPES",
    "DEFAULT_NODE_COLORS",
    "FALLBACK_NODE_COLOR",
    "DEFAULT_EDGE_COLOR",
    "default_color_for",
    "NodeKnowledge",
    "NodeStyle",
    "EdgeStyle",
    "GlobalNode",
    "GlobalEdge",
    "HierarchyLink",
    "GraphMetadata",
    "GraphRelationships",
    "GraphFile",
    "NodeDraft",
    "NodePatch",
    "EdgeDraft",
    "EdgePatch",
    "NameCheckResult",
    "NodeDeletionInfo",
    "EdgeChangeInfo",
    "NodeUsage",
]
