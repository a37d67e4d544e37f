"""Canvas-era document models: unversioned, v0.6.0 and v1.0.0 timeline files.

Canvas nodes carry a ``type`` string and a ``data`` bag whose fields depend on
that type. They are decoded as a tagged union keyed on ``type``; unknown kinds
fall back to :class:`GenericNode` instead of failing.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Discriminator, Field, Tag

from .base import DocumentModel

TIMELINE_VERSION = "1.0.0"
SELF_CONTAINED_VERSION = "0.6.0"
MAX_TIMELINE_SNAPSHOTS = 10
DEFAULT_TIMELINE_LABEL = "Current"


class Position(DocumentModel):
    x: float = 0
    y: float = 0


class BaseNodeData(DocumentModel):
    label: str = ""
    color: Optional[str] = None
    description: Optional[str] = None
    technology: Optional[str] = None
    has_child_diagram: Optional[bool] = None
    linked_diagram_path: Optional[str] = None
    linked_markdown_path: Optional[str] = None


class PersonNodeData(BaseNodeData):
    role: Optional[str] = None


class SystemNodeData(BaseNodeData):
    external: bool = False


class ContainerNodeData(BaseNodeData):
    icon: Optional[str] = None


class ComponentNodeData(BaseNodeData):
    pass


class CloudComponentNodeData(BaseNodeData):
    provider: Optional[Literal["aws", "azure", "gcp", "saas"]] = None
    component_id: Optional[str] = None
    component_type: Optional[str] = None
    category: Optional[str] = None
    icon: Optional[str] = None


class CanvasNodeBase(DocumentModel):
    id: str
    position: Position = Field(default_factory=Position)
    width: Optional[float] = None
    height: Optional[float] = None


class PersonNode(CanvasNodeBase):
    type: Literal["person"] = "person"
    data: PersonNodeData = Field(default_factory=PersonNodeData)


class SystemNode(CanvasNodeBase):
    type: Literal["system"] = "system"
    data: SystemNodeData = Field(default_factory=SystemNodeData)


class ContainerNode(CanvasNodeBase):
    type: Literal["container"] = "container"
    data: ContainerNodeData = Field(default_factory=ContainerNodeData)


class ComponentNode(CanvasNodeBase):
    """C4 component; older files use the ``c4`` tag."""

    type: Literal["component", "c4"] = "component"
    data: ComponentNodeData = Field(default_factory=ComponentNodeData)


class CloudComponentNode(CanvasNodeBase):
    type: Literal["cloudComponent"] = "cloudComponent"
    data: CloudComponentNodeData = Field(default_factory=CloudComponentNodeData)


class GenericNode(CanvasNodeBase):
    """Market, organisation, capability, code and any kind without extra fields."""

    type: Optional[str] = None
    data: BaseNodeData = Field(default_factory=BaseNodeData)


_TAGGED_KINDS = {
    "person": "person",
    "system": "system",
    "container": "container",
    "component": "component",
    "c4": "component",
    "cloudComponent": "cloudComponent",
}


def _canvas_node_kind(value: Any) -> str:
    if isinstance(value, dict):
        kind = value.get("type")
    else:
        kind = getattr(value, "type", None)
    return _TAGGED_KINDS.get(kind, "generic")


CanvasNode = Annotated[
    Union[
        Annotated[PersonNode, Tag("person")],
        Annotated[SystemNode, Tag("system")],
        Annotated[ContainerNode, Tag("container")],
        Annotated[ComponentNode, Tag("component")],
        Annotated[CloudComponentNode, Tag("cloudComponent")],
        Annotated[GenericNode, Tag("generic")],
    ],
    Discriminator(_canvas_node_kind),
]


class CanvasEdgeData(DocumentModel):
    label: Optional[str] = None
    direction: Optional[Literal["left", "right", "both"]] = None
    description: Optional[str] = None


class CanvasEdge(DocumentModel):
    id: str
    source: str
    target: str
    type: Optional[str] = None
    data: Optional[CanvasEdgeData] = None
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    marker_end: Optional[Any] = None
    style: Optional[Dict[str, Any]] = None


class CanvasMetadata(DocumentModel):
    diagram_type: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CanvasDiagramFile(DocumentModel):
    """Unversioned (monolithic) or v0.6.0 file with top-level nodes and edges."""

    version: Optional[str] = None
    metadata: Optional[CanvasMetadata] = None
    nodes: List[CanvasNode] = Field(default_factory=list)
    edges: List[CanvasEdge] = Field(default_factory=list)


class TimelineSnapshot(DocumentModel):
    id: str
    label: str
    timestamp: Optional[str] = None
    description: str = ""
    created_at: Optional[str] = None
    nodes: List[CanvasNode] = Field(default_factory=list)
    edges: List[CanvasEdge] = Field(default_factory=list)
    annotations: List[Any] = Field(default_factory=list)


class Timeline(DocumentModel):
    snapshots: List[TimelineSnapshot] = Field(default_factory=list)
    current_snapshot_id: str
    snapshot_order: List[str] = Field(default_factory=list)


class TimelineMetadata(DocumentModel):
    diagram_type: str = "context"
    title: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class TimelineDiagramFile(DocumentModel):
    version: str = TIMELINE_VERSION
    metadata: TimelineMetadata
    timeline: Timeline


__all__ = [
    "TIMELINE_VERSION",
    "SELF_CONTAINED_VERSION",
    "MAX_TIMELINE_SNAPSHOTS",
    "DEFAULT_TIMELINE_LABEL",
    "Position",
    "BaseNodeData",
    "PersonNodeData",
    "SystemNodeData",
    "ContainerNodeData",
    "ComponentNodeData",
    "CloudComponentNodeData",
    "CanvasNodeBase",
    "PersonNode",
    "SystemNode",
    "ContainerNode",
    "ComponentNode",
    "CloudComponentNode",
    "GenericNode",
    "CanvasNode",
    "CanvasEdgeData",
    "CanvasEdge",
    "CanvasMetadata",
    "CanvasDiagramFile",
    "TimelineSnapshot",
    "Timeline",
    "TimelineMetadata",
    "TimelineDiagramFile",
]
