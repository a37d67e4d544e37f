"""Pure document conversions between diagram file generations.

Nothing here touches the vault; :mod:`migration` decides what to read, what
to write and in which order.

Upgrade path::

    legacy / 0.6.0  --upgrade_legacy_to_timeline-->  1.0.0 timeline
    1.0.0 timeline  --convert_timeline_to_split-->   2.5.1 node file + graph file
    2.5.1 split     --convert_split_to_global-->     3.0.0 view + global graph
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Any, Dict, List, NamedTuple, Union

from pydantic import ValidationError

from ..models.diagram import (
    CURRENT_SNAPSHOT_ID,
    CURRENT_SNAPSHOT_LABEL,
    DEFAULT_NODE_X,
    DEFAULT_NODE_Y,
    DIAGRAM_TYPES,
    Annotation,
    DiagramFile,
    DiagramMetadata,
    DiagramView,
    LayoutEntry,
    Snapshot,
    is_local_node_id,
)
from ..models.graph import (
    EDGE_TYPES,
    NODE_TYPES,
    EdgeStyle,
    GlobalEdge,
    GlobalNode,
    GraphFile,
    HierarchyLink,
    NodeKnowledge,
    NodeStyle,
    default_color_for,
)
from ..models.legacy import (
    DEFAULT_TIMELINE_LABEL,
    TIMELINE_VERSION,
    CanvasDiagramFile,
    CanvasEdge,
    Timeline,
    TimelineDiagramFile,
    TimelineMetadata,
    TimelineSnapshot,
)
from ..models.migration import ReviewItem, ValidationResult
from ..models.split import (
    SPLIT_VERSION,
    SPLIT_VERSIONS,
    EdgeHandles,
    EdgeStyleV2,
    EdgeV2,
    GraphConfigV2,
    GraphFileMetadataV2,
    GraphFileV2,
    LayoutInfo,
    LinkedDiagram,
    NodeFileMetadataV2,
    NodeFileV2,
    NodeLinksV2,
    NodePropertiesV2,
    NodeV2,
    SnapshotV2,
    TimelineV2,
)
from .errors import FormatError
from .ids import generate_id, utcnow_iso
from .inference import infer_diagram_type, infer_layer, infer_node_type, infer_view_type

logger = logging.getLogger(__name__)

# Lossy reverse conversions are tagged with the last timeline-era version.
REVERSE_TIMELINE_VERSION = "2.2.0"
DEFAULT_NODE_WIDTH = 200
DEFAULT_NODE_HEIGHT = 100

_DATA_CORE_KEYS = {"label", "description", "technology", "color", "linkedDiagramPath"}
_MARKERS = ("arrow", "arrowclosed", "none")
_HANDLES = ("top", "right", "bottom", "left")


class SplitConversion(NamedTuple):
    node_file: NodeFileV2
    graph_file: GraphFileV2
    needs_review: List[ReviewItem]


class GlobalConversion(NamedTuple):
    diagram: DiagramFile
    graph: GraphFile
    id_map: Dict[str, str]
    reused_nodes: List[str]
    needs_review: List[ReviewItem]


def _file_name(path: str) -> str:
    return PurePosixPath(path).name


def _title_from_path(path: str) -> str:
    name = _file_name(path)
    return name[: -len(".bac4")] if name.endswith(".bac4") else name


# ========================================
# legacy / 0.6.0 -> 1.0.0
# ========================================


def upgrade_legacy_to_timeline(document: CanvasDiagramFile, path: str) -> TimelineDiagramFile:
    """Wrap top-level nodes and edges into a single ``Current`` snapshot."""
    metadata = document.metadata
    now = utcnow_iso()
    created = (metadata.created_at if metadata else None) or now
    snapshot = TimelineSnapshot(
        id=generate_id("snapshot"),
        label=DEFAULT_TIMELINE_LABEL,
        description="",
        created_at=created,
        nodes=list(document.nodes),
        edges=list(document.edges),
    )
    return TimelineDiagramFile(
        version=TIMELINE_VERSION,
        metadata=TimelineMetadata(
            diagram_type=(metadata.diagram_type if metadata else None) or "context",
            title=(metadata.title if metadata else None) or _title_from_path(path),
            description=(metadata.description if metadata else None) or "",
            created_at=created,
            updated_at=(metadata.updated_at if metadata else None) or now,
        ),
        timeline=Timeline(
            snapshots=[snapshot],
            current_snapshot_id=snapshot.id,
            snapshot_order=[snapshot.id],
        ),
    )


# ========================================
# 1.0.0 -> 2.5.1
# ========================================


def _canvas_position(node: Any) -> tuple[float, float]:
    """Canvas nodes store ``position``; some writers put x/y on the node itself."""
    if "position" in node.model_fields_set:
        return node.position.x, node.position.y
    extra = node.model_extra or {}
    return float(extra.get("x", 0) or 0), float(extra.get("y", 0) or 0)


def _convert_canvas_node(node: Any, path: str, review: List[ReviewItem]) -> NodeV2:
    inferred = infer_node_type(node.type)
    if not inferred.confident:
        review.append(
            ReviewItem(file=path, field=f"nodes.{node.id}.type", value=inferred.value, reason=inferred.reason)
        )
    data = node.data.model_dump(by_alias=True, exclude_none=True)
    other = {key: value for key, value in data.items() if key not in _DATA_CORE_KEYS}
    linked = node.data.linked_diagram_path
    return NodeV2(
        id=node.id,
        type=inferred.value,
        properties=NodePropertiesV2.model_validate(
            {
                **other,
                "label": node.data.label or "Untitled",
                "description": node.data.description or "",
                "technology": node.data.technology,
            }
        ),
        knowledge=NodeKnowledge(),
        metrics={},
        links=NodeLinksV2(
            linked_diagrams=[LinkedDiagram(path=linked, relationship="decomposes-to")] if linked else []
        ),
        style=NodeStyle(color=node.data.color or default_color_for(inferred.value)),
    )


def _convert_canvas_edge(edge: CanvasEdge) -> EdgeV2:
    data = edge.data.model_dump(by_alias=True, exclude_none=True) if edge.data else {}
    marker = edge.marker_end if isinstance(edge.marker_end, dict) else {}
    marker_type = marker.get("type")
    return EdgeV2(
        id=edge.id,
        source=edge.source,
        target=edge.target,
        type=edge.type or "default",
        properties={"label": data.get("label"), **data} if data else {},
        style=EdgeStyleV2(
            direction=(edge.data.direction if edge.data else None) or "right",
            line_type="solid",
            color=marker.get("color") or "#888888",
            marker_end=marker_type if marker_type in _MARKERS else "arrowclosed",
        ),
        handles=EdgeHandles(
            source_handle=edge.source_handle if edge.source_handle in _HANDLES else "right",
            target_handle=edge.target_handle if edge.target_handle in _HANDLES else "left",
        ),
    )


def _convert_timeline_snapshot(snapshot: TimelineSnapshot, fallback_created: str) -> SnapshotV2:
    layout: Dict[str, LayoutInfo] = {}
    for node in snapshot.nodes:
        x, y = _canvas_position(node)
        layout[node.id] = LayoutInfo(
            x=x,
            y=y,
            width=node.width or DEFAULT_NODE_WIDTH,
            height=node.height or DEFAULT_NODE_HEIGHT,
            locked=False,
        )
    return SnapshotV2(
        id=snapshot.id,
        label=snapshot.label,
        timestamp=snapshot.timestamp,
        description=snapshot.description,
        created=snapshot.created_at or fallback_created,
        layout=layout,
        edges=[_convert_canvas_edge(edge) for edge in snapshot.edges],
        groups=[],
        annotations=list(snapshot.annotations),
    )


def convert_timeline_to_split(document: TimelineDiagramFile, path: str) -> SplitConversion:
    """Split a timeline file into a semantic node file and a layout graph file.

    Node data comes from the current snapshot; nodes that only exist in other
    snapshots are appended so every snapshot layout stays resolvable.
    """
    logger.info(f"Converting {path} from timeline to split format")
    timeline = document.timeline
    current = next(
        (s for s in timeline.snapshots if s.id == timeline.current_snapshot_id), None
    )
    if current is None:
        raise FormatError(f"No current snapshot found for {path}", {"path": path})

    review: List[ReviewItem] = []
    layer = infer_layer(path)
    if not layer.confident:
        review.append(ReviewItem(file=path, field="metadata.layer", value=layer.value, reason=layer.reason))
    diagram_type = infer_diagram_type(document.metadata.diagram_type)
    if not diagram_type.confident:
        review.append(
            ReviewItem(
                file=path, field="metadata.diagramType", value=diagram_type.value, reason=diagram_type.reason
            )
        )
    view_type = infer_view_type(diagram_type.value)

    nodes: Dict[str, NodeV2] = {}
    ordered = [current] + [s for s in timeline.snapshots if s is not current]
    for snapshot in ordered:
        for canvas_node in snapshot.nodes:
            if canvas_node.id not in nodes:
                nodes[canvas_node.id] = _convert_canvas_node(canvas_node, path, review)

    now = utcnow_iso()
    created = document.metadata.created_at or now
    updated = document.metadata.updated_at or created
    title = document.metadata.title or _title_from_path(path)

    node_file = NodeFileV2(
        version=SPLIT_VERSION,
        metadata=NodeFileMetadataV2(
            id=generate_id(diagram_type.value),
            title=title,
            description=document.metadata.description or "",
            layer=layer.value,
            diagram_type=diagram_type.value,
            created=created,
            updated=updated,
            status="published",
        ),
        nodes=nodes,
    )
    graph_file = GraphFileV2(
        version=SPLIT_VERSION,
        metadata=GraphFileMetadataV2(
            node_file=_file_name(path),
            graph_id=generate_id(view_type),
            title=f"{title} - Default Layout",
            view_type=view_type,
            created=created,
            updated=updated,
        ),
        timeline=TimelineV2(
            snapshots=[_convert_timeline_snapshot(s, created) for s in timeline.snapshots],
            current_snapshot_id=timeline.current_snapshot_id,
            snapshot_order=list(timeline.snapshot_order) or [s.id for s in timeline.snapshots],
        ),
        config=GraphConfigV2(),
    )
    return SplitConversion(node_file=node_file, graph_file=graph_file, needs_review=review)


def migrate(
    document: Union[CanvasDiagramFile, TimelineDiagramFile], path: str
) -> SplitConversion:
    """Convert any pre-split document into its node file and graph file."""
    if isinstance(document, CanvasDiagramFile):
        document = upgrade_legacy_to_timeline(document, path)
    return convert_timeline_to_split(document, path)


# ========================================
# 2.5.1 -> 1.0.0 (lossy)
# ========================================


def convert_split_to_timeline(node_file: NodeFileV2, graph_file: GraphFileV2) -> TimelineDiagramFile:
    """Rebuild a timeline document from a split pair.

    Lossy: knowledge, metrics, groups and link kinds other than the first
    linked diagram do not survive.
    """
    snapshots = []
    for snapshot in graph_file.timeline.snapshots:
        canvas_nodes = []
        for node in node_file.nodes.values():
            layout = snapshot.layout.get(node.id)
            properties = node.properties.model_dump(by_alias=True, exclude_none=True)
            data = {
                **properties,
                "color": node.style.color,
                "linkedDiagramPath": node.links.linked_diagrams[0].path
                if node.links.linked_diagrams
                else None,
            }
            canvas_nodes.append(
                {
                    "id": node.id,
                    "type": node.type,
                    "position": {"x": layout.x if layout else 0, "y": layout.y if layout else 0},
                    "width": layout.width if layout else DEFAULT_NODE_WIDTH,
                    "height": layout.height if layout else DEFAULT_NODE_HEIGHT,
                    "data": {key: value for key, value in data.items() if value is not None},
                }
            )
        canvas_edges = [
            {
                "id": edge.id,
                "source": edge.source,
                "target": edge.target,
                "type": edge.type,
                "data": {**edge.properties, "direction": edge.style.direction},
                "markerEnd": {"type": edge.style.marker_end, "color": edge.style.color},
                "sourceHandle": edge.handles.source_handle,
                "targetHandle": edge.handles.target_handle,
            }
            for edge in snapshot.edges
        ]
        snapshots.append(
            {
                "id": snapshot.id,
                "label": snapshot.label,
                "timestamp": snapshot.timestamp,
                "description": snapshot.description,
                "createdAt": snapshot.created,
                "nodes": canvas_nodes,
                "edges": canvas_edges,
                "annotations": list(snapshot.annotations),
            }
        )
    return TimelineDiagramFile.model_validate(
        {
            "version": REVERSE_TIMELINE_VERSION,
            "metadata": {
                "diagramType": node_file.metadata.diagram_type,
                "title": node_file.metadata.title,
                "description": node_file.metadata.description,
                "createdAt": node_file.metadata.created,
                "updatedAt": node_file.metadata.updated,
            },
            "timeline": {
                "snapshots": snapshots,
                "currentSnapshotId": graph_file.timeline.current_snapshot_id,
                "snapshotOrder": list(graph_file.timeline.snapshot_order),
            },
        }
    )


# ========================================
# 2.5.1 -> 3.0.0
# ========================================


def _global_node_type(node: NodeV2, path: str, review: List[ReviewItem]) -> str:
    if node.type == "external-system":
        return "system"
    inferred = infer_node_type(node.type, NODE_TYPES)
    if not inferred.confident:
        review.append(
            ReviewItem(file=path, field=f"nodes.{node.id}.type", value=inferred.value, reason=inferred.reason)
        )
    return inferred.value


def _numeric_metrics(metrics: Dict[str, Any]) -> Dict[str, float]:
    return {
        key: float(value)
        for key, value in metrics.items()
        if isinstance(value, (int, float)) and not isinstance(value, bool)
    }


def convert_split_to_global(
    node_file: NodeFileV2,
    graph_file: GraphFileV2,
    existing_graph: GraphFile,
    path: str,
) -> GlobalConversion:
    """Lift a split pair into the global graph and produce its v3 view.

    A node whose label already exists in the graph is not duplicated: the
    existing global node is reused and the diagram references it instead.
    ``existing_graph`` is not modified; the merged graph is returned.
    """
    review: List[ReviewItem] = []
    graph = existing_graph.model_copy(deep=True)
    by_label = {node.label: node.id for node in graph.nodes.values()}
    id_map: Dict[str, str] = {}
    reused: List[str] = []

    for node in node_file.nodes.values():
        label = node.properties.label.strip() or "Untitled"
        existing_id = by_label.get(label)
        if existing_id is not None:
            id_map[node.id] = existing_id
            reused.append(existing_id)
            continue
        node_id = node.id
        if node_id in graph.nodes or is_local_node_id(node_id):
            node_id = generate_id("node")
        node_type = _global_node_type(node, path, review)
        graph.nodes[node_id] = GlobalNode(
            id=node_id,
            type=node_type,
            label=label,
            description=node.properties.description,
            technology=node.properties.technology,
            team=node.properties.team,
            knowledge=node.knowledge.model_copy(deep=True),
            metrics=_numeric_metrics(node.metrics),
            style=node.style.model_copy(deep=True),
            created=node_file.metadata.created,
            updated=node_file.metadata.updated,
        )
        by_label[label] = node_id
        id_map[node.id] = node_id

    for node in node_file.nodes.values():
        child = node.child_diagram()
        if child:
            parent_id = id_map[node.id]
            graph.relationships.hierarchy = [
                link for link in graph.relationships.hierarchy if link.parent_node_id != parent_id
            ] + [HierarchyLink(parent_node_id=parent_id, child_diagram_path=child, created=utcnow_iso())]

    existing_pairs = {(edge.source, edge.target) for edge in graph.relationships.edges}
    edge_ids = {edge.id for edge in graph.relationships.edges}
    for snapshot in graph_file.timeline.snapshots:
        for edge in snapshot.edges:
            source = id_map.get(edge.source)
            target = id_map.get(edge.target)
            if source is None or target is None or (source, target) in existing_pairs:
                continue
            edge_id = edge.id if edge.id not in edge_ids else generate_id("edge")
            label = edge.properties.get("label")
            graph.relationships.edges.append(
                GlobalEdge(
                    id=edge_id,
                    source=source,
                    target=target,
                    type=edge.type if edge.type in EDGE_TYPES else "default",
                    label=label if isinstance(label, str) else None,
                    direction=edge.style.direction,
                    style=EdgeStyle(color=edge.style.color, line_type=edge.style.line_type),
                    created=snapshot.created,
                    updated=snapshot.created,
                )
            )
            existing_pairs.add((source, target))
            edge_ids.add(edge_id)

    now = utcnow_iso()
    graph.metadata.updated = now
    graph.metadata.node_count = len(graph.nodes)
    graph.metadata.edge_count = len(graph.relationships.edges)

    diagram = _build_view(node_file, graph_file, id_map, path, review)
    return GlobalConversion(
        diagram=diagram, graph=graph, id_map=id_map, reused_nodes=reused, needs_review=review
    )


def _mapped_layout(layout: Dict[str, LayoutInfo], id_map: Dict[str, str]) -> Dict[str, LayoutEntry]:
    return {
        id_map[node_id]: LayoutEntry(x=info.x, y=info.y, width=info.width, height=info.height)
        for node_id, info in layout.items()
        if node_id in id_map
    }


def _build_view(
    node_file: NodeFileV2,
    graph_file: GraphFileV2,
    id_map: Dict[str, str],
    path: str,
    review: List[ReviewItem],
) -> DiagramFile:
    timeline = graph_file.timeline
    current_id = timeline.current_snapshot_id
    known_ids = {s.id for s in timeline.snapshots}
    if current_id not in known_ids:
        current_id = timeline.snapshots[0].id if timeline.snapshots else CURRENT_SNAPSHOT_ID

    snapshots: List[Snapshot] = []
    annotations: List[Annotation] = []
    for split_snapshot in timeline.snapshots:
        snapshots.append(
            Snapshot(
                id=split_snapshot.id,
                label=split_snapshot.label,
                description=split_snapshot.description,
                timestamp=split_snapshot.timestamp,
                created=split_snapshot.created,
                is_current=split_snapshot.id == current_id,
                layout=_mapped_layout(split_snapshot.layout, id_map),
            )
        )
        for raw in split_snapshot.annotations:
            try:
                annotations.append(Annotation.model_validate(raw))
            except ValidationError:
                review.append(
                    ReviewItem(
                        file=path,
                        field=f"snapshots.{split_snapshot.id}.annotations",
                        value=str(raw)[:80],
                        reason="annotation shape not recognized; dropped",
                    )
                )

    if not snapshots:
        snapshots.append(
            Snapshot(
                id=CURRENT_SNAPSHOT_ID,
                label=CURRENT_SNAPSHOT_LABEL,
                created=node_file.metadata.created,
                is_current=True,
            )
        )

    view_nodes: List[str] = []
    for original_id in node_file.nodes:
        mapped = id_map[original_id]
        if mapped not in view_nodes:
            view_nodes.append(mapped)

    current = next(s for s in snapshots if s.id == current_id)
    view_layout: Dict[str, LayoutEntry] = {}
    for node_id in view_nodes:
        entry = current.layout.get(node_id)
        if entry is None:
            entry = next(
                (s.layout[node_id] for s in snapshots if node_id in s.layout),
                LayoutEntry(x=DEFAULT_NODE_X, y=DEFAULT_NODE_Y),
            )
        view_layout[node_id] = entry.model_copy()

    diagram_type = node_file.metadata.diagram_type
    if diagram_type not in DIAGRAM_TYPES:
        review.append(
            ReviewItem(
                file=path,
                field="metadata.diagramType",
                value="context",
                reason=f"diagram type {diagram_type!r} has no global-graph equivalent",
            )
        )
        diagram_type = "context"

    return DiagramFile(
        metadata=DiagramMetadata(
            diagram_name=node_file.metadata.title,
            diagram_type=diagram_type,
            created=node_file.metadata.created,
            updated=utcnow_iso(),
        ),
        view=DiagramView(nodes=view_nodes, layout=view_layout),
        snapshots=snapshots,
        current_snapshot_id=current_id,
        annotations=annotations,
    )


# ========================================
# Validation
# ========================================


def validate_split_format(node_file: NodeFileV2, graph_file: GraphFileV2) -> ValidationResult:
    """Referential checks over a split pair; every broken reference is listed."""
    errors: List[str] = []
    if node_file.version not in SPLIT_VERSIONS:
        errors.append(f"Invalid node file version: {node_file.version}")
    if graph_file.version not in SPLIT_VERSIONS:
        errors.append(f"Invalid graph file version: {graph_file.version}")
    if not node_file.metadata.id:
        errors.append("Node file missing metadata.id")
    if not node_file.metadata.title:
        errors.append("Node file missing metadata.title")
    if not graph_file.metadata.node_file:
        errors.append("Graph file missing metadata.nodeFile")

    for snapshot in graph_file.timeline.snapshots:
        for node_id in snapshot.layout:
            if node_id not in node_file.nodes:
                errors.append(f"Snapshot {snapshot.id} references non-existent node: {node_id}")
    for snapshot in graph_file.timeline.snapshots:
        for edge in snapshot.edges:
            if edge.source not in node_file.nodes:
                errors.append(f"Edge {edge.id} references non-existent source node: {edge.source}")
            if edge.target not in node_file.nodes:
                errors.append(f"Edge {edge.id} references non-existent target node: {edge.target}")

    return ValidationResult.failure(errors) if errors else ValidationResult.success()


def validate_global_format(diagram: DiagramFile, graph: GraphFile) -> ValidationResult:
    """Referential checks for a v3 view against the graph it will be stored with."""
    errors: List[str] = []
    for node_id in diagram.view.nodes:
        if node_id not in graph.nodes:
            errors.append(f"View references non-existent node: {node_id}")
    view_nodes = set(diagram.view.nodes)
    for snapshot in diagram.snapshots:
        for node_id in snapshot.layout:
            if node_id not in view_nodes and node_id not in snapshot.local_nodes:
                errors.append(f"Snapshot {snapshot.id} references non-existent node: {node_id}")
        present = view_nodes | set(snapshot.local_nodes)
        for edge in snapshot.local_edges:
            if edge.source not in present:
                errors.append(f"Edge {edge.id} references non-existent source node: {edge.source}")
            if edge.target not in present:
                errors.append(f"Edge {edge.id} references non-existent target node: {edge.target}")
    for edge in graph.relationships.edges:
        if edge.source not in graph.nodes:
            errors.append(f"Edge {edge.id} references non-existent source node: {edge.source}")
        if edge.target not in graph.nodes:
            errors.append(f"Edge {edge.id} references non-existent target node: {edge.target}")
    if diagram.get_snapshot(diagram.current_snapshot_id) is None:
        errors.append(f"Current snapshot does not exist: {diagram.current_snapshot_id}")
    return ValidationResult.failure(errors) if errors else ValidationResult.success()


__all__ = [
    "REVERSE_TIMELINE_VERSION",
    "SplitConversion",
    "GlobalConversion",
    "upgrade_legacy_to_timeline",
    "convert_timeline_to_split",
    "migrate",
    "convert_split_to_timeline",
    "convert_split_to_global",
    "validate_split_format",
    "validate_global_format",
]
