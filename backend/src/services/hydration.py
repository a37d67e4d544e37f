"""Merge a diagram view with the global graph into render-ready nodes and edges."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Set

from ..models.changes import ComparableEdge, ComparableNode, ComparableSnapshot
from ..models.diagram import (
    DEFAULT_NODE_X,
    DEFAULT_NODE_Y,
    DiagramFile,
    HydratedDiagram,
    HydratedEdge,
    HydratedNode,
    LayoutEntry,
    Snapshot,
)
from ..models.graph import GraphFile
from ..models.migration import ValidationReport
from .errors import NotFoundError

logger = logging.getLogger(__name__)


class DiagramValidator(Protocol):
    """External pattern checks over the in-memory graph of one diagram."""

    def __call__(
        self, nodes: List[HydratedNode], edges: List[HydratedEdge], diagram_type: str
    ) -> ValidationReport: ...


def resolve_snapshot(diagram: DiagramFile, snapshot_id: Optional[str], path: str) -> Snapshot:
    wanted = snapshot_id or diagram.current_snapshot_id
    snapshot = diagram.get_snapshot(wanted)
    if snapshot is None:
        raise NotFoundError(
            f"Snapshot not found: {wanted} in {path}", {"path": path, "snapshot_id": wanted}
        )
    return snapshot


def _layout_for(diagram: DiagramFile, snapshot: Snapshot, node_id: str) -> LayoutEntry:
    return (
        snapshot.layout.get(node_id)
        or diagram.view.layout.get(node_id)
        or LayoutEntry(x=DEFAULT_NODE_X, y=DEFAULT_NODE_Y)
    )


def hydrate(
    diagram: DiagramFile, graph: GraphFile, path: str, snapshot_id: Optional[str] = None
) -> HydratedDiagram:
    """Nodes of one snapshot with positions, plus the edges between them."""
    snapshot = resolve_snapshot(diagram, snapshot_id, path)
    nodes: List[HydratedNode] = []
    present: Set[str] = set()

    for node_id in snapshot.node_ids(diagram.view.nodes):
        layout = _layout_for(diagram, snapshot, node_id)
        local = snapshot.local_nodes.get(node_id)
        if local is not None:
            source: Any = local
            is_local = True
        else:
            source = graph.nodes.get(node_id)
            is_local = False
            if source is None:
                logger.warning(f"Global node not found: {node_id} (referenced by {path})")
                continue
        nodes.append(
            HydratedNode(
                id=node_id,
                type=source.type,
                label=source.label,
                description=source.description,
                technology=source.technology,
                team=source.team,
                color=source.style.color,
                icon=source.style.icon,
                shape=source.style.shape,
                x=layout.x,
                y=layout.y,
                width=layout.width,
                height=layout.height,
                is_local=is_local,
            )
        )
        present.add(node_id)

    edges: List[HydratedEdge] = []
    for edge in graph.relationships.edges:
        if edge.source in present and edge.target in present:
            edges.append(
                HydratedEdge(
                    id=edge.id,
                    source=edge.source,
                    target=edge.target,
                    type=edge.type,
                    label=edge.label,
                    direction=edge.direction,
                    color=edge.style.color,
                )
            )
    for local_edge in snapshot.local_edges:
        if local_edge.source in present and local_edge.target in present:
            edges.append(
                HydratedEdge(
                    id=local_edge.id,
                    source=local_edge.source,
                    target=local_edge.target,
                    type=local_edge.type,
                    label=local_edge.label,
                    direction=local_edge.direction,
                    color=local_edge.style.color,
                    is_local=True,
                )
            )

    return HydratedDiagram(
        path=path,
        diagram_name=diagram.metadata.diagram_name,
        diagram_type=diagram.metadata.diagram_type,
        snapshot_id=snapshot.id,
        snapshot_label=snapshot.label,
        nodes=nodes,
        edges=edges,
        viewport=diagram.view.viewport,
    )


def to_comparable(hydrated: HydratedDiagram) -> ComparableSnapshot:
    return ComparableSnapshot(
        label=hydrated.snapshot_label,
        nodes=[
            ComparableNode(id=node.id, label=node.label, color=node.color, x=node.x, y=node.y)
            for node in hydrated.nodes
        ],
        edges=[
            ComparableEdge(id=edge.id, source=edge.source, target=edge.target, label=edge.label)
            for edge in hydrated.edges
        ],
    )


def global_changes(hydrated: HydratedDiagram, graph: GraphFile) -> Dict[str, Dict[str, Any]]:
    """Per global node, the editable properties that differ from the graph."""
    changes: Dict[str, Dict[str, Any]] = {}
    for node in hydrated.nodes:
        if node.is_local:
            continue
        current = graph.nodes.get(node.id)
        if current is None:
            continue
        diff: Dict[str, Any] = {}
        for field_name in ("label", "description", "technology", "team"):
            if getattr(node, field_name) != getattr(current, field_name):
                diff[field_name] = getattr(node, field_name)
        style: Dict[str, Any] = {}
        if node.color is not None and node.color != current.style.color:
            style["color"] = node.color
        if node.icon != current.style.icon:
            style["icon"] = node.icon
        if style:
            diff["style"] = current.style.model_copy(update=style)
        if diff:
            changes[node.id] = diff
    return changes


__all__ = [
    "DiagramValidator",
    "resolve_snapshot",
    "hydrate",
    "to_comparable",
    "global_changes",
]
