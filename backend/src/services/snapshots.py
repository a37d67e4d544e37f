"""Snapshot timeline of v3 diagrams: independent layouts and what-if entities.

Snapshots never share mutable state. Creating one deep-copies the current
snapshot and leaves ``currentSnapshotId`` where it was.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from ..models.diagram import (
    DEFAULT_NODE_X,
    DEFAULT_NODE_Y,
    LayoutEntry,
    LocalEdge,
    LocalEdgeDraft,
    LocalNode,
    LocalNodeDraft,
    Snapshot,
    SnapshotCreate,
)
from ..models.graph import EdgeStyle, GlobalNode, NodeDraft, NodeStyle, default_color_for
from .diagram_store import DiagramStore
from .errors import (
    DanglingReferenceError,
    DiagramStoreError,
    DuplicateNameError,
    NotFoundError,
    OperationRejectedError,
)
from .hydration import resolve_snapshot
from .ids import generate_id, utcnow_iso

logger = logging.getLogger(__name__)


def _require_snapshot(diagram, snapshot_id: str, path: str) -> Snapshot:
    snapshot = diagram.get_snapshot(snapshot_id)
    if snapshot is None:
        raise NotFoundError(
            f"Snapshot not found: {snapshot_id}", {"path": path, "snapshot_id": snapshot_id}
        )
    return snapshot


class SnapshotService:
    """Snapshot operations layered on the diagram store."""

    def __init__(self, diagrams: DiagramStore) -> None:
        self.diagrams = diagrams
        self.graph_store = diagrams.graph_store

    def create_snapshot(self, path: str, request: SnapshotCreate) -> Snapshot:
        with self.diagrams.transaction(path) as diagram:
            current = resolve_snapshot(diagram, None, path)
            snapshot = Snapshot(
                id=generate_id("snapshot"),
                label=request.label,
                description=request.description,
                timestamp=request.timestamp,
                created=utcnow_iso(),
                is_current=False,
                local_nodes={
                    node_id: node.model_copy(deep=True)
                    for node_id, node in current.local_nodes.items()
                },
                layout={
                    node_id: entry.model_copy(deep=True)
                    for node_id, entry in current.layout.items()
                },
                local_edges=[edge.model_copy(deep=True) for edge in current.local_edges],
            )
            diagram.snapshots.append(snapshot)
        logger.info(f'Created snapshot "{snapshot.label}" in {path}')
        return snapshot

    def switch_snapshot(self, path: str, snapshot_id: str) -> Snapshot:
        with self.diagrams.transaction(path) as diagram:
            target = _require_snapshot(diagram, snapshot_id, path)
            for snapshot in diagram.snapshots:
                snapshot.is_current = snapshot.id == snapshot_id
            diagram.current_snapshot_id = snapshot_id
        return target

    def delete_snapshot(self, path: str, snapshot_id: str) -> None:
        with self.diagrams.transaction(path) as diagram:
            _require_snapshot(diagram, snapshot_id, path)
            if len(diagram.snapshots) <= 1:
                raise OperationRejectedError(
                    "Cannot delete last snapshot", {"path": path, "snapshot_id": snapshot_id}
                )
            if snapshot_id == diagram.current_snapshot_id:
                raise OperationRejectedError(
                    "Cannot delete current snapshot. Switch to another first.",
                    {"path": path, "snapshot_id": snapshot_id},
                )
            diagram.snapshots = [s for s in diagram.snapshots if s.id != snapshot_id]
        logger.info(f"Deleted snapshot {snapshot_id} from {path}")

    def rename_snapshot(self, path: str, snapshot_id: str, label: str) -> Snapshot:
        cleaned = (label or "").strip()
        if not cleaned:
            raise ValueError("Snapshot label cannot be empty")
        with self.diagrams.transaction(path) as diagram:
            snapshot = _require_snapshot(diagram, snapshot_id, path)
            snapshot.label = cleaned
        return snapshot

    def get_current_snapshot(self, path: str) -> Snapshot:
        return resolve_snapshot(self.diagrams.read_diagram(path), None, path)

    def update_snapshot_layout(
        self, path: str, snapshot_id: str, layout: Dict[str, LayoutEntry]
    ) -> Snapshot:
        """Replace positions for nodes already present in the snapshot."""
        with self.diagrams.transaction(path) as diagram:
            snapshot = _require_snapshot(diagram, snapshot_id, path)
            present = set(snapshot.node_ids(diagram.view.nodes))
            unknown = sorted(set(layout) - present)
            if unknown:
                raise DanglingReferenceError(
                    f"Layout references nodes not in snapshot {snapshot_id}: {', '.join(unknown)}",
                    {"path": path, "snapshot_id": snapshot_id, "node_ids": unknown},
                )
            for node_id, entry in layout.items():
                snapshot.layout[node_id] = entry.model_copy()
        return snapshot

    def count_nodes(self, path: str, snapshot_id: str) -> int:
        diagram = self.diagrams.read_diagram(path)
        snapshot = _require_snapshot(diagram, snapshot_id, path)
        return len(snapshot.node_ids(diagram.view.nodes))

    # ========================================
    # Local (what-if) entities
    # ========================================

    def add_local_node(self, path: str, snapshot_id: str, draft: LocalNodeDraft) -> LocalNode:
        check = self.graph_store.check_name_uniqueness(draft.label)
        if not check.is_unique:
            raise DuplicateNameError(
                f'Node name "{draft.label}" already exists globally',
                {"label": draft.label, "existing_node_id": check.existing_node.id},
            )
        with self.diagrams.transaction(path) as diagram:
            snapshot = _require_snapshot(diagram, snapshot_id, path)
            if any(node.label == draft.label for node in snapshot.local_nodes.values()):
                raise DuplicateNameError(
                    f'Node name "{draft.label}" already exists in this snapshot',
                    {"label": draft.label, "snapshot_id": snapshot_id},
                )
            node = LocalNode(
                id=generate_id("local-node"),
                type=draft.type,
                label=draft.label,
                description=draft.description,
                technology=draft.technology,
                team=draft.team,
                style=draft.style or NodeStyle(color=default_color_for(draft.type)),
            )
            snapshot.local_nodes[node.id] = node
            snapshot.layout[node.id] = LayoutEntry(x=draft.x, y=draft.y)
        logger.info(f'Added local node "{node.label}" to snapshot {snapshot_id} of {path}')
        return node

    def add_local_edge(self, path: str, snapshot_id: str, draft: LocalEdgeDraft) -> LocalEdge:
        with self.diagrams.transaction(path) as diagram:
            snapshot = _require_snapshot(diagram, snapshot_id, path)
            present = set(snapshot.node_ids(diagram.view.nodes))
            missing = [n for n in (draft.source, draft.target) if n not in present]
            if missing:
                raise DanglingReferenceError(
                    f"Edge endpoint(s) not in snapshot {snapshot_id}: {', '.join(missing)}",
                    {"path": path, "snapshot_id": snapshot_id, "missing": missing},
                )
            edge = LocalEdge(
                id=generate_id("local-edge"),
                source=draft.source,
                target=draft.target,
                type=draft.type,
                label=draft.label,
                direction=draft.direction,
                style=draft.style or EdgeStyle(),
            )
            snapshot.local_edges.append(edge)
        return edge

    def remove_local_node(self, path: str, snapshot_id: str, local_id: str) -> None:
        with self.diagrams.transaction(path) as diagram:
            snapshot = _require_snapshot(diagram, snapshot_id, path)
            if snapshot.local_nodes.pop(local_id, None) is None:
                raise NotFoundError(f"Local node not found: {local_id}", {"node_id": local_id})
            snapshot.layout.pop(local_id, None)
            snapshot.local_edges = [
                e for e in snapshot.local_edges if e.source != local_id and e.target != local_id
            ]

    def promote_node_to_global(self, path: str, snapshot_id: str, local_id: str) -> GlobalNode:
        """Turn a local node into a global node and rewrite every reference to it.

        The diagram lock is held for the whole operation. If the diagram
        cannot be written the new global node is deleted again.
        """
        with self.diagrams.lock(path):
            diagram = self.diagrams.read_diagram(path)
            snapshot = _require_snapshot(diagram, snapshot_id, path)
            local = snapshot.local_nodes.get(local_id)
            if local is None:
                raise NotFoundError(
                    f"Local node not found: {local_id}", {"path": path, "node_id": local_id}
                )

            node = self.graph_store.create_node(
                NodeDraft(
                    type=local.type,
                    label=local.label,
                    description=local.description,
                    technology=local.technology,
                    team=local.team,
                    style=local.style.model_copy(deep=True),
                )
            )

            del snapshot.local_nodes[local_id]
            entry = snapshot.layout.pop(local_id, None) or LayoutEntry(
                x=DEFAULT_NODE_X, y=DEFAULT_NODE_Y
            )
            snapshot.layout[node.id] = entry
            for edge in snapshot.local_edges:
                if edge.source == local_id:
                    edge.source = node.id
                if edge.target == local_id:
                    edge.target = node.id
            if node.id not in diagram.view.nodes:
                diagram.view.nodes.append(node.id)
            diagram.view.layout[node.id] = entry.model_copy()

            try:
                self.diagrams.write_diagram(path, diagram)
            except DiagramStoreError:
                logger.error(f"Promotion of {local_id} failed to persist; removing {node.id}")
                self.graph_store.delete_node(node.id)
                raise
        logger.info(f'Promoted local node {local_id} to global node {node.id} "{node.label}"')
        return node

    def get_snapshot(self, path: str, snapshot_id: Optional[str] = None) -> Snapshot:
        return resolve_snapshot(self.diagrams.read_diagram(path), snapshot_id, path)


__all__ = ["SnapshotService"]
