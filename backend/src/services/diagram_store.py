"""Diagram view store: per-diagram ``.bac4`` documents of the global-graph generation.

A view references global node ids, stores their layout and carries the
snapshot timeline. Node properties live in the graph store; this module only
checks that referenced nodes exist there.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
from pathlib import PurePosixPath
from typing import Any, Dict, Iterator, List, Optional

from ..models.changes import SnapshotComparison
from ..models.diagram import (
    ALLOWED_NODE_TYPES,
    CURRENT_SNAPSHOT_ID,
    CURRENT_SNAPSHOT_LABEL,
    DEFAULT_NODE_X,
    DEFAULT_NODE_Y,
    DIAGRAM_TYPES,
    Annotation,
    AnnotationType,
    DiagramFile,
    DiagramMetadata,
    DiagramSummary,
    HydratedDiagram,
    LayoutEntry,
    Point,
    Size,
    Snapshot,
    Viewport,
)
from ..models.graph import NodePatch
from ..models.migration import ValidationReport
from ..models.navigation import FanOutReport, RenameFailure
from . import change_detection, hydration
from .autosave import DebouncedWriter
from .config import AppConfig, get_config
from .errors import (
    DiagramStoreError,
    DuplicateNameError,
    FormatError,
    NotFoundError,
    OperationRejectedError,
)
from .file_store import FileStore, dump_json, list_diagram_files, read_json, write_json
from .graph_store import GraphStore
from .ids import generate_id, utcnow_iso
from .locks import PathLockRegistry, document_key, get_lock_registry
from .schema_registry import DocumentVersion, decode_document

logger = logging.getLogger(__name__)


def new_diagram(name: str, diagram_type: str = "context") -> DiagramFile:
    """Empty v3 diagram with its single ``Current State`` snapshot."""
    if diagram_type not in DIAGRAM_TYPES:
        raise ValueError(f"Unknown diagram type: {diagram_type}")
    now = utcnow_iso()
    return DiagramFile(
        metadata=DiagramMetadata(
            diagram_name=name, diagram_type=diagram_type, created=now, updated=now
        ),
        snapshots=[
            Snapshot(
                id=CURRENT_SNAPSHOT_ID,
                label=CURRENT_SNAPSHOT_LABEL,
                created=now,
                is_current=True,
            )
        ],
        current_snapshot_id=CURRENT_SNAPSHOT_ID,
    )


def diagram_name_from_path(path: str) -> str:
    return PurePosixPath(path).stem


def require_diagram_path(path: str) -> str:
    if not path.endswith(".bac4"):
        raise ValueError(f"Diagram paths must end with .bac4: {path}")
    return path


class DiagramStore:
    """Read-modify-write access to v3 diagram documents."""

    def __init__(
        self,
        store: FileStore,
        graph_store: GraphStore | None = None,
        config: AppConfig | None = None,
        locks: PathLockRegistry | None = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store
        self._locks = locks or get_lock_registry()
        self.graph_store = graph_store or GraphStore(store, self.config, self._locks)
        self._writer = DebouncedWriter(self._write_scheduled, self.config.autosave_delay_seconds)

    # ========================================
    # Document access
    # ========================================

    def lock(self, path: str):
        return self._locks.lock_for(document_key(self.store.identity, path))

    def read_diagram(self, path: str) -> DiagramFile:
        if not self.store.exists(path):
            raise NotFoundError(f"Diagram not found: {path}", {"path": path})
        loaded = decode_document(read_json(self.store, path), path)
        if loaded.version != DocumentVersion.GLOBAL:
            raise FormatError(
                f"{path} is a v{loaded.version.value} document; migrate it to 3.0.0 first",
                {"path": path, "version": loaded.version.value},
            )
        return loaded.document  # type: ignore[return-value]

    def write_diagram(self, path: str, diagram: DiagramFile) -> None:
        require_diagram_path(path)
        with self.lock(path):
            diagram.metadata.updated = utcnow_iso()
            write_json(self.store, path, diagram.to_document())

    @contextmanager
    def transaction(self, path: str) -> Iterator[DiagramFile]:
        """Fresh read under the diagram lock; written back only on clean exit."""
        with self.lock(path):
            diagram = self.read_diagram(path)
            yield diagram
            self.write_diagram(path, diagram)

    def create_diagram(
        self, path: str, name: Optional[str] = None, diagram_type: str = "context"
    ) -> DiagramFile:
        require_diagram_path(path)
        diagram = new_diagram(name or diagram_name_from_path(path), diagram_type)
        with self.lock(path):
            if self.store.exists(path):
                raise DuplicateNameError(f"Diagram already exists: {path}", {"path": path})
            self.store.create(path, dump_json(diagram.to_document()))
        logger.info(f"Created {diagram_type} diagram {path}")
        return diagram

    def get_or_create_diagram(
        self, path: str, name: Optional[str] = None, diagram_type: str = "context"
    ) -> DiagramFile:
        """First open of a path creates the diagram."""
        with self.lock(path):
            if self.store.exists(path):
                return self.read_diagram(path)
            return self.create_diagram(path, name, diagram_type)

    # ========================================
    # View nodes and layout
    # ========================================

    def add_node_to_diagram(
        self,
        path: str,
        node_id: str,
        x: float = DEFAULT_NODE_X,
        y: float = DEFAULT_NODE_Y,
    ) -> DiagramFile:
        """Reference a global node in the view and the current snapshot (idempotent)."""
        node = self.graph_store.get_node(node_id)
        if node is None:
            raise NotFoundError(f"Node not found in graph: {node_id}", {"node_id": node_id})
        with self.transaction(path) as diagram:
            diagram_type = diagram.metadata.diagram_type
            allowed = ALLOWED_NODE_TYPES.get(diagram_type, ())
            if node.type not in allowed:
                raise OperationRejectedError(
                    f'Node type "{node.type}" is not allowed in a {diagram_type} diagram '
                    f"(allowed: {', '.join(allowed)})",
                    {"node_id": node_id, "node_type": node.type, "diagram_type": diagram_type},
                )
            if node_id not in diagram.view.nodes:
                diagram.view.nodes.append(node_id)
            diagram.view.layout.setdefault(node_id, LayoutEntry(x=x, y=y))
            current = diagram.current_snapshot()
            if current is not None:
                current.layout.setdefault(node_id, LayoutEntry(x=x, y=y))
        return diagram

    def remove_node_from_diagram(self, path: str, node_id: str) -> DiagramFile:
        """Drop the node from the view and from every snapshot layout."""
        with self.transaction(path) as diagram:
            if node_id not in diagram.view.nodes:
                raise NotFoundError(
                    f"Node {node_id} is not in diagram {path}", {"path": path, "node_id": node_id}
                )
            diagram.view.nodes = [n for n in diagram.view.nodes if n != node_id]
            diagram.view.layout.pop(node_id, None)
            for snapshot in diagram.snapshots:
                snapshot.layout.pop(node_id, None)
                snapshot.local_edges = [
                    edge
                    for edge in snapshot.local_edges
                    if edge.source != node_id and edge.target != node_id
                ]
        return diagram

    def update_node_layout(
        self,
        path: str,
        node_id: str,
        x: float,
        y: float,
        width: Optional[float] = None,
        height: Optional[float] = None,
    ) -> LayoutEntry:
        """Move or resize a node in the current snapshot (and the view)."""
        with self.transaction(path) as diagram:
            current = hydration.resolve_snapshot(diagram, None, path)
            if node_id not in current.node_ids(diagram.view.nodes):
                raise NotFoundError(
                    f"Node {node_id} is not in the current snapshot of {path}",
                    {"path": path, "node_id": node_id},
                )
            previous = current.layout.get(node_id)
            entry = LayoutEntry(
                x=x,
                y=y,
                width=width if width is not None else (previous.width if previous else None),
                height=height if height is not None else (previous.height if previous else None),
            )
            current.layout[node_id] = entry
            if node_id in diagram.view.nodes:
                diagram.view.layout[node_id] = entry.model_copy()
        return entry

    def update_viewport(self, path: str, viewport: Viewport) -> Viewport:
        with self.transaction(path) as diagram:
            diagram.view.viewport = viewport
        return viewport

    def update_diagram_type(self, path: str, diagram_type: str) -> DiagramFile:
        if diagram_type not in DIAGRAM_TYPES:
            raise ValueError(f"Unknown diagram type: {diagram_type}")
        with self.transaction(path) as diagram:
            diagram.metadata.diagram_type = diagram_type
        return diagram

    def rename_diagram_metadata(self, path: str, name: str) -> DiagramFile:
        with self.transaction(path) as diagram:
            diagram.metadata.diagram_name = name
        return diagram

    # ========================================
    # Vault-wide queries
    # ========================================

    def iter_diagrams(self) -> Iterator[tuple[str, DiagramFile]]:
        """Every readable v3 diagram; other generations and bad files are skipped."""
        for path in list_diagram_files(self.store):
            try:
                yield path, self.read_diagram(path)
            except DiagramStoreError as exc:
                logger.debug(f"Skipping {path}: {exc.message}")

    def get_all_diagrams(self) -> List[DiagramSummary]:
        return [
            DiagramSummary(
                path=path,
                diagram_name=diagram.metadata.diagram_name,
                diagram_type=diagram.metadata.diagram_type,
                node_count=len(diagram.view.nodes),
                snapshot_count=len(diagram.snapshots),
            )
            for path, diagram in self.iter_diagrams()
        ]

    def get_diagrams_using_node(self, node_id: str) -> List[str]:
        return [path for path, diagram in self.iter_diagrams() if node_id in diagram.view.nodes]

    def remove_node_from_all_diagrams(self, node_id: str) -> FanOutReport:
        """Fan-out removal; a failing diagram is reported and the rest still update."""
        report = FanOutReport()
        for path in self.get_diagrams_using_node(node_id):
            try:
                self.remove_node_from_diagram(path, node_id)
            except DiagramStoreError as exc:
                logger.error(f"Failed to remove {node_id} from {path}: {exc.message}")
                report.failed.append(RenameFailure(path=path, error=exc.message))
                continue
            report.updated.append(path)
        return report

    # ========================================
    # Debounced saves
    # ========================================

    def _write_scheduled(self, path: str, diagram: DiagramFile) -> None:
        self.write_diagram(path, diagram)

    def schedule_save(self, path: str, diagram: DiagramFile) -> int:
        """Queue ``diagram`` for writing; a later call for the same path replaces it."""
        require_diagram_path(path)
        return self._writer.schedule(path, lambda: diagram)

    def flush(self, path: Optional[str] = None) -> None:
        self._writer.flush(path)

    def pending_saves(self) -> List[str]:
        return self._writer.pending()

    def cancel_saves(self, path: Optional[str] = None) -> None:
        self._writer.cancel(path)

    # ========================================
    # Hydration
    # ========================================

    def hydrate(self, path: str, snapshot_id: Optional[str] = None) -> HydratedDiagram:
        return hydration.hydrate(
            self.read_diagram(path), self.graph_store.read_graph(), path, snapshot_id
        )

    def dehydrate(self, path: str, hydrated: HydratedDiagram) -> DiagramFile:
        """Write edits made to a hydrated snapshot back to the graph and the diagram.

        The diagram edits are prepared in memory first. Global property
        changes are then validated and written as one batch, and reverted
        if the diagram itself cannot be written. Adding or removing nodes
        goes through the dedicated operations, not through this method.
        """
        with self.lock(path):
            diagram = self.read_diagram(path)
            snapshot = hydration.resolve_snapshot(diagram, hydrated.snapshot_id, path)
            for node in hydrated.nodes:
                entry = LayoutEntry(x=node.x, y=node.y, width=node.width, height=node.height)
                if node.id in snapshot.layout or node.id in snapshot.local_nodes:
                    snapshot.layout[node.id] = entry
                if snapshot.id == diagram.current_snapshot_id and node.id in diagram.view.layout:
                    diagram.view.layout[node.id] = entry.model_copy()
                local = snapshot.local_nodes.get(node.id)
                if local is not None:
                    local.label = node.label
                    local.description = node.description
                    local.technology = node.technology
                    local.team = node.team
                    if node.color is not None:
                        local.style.color = node.color
                    local.style.icon = node.icon
            hydrated_local = {edge.id: edge for edge in hydrated.edges if edge.is_local}
            for local_edge in snapshot.local_edges:
                edited = hydrated_local.get(local_edge.id)
                if edited is None:
                    continue
                local_edge.label = edited.label
                local_edge.direction = edited.direction
                if edited.color is not None:
                    local_edge.style.color = edited.color
            diagram.view.viewport = hydrated.viewport

            changes = hydration.global_changes(hydrated, self.graph_store.read_graph())
            previous = self.graph_store.update_nodes(
                {node_id: NodePatch(**diff) for node_id, diff in changes.items()}
            )
            try:
                self.write_diagram(path, diagram)
            except DiagramStoreError:
                logger.error(f"Dehydrate of {path} failed to persist; restoring graph nodes")
                self.graph_store.restore_nodes(previous)
                raise
        return diagram

    def validate_diagram(
        self,
        path: str,
        validator: hydration.DiagramValidator,
        snapshot_id: Optional[str] = None,
    ) -> ValidationReport:
        """Run an external validator over one hydrated snapshot."""
        hydrated = self.hydrate(path, snapshot_id)
        return validator(hydrated.nodes, hydrated.edges, hydrated.diagram_type)

    def compare_snapshots(self, path: str, before_id: str, after_id: str) -> SnapshotComparison:
        diagram = self.read_diagram(path)
        graph = self.graph_store.read_graph()
        before = hydration.to_comparable(hydration.hydrate(diagram, graph, path, before_id))
        after = hydration.to_comparable(hydration.hydrate(diagram, graph, path, after_id))
        changes = change_detection.compare(before, after)
        return SnapshotComparison(
            before=before.label,
            after=after.label,
            changes=changes,
            summary=change_detection.summarize(changes, before, after),
        )

    # ========================================
    # Annotations
    # ========================================

    def add_annotation(
        self,
        path: str,
        annotation_type: AnnotationType,
        x: float,
        y: float,
        content: Optional[str] = None,
        width: Optional[float] = None,
        height: Optional[float] = None,
        style: Optional[Dict[str, Any]] = None,
    ) -> Annotation:
        annotation = Annotation(
            id=generate_id("annotation"),
            type=annotation_type,
            position=Point(x=x, y=y),
            size=Size(width=width, height=height) if width is not None and height is not None else None,
            content=content,
            style=style,
            created=utcnow_iso(),
        )
        with self.transaction(path) as diagram:
            diagram.annotations.append(annotation)
        return annotation

    def update_annotation(self, path: str, annotation_id: str, **changes: Any) -> Annotation:
        allowed = {"position", "size", "content", "style"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Cannot update annotation field(s): {', '.join(sorted(unknown))}")
        with self.transaction(path) as diagram:
            annotation = next((a for a in diagram.annotations if a.id == annotation_id), None)
            if annotation is None:
                raise NotFoundError(
                    f"Annotation not found: {annotation_id}",
                    {"path": path, "annotation_id": annotation_id},
                )
            updated = Annotation.model_validate(
                {**annotation.model_dump(), **{k: v for k, v in changes.items() if v is not None}}
            )
            diagram.annotations = [
                updated if a.id == annotation_id else a for a in diagram.annotations
            ]
        return updated

    def remove_annotation(self, path: str, annotation_id: str) -> None:
        with self.transaction(path) as diagram:
            before = len(diagram.annotations)
            diagram.annotations = [a for a in diagram.annotations if a.id != annotation_id]
            if len(diagram.annotations) == before:
                raise NotFoundError(
                    f"Annotation not found: {annotation_id}",
                    {"path": path, "annotation_id": annotation_id},
                )


__all__ = [
    "DiagramStore",
    "new_diagram",
    "diagram_name_from_path",
    "require_diagram_path",
]
