"""Drill-down navigation between diagrams.

Each node may link to at most one child diagram. Where that link lives
depends on the file generation:

* legacy and v0.6.0: ``data.linkedDiagramPath`` on top-level nodes
* v1.0.0: the same field on nodes of the working snapshot (first in order)
* v2.5: ``links.linkedDiagrams`` entries with relationship ``decomposes-to``
* v3.0.0: hierarchy rows of the global graph, restricted to view nodes

Adapters below hide those differences. The legacy relationship index is only
read, as a fallback.
"""

from __future__ import annotations

import abc
from contextlib import contextmanager
import logging
from pathlib import PurePosixPath
import re
from typing import Dict, Iterator, List, Optional

from ..models.diagram import DIAGRAM_TYPES, DiagramFile
from ..models.graph import GraphFile
from ..models.legacy import CanvasDiagramFile, CanvasMetadata, TimelineDiagramFile
from ..models.navigation import BreadcrumbItem, DiagramEntry, RenameFailure, RenameReport
from ..models.split import (
    GRAPH_FILE_SUFFIX,
    LinkedDiagram,
    NodeFileV2,
    graph_path_for,
)
from .config import AppConfig, get_config
from .diagram_store import DiagramStore, diagram_name_from_path
from .errors import (
    DanglingReferenceError,
    DiagramStoreError,
    DuplicateNameError,
    NotFoundError,
)
from .file_store import FileStore, list_diagram_files, read_json, write_json
from .ids import utcnow_iso
from .relationship_index import RelationshipIndexReader
from .schema_registry import DocumentVersion, LoadedDocument, decode_document

logger = logging.getLogger(__name__)

DIAGRAM_SUFFIX = ".bac4"
DECOMPOSES_TO = "decomposes-to"


def sanitize_file_name(label: str) -> str:
    """``"API Gateway (v2)"`` -> ``"API_Gateway_v2"``."""
    cleaned = re.sub(r"[^a-zA-Z0-9\s-]", "", (label or "").strip())
    cleaned = re.sub(r"\s+", "_", cleaned)
    cleaned = re.sub(r"_+", "_", cleaned)
    return cleaned.strip("_")


def with_diagram_suffix(name: str) -> str:
    return name if name.endswith(DIAGRAM_SUFFIX) else f"{name}{DIAGRAM_SUFFIX}"


def sibling_path(path: str, file_name: str) -> str:
    """``file_name`` placed in the directory of ``path``."""
    parent = PurePosixPath(path).parent.as_posix()
    return file_name if parent in ("", ".") else f"{parent}/{file_name}"


# ========================================
# Per-format link adapters
# ========================================


class DiagramLinks(abc.ABC):
    """Drill-down links and display metadata of one loaded document."""

    def __init__(self, path: str, loaded: LoadedDocument) -> None:
        self.path = path
        self.loaded = loaded
        self.dirty = False

    @property
    def version(self) -> DocumentVersion:
        return self.loaded.version

    @abc.abstractmethod
    def links(self) -> Dict[str, str]:
        """Map of node id to child diagram path."""

    @abc.abstractmethod
    def has_node(self, node_id: str) -> bool:
        pass

    @abc.abstractmethod
    def node_label(self, node_id: str) -> Optional[str]:
        pass

    @abc.abstractmethod
    def set_link(self, node_id: str, child_path: str) -> None:
        pass

    @abc.abstractmethod
    def clear_link(self, node_id: str) -> bool:
        pass

    @abc.abstractmethod
    def replace_paths(self, old_path: str, new_path: str) -> int:
        """Rewrite embedded references to ``old_path``; returns how many changed."""

    @property
    def display_name(self) -> str:
        return diagram_name_from_path(self.path)

    @abc.abstractmethod
    def set_display_name(self, name: str) -> None:
        pass

    @property
    @abc.abstractmethod
    def diagram_type(self) -> str:
        pass

    @abc.abstractmethod
    def set_diagram_type(self, diagram_type: str) -> None:
        pass

    def save(self, store: FileStore) -> None:
        if self.dirty:
            write_json(store, self.path, self.loaded.document.to_document())
            self.dirty = False


class CanvasLinks(DiagramLinks):
    """Legacy, v0.6.0 and v1.0.0 documents: links embedded in node data."""

    def _all_node_lists(self) -> List[list]:
        document = self.loaded.document
        if isinstance(document, TimelineDiagramFile):
            return [snapshot.nodes for snapshot in document.timeline.snapshots]
        return [document.nodes]  # type: ignore[attr-defined]

    def _working_nodes(self) -> list:
        document = self.loaded.document
        if isinstance(document, TimelineDiagramFile):
            timeline = document.timeline
            working_id = timeline.snapshot_order[0] if timeline.snapshot_order else None
            for snapshot in timeline.snapshots:
                if snapshot.id == working_id:
                    return snapshot.nodes
            raise NotFoundError(
                f"Working snapshot not found in timeline of {self.path}", {"path": self.path}
            )
        return document.nodes  # type: ignore[attr-defined]

    def _find(self, node_id: str):
        for node in self._working_nodes():
            if node.id == node_id:
                return node
        return None

    def links(self) -> Dict[str, str]:
        try:
            nodes = self._working_nodes()
        except NotFoundError:
            return {}
        return {
            node.id: node.data.linked_diagram_path
            for node in nodes
            if node.data.linked_diagram_path
        }

    def has_node(self, node_id: str) -> bool:
        return self._find(node_id) is not None

    def node_label(self, node_id: str) -> Optional[str]:
        node = self._find(node_id)
        return node.data.label if node is not None else None

    def set_link(self, node_id: str, child_path: str) -> None:
        node = self._find(node_id)
        if node is None:
            raise NotFoundError(
                f"Node {node_id} not found in {self.path}", {"path": self.path, "node_id": node_id}
            )
        node.data.linked_diagram_path = child_path
        node.data.has_child_diagram = True
        self._touch()

    def clear_link(self, node_id: str) -> bool:
        node = self._find(node_id)
        if node is None or not node.data.linked_diagram_path:
            return False
        node.data.linked_diagram_path = None
        node.data.has_child_diagram = None
        self._touch()
        return True

    def replace_paths(self, old_path: str, new_path: str) -> int:
        changed = 0
        for nodes in self._all_node_lists():
            for node in nodes:
                if node.data.linked_diagram_path == old_path:
                    node.data.linked_diagram_path = new_path
                    changed += 1
                if node.data.linked_markdown_path == old_path:
                    node.data.linked_markdown_path = new_path
                    changed += 1
        if changed:
            self._touch()
        return changed

    def _metadata(self):
        document = self.loaded.document
        if isinstance(document, CanvasDiagramFile) and document.metadata is None:
            document.metadata = CanvasMetadata()
        return document.metadata  # type: ignore[attr-defined]

    def _touch(self) -> None:
        self._metadata().updated_at = utcnow_iso()
        self.dirty = True

    @property
    def display_name(self) -> str:
        return self._metadata().title or diagram_name_from_path(self.path)

    def set_display_name(self, name: str) -> None:
        self._metadata().title = name
        self._touch()

    @property
    def diagram_type(self) -> str:
        return self._metadata().diagram_type or "context"

    def set_diagram_type(self, diagram_type: str) -> None:
        self._metadata().diagram_type = diagram_type
        self._touch()


class SplitLinks(DiagramLinks):
    """v2.5 node files: ``links.linkedDiagrams`` on each node."""

    @property
    def document(self) -> NodeFileV2:
        return self.loaded.document  # type: ignore[return-value]

    def links(self) -> Dict[str, str]:
        return {
            node_id: node.child_diagram()
            for node_id, node in self.document.nodes.items()
            if node.child_diagram()
        }

    def has_node(self, node_id: str) -> bool:
        return node_id in self.document.nodes

    def node_label(self, node_id: str) -> Optional[str]:
        node = self.document.nodes.get(node_id)
        return node.properties.label if node is not None else None

    def set_link(self, node_id: str, child_path: str) -> None:
        node = self.document.nodes.get(node_id)
        if node is None:
            raise NotFoundError(
                f"Node {node_id} not found in {self.path}", {"path": self.path, "node_id": node_id}
            )
        node.links.linked_diagrams = [
            link for link in node.links.linked_diagrams if link.relationship != DECOMPOSES_TO
        ] + [LinkedDiagram(path=child_path, relationship=DECOMPOSES_TO)]
        self._touch()

    def clear_link(self, node_id: str) -> bool:
        node = self.document.nodes.get(node_id)
        if node is None or node.child_diagram() is None:
            return False
        node.links.linked_diagrams = [
            link for link in node.links.linked_diagrams if link.relationship != DECOMPOSES_TO
        ]
        self._touch()
        return True

    def replace_paths(self, old_path: str, new_path: str) -> int:
        changed = 0
        for node in self.document.nodes.values():
            for link in node.links.linked_diagrams:
                if link.path == old_path:
                    link.path = new_path
                    changed += 1
        if changed:
            self._touch()
        return changed

    def _touch(self) -> None:
        self.document.metadata.updated = utcnow_iso()
        self.dirty = True

    @property
    def display_name(self) -> str:
        return self.document.metadata.title

    def set_display_name(self, name: str) -> None:
        self.document.metadata.title = name
        self._touch()

    @property
    def diagram_type(self) -> str:
        return self.document.metadata.diagram_type

    def set_diagram_type(self, diagram_type: str) -> None:
        self.document.metadata.diagram_type = diagram_type
        self._touch()


class GlobalLinks(DiagramLinks):
    """v3 diagrams: links are graph hierarchy rows of nodes in the view."""

    def __init__(self, path: str, loaded: LoadedDocument, diagrams: DiagramStore) -> None:
        super().__init__(path, loaded)
        self.diagrams = diagrams
        self.graph_store = diagrams.graph_store
        self._graph: Optional[GraphFile] = None

    @property
    def document(self) -> DiagramFile:
        return self.loaded.document  # type: ignore[return-value]

    @property
    def graph(self) -> GraphFile:
        if self._graph is None:
            self._graph = self.graph_store.read_graph()
        return self._graph

    def links(self) -> Dict[str, str]:
        in_view = set(self.document.view.nodes)
        return {
            link.parent_node_id: link.child_diagram_path
            for link in self.graph.relationships.hierarchy
            if link.parent_node_id in in_view
        }

    def has_node(self, node_id: str) -> bool:
        return node_id in self.document.view.nodes

    def node_label(self, node_id: str) -> Optional[str]:
        node = self.graph.nodes.get(node_id)
        return node.label if node is not None and self.has_node(node_id) else None

    def set_link(self, node_id: str, child_path: str) -> None:
        if not self.has_node(node_id):
            raise NotFoundError(
                f"Node {node_id} not found in {self.path}", {"path": self.path, "node_id": node_id}
            )
        self.graph_store.set_child_diagram(node_id, child_path)
        self._graph = None

    def clear_link(self, node_id: str) -> bool:
        if not self.has_node(node_id):
            return False
        removed = self.graph_store.remove_child_link(node_id)
        self._graph = None
        return removed

    def replace_paths(self, old_path: str, new_path: str) -> int:
        # Hierarchy rows are global and rewritten once per rename.
        return 0

    @property
    def display_name(self) -> str:
        return self.document.metadata.diagram_name

    def set_display_name(self, name: str) -> None:
        self.document.metadata.diagram_name = name
        self.dirty = True

    @property
    def diagram_type(self) -> str:
        return self.document.metadata.diagram_type

    def set_diagram_type(self, diagram_type: str) -> None:
        if diagram_type not in DIAGRAM_TYPES:
            raise ValueError(f"Unknown diagram type: {diagram_type}")
        self.document.metadata.diagram_type = diagram_type  # type: ignore[assignment]
        self.dirty = True

    def save(self, store: FileStore) -> None:
        if self.dirty:
            self.diagrams.write_diagram(self.path, self.document)
            self.dirty = False


# ========================================
# Navigation service
# ========================================


class NavigationService:
    """Child links, parent lookup, breadcrumbs and rename propagation."""

    def __init__(
        self,
        store: FileStore,
        diagrams: DiagramStore | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store
        self.diagrams = diagrams or DiagramStore(store, config=self.config)
        self.graph_store = self.diagrams.graph_store
        self.index = RelationshipIndexReader(store, self.config)

    def open_links(self, path: str) -> DiagramLinks:
        if not self.store.exists(path):
            raise NotFoundError(f"Diagram not found: {path}", {"path": path})
        loaded = decode_document(read_json(self.store, path), path)
        if loaded.version == DocumentVersion.GLOBAL:
            return GlobalLinks(path, loaded, self.diagrams)
        if loaded.version == DocumentVersion.SPLIT:
            return SplitLinks(path, loaded)
        if loaded.version in (
            DocumentVersion.LEGACY,
            DocumentVersion.SELF_CONTAINED,
            DocumentVersion.TIMELINE,
        ):
            return CanvasLinks(path, loaded)
        raise ValueError(f"{path} is a {loaded.version.value} document, not a diagram")

    @contextmanager
    def _editing(self, path: str) -> Iterator[DiagramLinks]:
        with self.diagrams.lock(path):
            links = self.open_links(path)
            yield links
            links.save(self.store)

    def _readable_links(self, skip: Optional[str] = None) -> Iterator[DiagramLinks]:
        """Every diagram that can be opened; unreadable files are skipped."""
        for path in list_diagram_files(self.store):
            if path == skip:
                continue
            try:
                yield self.open_links(path)
            except (DiagramStoreError, ValueError) as exc:
                logger.warning(f"Could not read diagram {path}: {exc}")

    # ========================================
    # Child links
    # ========================================

    def find_child_diagram(self, parent_path: str, node_id: str) -> Optional[str]:
        child = self.open_links(parent_path).links().get(node_id)
        if child is None:
            child = self.index.child_of(parent_path, node_id)
        return child

    def create_child_diagram(
        self,
        parent_path: str,
        node_id: str,
        label: str,
        parent_type: str,
        child_type: str,
        suggested_name: Optional[str] = None,
    ) -> str:
        """Create (or reuse) the child diagram of ``node_id`` and link it.

        The child sits beside the parent. An existing file at the derived
        path is treated as the child rather than an error.
        """
        if not self.store.exists(parent_path):
            raise NotFoundError(f"Parent file not found: {parent_path}", {"path": parent_path})
        if suggested_name:
            file_name = with_diagram_suffix(suggested_name)
        else:
            base = sanitize_file_name(label)
            if not base:
                raise ValueError(f"Cannot derive a file name from label: {label!r}")
            file_name = with_diagram_suffix(base)
        child_path = sibling_path(parent_path, file_name)

        if self.store.exists(child_path):
            logger.info(f"Child diagram already exists at {child_path}; repairing link")
        else:
            self.diagrams.create_diagram(child_path, label or None, child_type)
            logger.info(
                f"Created {child_type} child diagram {child_path} for {parent_type} "
                f"diagram {parent_path}"
            )

        with self._editing(parent_path) as links:
            links.set_link(node_id, child_path)
        return child_path

    def link_to_existing_diagram(self, parent_path: str, node_id: str, child_path: str) -> None:
        if not self.store.exists(child_path):
            raise DanglingReferenceError(
                f"Child diagram not found: {child_path}",
                {"path": parent_path, "node_id": node_id, "child_path": child_path},
            )
        with self._editing(parent_path) as links:
            links.set_link(node_id, child_path)
        logger.info(f"Linked {node_id} in {parent_path} to {child_path}")

    def unlink_node(self, parent_path: str, node_id: str) -> bool:
        with self._editing(parent_path) as links:
            removed = links.clear_link(node_id)
        if not removed:
            logger.info(f"Node {node_id} in {parent_path} has no child link to remove")
        return removed

    def describe_diagram(self, path: str) -> Optional[DiagramEntry]:
        try:
            links = self.open_links(path)
        except (DiagramStoreError, ValueError) as exc:
            logger.debug(f"Cannot describe {path}: {exc}")
            return None
        return DiagramEntry(
            id=path,
            file_path=path,
            display_name=links.display_name,
            type=links.diagram_type,
        )

    def get_existing_link(self, parent_path: str, node_id: str) -> Optional[DiagramEntry]:
        child = self.find_child_diagram(parent_path, node_id)
        if child is None:
            return None
        return self.describe_diagram(child)

    # ========================================
    # Parents and breadcrumbs
    # ========================================

    def navigate_to_parent(self, current_path: str) -> Optional[str]:
        indexed = self.index.parent_of(current_path)
        if indexed and indexed != current_path and self.store.exists(indexed):
            return indexed
        for links in self._readable_links(skip=current_path):
            if current_path in links.links().values():
                return links.path
        return None

    def build_breadcrumbs(self, current_path: str) -> List[BreadcrumbItem]:
        """Root-first chain of parents ending with ``current_path``."""
        chain = [current_path]
        visited = {current_path}
        parent = self.navigate_to_parent(current_path)
        while parent is not None:
            if parent in visited:
                logger.warning(f"Cycle in diagram hierarchy at {parent}; stopping breadcrumbs")
                break
            visited.add(parent)
            chain.insert(0, parent)
            parent = self.navigate_to_parent(parent)
        return [self._crumb(path) for path in chain]

    def _crumb(self, path: str) -> BreadcrumbItem:
        entry = self.describe_diagram(path)
        if entry is None:
            return BreadcrumbItem(label=diagram_name_from_path(path), path=path, type="context")
        return BreadcrumbItem(label=entry.display_name, path=path, type=entry.type)

    # ========================================
    # Rename
    # ========================================

    def rename_diagram(self, old_path: str, new_name: str) -> RenameReport:
        """Rename a diagram in place and update every reference to it."""
        if not self.store.exists(old_path):
            raise NotFoundError(f"File not found: {old_path}", {"path": old_path})
        file_name = with_diagram_suffix(new_name.strip())
        if "/" in file_name or file_name == DIAGRAM_SUFFIX:
            raise ValueError(f"Invalid diagram name: {new_name!r}")
        new_path = sibling_path(old_path, file_name)
        if new_path == old_path:
            return RenameReport(old_path=old_path, new_path=new_path)
        if self.store.exists(new_path):
            raise DuplicateNameError(
                "A file with that name already exists", {"path": new_path}
            )

        self.diagrams.flush(old_path)
        with self.diagrams.lock(old_path):
            self.store.rename(old_path, new_path)
            old_graph_sibling = graph_path_for(old_path)
            if self.store.exists(old_graph_sibling):
                self._move_graph_sibling(old_graph_sibling, graph_path_for(new_path), file_name)
        logger.info(f"Renamed diagram {old_path} -> {new_path}")

        report = RenameReport(old_path=old_path, new_path=new_path)
        try:
            with self._editing(new_path) as links:
                links.set_display_name(diagram_name_from_path(new_path))
        except (DiagramStoreError, ValueError) as exc:
            logger.error(f"Failed to update display name of {new_path}: {exc}")
            report.failed.append(RenameFailure(path=new_path, error=str(exc)))
        return self.propagate_rename(old_path, new_path, report)

    def _move_graph_sibling(self, old_sibling: str, new_sibling: str, node_file: str) -> None:
        self.store.rename(old_sibling, new_sibling)
        data = read_json(self.store, new_sibling)
        if isinstance(data, dict) and isinstance(data.get("metadata"), dict):
            data["metadata"]["nodeFile"] = node_file
            write_json(self.store, new_sibling, data)

    def propagate_rename(
        self, old_path: str, new_path: str, report: Optional[RenameReport] = None
    ) -> RenameReport:
        """Point every link to ``old_path`` (a diagram or a note) at ``new_path``.

        Not transactional: a diagram that cannot be updated is listed in
        ``failed`` and the others are still written.
        """
        report = report or RenameReport(old_path=old_path, new_path=new_path)
        for path in list_diagram_files(self.store):
            if path == new_path:
                continue
            try:
                with self._editing(path) as links:
                    changed = links.replace_paths(old_path, new_path)
            except (DiagramStoreError, ValueError) as exc:
                logger.error(f"Failed to update links in {path}: {exc}")
                report.failed.append(RenameFailure(path=path, error=str(exc)))
                continue
            if changed:
                report.updated.append(path)

        if old_path.endswith(DIAGRAM_SUFFIX) or old_path.endswith(GRAPH_FILE_SUFFIX):
            try:
                report.hierarchy_links_updated = self.graph_store.replace_child_path(
                    old_path, new_path
                )
            except DiagramStoreError as exc:
                logger.error(f"Failed to update graph hierarchy for {old_path}: {exc.message}")
                report.failed.append(
                    RenameFailure(path=self.graph_store.graph_path, error=exc.message)
                )
        if report.failed:
            logger.warning(
                f"Rename {old_path} -> {new_path}: {len(report.failed)} reference update(s) failed"
            )
        return report

    # ========================================
    # Diagram types
    # ========================================

    def get_diagrams_by_type(self, diagram_type: str) -> List[DiagramEntry]:
        return [
            DiagramEntry(
                id=links.path,
                file_path=links.path,
                display_name=links.display_name,
                type=links.diagram_type,
            )
            for links in self._readable_links()
            if links.diagram_type == diagram_type
        ]

    def update_diagram_type(self, path: str, diagram_type: str) -> None:
        with self._editing(path) as links:
            links.set_diagram_type(diagram_type)
        logger.info(f"Updated diagram type of {path} to {diagram_type}")


__all__ = [
    "sanitize_file_name",
    "with_diagram_suffix",
    "sibling_path",
    "DiagramLinks",
    "CanvasLinks",
    "SplitLinks",
    "GlobalLinks",
    "NavigationService",
]
