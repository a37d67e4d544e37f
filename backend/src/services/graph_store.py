"""Graph store: the single ``__graph__.json`` document of global nodes and edges.

Every mutation is a read-modify-write of the whole document performed under the
document's lock. Validation happens in memory first; the file is only written
when the mutation succeeds.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import time
from typing import Callable, Dict, Iterator, List, Optional, Tuple, TypeVar

from ..models.diagram import is_local_node_id
from ..models.graph import (
    EdgeChangeInfo,
    EdgeDraft,
    EdgePatch,
    EdgeStyle,
    GlobalEdge,
    GlobalNode,
    GraphFile,
    GraphMetadata,
    HierarchyLink,
    NameCheckResult,
    NodeDeletionInfo,
    NodeDraft,
    NodeKnowledge,
    NodePatch,
    NodeStyle,
    NodeUsage,
    default_color_for,
)
from .config import AppConfig, get_config
from .errors import (
    DanglingReferenceError,
    DiagramStoreError,
    DuplicateNameError,
    FormatError,
    NotFoundError,
    OperationRejectedError,
)
from .file_store import FileStore, list_diagram_files, read_json, write_json
from .ids import generate_id, utcnow_iso
from .locks import PathLockRegistry, document_key, get_lock_registry
from .schema_registry import DocumentVersion, decode_document

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _empty_graph() -> GraphFile:
    now = utcnow_iso()
    return GraphFile(metadata=GraphMetadata(created=now, updated=now))


class GraphStore:
    """Owns global nodes, global edges and drill-down hierarchy links."""

    def __init__(
        self,
        store: FileStore,
        config: AppConfig | None = None,
        locks: PathLockRegistry | None = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store
        self.graph_path = self.config.graph_file
        self._locks = locks or get_lock_registry()
        self._cache: Optional[Tuple[float, GraphFile]] = None

    # ========================================
    # Document access
    # ========================================

    def _lock(self):
        return self._locks.lock_for(document_key(self.store.identity, self.graph_path))

    def _read_from_disk(self) -> GraphFile:
        if not self.store.exists(self.graph_path):
            return _empty_graph()
        loaded = decode_document(read_json(self.store, self.graph_path), self.graph_path)
        if loaded.version != DocumentVersion.GRAPH:
            raise FormatError(
                f"{self.graph_path} is not a v3.0.0 graph document",
                {"path": self.graph_path, "version": loaded.version.value},
            )
        return loaded.document  # type: ignore[return-value]

    def _write_graph(self, graph: GraphFile) -> None:
        graph.metadata.updated = utcnow_iso()
        graph.metadata.node_count = len(graph.nodes)
        graph.metadata.edge_count = len(graph.relationships.edges)
        write_json(self.store, self.graph_path, graph.to_document())
        self._cache = (time.monotonic(), graph.model_copy(deep=True))

    @contextmanager
    def _mutation(self) -> Iterator[GraphFile]:
        """Critical section: fresh read, caller mutates, write on clean exit."""
        with self._lock():
            graph = self._read_from_disk()
            yield graph
            self._write_graph(graph)

    def read_graph(self) -> GraphFile:
        """Return a deep copy of the graph, reusing a fresh-enough cached read."""
        ttl = self.config.graph_cache_ttl_seconds
        if self._cache is not None and time.monotonic() - self._cache[0] < ttl:
            return self._cache[1].model_copy(deep=True)
        with self._lock():
            graph = self._read_from_disk()
            self._cache = (time.monotonic(), graph.model_copy(deep=True))
        return graph

    def invalidate_cache(self) -> None:
        self._cache = None

    def apply(self, mutate: Callable[[GraphFile], T]) -> T:
        """Run ``mutate`` against a fresh read under the graph lock, then persist.

        Nothing is written if ``mutate`` raises.
        """
        with self._mutation() as graph:
            result = mutate(graph)
        return result

    def ensure_graph(self) -> GraphFile:
        """Create the graph document on first access."""
        with self._lock():
            if self.store.exists(self.graph_path):
                return self._read_from_disk()
            graph = _empty_graph()
            self._write_graph(graph)
            logger.info(f"Initialized graph document at {self.graph_path}")
            return graph.model_copy(deep=True)

    def _diagram_views(self) -> List[Tuple[str, List[str]]]:
        """(path, view node ids) for every readable v3 diagram; others are skipped."""
        views: List[Tuple[str, List[str]]] = []
        for path in list_diagram_files(self.store):
            try:
                raw = read_json(self.store, path)
            except DiagramStoreError as exc:
                logger.warning(f"Skipping unreadable diagram {path}: {exc}")
                continue
            if not isinstance(raw, dict) or raw.get("version") != "3.0.0":
                continue
            view = raw.get("view")
            nodes = view.get("nodes") if isinstance(view, dict) else None
            if not isinstance(nodes, list):
                logger.warning(f"Skipping diagram without view nodes: {path}")
                continue
            views.append((path, [str(node_id) for node_id in nodes]))
        return views

    def _diagrams_using(self, node_id: str) -> List[str]:
        return [path for path, nodes in self._diagram_views() if node_id in nodes]

    # ========================================
    # Node Operations
    # ========================================

    def _check_name(
        self, graph: GraphFile, label: str, exclude_id: Optional[str]
    ) -> NameCheckResult:
        wanted = label.strip()
        for node in graph.nodes.values():
            if node.id == exclude_id:
                continue
            if node.label == wanted:
                return NameCheckResult(
                    is_unique=False,
                    existing_node=node.model_copy(deep=True),
                    usage_count=len(self._diagrams_using(node.id)),
                )
        return NameCheckResult(is_unique=True)

    def check_name_uniqueness(
        self, label: str, exclude_id: Optional[str] = None
    ) -> NameCheckResult:
        """Exact label match against every global node except ``exclude_id``."""
        return self._check_name(self.read_graph(), label, exclude_id)

    def _raise_duplicate(self, label: str, check: NameCheckResult) -> None:
        existing = check.existing_node
        raise DuplicateNameError(
            f'A node named "{label}" already exists '
            f"(used in {check.usage_count or 0} diagram(s))",
            {
                "label": label,
                "existing_node_id": existing.id if existing else None,
                "usage_count": check.usage_count,
            },
        )

    def create_node(self, draft: NodeDraft) -> GlobalNode:
        with self._mutation() as graph:
            check = self._check_name(graph, draft.label, None)
            if not check.is_unique:
                self._raise_duplicate(draft.label, check)
            node_id = draft.id or generate_id("node")
            if is_local_node_id(node_id):
                raise OperationRejectedError(
                    f"Global node ids cannot use the local- prefix: {node_id}",
                    {"node_id": node_id},
                )
            if node_id in graph.nodes:
                raise DuplicateNameError(
                    f"Node id already exists: {node_id}", {"node_id": node_id}
                )
            now = utcnow_iso()
            node = GlobalNode(
                id=node_id,
                type=draft.type,
                label=draft.label,
                description=draft.description,
                technology=draft.technology,
                team=draft.team,
                knowledge=draft.knowledge or NodeKnowledge(),
                metrics=draft.metrics or {},
                style=draft.style or NodeStyle(color=default_color_for(draft.type)),
                created=now,
                updated=now,
            )
            graph.nodes[node_id] = node
        logger.info(f'Created node {node_id} "{node.label}"')
        return node.model_copy(deep=True)

    def get_node(self, node_id: str) -> Optional[GlobalNode]:
        return self.read_graph().nodes.get(node_id)

    def require_node(self, node_id: str) -> GlobalNode:
        node = self.get_node(node_id)
        if node is None:
            raise NotFoundError(f"Node not found: {node_id}", {"node_id": node_id})
        return node

    def get_all_nodes(self) -> List[GlobalNode]:
        return list(self.read_graph().nodes.values())

    def get_all_labels(self) -> List[str]:
        return [node.label for node in self.read_graph().nodes.values()]

    def update_node(self, node_id: str, patch: NodePatch) -> GlobalNode:
        with self._mutation() as graph:
            node = graph.nodes.get(node_id)
            if node is None:
                raise NotFoundError(f"Node not found: {node_id}", {"node_id": node_id})
            if patch.label is not None and patch.label != node.label:
                check = self._check_name(graph, patch.label, node_id)
                if not check.is_unique:
                    self._raise_duplicate(patch.label, check)
            for field_name in patch.model_fields_set:
                value = getattr(patch, field_name)
                if value is not None:
                    setattr(node, field_name, value)
            node.updated = utcnow_iso()
        logger.info(f"Updated node {node_id}")
        return node.model_copy(deep=True)

    def update_nodes(self, patches: Dict[str, NodePatch]) -> Dict[str, GlobalNode]:
        """Apply several node patches in one write and return the nodes as they were.

        Every patch is checked before any is applied, so a rejected batch
        leaves the graph untouched.
        """
        if not patches:
            return {}

        def _patch(graph: GraphFile) -> Dict[str, GlobalNode]:
            for node_id in patches:
                if node_id not in graph.nodes:
                    raise NotFoundError(f"Node not found: {node_id}", {"node_id": node_id})
            new_labels = {
                node_id: patch.label.strip()
                for node_id, patch in patches.items()
                if patch.label is not None and patch.label != graph.nodes[node_id].label
            }
            if len(set(new_labels.values())) != len(new_labels):
                raise DuplicateNameError(
                    "Two nodes cannot be renamed to the same label",
                    {"labels": sorted(new_labels.values())},
                )
            for node_id, label in new_labels.items():
                check = self._check_name(graph, label, node_id)
                if not check.is_unique:
                    self._raise_duplicate(label, check)

            previous: Dict[str, GlobalNode] = {}
            now = utcnow_iso()
            for node_id, patch in patches.items():
                node = graph.nodes[node_id]
                previous[node_id] = node.model_copy(deep=True)
                for field_name in patch.model_fields_set:
                    value = getattr(patch, field_name)
                    if value is not None:
                        setattr(node, field_name, value)
                node.updated = now
            return previous

        previous = self.apply(_patch)
        logger.info(f"Updated {len(previous)} node(s): {', '.join(sorted(previous))}")
        return previous

    def restore_nodes(self, nodes: Dict[str, GlobalNode]) -> None:
        """Put back node records returned by ``update_nodes``."""
        if not nodes:
            return

        def _restore(graph: GraphFile) -> None:
            for node_id, node in nodes.items():
                if node_id in graph.nodes:
                    graph.nodes[node_id] = node.model_copy(deep=True)

        self.apply(_restore)
        logger.warning(f"Restored {len(nodes)} node(s) after a failed diagram write")

    def get_node_deletion_info(self, node_id: str) -> NodeDeletionInfo:
        """Impact of ``delete_node`` (diagrams showing the node, edges removed)."""
        graph = self.read_graph()
        node = graph.nodes.get(node_id)
        if node is None:
            raise NotFoundError(f"Node not found: {node_id}", {"node_id": node_id})
        diagrams = self._diagrams_using(node_id)
        edges = [
            edge
            for edge in graph.relationships.edges
            if edge.source == node_id or edge.target == node_id
        ]
        return NodeDeletionInfo(
            node=node,
            diagram_count=len(diagrams),
            diagrams=diagrams,
            edge_count=len(edges),
            edges=edges,
        )

    def delete_node(self, node_id: str, cascade: bool = True) -> NodeDeletionInfo:
        """Delete a node, its edges and the hierarchy links rooted at it.

        Irreversible. Returns what was removed. With ``cascade=False`` only the
        node goes; its edges stay behind as orphans for ``cleanup_orphaned_edges``.
        """
        info = self.get_node_deletion_info(node_id)
        with self._mutation() as graph:
            if graph.nodes.pop(node_id, None) is None:
                raise NotFoundError(f"Node not found: {node_id}", {"node_id": node_id})
            if not cascade:
                logger.info(f"Deleted node {node_id} without touching its edges")
                return info
            relationships = graph.relationships
            relationships.edges = [
                edge
                for edge in relationships.edges
                if edge.source != node_id and edge.target != node_id
            ]
            relationships.hierarchy = [
                link for link in relationships.hierarchy if link.parent_node_id != node_id
            ]
        logger.info(f"Deleted node {node_id} and {info.edge_count} edge(s)")
        return info

    def get_node_usage(self, node_id: str) -> NodeUsage:
        graph = self.read_graph()
        if node_id not in graph.nodes:
            raise NotFoundError(f"Node not found: {node_id}", {"node_id": node_id})
        edges = graph.relationships.edges
        return NodeUsage(
            node_id=node_id,
            diagrams=self._diagrams_using(node_id),
            edges_as_source=[edge for edge in edges if edge.source == node_id],
            edges_as_target=[edge for edge in edges if edge.target == node_id],
        )

    def search_nodes(self, query: str) -> List[GlobalNode]:
        needle = query.strip().lower()
        if not needle:
            return []
        matches = []
        for node in self.read_graph().nodes.values():
            haystacks = (node.label, node.description, node.technology or "")
            if any(needle in text.lower() for text in haystacks):
                matches.append(node)
        return matches

    def get_nodes_by_type(self, node_type: str) -> List[GlobalNode]:
        return [node for node in self.read_graph().nodes.values() if node.type == node_type]

    def get_orphaned_nodes(self) -> List[GlobalNode]:
        """Nodes that no diagram view references."""
        referenced = set()
        for _, nodes in self._diagram_views():
            referenced.update(nodes)
        return [node for node in self.read_graph().nodes.values() if node.id not in referenced]

    # ========================================
    # Edge Operations
    # ========================================

    @staticmethod
    def _require_endpoints(graph: GraphFile, source: str, target: str) -> None:
        missing = [node_id for node_id in (source, target) if node_id not in graph.nodes]
        if missing:
            raise DanglingReferenceError(
                f"Edge endpoint(s) do not exist: {', '.join(missing)}",
                {"source": source, "target": target, "missing": missing},
            )

    def create_edge(self, draft: EdgeDraft) -> GlobalEdge:
        with self._mutation() as graph:
            self._require_endpoints(graph, draft.source, draft.target)
            edge_id = draft.id or generate_id("edge")
            if any(edge.id == edge_id for edge in graph.relationships.edges):
                raise DuplicateNameError(f"Edge id already exists: {edge_id}", {"edge_id": edge_id})
            now = utcnow_iso()
            edge = GlobalEdge(
                id=edge_id,
                source=draft.source,
                target=draft.target,
                type=draft.type,
                label=draft.label,
                direction=draft.direction,
                style=draft.style or EdgeStyle(),
                created=now,
                updated=now,
            )
            graph.relationships.edges.append(edge)
        logger.info(f"Created edge {edge_id} ({draft.source} -> {draft.target})")
        return edge.model_copy(deep=True)

    def get_edge(self, edge_id: str) -> Optional[GlobalEdge]:
        for edge in self.read_graph().relationships.edges:
            if edge.id == edge_id:
                return edge
        return None

    def get_all_edges(self) -> List[GlobalEdge]:
        return self.read_graph().relationships.edges

    def get_edges_for_node(self, node_id: str) -> List[GlobalEdge]:
        return [
            edge
            for edge in self.read_graph().relationships.edges
            if edge.source == node_id or edge.target == node_id
        ]

    def get_edges_for_nodes(self, node_ids: List[str]) -> List[GlobalEdge]:
        """Edges whose both endpoints are in ``node_ids``."""
        wanted = set(node_ids)
        return [
            edge
            for edge in self.read_graph().relationships.edges
            if edge.source in wanted and edge.target in wanted
        ]

    def find_edge(self, source: str, target: str) -> Optional[GlobalEdge]:
        for edge in self.read_graph().relationships.edges:
            if edge.source == source and edge.target == target:
                return edge
        return None

    def update_edge(self, edge_id: str, patch: EdgePatch) -> GlobalEdge:
        with self._mutation() as graph:
            edge = next((e for e in graph.relationships.edges if e.id == edge_id), None)
            if edge is None:
                raise NotFoundError(f"Edge not found: {edge_id}", {"edge_id": edge_id})
            self._require_endpoints(
                graph, patch.source or edge.source, patch.target or edge.target
            )
            for field_name in patch.model_fields_set:
                value = getattr(patch, field_name)
                if value is not None:
                    setattr(edge, field_name, value)
            edge.updated = utcnow_iso()
        return edge.model_copy(deep=True)

    def delete_edge(self, edge_id: str) -> None:
        with self._mutation() as graph:
            before = len(graph.relationships.edges)
            graph.relationships.edges = [
                edge for edge in graph.relationships.edges if edge.id != edge_id
            ]
            if len(graph.relationships.edges) == before:
                raise NotFoundError(f"Edge not found: {edge_id}", {"edge_id": edge_id})
        logger.info(f"Deleted edge {edge_id}")

    def get_edge_change_info(self, edge_id: str) -> EdgeChangeInfo:
        """Diagrams that display the edge (both endpoints in their view)."""
        edge = self.get_edge(edge_id)
        if edge is None:
            raise NotFoundError(f"Edge not found: {edge_id}", {"edge_id": edge_id})
        diagrams = [
            path
            for path, nodes in self._diagram_views()
            if edge.source in nodes and edge.target in nodes
        ]
        return EdgeChangeInfo(edge=edge, diagram_count=len(diagrams), diagrams=diagrams)

    def get_orphaned_edges(self) -> List[GlobalEdge]:
        """Edges with at least one endpoint missing from the node map."""
        graph = self.read_graph()
        return [
            edge
            for edge in graph.relationships.edges
            if edge.source not in graph.nodes or edge.target not in graph.nodes
        ]

    def cleanup_orphaned_edges(self) -> int:
        with self._mutation() as graph:
            kept = [
                edge
                for edge in graph.relationships.edges
                if edge.source in graph.nodes and edge.target in graph.nodes
            ]
            removed = len(graph.relationships.edges) - len(kept)
            graph.relationships.edges = kept
        if removed:
            logger.info(f"Removed {removed} orphaned edge(s)")
        return removed

    # ========================================
    # Hierarchy (drill-down) Operations
    # ========================================

    def get_hierarchy(self) -> List[HierarchyLink]:
        return self.read_graph().relationships.hierarchy

    def get_child_diagram(self, node_id: str) -> Optional[str]:
        for link in self.read_graph().relationships.hierarchy:
            if link.parent_node_id == node_id:
                return link.child_diagram_path
        return None

    def set_child_diagram(self, node_id: str, child_path: str) -> HierarchyLink:
        """Link ``node_id`` to ``child_path``, replacing any previous link."""
        with self._mutation() as graph:
            if node_id not in graph.nodes:
                raise NotFoundError(f"Node not found: {node_id}", {"node_id": node_id})
            link = HierarchyLink(
                parent_node_id=node_id, child_diagram_path=child_path, created=utcnow_iso()
            )
            graph.relationships.hierarchy = [
                existing
                for existing in graph.relationships.hierarchy
                if existing.parent_node_id != node_id
            ] + [link]
        return link

    def remove_child_link(self, node_id: str) -> bool:
        with self._lock():
            graph = self._read_from_disk()
            kept = [
                link for link in graph.relationships.hierarchy if link.parent_node_id != node_id
            ]
            if len(kept) == len(graph.relationships.hierarchy):
                return False
            graph.relationships.hierarchy = kept
            self._write_graph(graph)
        return True

    def replace_child_path(self, old_path: str, new_path: str) -> int:
        """Point every hierarchy link at ``old_path`` to ``new_path``."""
        with self._lock():
            graph = self._read_from_disk()
            count = 0
            for link in graph.relationships.hierarchy:
                if link.child_diagram_path == old_path:
                    link.child_diagram_path = new_path
                    count += 1
            if count:
                self._write_graph(graph)
        return count

    def find_parents_of(self, child_path: str) -> List[str]:
        """Node ids whose drill-down link targets ``child_path``."""
        return [
            link.parent_node_id
            for link in self.read_graph().relationships.hierarchy
            if link.child_diagram_path == child_path
        ]

    def node_index(self) -> Dict[str, GlobalNode]:
        return self.read_graph().nodes


__all__ = ["GraphStore"]
