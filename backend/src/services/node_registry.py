"""Node names used by diagrams that still embed their own nodes.

Version 3 diagrams share the global graph, which keeps labels unique by
itself. Legacy, v0.6.0 and v1.0.0 documents each carry a private node list,
so answering "is this name taken?" for them needs a scan of the vault.
Names compare case-insensitively after trimming.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ..models.legacy import TimelineDiagramFile
from ..models.navigation import NodeReference
from .auto_naming import generate_unique_name
from .diagram_store import diagram_name_from_path
from .errors import DiagramStoreError
from .file_store import FileStore, list_diagram_files
from .schema_registry import DocumentVersion, LoadedDocument, load_document

logger = logging.getLogger(__name__)

EMBEDDED_NODE_VERSIONS = (
    DocumentVersion.LEGACY,
    DocumentVersion.SELF_CONTAINED,
    DocumentVersion.TIMELINE,
)


def normalize_name(label: str) -> str:
    return label.strip().lower()


def _current_nodes(loaded: LoadedDocument) -> list:
    document = loaded.document
    if isinstance(document, TimelineDiagramFile):
        for snapshot in document.timeline.snapshots:
            if snapshot.id == document.timeline.current_snapshot_id:
                return snapshot.nodes
        return []
    return document.nodes  # type: ignore[attr-defined]


class NodeRegistry:
    """Read-only index of label -> references, rebuilt by ``refresh``."""

    def __init__(self, store: FileStore) -> None:
        self.store = store
        self._entries: Dict[str, List[NodeReference]] = {}
        self.initialized = False

    def refresh(self) -> int:
        """Rescan the vault; returns the number of distinct names."""
        entries: Dict[str, List[NodeReference]] = {}
        for path in list_diagram_files(self.store):
            try:
                loaded = load_document(self.store, path)
            except DiagramStoreError as exc:
                logger.warning(f"Skipping {path} in node registry: {exc.message}")
                continue
            if loaded.version not in EMBEDDED_NODE_VERSIONS:
                continue
            for node in _current_nodes(loaded):
                if not node.data.label:
                    continue
                references = entries.setdefault(normalize_name(node.data.label), [])
                if any(ref.node_id == node.id and ref.diagram_path == path for ref in references):
                    continue
                references.append(
                    NodeReference(
                        node_id=node.id,
                        diagram_path=path,
                        diagram_name=diagram_name_from_path(path),
                        node_type=node.type or "unknown",
                        label=node.data.label,
                    )
                )
        self._entries = entries
        self.initialized = True
        logger.info(f"Node registry holds {len(entries)} unique node name(s)")
        return len(entries)

    def _ensure_loaded(self) -> None:
        if not self.initialized:
            self.refresh()

    def name_exists(self, label: str) -> bool:
        self._ensure_loaded()
        return normalize_name(label) in self._entries

    def get_references(
        self, label: str, exclude_path: Optional[str] = None
    ) -> List[NodeReference]:
        """Every diagram node carrying ``label``, optionally ignoring one diagram."""
        self._ensure_loaded()
        references = self._entries.get(normalize_name(label), [])
        return [
            ref.model_copy() for ref in references if ref.diagram_path != exclude_path
        ]

    def generate_unique_name(self, base_name: str) -> str:
        return generate_unique_name(base_name, self.name_exists)

    def unique_name_count(self) -> int:
        self._ensure_loaded()
        return len(self._entries)

    def all_names(self) -> List[str]:
        """Distinct names in the spelling of their first occurrence."""
        self._ensure_loaded()
        return sorted(references[0].label for references in self._entries.values())


__all__ = ["NodeRegistry", "normalize_name"]
