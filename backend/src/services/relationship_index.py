"""Read-only access to ``diagram-relationships.json`` from older vaults.

Current diagrams embed their drill-down links, so the index is only
consulted as a fallback and is never written. A missing or malformed index
reads as empty.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..models.navigation import DiagramEntry, DiagramRelationship, RelationshipIndex
from .config import AppConfig, get_config
from .errors import DiagramStoreError
from .file_store import FileStore, read_json

logger = logging.getLogger(__name__)


class RelationshipIndexReader:
    def __init__(self, store: FileStore, config: AppConfig | None = None) -> None:
        self.store = store
        self.config = config or get_config()
        self.path = self.config.relationship_index_file

    def load(self) -> RelationshipIndex:
        if not self.store.exists(self.path):
            return RelationshipIndex()
        try:
            return RelationshipIndex.model_validate(read_json(self.store, self.path))
        except (DiagramStoreError, ValidationError) as exc:
            logger.warning(f"Ignoring unreadable relationship index {self.path}: {exc}")
            return RelationshipIndex()

    def entry_for_path(self, path: str) -> Optional[DiagramEntry]:
        for entry in self.load().diagrams:
            if entry.file_path == path:
                return entry
        return None

    def _entry_paths(self, index: RelationshipIndex) -> Dict[str, str]:
        return {entry.id: entry.file_path for entry in index.diagrams}

    def parent_of(self, path: str) -> Optional[str]:
        """Path of the diagram recorded as the parent of ``path``."""
        index = self.load()
        paths = self._entry_paths(index)
        child = next((e for e in index.diagrams if e.file_path == path), None)
        if child is None:
            return None
        for row in index.relationships:
            if row.child_diagram_id == child.id:
                return paths.get(row.parent_diagram_id)
        return None

    def children_of(self, path: str) -> List[DiagramRelationship]:
        index = self.load()
        parent = next((e for e in index.diagrams if e.file_path == path), None)
        if parent is None:
            return []
        return [row for row in index.relationships if row.parent_diagram_id == parent.id]

    def child_of(self, path: str, node_id: str) -> Optional[str]:
        """Child diagram path recorded for ``node_id`` of the diagram at ``path``."""
        paths = self._entry_paths(self.load())
        for row in self.children_of(path):
            if row.parent_node_id == node_id:
                return paths.get(row.child_diagram_id)
        return None


__all__ = ["RelationshipIndexReader"]
