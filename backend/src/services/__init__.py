"""Service layer: diagram persistence, migration and navigation."""

from .config import AppConfig, configure_logging, get_config, reload_config
from .diagram_store import DiagramStore
from .errors import (
    DanglingReferenceError,
    DiagramStoreError,
    DuplicateNameError,
    FormatError,
    NotFoundError,
    OperationRejectedError,
    SchemaValidationError,
    StorageError,
)
from .file_store import FileStore, VaultFileStore
from .graph_store import GraphStore
from .migration import MigrationService
from .navigation import NavigationService, sanitize_file_name
from .node_registry import NodeRegistry
from .relationship_index import RelationshipIndexReader
from .schema_registry import DocumentVersion, decode_document, load_document
from .snapshots import SnapshotService

__all__ = [
    "AppConfig",
    "configure_logging",
    "get_config",
    "reload_config",
    "DiagramStore",
    "DanglingReferenceError",
    "DiagramStoreError",
    "DuplicateNameError",
    "FormatError",
    "NotFoundError",
    "OperationRejectedError",
    "SchemaValidationError",
    "StorageError",
    "FileStore",
    "VaultFileStore",
    "GraphStore",
    "MigrationService",
    "NavigationService",
    "sanitize_file_name",
    "NodeRegistry",
    "RelationshipIndexReader",
    "DocumentVersion",
    "decode_document",
    "load_document",
    "SnapshotService",
]
