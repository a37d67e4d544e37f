"""Request-scoped service construction for the HTTP routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from ..services.config import AppConfig, get_config
from ..services.diagram_store import DiagramStore
from ..services.file_store import VaultFileStore
from ..services.graph_store import GraphStore
from ..services.migration import MigrationService
from ..services.navigation import NavigationService
from ..services.node_registry import NodeRegistry
from ..services.snapshots import SnapshotService


def get_app_config() -> AppConfig:
    return get_config()


def get_file_store(config: Annotated[AppConfig, Depends(get_app_config)]) -> VaultFileStore:
    return VaultFileStore(config.vault_path)


def get_graph_store(
    store: Annotated[VaultFileStore, Depends(get_file_store)],
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> GraphStore:
    return GraphStore(store, config)


def get_diagram_store(
    store: Annotated[VaultFileStore, Depends(get_file_store)],
    graph_store: Annotated[GraphStore, Depends(get_graph_store)],
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> DiagramStore:
    return DiagramStore(store, graph_store, config)


def get_snapshot_service(
    diagrams: Annotated[DiagramStore, Depends(get_diagram_store)],
) -> SnapshotService:
    return SnapshotService(diagrams)


def get_navigation_service(
    store: Annotated[VaultFileStore, Depends(get_file_store)],
    diagrams: Annotated[DiagramStore, Depends(get_diagram_store)],
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> NavigationService:
    return NavigationService(store, diagrams, config)


def get_migration_service(
    store: Annotated[VaultFileStore, Depends(get_file_store)],
    graph_store: Annotated[GraphStore, Depends(get_graph_store)],
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> MigrationService:
    return MigrationService(store, config, graph_store)


def get_node_registry(store: Annotated[VaultFileStore, Depends(get_file_store)]) -> NodeRegistry:
    return NodeRegistry(store)


GraphStoreDep = Annotated[GraphStore, Depends(get_graph_store)]
DiagramStoreDep = Annotated[DiagramStore, Depends(get_diagram_store)]
SnapshotServiceDep = Annotated[SnapshotService, Depends(get_snapshot_service)]
NavigationServiceDep = Annotated[NavigationService, Depends(get_navigation_service)]
MigrationServiceDep = Annotated[MigrationService, Depends(get_migration_service)]
NodeRegistryDep = Annotated[NodeRegistry, Depends(get_node_registry)]

__all__ = [
    "get_app_config",
    "get_file_store",
    "get_graph_store",
    "get_diagram_store",
    "get_snapshot_service",
    "get_navigation_service",
    "get_migration_service",
    "get_node_registry",
    "GraphStoreDep",
    "DiagramStoreDep",
    "SnapshotServiceDep",
    "NavigationServiceDep",
    "MigrationServiceDep",
    "NodeRegistryDep",
]
