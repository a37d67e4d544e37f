"""HTTP API routes for diagram views, snapshots and what-if entities.

Diagram paths contain slashes, so they travel as the ``path`` query
parameter rather than as a path segment.
"""

from __future__ import annotations

from typing import Annotated, List, Optional

from fastapi import APIRouter, Query

from ...models.changes import SnapshotComparison
from ...models.diagram import (
    DiagramFile,
    DiagramSummary,
    HydratedDiagram,
    LayoutEntry,
    LocalEdge,
    LocalEdgeDraft,
    LocalNode,
    LocalNodeDraft,
    Snapshot,
    SnapshotCreate,
    Viewport,
)
from ...models.graph import GlobalNode
from ...models.requests import (
    DiagramCreate,
    DiagramTypeUpdate,
    LayoutUpdate,
    NodePlacement,
    SnapshotRename,
)
from ..dependencies import DiagramStoreDep, NavigationServiceDep, SnapshotServiceDep

router = APIRouter()

DiagramPath = Annotated[str, Query(description="Vault-relative .bac4 path")]


@router.get("/api/diagrams", response_model=List[DiagramSummary])
async def list_diagrams(diagrams: DiagramStoreDep):
    """Every v3 diagram in the vault."""
    return diagrams.get_all_diagrams()


@router.post("/api/diagrams", response_model=DiagramFile, status_code=201)
async def create_diagram(request: DiagramCreate, diagrams: DiagramStoreDep):
    return diagrams.create_diagram(request.path, request.name, request.diagram_type)


@router.get("/api/diagrams/file", response_model=DiagramFile)
async def read_diagram(diagrams: DiagramStoreDep, path: DiagramPath):
    return diagrams.read_diagram(path)


@router.put("/api/diagrams/type", response_model=DiagramFile)
async def update_diagram_type(
    request: DiagramTypeUpdate,
    navigation: NavigationServiceDep,
    diagrams: DiagramStoreDep,
    path: DiagramPath,
):
    navigation.update_diagram_type(path, request.diagram_type)
    return diagrams.read_diagram(path)


@router.post("/api/diagrams/nodes", response_model=DiagramFile)
async def add_node(
    placement: NodePlacement, diagrams: DiagramStoreDep, path: DiagramPath
):
    """Show a global node on the diagram."""
    return diagrams.add_node_to_diagram(path, placement.node_id, placement.x, placement.y)


@router.delete("/api/diagrams/nodes/{node_id}", response_model=DiagramFile)
async def remove_node(node_id: str, diagrams: DiagramStoreDep, path: DiagramPath):
    return diagrams.remove_node_from_diagram(path, node_id)


@router.put("/api/diagrams/layout/{node_id}", response_model=LayoutEntry)
async def update_layout(
    node_id: str, layout: LayoutUpdate, diagrams: DiagramStoreDep, path: DiagramPath
):
    return diagrams.update_node_layout(
        path, node_id, layout.x, layout.y, layout.width, layout.height
    )


@router.put("/api/diagrams/viewport", response_model=Viewport)
async def update_viewport(viewport: Viewport, diagrams: DiagramStoreDep, path: DiagramPath):
    return diagrams.update_viewport(path, viewport)


@router.get("/api/diagrams/hydrate", response_model=HydratedDiagram)
async def hydrate_diagram(
    diagrams: DiagramStoreDep,
    path: DiagramPath,
    snapshot_id: Optional[str] = Query(None),
):
    """Render-ready nodes and edges of one snapshot."""
    return diagrams.hydrate(path, snapshot_id)


@router.get("/api/diagrams/compare", response_model=SnapshotComparison)
async def compare_snapshots(
    diagrams: DiagramStoreDep,
    path: DiagramPath,
    before: str = Query(...),
    after: str = Query(...),
):
    return diagrams.compare_snapshots(path, before, after)


# ========================================
# Snapshots
# ========================================


@router.get("/api/diagrams/snapshots", response_model=List[Snapshot])
async def list_snapshots(diagrams: DiagramStoreDep, path: DiagramPath):
    return diagrams.read_diagram(path).snapshots


@router.post("/api/diagrams/snapshots", response_model=Snapshot, status_code=201)
async def create_snapshot(
    request: SnapshotCreate, snapshots: SnapshotServiceDep, path: DiagramPath
):
    """Copy the current snapshot; the current snapshot does not change."""
    return snapshots.create_snapshot(path, request)


@router.post("/api/diagrams/snapshots/{snapshot_id}/switch", response_model=Snapshot)
async def switch_snapshot(
    snapshot_id: str, snapshots: SnapshotServiceDep, path: DiagramPath
):
    return snapshots.switch_snapshot(path, snapshot_id)


@router.patch("/api/diagrams/snapshots/{snapshot_id}", response_model=Snapshot)
async def rename_snapshot(
    snapshot_id: str,
    request: SnapshotRename,
    snapshots: SnapshotServiceDep,
    path: DiagramPath,
):
    return snapshots.rename_snapshot(path, snapshot_id, request.label)


@router.delete("/api/diagrams/snapshots/{snapshot_id}", status_code=204)
async def delete_snapshot(
    snapshot_id: str, snapshots: SnapshotServiceDep, path: DiagramPath
):
    snapshots.delete_snapshot(path, snapshot_id)


@router.post(
    "/api/diagrams/snapshots/{snapshot_id}/local-nodes",
    response_model=LocalNode,
    status_code=201,
)
async def add_local_node(
    snapshot_id: str,
    draft: LocalNodeDraft,
    snapshots: SnapshotServiceDep,
    path: DiagramPath,
):
    return snapshots.add_local_node(path, snapshot_id, draft)


@router.delete("/api/diagrams/snapshots/{snapshot_id}/local-nodes/{local_id}", status_code=204)
async def remove_local_node(
    snapshot_id: str,
    local_id: str,
    snapshots: SnapshotServiceDep,
    path: DiagramPath,
):
    snapshots.remove_local_node(path, snapshot_id, local_id)


@router.post(
    "/api/diagrams/snapshots/{snapshot_id}/local-edges",
    response_model=LocalEdge,
    status_code=201,
)
async def add_local_edge(
    snapshot_id: str,
    draft: LocalEdgeDraft,
    snapshots: SnapshotServiceDep,
    path: DiagramPath,
):
    return snapshots.add_local_edge(path, snapshot_id, draft)


@router.post(
    "/api/diagrams/snapshots/{snapshot_id}/local-nodes/{local_id}/promote",
    response_model=GlobalNode,
)
async def promote_local_node(
    snapshot_id: str,
    local_id: str,
    snapshots: SnapshotServiceDep,
    path: DiagramPath,
):
    """Turn a what-if node into a global node."""
    return snapshots.promote_node_to_global(path, snapshot_id, local_id)
