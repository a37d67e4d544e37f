"""HTTP API routes for drill-down links, breadcrumbs and renames."""

from __future__ import annotations

from typing import Annotated, List, Optional

from fastapi import APIRouter, Query

from ...models.navigation import BreadcrumbItem, DiagramEntry, NodeReference, RenameReport
from ...models.requests import (
    ChildDiagramRequest,
    ChildLinkResult,
    LinkRequest,
    ParentResult,
    RenameRequest,
)
from ..dependencies import NavigationServiceDep, NodeRegistryDep

router = APIRouter()

DiagramPath = Annotated[str, Query(description="Vault-relative .bac4 path")]


@router.get("/api/navigation/child", response_model=ChildLinkResult)
async def find_child(navigation: NavigationServiceDep, path: DiagramPath, node_id: str = Query(...)):
    return ChildLinkResult(child_path=navigation.find_child_diagram(path, node_id))


@router.post("/api/navigation/child", response_model=ChildLinkResult, status_code=201)
async def create_child(request: ChildDiagramRequest, navigation: NavigationServiceDep):
    """Create or reuse the child diagram of a node and link it."""
    child_path = navigation.create_child_diagram(
        request.path,
        request.node_id,
        request.label,
        request.parent_type,
        request.child_type,
        request.suggested_name,
    )
    return ChildLinkResult(child_path=child_path)


@router.post("/api/navigation/link", response_model=ChildLinkResult)
async def link_existing(request: LinkRequest, navigation: NavigationServiceDep):
    navigation.link_to_existing_diagram(request.path, request.node_id, request.child_path)
    return ChildLinkResult(child_path=request.child_path)


@router.delete("/api/navigation/link", status_code=204)
async def unlink(navigation: NavigationServiceDep, path: DiagramPath, node_id: str = Query(...)):
    navigation.unlink_node(path, node_id)


@router.get("/api/navigation/parent", response_model=ParentResult)
async def find_parent(navigation: NavigationServiceDep, path: DiagramPath):
    return ParentResult(parent_path=navigation.navigate_to_parent(path))


@router.get("/api/navigation/breadcrumbs", response_model=List[BreadcrumbItem])
async def breadcrumbs(navigation: NavigationServiceDep, path: DiagramPath):
    """Parent chain from the root down to ``path``."""
    return navigation.build_breadcrumbs(path)


@router.post("/api/navigation/rename", response_model=RenameReport)
async def rename(request: RenameRequest, navigation: NavigationServiceDep):
    return navigation.rename_diagram(request.path, request.new_name)


@router.get("/api/navigation/diagrams", response_model=List[DiagramEntry])
async def diagrams_by_type(
    navigation: NavigationServiceDep, diagram_type: Optional[str] = Query(None, alias="type")
):
    return navigation.get_diagrams_by_type(diagram_type or "context")


@router.get("/api/navigation/node-references", response_model=List[NodeReference])
async def node_references(
    registry: NodeRegistryDep,
    label: str = Query(..., min_length=1),
    exclude_path: Optional[str] = Query(None),
):
    """Older diagrams that embed a node named ``label`` (case-insensitive)."""
    return registry.get_references(label, exclude_path)
