"""HTTP API routes for global nodes, edges and orphan maintenance."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from ...models.graph import (
    EdgeChangeInfo,
    EdgeDraft,
    EdgePatch,
    GlobalEdge,
    GlobalNode,
    NameCheckResult,
    NodeDeletionInfo,
    NodeDraft,
    NodePatch,
    NodeUsage,
)
from ...models.requests import CleanupResult, OrphanReport
from ..dependencies import GraphStoreDep

router = APIRouter()


@router.get("/api/graph/nodes", response_model=List[GlobalNode])
async def list_nodes(
    graph_store: GraphStoreDep,
    q: Optional[str] = Query(None, description="Search label, description and technology"),
    node_type: Optional[str] = Query(None, alias="type", description="Only nodes of this type"),
):
    """List global nodes, optionally filtered."""
    if q:
        nodes = graph_store.search_nodes(q)
    else:
        nodes = graph_store.get_all_nodes()
    if node_type:
        nodes = [node for node in nodes if node.type == node_type]
    return nodes


@router.post("/api/graph/nodes", response_model=GlobalNode, status_code=201)
async def create_node(draft: NodeDraft, graph_store: GraphStoreDep):
    return graph_store.create_node(draft)


@router.get("/api/graph/nodes/{node_id}", response_model=GlobalNode)
async def get_node(node_id: str, graph_store: GraphStoreDep):
    node = graph_store.get_node(node_id)
    if node is None:
        raise HTTPException(
            status_code=404,
            detail={"error": "not_found", "message": f"Node not found: {node_id}"},
        )
    return node


@router.patch("/api/graph/nodes/{node_id}", response_model=GlobalNode)
async def update_node(node_id: str, patch: NodePatch, graph_store: GraphStoreDep):
    return graph_store.update_node(node_id, patch)


@router.delete("/api/graph/nodes/{node_id}", response_model=NodeDeletionInfo)
async def delete_node(
    node_id: str,
    graph_store: GraphStoreDep,
    cascade: bool = Query(True, description="Also delete the node's edges and drill-down links"),
):
    """Delete a node with its edges and drill-down links."""
    return graph_store.delete_node(node_id, cascade=cascade)


@router.get("/api/graph/nodes/{node_id}/deletion-info", response_model=NodeDeletionInfo)
async def get_node_deletion_info(node_id: str, graph_store: GraphStoreDep):
    return graph_store.get_node_deletion_info(node_id)


@router.get("/api/graph/nodes/{node_id}/usage", response_model=NodeUsage)
async def get_node_usage(node_id: str, graph_store: GraphStoreDep):
    return graph_store.get_node_usage(node_id)


@router.get("/api/graph/name-check", response_model=NameCheckResult)
async def check_name(
    graph_store: GraphStoreDep,
    label: str = Query(..., min_length=1),
    exclude_id: Optional[str] = Query(None),
):
    """Check whether a label is free to use."""
    return graph_store.check_name_uniqueness(label, exclude_id)


@router.get("/api/graph/edges", response_model=List[GlobalEdge])
async def list_edges(graph_store: GraphStoreDep, node_id: Optional[str] = Query(None)):
    if node_id:
        return graph_store.get_edges_for_node(node_id)
    return graph_store.get_all_edges()


@router.post("/api/graph/edges", response_model=GlobalEdge, status_code=201)
async def create_edge(draft: EdgeDraft, graph_store: GraphStoreDep):
    return graph_store.create_edge(draft)


@router.patch("/api/graph/edges/{edge_id}", response_model=GlobalEdge)
async def update_edge(edge_id: str, patch: EdgePatch, graph_store: GraphStoreDep):
    return graph_store.update_edge(edge_id, patch)


@router.delete("/api/graph/edges/{edge_id}", status_code=204)
async def delete_edge(edge_id: str, graph_store: GraphStoreDep):
    graph_store.delete_edge(edge_id)


@router.get("/api/graph/edges/{edge_id}/change-info", response_model=EdgeChangeInfo)
async def get_edge_change_info(edge_id: str, graph_store: GraphStoreDep):
    return graph_store.get_edge_change_info(edge_id)


@router.get("/api/graph/orphans", response_model=OrphanReport)
async def get_orphans(graph_store: GraphStoreDep):
    """Nodes no diagram shows and edges whose endpoints are gone."""
    return OrphanReport(
        nodes=graph_store.get_orphaned_nodes(),
        edges=graph_store.get_orphaned_edges(),
    )


@router.post("/api/graph/orphans/cleanup", response_model=CleanupResult)
async def cleanup_orphans(graph_store: GraphStoreDep):
    return CleanupResult(removed=graph_store.cleanup_orphaned_edges())
