"""Snapshot comparison: which nodes and edges were added, modified or removed.

A node counts as modified only when its label or color differs. Position is
ignored so dragging nodes around never shows up as a change. Edges are
compared by id only and have no modified state.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from ..models.changes import ChangeSet, ComparableEdge, ComparableNode, ComparableSnapshot

logger = logging.getLogger(__name__)


def _modified_nodes(before: List[ComparableNode], after: List[ComparableNode]) -> List[str]:
    before_by_id: Dict[str, ComparableNode] = {node.id: node for node in before}
    modified = []
    for node in after:
        previous = before_by_id.get(node.id)
        if previous is None:
            continue
        if previous.label != node.label or previous.color != node.color:
            modified.append(node.id)
    return modified


def compare(before: ComparableSnapshot, after: ComparableSnapshot) -> ChangeSet:
    before_nodes = {node.id for node in before.nodes}
    after_nodes = {node.id for node in after.nodes}
    before_edges = {edge.id for edge in before.edges}
    after_edges = {edge.id for edge in after.edges}

    modified = _modified_nodes(before.nodes, after.nodes)
    changes = ChangeSet(
        added_nodes=[node.id for node in after.nodes if node.id not in before_nodes],
        removed_nodes=[node.id for node in before.nodes if node.id not in after_nodes],
        modified_nodes=modified,
        unchanged_nodes=[
            node.id for node in after.nodes if node.id in before_nodes and node.id not in modified
        ],
        added_edges=[edge.id for edge in after.edges if edge.id not in before_edges],
        removed_edges=[edge.id for edge in before.edges if edge.id not in after_edges],
        unchanged_edges=[edge.id for edge in after.edges if edge.id in before_edges],
    )
    logger.debug(
        f"Detected changes - Added: {len(changes.added_nodes)} nodes, "
        f"{len(changes.added_edges)} edges | Modified: {len(changes.modified_nodes)} nodes | "
        f"Removed: {len(changes.removed_nodes)} nodes, {len(changes.removed_edges)} edges"
    )
    return changes


def count_changes(changes: ChangeSet) -> int:
    return (
        len(changes.added_nodes)
        + len(changes.modified_nodes)
        + len(changes.removed_nodes)
        + len(changes.added_edges)
        + len(changes.removed_edges)
    )


def has_changes(changes: ChangeSet) -> bool:
    return count_changes(changes) > 0


def summarize(changes: ChangeSet, before: ComparableSnapshot, after: ComparableSnapshot) -> str:
    lines = [f'Changes from "{before.label}" to "{after.label}":', ""]
    counted = (
        (changes.added_nodes, "Added", "node"),
        (changes.modified_nodes, "Modified", "node"),
        (changes.removed_nodes, "Removed", "node"),
        (changes.added_edges, "Added", "edge"),
        (changes.removed_edges, "Removed", "edge"),
    )
    for ids, verb, noun in counted:
        if ids:
            lines.append(f"- {verb} {len(ids)} {noun}(s)")
    if not has_changes(changes):
        lines.append("- No changes detected")
    return "\n".join(lines)


def _node_label(nodes: List[ComparableNode], node_id: str) -> str:
    for node in nodes:
        if node.id == node_id:
            return node.label or node_id
    return node_id


def _edge_lines(edge_ids: List[str], snapshot: ComparableSnapshot) -> List[str]:
    edges: Dict[str, ComparableEdge] = {edge.id: edge for edge in snapshot.edges}
    lines = []
    for edge_id in edge_ids:
        edge = edges.get(edge_id)
        if edge is None:
            continue
        source = _node_label(snapshot.nodes, edge.source)
        target = _node_label(snapshot.nodes, edge.target)
        lines.append(f"- {source} {edge.label or 'connected to'} {target}")
    return lines


def detailed_summary(
    changes: ChangeSet, before: ComparableSnapshot, after: ComparableSnapshot
) -> str:
    """Summary naming the nodes and relationships involved."""
    lines = [f'Detailed changes from "{before.label}" to "{after.label}":', ""]
    sections = (
        ("**Added Nodes:**", changes.added_nodes, after),
        ("**Modified Nodes:**", changes.modified_nodes, after),
        ("**Removed Nodes:**", changes.removed_nodes, before),
    )
    for heading, ids, snapshot in sections:
        if ids:
            lines.append(heading)
            lines += [f"- {_node_label(snapshot.nodes, node_id)}" for node_id in ids]
            lines.append("")
    if changes.added_edges:
        lines.append("**Added Relationships:**")
        lines += _edge_lines(changes.added_edges, after)
        lines.append("")
    if changes.removed_edges:
        lines.append("**Removed Relationships:**")
        lines += _edge_lines(changes.removed_edges, before)
        lines.append("")
    if not has_changes(changes):
        lines.append("No changes detected between snapshots.")
    return "\n".join(lines)


__all__ = ["compare", "count_changes", "has_changes", "summarize", "detailed_summary"]
