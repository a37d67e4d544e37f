"""Snapshot operations for v1.0.0 timeline documents.

Every function is pure: it takes a :class:`Timeline` and returns a new one,
leaving the input untouched. Unlike v3 diagrams, creating a snapshot here
switches to it, which is how that generation behaved.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from ..models.legacy import (
    DEFAULT_TIMELINE_LABEL,
    MAX_TIMELINE_SNAPSHOTS,
    CanvasEdge,
    Timeline,
    TimelineSnapshot,
)
from .errors import NotFoundError, OperationRejectedError
from .ids import generate_id, utcnow_iso

logger = logging.getLogger(__name__)


class SnapshotContent(NamedTuple):
    nodes: List[Any]
    edges: List[CanvasEdge]
    annotations: List[Any]


def _copy(timeline: Timeline) -> Timeline:
    return timeline.model_copy(deep=True)


def _index_of(timeline: Timeline, snapshot_id: str) -> int:
    for index, snapshot in enumerate(timeline.snapshots):
        if snapshot.id == snapshot_id:
            return index
    raise NotFoundError(f"Snapshot not found: {snapshot_id}", {"snapshot_id": snapshot_id})


def create_snapshot(
    timeline: Timeline,
    label: str,
    nodes: Sequence[Any] = (),
    edges: Sequence[CanvasEdge] = (),
    annotations: Sequence[Any] = (),
    timestamp: Optional[str] = None,
    description: str = "",
) -> tuple[TimelineSnapshot, Timeline]:
    """Append a snapshot holding copies of ``nodes``/``edges`` and make it current."""
    if len(timeline.snapshots) >= MAX_TIMELINE_SNAPSHOTS:
        raise OperationRejectedError(
            f"Cannot create snapshot: Maximum of {MAX_TIMELINE_SNAPSHOTS} snapshots per diagram",
            {"limit": MAX_TIMELINE_SNAPSHOTS},
        )
    snapshot = TimelineSnapshot.model_validate(
        {
            "id": generate_id("snapshot"),
            "label": label,
            "timestamp": timestamp,
            "description": description or "",
            "createdAt": utcnow_iso(),
            "nodes": [_dump(node) for node in nodes],
            "edges": [_dump(edge) for edge in edges],
            "annotations": [_dump(annotation) for annotation in annotations],
        }
    )
    updated = _copy(timeline)
    updated.snapshots.append(snapshot)
    updated.snapshot_order.append(snapshot.id)
    updated.current_snapshot_id = snapshot.id
    logger.info(f'Created snapshot "{snapshot.label}" ({snapshot.id})')
    return snapshot, updated


def _dump(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(by_alias=True, exclude_none=True)
    return value


def switch_snapshot(timeline: Timeline, snapshot_id: str) -> SnapshotContent:
    """Copies of the nodes, edges and annotations stored in ``snapshot_id``."""
    snapshot = timeline.snapshots[_index_of(timeline, snapshot_id)].model_copy(deep=True)
    logger.info(f'Switched to snapshot "{snapshot.label}" ({snapshot.id})')
    return SnapshotContent(snapshot.nodes, snapshot.edges, snapshot.annotations)


def delete_snapshot(timeline: Timeline, snapshot_id: str) -> Timeline:
    if len(timeline.snapshots) == 1:
        raise OperationRejectedError(
            "Cannot delete the last snapshot", {"snapshot_id": snapshot_id}
        )
    _index_of(timeline, snapshot_id)

    updated = _copy(timeline)
    updated.snapshots = [s for s in updated.snapshots if s.id != snapshot_id]
    updated.snapshot_order = [i for i in updated.snapshot_order if i != snapshot_id]

    if timeline.current_snapshot_id == snapshot_id:
        order = timeline.snapshot_order
        position = order.index(snapshot_id) if snapshot_id in order else 0
        if position > 0:
            updated.current_snapshot_id = order[position - 1]
        elif updated.snapshot_order:
            updated.current_snapshot_id = updated.snapshot_order[0]
        else:
            updated.current_snapshot_id = updated.snapshots[0].id
    logger.info(f"Deleted snapshot {snapshot_id}")
    return updated


def rename_snapshot(timeline: Timeline, snapshot_id: str, label: str) -> Timeline:
    cleaned = (label or "").strip()
    if not cleaned:
        raise ValueError("Snapshot label cannot be empty")
    updated = _copy(timeline)
    updated.snapshots[_index_of(updated, snapshot_id)].label = cleaned
    return updated


def reorder_snapshots(timeline: Timeline, new_order: Sequence[str]) -> Timeline:
    current_ids = set(timeline.snapshot_order)
    new_ids = set(new_order)
    if len(current_ids) != len(new_ids):
        raise ValueError("New order must contain all snapshot IDs")
    for snapshot_id in timeline.snapshot_order:
        if snapshot_id not in new_ids:
            raise ValueError(f"Missing snapshot ID in new order: {snapshot_id}")
    updated = _copy(timeline)
    updated.snapshot_order = list(new_order)
    return updated


def _neighbour(timeline: Timeline, current_id: str, step: int) -> Optional[TimelineSnapshot]:
    order = timeline.snapshot_order
    if current_id not in order:
        logger.warning(f"Current snapshot not found in order: {current_id}")
        return None
    position = order.index(current_id) + step
    if position < 0 or position >= len(order):
        return None
    return get_snapshot_by_id(timeline, order[position])


def get_next_snapshot(timeline: Timeline, current_id: str) -> Optional[TimelineSnapshot]:
    return _neighbour(timeline, current_id, 1)


def get_previous_snapshot(timeline: Timeline, current_id: str) -> Optional[TimelineSnapshot]:
    return _neighbour(timeline, current_id, -1)


def update_snapshot_metadata(
    timeline: Timeline,
    snapshot_id: str,
    timestamp: Optional[str] = None,
    description: Optional[str] = None,
) -> Timeline:
    """Set ``timestamp`` and/or ``description``; ``None`` leaves a field as it is."""
    updated = _copy(timeline)
    snapshot = updated.snapshots[_index_of(updated, snapshot_id)]
    changes: Dict[str, Any] = {}
    if timestamp is not None:
        changes["timestamp"] = timestamp
    if description is not None:
        changes["description"] = description
    for name, value in changes.items():
        setattr(snapshot, name, value)
    return updated


def create_initial_timeline(
    nodes: Sequence[Any] = (),
    edges: Sequence[CanvasEdge] = (),
    label: str = DEFAULT_TIMELINE_LABEL,
) -> Timeline:
    snapshot = TimelineSnapshot.model_validate(
        {
            "id": generate_id("snapshot"),
            "label": label,
            "timestamp": None,
            "description": "",
            "createdAt": utcnow_iso(),
            "nodes": [_dump(node) for node in nodes],
            "edges": [_dump(edge) for edge in edges],
            "annotations": [],
        }
    )
    logger.debug(f'Created initial timeline with snapshot "{label}"')
    return Timeline(
        snapshots=[snapshot],
        current_snapshot_id=snapshot.id,
        snapshot_order=[snapshot.id],
    )


def get_current_snapshot(timeline: Timeline) -> TimelineSnapshot:
    snapshot = get_snapshot_by_id(timeline, timeline.current_snapshot_id)
    if snapshot is None:
        raise NotFoundError(
            f"Current snapshot not found: {timeline.current_snapshot_id}",
            {"snapshot_id": timeline.current_snapshot_id},
        )
    return snapshot


def is_first_snapshot(timeline: Timeline, snapshot_id: str) -> bool:
    return bool(timeline.snapshot_order) and timeline.snapshot_order[0] == snapshot_id


def is_last_snapshot(timeline: Timeline, snapshot_id: str) -> bool:
    return bool(timeline.snapshot_order) and timeline.snapshot_order[-1] == snapshot_id


def get_snapshot_by_id(timeline: Timeline, snapshot_id: str) -> Optional[TimelineSnapshot]:
    for snapshot in timeline.snapshots:
        if snapshot.id == snapshot_id:
            return snapshot
    return None


def snapshots_in_order(timeline: Timeline) -> List[TimelineSnapshot]:
    by_id = {snapshot.id: snapshot for snapshot in timeline.snapshots}
    return [by_id[i] for i in timeline.snapshot_order if i in by_id]


__all__ = [
    "SnapshotContent",
    "create_snapshot",
    "switch_snapshot",
    "delete_snapshot",
    "rename_snapshot",
    "reorder_snapshots",
    "get_next_snapshot",
    "get_previous_snapshot",
    "update_snapshot_metadata",
    "create_initial_timeline",
    "get_current_snapshot",
    "is_first_snapshot",
    "is_last_snapshot",
    "get_snapshot_by_id",
    "snapshots_in_order",
]
