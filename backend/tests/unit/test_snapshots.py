import pytest

from backend.src.models.diagram import (
    CURRENT_SNAPSHOT_ID,
    LayoutEntry,
    LocalEdgeDraft,
    LocalNodeDraft,
    SnapshotCreate,
)
from backend.src.services.errors import (
    DanglingReferenceError,
    DuplicateNameError,
    NotFoundError,
    OperationRejectedError,
    StorageError,
)

PATH = "Context.bac4"


@pytest.fixture
def context_diagram(diagrams, make_system):
    """A context diagram showing node-1..node-5; node-6..node-8 exist in the graph only."""
    for number in range(1, 9):
        make_system(f"System {number}", f"node-{number}")
    diagrams.create_diagram(PATH)
    for number in range(1, 6):
        diagrams.add_node_to_diagram(PATH, f"node-{number}", number * 100, number * 50)
    return PATH


def test_snapshots_keep_independent_node_sets(diagrams, snapshots, context_diagram) -> None:
    hydrated = diagrams.hydrate(context_diagram)
    assert len(hydrated.nodes) == 5
    assert (hydrated.nodes[2].x, hydrated.nodes[2].y) == (300, 150)

    first = snapshots.create_snapshot(context_diagram, SnapshotCreate(label="Snapshot 1"))

    diagram = diagrams.read_diagram(context_diagram)
    assert len(diagram.snapshots) == 2
    assert diagram.current_snapshot_id == CURRENT_SNAPSHOT_ID

    for number in range(6, 9):
        diagrams.add_node_to_diagram(context_diagram, f"node-{number}")

    assert snapshots.count_nodes(context_diagram, CURRENT_SNAPSHOT_ID) == 8
    assert snapshots.count_nodes(context_diagram, first.id) == 5
    assert len(diagrams.hydrate(context_diagram, first.id).nodes) == 5

    snapshots.delete_snapshot(context_diagram, first.id)
    assert len(diagrams.read_diagram(context_diagram).snapshots) == 1

    with pytest.raises(OperationRejectedError) as excinfo:
        snapshots.delete_snapshot(context_diagram, CURRENT_SNAPSHOT_ID)
    assert excinfo.value.message == "Cannot delete last snapshot"


def test_current_snapshot_cannot_be_deleted(snapshots, context_diagram) -> None:
    snapshots.create_snapshot(context_diagram, SnapshotCreate(label="Later"))

    with pytest.raises(OperationRejectedError) as excinfo:
        snapshots.delete_snapshot(context_diagram, CURRENT_SNAPSHOT_ID)

    assert excinfo.value.message == "Cannot delete current snapshot. Switch to another first."


def test_switch_then_delete_previous_current(diagrams, snapshots, context_diagram) -> None:
    later = snapshots.create_snapshot(context_diagram, SnapshotCreate(label="Later"))

    snapshots.switch_snapshot(context_diagram, later.id)
    snapshots.delete_snapshot(context_diagram, CURRENT_SNAPSHOT_ID)

    diagram = diagrams.read_diagram(context_diagram)
    assert diagram.current_snapshot_id == later.id
    assert [s.id for s in diagram.snapshots] == [later.id]
    assert diagram.snapshots[0].is_current


def test_layout_edits_do_not_leak_between_snapshots(diagrams, snapshots, context_diagram) -> None:
    later = snapshots.create_snapshot(context_diagram, SnapshotCreate(label="Later"))

    snapshots.update_snapshot_layout(
        context_diagram, later.id, {"node-1": LayoutEntry(x=999, y=999)}
    )

    assert snapshots.get_snapshot(context_diagram, later.id).layout["node-1"].x == 999
    assert snapshots.get_current_snapshot(context_diagram).layout["node-1"].x == 100
    with pytest.raises(DanglingReferenceError):
        snapshots.update_snapshot_layout(
            context_diagram, later.id, {"node-7": LayoutEntry(x=0, y=0)}
        )


def test_moving_nodes_is_not_a_change(diagrams, snapshots, context_diagram) -> None:
    later = snapshots.create_snapshot(context_diagram, SnapshotCreate(label="Later"))
    snapshots.update_snapshot_layout(context_diagram, later.id, {"node-1": LayoutEntry(x=1, y=1)})
    snapshots.add_local_node(context_diagram, later.id, LocalNodeDraft(type="system", label="Fraud Check"))

    comparison = diagrams.compare_snapshots(context_diagram, CURRENT_SNAPSHOT_ID, later.id)

    assert len(comparison.changes.added_nodes) == 1
    assert comparison.changes.modified_nodes == []
    assert "node-1" in comparison.changes.unchanged_nodes
    assert comparison.summary.splitlines() == [
        'Changes from "Current State" to "Later":',
        "",
        "- Added 1 node(s)",
    ]


def test_rename_snapshot(snapshots, context_diagram) -> None:
    renamed = snapshots.rename_snapshot(context_diagram, CURRENT_SNAPSHOT_ID, "  Today ")

    assert renamed.label == "Today"
    with pytest.raises(ValueError):
        snapshots.rename_snapshot(context_diagram, CURRENT_SNAPSHOT_ID, " ")
    with pytest.raises(NotFoundError):
        snapshots.rename_snapshot(context_diagram, "snapshot-missing", "X")


def test_empty_snapshot_label_is_rejected() -> None:
    with pytest.raises(ValueError):
        SnapshotCreate(label="   ")


def test_local_nodes_stay_in_their_snapshot(diagrams, snapshots, context_diagram) -> None:
    later = snapshots.create_snapshot(context_diagram, SnapshotCreate(label="Later"))

    local = snapshots.add_local_node(
        context_diagram, later.id, LocalNodeDraft(type="system", label="Fraud Check")
    )

    assert local.id.startswith("local-node-")
    assert local.style.color == "#1168BD"
    stored = snapshots.get_snapshot(context_diagram, later.id)
    assert stored.layout[local.id].x == 250
    assert local.id not in snapshots.get_current_snapshot(context_diagram).local_nodes
    hydrated = diagrams.hydrate(context_diagram, later.id)
    assert [node.is_local for node in hydrated.nodes].count(True) == 1


def test_local_node_labels_are_checked(snapshots, context_diagram) -> None:
    with pytest.raises(DuplicateNameError):
        snapshots.add_local_node(
            context_diagram, CURRENT_SNAPSHOT_ID, LocalNodeDraft(type="system", label="System 1")
        )

    snapshots.add_local_node(
        context_diagram, CURRENT_SNAPSHOT_ID, LocalNodeDraft(type="system", label="Fraud Check")
    )
    with pytest.raises(DuplicateNameError):
        snapshots.add_local_node(
            context_diagram, CURRENT_SNAPSHOT_ID, LocalNodeDraft(type="system", label="Fraud Check")
        )


def test_local_edges_need_endpoints_in_snapshot(snapshots, context_diagram) -> None:
    local = snapshots.add_local_node(
        context_diagram, CURRENT_SNAPSHOT_ID, LocalNodeDraft(type="system", label="Fraud Check")
    )

    edge = snapshots.add_local_edge(
        context_diagram, CURRENT_SNAPSHOT_ID, LocalEdgeDraft(source=local.id, target="node-1")
    )
    assert edge.id.startswith("local-edge-")

    with pytest.raises(DanglingReferenceError):
        snapshots.add_local_edge(
            context_diagram, CURRENT_SNAPSHOT_ID, LocalEdgeDraft(source=local.id, target="node-7")
        )

    snapshots.remove_local_node(context_diagram, CURRENT_SNAPSHOT_ID, local.id)
    current = snapshots.get_current_snapshot(context_diagram)
    assert current.local_nodes == {}
    assert current.local_edges == []


def test_promote_local_node_to_global(diagrams, snapshots, graph_store, context_diagram) -> None:
    local = snapshots.add_local_node(
        context_diagram,
        CURRENT_SNAPSHOT_ID,
        LocalNodeDraft(type="system", label="Fraud Check", x=40, y=60),
    )
    edge = snapshots.add_local_edge(
        context_diagram, CURRENT_SNAPSHOT_ID, LocalEdgeDraft(source="node-1", target=local.id)
    )

    node = snapshots.promote_node_to_global(context_diagram, CURRENT_SNAPSHOT_ID, local.id)

    assert node.label == "Fraud Check"
    assert graph_store.get_node(node.id) is not None
    diagram = diagrams.read_diagram(context_diagram)
    current = diagram.current_snapshot()
    assert node.id in diagram.view.nodes
    assert current.local_nodes == {}
    assert (current.layout[node.id].x, current.layout[node.id].y) == (40, 60)
    assert local.id not in current.layout
    rewritten = next(e for e in current.local_edges if e.id == edge.id)
    assert rewritten.target == node.id


def test_failed_promotion_removes_new_global_node(
    monkeypatch, diagrams, snapshots, graph_store, context_diagram
) -> None:
    local = snapshots.add_local_node(
        context_diagram, CURRENT_SNAPSHOT_ID, LocalNodeDraft(type="system", label="Fraud Check")
    )

    def failing_write(path, diagram):
        raise StorageError(f"Failed to write {path}: disk full")

    monkeypatch.setattr(diagrams, "write_diagram", failing_write)

    with pytest.raises(StorageError):
        snapshots.promote_node_to_global(context_diagram, CURRENT_SNAPSHOT_ID, local.id)

    assert graph_store.check_name_uniqueness("Fraud Check").is_unique
    assert local.id in snapshots.get_current_snapshot(context_diagram).local_nodes


def test_promote_unknown_local_node(snapshots, context_diagram) -> None:
    with pytest.raises(NotFoundError):
        snapshots.promote_node_to_global(context_diagram, CURRENT_SNAPSHOT_ID, "local-node-missing")
