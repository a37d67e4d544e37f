import pytest

from backend.src.models.legacy import SystemNode
from backend.src.services import timeline
from backend.src.services.errors import NotFoundError, OperationRejectedError


@pytest.fixture
def initial():
    node = SystemNode.model_validate({"id": "node-1", "data": {"label": "Payments"}})
    return timeline.create_initial_timeline(nodes=[node])


def test_create_initial_timeline_has_one_current_snapshot(initial) -> None:
    assert len(initial.snapshots) == 1
    assert initial.snapshots[0].label == "Current"
    assert initial.snapshot_order == [initial.current_snapshot_id]


def test_create_snapshot_copies_content_and_switches(initial) -> None:
    current = timeline.get_current_snapshot(initial)

    snapshot, updated = timeline.create_snapshot(initial, "Phase 2", nodes=current.nodes)

    assert updated.current_snapshot_id == snapshot.id
    assert updated.snapshot_order[-1] == snapshot.id
    assert snapshot.nodes[0].data.label == "Payments"
    assert len(initial.snapshots) == 1

    snapshot.nodes[0].data.label = "Changed"
    assert current.nodes[0].data.label == "Payments"


def test_create_snapshot_enforces_maximum(initial) -> None:
    state = initial
    for number in range(9):
        _, state = timeline.create_snapshot(state, f"Phase {number}")

    with pytest.raises(OperationRejectedError) as excinfo:
        timeline.create_snapshot(state, "One too many")

    assert "Maximum of 10 snapshots" in excinfo.value.message


def test_delete_current_snapshot_moves_to_previous(initial) -> None:
    first_id = initial.current_snapshot_id
    second, state = timeline.create_snapshot(initial, "Second")
    third, state = timeline.create_snapshot(state, "Third")

    state = timeline.delete_snapshot(state, third.id)

    assert state.current_snapshot_id == second.id
    assert state.snapshot_order == [first_id, second.id]


def test_delete_last_snapshot_is_rejected(initial) -> None:
    with pytest.raises(OperationRejectedError):
        timeline.delete_snapshot(initial, initial.current_snapshot_id)


def test_delete_unknown_snapshot_is_not_found(initial) -> None:
    _, state = timeline.create_snapshot(initial, "Second")

    with pytest.raises(NotFoundError):
        timeline.delete_snapshot(state, "snapshot-missing")


def test_switch_returns_copies(initial) -> None:
    content = timeline.switch_snapshot(initial, initial.current_snapshot_id)
    content.nodes[0].data.label = "Edited"

    assert initial.snapshots[0].nodes[0].data.label == "Payments"


def test_rename_and_metadata_updates(initial) -> None:
    snapshot_id = initial.current_snapshot_id

    renamed = timeline.rename_snapshot(initial, snapshot_id, "  Baseline ")
    dated = timeline.update_snapshot_metadata(renamed, snapshot_id, timestamp="Q3 2025")

    assert dated.snapshots[0].label == "Baseline"
    assert dated.snapshots[0].timestamp == "Q3 2025"
    assert dated.snapshots[0].description == ""
    with pytest.raises(ValueError):
        timeline.rename_snapshot(initial, snapshot_id, "   ")


def test_reorder_and_neighbours(initial) -> None:
    first_id = initial.current_snapshot_id
    second, state = timeline.create_snapshot(initial, "Second")

    assert timeline.get_next_snapshot(state, first_id).id == second.id
    assert timeline.get_previous_snapshot(state, first_id) is None
    assert timeline.is_last_snapshot(state, second.id)

    state = timeline.reorder_snapshots(state, [second.id, first_id])
    assert timeline.is_first_snapshot(state, second.id)
    assert [s.id for s in timeline.snapshots_in_order(state)] == [second.id, first_id]

    with pytest.raises(ValueError):
        timeline.reorder_snapshots(state, [second.id])
