import json

import pytest

from backend.src.models.diagram import CURRENT_SNAPSHOT_ID, SnapshotCreate, Viewport
from backend.src.models.graph import EdgeDraft, NodeDraft
from backend.src.models.migration import ValidationReport
from backend.src.services.diagram_store import DiagramStore
from backend.src.services.errors import (
    DuplicateNameError,
    FormatError,
    NotFoundError,
    OperationRejectedError,
    StorageError,
)


def test_create_diagram_writes_v3_document(diagrams: DiagramStore, store) -> None:
    diagrams.create_diagram("systems/Payments.bac4", diagram_type="container")

    raw = json.loads(store.read("systems/Payments.bac4"))
    assert raw["version"] == "3.0.0"
    assert raw["metadata"]["diagramName"] == "Payments"
    assert raw["metadata"]["diagramType"] == "container"
    assert raw["currentSnapshotId"] == CURRENT_SNAPSHOT_ID
    assert raw["snapshots"][0]["label"] == "Current State"
    assert raw["view"]["nodes"] == []


def test_create_diagram_validates_path_and_duplicates(diagrams: DiagramStore) -> None:
    diagrams.create_diagram("Context.bac4")

    with pytest.raises(DuplicateNameError):
        diagrams.create_diagram("Context.bac4")
    with pytest.raises(ValueError):
        diagrams.create_diagram("Context.json")
    with pytest.raises(ValueError):
        diagrams.create_diagram("Other.bac4", diagram_type="wardley")


def test_get_or_create_diagram(diagrams: DiagramStore) -> None:
    created = diagrams.get_or_create_diagram("Context.bac4", name="Landscape")
    reopened = diagrams.get_or_create_diagram("Context.bac4", name="Ignored")

    assert created.metadata.diagram_name == "Landscape"
    assert reopened.metadata.diagram_name == "Landscape"


def test_read_diagram_rejects_older_generations(diagrams: DiagramStore, write_legacy) -> None:
    write_legacy("Legacy.bac4")

    with pytest.raises(FormatError) as excinfo:
        diagrams.read_diagram("Legacy.bac4")

    assert "migrate it to 3.0.0 first" in excinfo.value.message
    with pytest.raises(NotFoundError):
        diagrams.read_diagram("Missing.bac4")


def test_add_node_is_idempotent(diagrams: DiagramStore, make_system) -> None:
    node = make_system("Payments")
    diagrams.create_diagram("Context.bac4")

    diagrams.add_node_to_diagram("Context.bac4", node.id, 10, 20)
    diagram = diagrams.add_node_to_diagram("Context.bac4", node.id, 99, 99)

    assert diagram.view.nodes == [node.id]
    assert diagram.view.layout[node.id].x == 10
    assert diagram.current_snapshot().layout[node.id].y == 20


def test_add_node_enforces_diagram_type(diagrams: DiagramStore, graph_store) -> None:
    container = graph_store.create_node(NodeDraft(type="container", label="API"))
    diagrams.create_diagram("Context.bac4")

    with pytest.raises(OperationRejectedError):
        diagrams.add_node_to_diagram("Context.bac4", container.id)
    with pytest.raises(NotFoundError):
        diagrams.add_node_to_diagram("Context.bac4", "node-missing")

    assert diagrams.read_diagram("Context.bac4").view.nodes == []


def test_remove_node_drops_it_from_every_snapshot(
    diagrams: DiagramStore, snapshots, make_system
) -> None:
    node = make_system("Payments")
    diagrams.create_diagram("Context.bac4")
    diagrams.add_node_to_diagram("Context.bac4", node.id)
    snapshots.create_snapshot("Context.bac4", SnapshotCreate(label="Later"))

    diagram = diagrams.remove_node_from_diagram("Context.bac4", node.id)

    assert diagram.view.nodes == []
    assert all(node.id not in snapshot.layout for snapshot in diagram.snapshots)
    with pytest.raises(NotFoundError):
        diagrams.remove_node_from_diagram("Context.bac4", node.id)


def test_update_node_layout_keeps_size(diagrams: DiagramStore, make_system) -> None:
    node = make_system("Payments")
    diagrams.create_diagram("Context.bac4")
    diagrams.add_node_to_diagram("Context.bac4", node.id)
    diagrams.update_node_layout("Context.bac4", node.id, 1, 2, width=300, height=150)

    entry = diagrams.update_node_layout("Context.bac4", node.id, 5, 6)

    assert (entry.x, entry.y, entry.width, entry.height) == (5, 6, 300, 150)
    assert diagrams.read_diagram("Context.bac4").view.layout[node.id].x == 5
    with pytest.raises(NotFoundError):
        diagrams.update_node_layout("Context.bac4", "node-missing", 0, 0)


def test_viewport_and_type_updates(diagrams: DiagramStore) -> None:
    diagrams.create_diagram("Context.bac4")

    diagrams.update_viewport("Context.bac4", Viewport(x=10, y=20, zoom=1.5))
    diagrams.update_diagram_type("Context.bac4", "graph")

    diagram = diagrams.read_diagram("Context.bac4")
    assert diagram.view.viewport.zoom == 1.5
    assert diagram.metadata.diagram_type == "graph"


def test_hydrate_merges_graph_properties(diagrams: DiagramStore, graph_store, make_system) -> None:
    a = make_system("API")
    b = make_system("DB")
    c = make_system("Elsewhere")
    graph_store.create_edge(EdgeDraft(source=a.id, target=b.id, label="reads"))
    graph_store.create_edge(EdgeDraft(source=a.id, target=c.id))
    diagrams.create_diagram("Context.bac4")
    diagrams.add_node_to_diagram("Context.bac4", a.id, 0, 0)
    diagrams.add_node_to_diagram("Context.bac4", b.id, 300, 0)

    hydrated = diagrams.hydrate("Context.bac4")

    assert [(node.label, node.x) for node in hydrated.nodes] == [("API", 0), ("DB", 300)]
    assert [edge.label for edge in hydrated.edges] == ["reads"]
    assert hydrated.snapshot_label == "Current State"


def test_dehydrate_writes_label_and_position_changes(
    diagrams: DiagramStore, graph_store, make_system
) -> None:
    node = make_system("API")
    diagrams.create_diagram("Context.bac4")
    diagrams.add_node_to_diagram("Context.bac4", node.id, 0, 0)
    hydrated = diagrams.hydrate("Context.bac4")

    hydrated.nodes[0].label = "Gateway"
    hydrated.nodes[0].x = 120
    diagrams.dehydrate("Context.bac4", hydrated)

    assert graph_store.get_node(node.id).label == "Gateway"
    assert diagrams.read_diagram("Context.bac4").current_snapshot().layout[node.id].x == 120


def test_dehydrate_rejects_duplicate_labels(diagrams: DiagramStore, graph_store, make_system) -> None:
    a = make_system("API")
    make_system("DB")
    diagrams.create_diagram("Context.bac4")
    diagrams.add_node_to_diagram("Context.bac4", a.id)
    hydrated = diagrams.hydrate("Context.bac4")

    hydrated.nodes[0].label = "DB"

    with pytest.raises(DuplicateNameError):
        diagrams.dehydrate("Context.bac4", hydrated)
    assert graph_store.get_node(a.id).label == "API"


def test_dehydrate_against_unknown_snapshot_leaves_graph_unchanged(
    diagrams: DiagramStore, graph_store, make_system
) -> None:
    node = make_system("Alpha")
    diagrams.create_diagram("D.bac4")
    diagrams.add_node_to_diagram("D.bac4", node.id)
    hydrated = diagrams.hydrate("D.bac4")
    hydrated.nodes[0].label = "Renamed"
    hydrated.snapshot_id = "gone"

    with pytest.raises(NotFoundError):
        diagrams.dehydrate("D.bac4", hydrated)
    assert graph_store.get_node(node.id).label == "Alpha"


def test_dehydrate_restores_graph_when_diagram_write_fails(
    diagrams: DiagramStore, graph_store, make_system, monkeypatch
) -> None:
    node = make_system("Alpha")
    diagrams.create_diagram("D.bac4")
    diagrams.add_node_to_diagram("D.bac4", node.id, 0, 0)
    hydrated = diagrams.hydrate("D.bac4")
    hydrated.nodes[0].label = "Renamed"
    hydrated.nodes[0].x = 500

    def failing_write(path, diagram):
        raise StorageError(f"Disk full: {path}")

    monkeypatch.setattr(diagrams, "write_diagram", failing_write)
    with pytest.raises(StorageError):
        diagrams.dehydrate("D.bac4", hydrated)

    assert graph_store.get_node(node.id).label == "Alpha"
    assert diagrams.read_diagram("D.bac4").current_snapshot().layout[node.id].x == 0


def test_scheduled_save_is_written_on_flush(store, graph_store, config) -> None:
    diagrams = DiagramStore(store, graph_store, config.model_copy(update={"autosave_delay_seconds": 60}))
    diagrams.create_diagram("Context.bac4")
    diagram = diagrams.read_diagram("Context.bac4")
    diagram.metadata.diagram_name = "Renamed"

    diagrams.schedule_save("Context.bac4", diagram)
    assert diagrams.pending_saves() == ["Context.bac4"]
    diagrams.flush()

    assert diagrams.pending_saves() == []
    assert diagrams.read_diagram("Context.bac4").metadata.diagram_name == "Renamed"


def test_remove_node_from_all_diagrams(diagrams: DiagramStore, make_system) -> None:
    node = make_system("Payments")
    for path in ("A.bac4", "B.bac4"):
        diagrams.create_diagram(path)
        diagrams.add_node_to_diagram(path, node.id)

    report = diagrams.remove_node_from_all_diagrams(node.id)

    assert report.updated == ["A.bac4", "B.bac4"]
    assert report.succeeded
    assert diagrams.get_diagrams_using_node(node.id) == []


def test_get_all_diagrams_skips_other_generations(diagrams: DiagramStore, write_legacy) -> None:
    diagrams.create_diagram("Context.bac4")
    write_legacy("Legacy.bac4")

    summaries = diagrams.get_all_diagrams()

    assert [summary.path for summary in summaries] == ["Context.bac4"]
    assert summaries[0].snapshot_count == 1


def test_annotations_lifecycle(diagrams: DiagramStore) -> None:
    diagrams.create_diagram("Context.bac4")

    note = diagrams.add_annotation("Context.bac4", "comment", 10, 10, content="Check this")
    updated = diagrams.update_annotation("Context.bac4", note.id, content="Checked")

    assert updated.content == "Checked"
    assert updated.position.x == 10
    with pytest.raises(ValueError):
        diagrams.update_annotation("Context.bac4", note.id, created="yesterday")

    diagrams.remove_annotation("Context.bac4", note.id)
    assert diagrams.read_diagram("Context.bac4").annotations == []
    with pytest.raises(NotFoundError):
        diagrams.remove_annotation("Context.bac4", note.id)


def test_validate_diagram_hands_hydrated_graph_to_validator(diagrams, make_system) -> None:
    diagrams.create_diagram("Context.bac4")
    payments = make_system("Payments")
    diagrams.add_node_to_diagram("Context.bac4", payments.id, 10, 20)
    seen = {}

    def validator(nodes, edges, diagram_type):
        seen["labels"] = [node.label for node in nodes]
        seen["diagram_type"] = diagram_type
        return ValidationReport(valid=False, issues=["no containers"])

    report = diagrams.validate_diagram("Context.bac4", validator)

    assert report.valid is False
    assert report.issues == ["no containers"]
    assert seen == {"labels": ["Payments"], "diagram_type": "context"}
