import json

import pytest

from backend.src.services.errors import (
    DanglingReferenceError,
    DuplicateNameError,
    NotFoundError,
)
from backend.src.services.file_store import write_json
from backend.src.services.navigation import DiagramLinks, sanitize_file_name, sibling_path


@pytest.fixture
def parent_with_node(diagrams, make_system):
    """A v3 context diagram showing one system node."""

    def _create(path: str, label: str):
        diagrams.create_diagram(path)
        node = make_system(label)
        diagrams.add_node_to_diagram(path, node.id, 0, 0)
        return node

    return _create


@pytest.mark.parametrize(
    "label,expected",
    [
        ("API Gateway (v2)", "API_Gateway_v2"),
        ("  Payments   Service ", "Payments_Service"),
        ("web-app", "web-app"),
        ("!!!", ""),
    ],
)
def test_sanitize_file_name(label, expected) -> None:
    assert sanitize_file_name(label) == expected


def test_link_adapters_cannot_skip_methods() -> None:
    with pytest.raises(TypeError):
        DiagramLinks("Context.bac4", None)


def test_sibling_path() -> None:
    assert sibling_path("Context.bac4", "Child.bac4") == "Child.bac4"
    assert sibling_path("systems/Context.bac4", "Child.bac4") == "systems/Child.bac4"


def test_create_child_diagram_beside_parent(navigation, diagrams, parent_with_node) -> None:
    node = parent_with_node("systems/Context.bac4", "API Gateway (v2)")

    child_path = navigation.create_child_diagram(
        "systems/Context.bac4", node.id, node.label, "context", "container"
    )

    assert child_path == "systems/API_Gateway_v2.bac4"
    child = diagrams.read_diagram(child_path)
    assert child.metadata.diagram_name == "API Gateway (v2)"
    assert child.metadata.diagram_type == "container"
    assert navigation.find_child_diagram("systems/Context.bac4", node.id) == child_path
    assert navigation.navigate_to_parent(child_path) == "systems/Context.bac4"


def test_create_child_reuses_existing_file(navigation, diagrams, parent_with_node) -> None:
    node = parent_with_node("Context.bac4", "Gateway")
    diagrams.create_diagram("Gateway.bac4", "Hand made", "container")

    child_path = navigation.create_child_diagram("Context.bac4", node.id, "Gateway", "context", "container")

    assert child_path == "Gateway.bac4"
    assert diagrams.read_diagram(child_path).metadata.diagram_name == "Hand made"
    assert navigation.find_child_diagram("Context.bac4", node.id) == "Gateway.bac4"


def test_create_child_with_suggested_name(navigation, parent_with_node) -> None:
    node = parent_with_node("Context.bac4", "Gateway")

    child_path = navigation.create_child_diagram(
        "Context.bac4", node.id, "Gateway", "context", "container", suggested_name="Edge"
    )

    assert child_path == "Edge.bac4"


def test_create_child_rejects_unusable_label(navigation, store, parent_with_node) -> None:
    node = parent_with_node("Context.bac4", "Gateway")

    with pytest.raises(ValueError):
        navigation.create_child_diagram("Context.bac4", node.id, "!!!", "context", "container")

    assert store.list_files() == ["BAC4/__graph__.json", "Context.bac4"]


def test_create_child_for_missing_parent(navigation) -> None:
    with pytest.raises(NotFoundError):
        navigation.create_child_diagram("Missing.bac4", "node-1", "Gateway", "context", "container")


def test_link_requires_node_in_view(navigation, diagrams, make_system) -> None:
    diagrams.create_diagram("Context.bac4")
    diagrams.create_diagram("Child.bac4")
    hidden = make_system("Hidden")

    with pytest.raises(NotFoundError):
        navigation.link_to_existing_diagram("Context.bac4", hidden.id, "Child.bac4")


def test_link_to_missing_child_is_rejected(navigation, graph_store, parent_with_node) -> None:
    node = parent_with_node("Context.bac4", "Gateway")

    with pytest.raises(DanglingReferenceError):
        navigation.link_to_existing_diagram("Context.bac4", node.id, "Nowhere.bac4")

    assert graph_store.get_child_diagram(node.id) is None


def test_unlink_node(navigation, diagrams, parent_with_node) -> None:
    node = parent_with_node("Context.bac4", "Gateway")
    diagrams.create_diagram("Child.bac4")
    navigation.link_to_existing_diagram("Context.bac4", node.id, "Child.bac4")

    assert navigation.unlink_node("Context.bac4", node.id) is True
    assert navigation.unlink_node("Context.bac4", node.id) is False
    assert navigation.find_child_diagram("Context.bac4", node.id) is None


def test_existing_link_describes_child(navigation, diagrams, parent_with_node) -> None:
    node = parent_with_node("Context.bac4", "Gateway")
    diagrams.create_diagram("Child.bac4", "Gateway internals", "container")
    navigation.link_to_existing_diagram("Context.bac4", node.id, "Child.bac4")

    entry = navigation.get_existing_link("Context.bac4", node.id)

    assert entry.file_path == "Child.bac4"
    assert entry.display_name == "Gateway internals"
    assert entry.type == "container"


def test_breadcrumbs_are_root_first(navigation, parent_with_node) -> None:
    top = parent_with_node("Landscape.bac4", "Bank")
    middle_path = navigation.create_child_diagram("Landscape.bac4", top.id, "Bank", "context", "container")

    crumbs = navigation.build_breadcrumbs(middle_path)

    assert [crumb.path for crumb in crumbs] == ["Landscape.bac4", "Bank.bac4"]
    assert crumbs[-1].label == "Bank"
    assert crumbs[-1].type == "container"


def test_breadcrumbs_stop_on_cycle(navigation, diagrams, parent_with_node) -> None:
    a = parent_with_node("A.bac4", "Alpha")
    b = parent_with_node("B.bac4", "Beta")
    navigation.link_to_existing_diagram("A.bac4", a.id, "B.bac4")
    navigation.link_to_existing_diagram("B.bac4", b.id, "A.bac4")

    crumbs = navigation.build_breadcrumbs("B.bac4")

    assert [crumb.path for crumb in crumbs] == ["A.bac4", "B.bac4"]


def test_root_diagram_has_no_parent(navigation, diagrams) -> None:
    diagrams.create_diagram("Context.bac4")

    assert navigation.navigate_to_parent("Context.bac4") is None
    assert [crumb.path for crumb in navigation.build_breadcrumbs("Context.bac4")] == ["Context.bac4"]


def test_relationship_index_is_a_fallback(navigation, store, diagrams) -> None:
    diagrams.create_diagram("Parent.bac4")
    diagrams.create_diagram("Child.bac4")
    write_json(
        store,
        "diagram-relationships.json",
        {
            "version": "1.0.0",
            "diagrams": [
                {"id": "d1", "filePath": "Parent.bac4", "displayName": "Parent", "type": "context"},
                {"id": "d2", "filePath": "Child.bac4", "displayName": "Child", "type": "container"},
            ],
            "relationships": [
                {"parentDiagramId": "d1", "childDiagramId": "d2", "parentNodeId": "node-1"}
            ],
        },
    )

    assert navigation.find_child_diagram("Parent.bac4", "node-1") == "Child.bac4"
    assert navigation.navigate_to_parent("Child.bac4") == "Parent.bac4"


def test_malformed_relationship_index_reads_as_empty(navigation, store, diagrams) -> None:
    diagrams.create_diagram("Parent.bac4")
    store.write("diagram-relationships.json", "[oops")

    assert navigation.find_child_diagram("Parent.bac4", "node-1") is None


def test_rename_updates_every_reference(navigation, store, diagrams, graph_store, parent_with_node, legacy_doc) -> None:
    node = parent_with_node("Parent.bac4", "Gateway")
    diagrams.create_diagram("Child.bac4")
    navigation.link_to_existing_diagram("Parent.bac4", node.id, "Child.bac4")
    legacy_doc["nodes"][0]["data"]["linkedDiagramPath"] = "Child.bac4"
    write_json(store, "Legacy.bac4", legacy_doc)

    report = navigation.rename_diagram("Child.bac4", "Renamed")

    assert report.new_path == "Renamed.bac4"
    assert report.succeeded
    assert report.updated == ["Legacy.bac4"]
    assert report.hierarchy_links_updated == 1
    assert not store.exists("Child.bac4")
    assert diagrams.read_diagram("Renamed.bac4").metadata.diagram_name == "Renamed"
    assert graph_store.get_child_diagram(node.id) == "Renamed.bac4"
    legacy = json.loads(store.read("Legacy.bac4"))
    assert legacy["nodes"][0]["data"]["linkedDiagramPath"] == "Renamed.bac4"


def test_rename_moves_graph_sibling(navigation, store, split_pair) -> None:
    node_file, graph_file = split_pair
    write_json(store, "Split.bac4", node_file)
    write_json(store, "Split.bac4-graph", graph_file)

    navigation.rename_diagram("Split.bac4", "Ledger")

    assert not store.exists("Split.bac4-graph")
    sibling = json.loads(store.read("Ledger.bac4-graph"))
    assert sibling["metadata"]["nodeFile"] == "Ledger.bac4"
    assert json.loads(store.read("Ledger.bac4"))["metadata"]["title"] == "Ledger"


def test_rename_onto_existing_file_is_rejected(navigation, diagrams) -> None:
    diagrams.create_diagram("One.bac4")
    diagrams.create_diagram("Two.bac4")

    with pytest.raises(DuplicateNameError):
        navigation.rename_diagram("One.bac4", "Two")


@pytest.mark.parametrize("name", ["a/b", "   "])
def test_rename_rejects_bad_names(navigation, diagrams, name) -> None:
    diagrams.create_diagram("One.bac4")

    with pytest.raises(ValueError):
        navigation.rename_diagram("One.bac4", name)


def test_rename_missing_file(navigation) -> None:
    with pytest.raises(NotFoundError):
        navigation.rename_diagram("Missing.bac4", "Other")


def test_diagrams_by_type_skip_unreadable_files(navigation, store, diagrams) -> None:
    diagrams.create_diagram("Context.bac4")
    diagrams.create_diagram("Containers.bac4", diagram_type="container")
    store.write("Broken.bac4", "{bad")

    found = navigation.get_diagrams_by_type("container")

    assert [entry.file_path for entry in found] == ["Containers.bac4"]


def test_update_diagram_type(navigation, diagrams) -> None:
    diagrams.create_diagram("Context.bac4")

    navigation.update_diagram_type("Context.bac4", "graph")

    assert diagrams.read_diagram("Context.bac4").metadata.diagram_type == "graph"
    with pytest.raises(ValueError):
        navigation.update_diagram_type("Context.bac4", "wardley")
