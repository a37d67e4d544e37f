import json

import pytest

from backend.src.models.graph import EdgeDraft, EdgePatch, NodeDraft, NodePatch
from backend.src.services.errors import (
    DanglingReferenceError,
    DuplicateNameError,
    FormatError,
    NotFoundError,
    OperationRejectedError,
)
from backend.src.services.graph_store import GraphStore


def test_ensure_graph_creates_document(graph_store: GraphStore, store) -> None:
    graph_store.ensure_graph()

    raw = json.loads(store.read("BAC4/__graph__.json"))
    assert raw["version"] == "3.0.0"
    assert raw["nodes"] == {}
    assert raw["relationships"] == {"edges": [], "hierarchy": []}


def test_create_node_applies_defaults(graph_store: GraphStore) -> None:
    node = graph_store.create_node(NodeDraft(type="system", label="  Payments  "))

    assert node.id.startswith("node-")
    assert node.label == "Payments"
    assert node.style.color == "#1168BD"
    assert graph_store.get_node(node.id).label == "Payments"


def test_labels_are_unique_across_the_graph(graph_store: GraphStore, make_system) -> None:
    make_system("Payments")

    check = graph_store.check_name_uniqueness("Payments")
    assert not check.is_unique
    assert check.existing_node.label == "Payments"
    assert check.usage_count == 0

    with pytest.raises(DuplicateNameError):
        graph_store.create_node(NodeDraft(type="person", label="Payments"))
    assert len(graph_store.get_all_nodes()) == 1


def test_label_check_is_exact_match(graph_store: GraphStore, make_system) -> None:
    make_system("Payments")

    assert graph_store.check_name_uniqueness("payments").is_unique
    assert graph_store.check_name_uniqueness("Payments API").is_unique


def test_explicit_ids_are_validated(graph_store: GraphStore, make_system) -> None:
    make_system("Payments", "node-1")

    with pytest.raises(DuplicateNameError):
        make_system("Ledger", "node-1")
    with pytest.raises(OperationRejectedError):
        make_system("Ledger", "local-node-1")


def test_update_node_checks_new_label(graph_store: GraphStore, make_system) -> None:
    payments = make_system("Payments")
    make_system("Ledger")

    with pytest.raises(DuplicateNameError):
        graph_store.update_node(payments.id, NodePatch(label="Ledger"))

    updated = graph_store.update_node(
        payments.id, NodePatch(label="Payments", technology="Python")
    )
    assert updated.technology == "Python"
    assert updated.label == "Payments"


def test_update_missing_node_is_not_found(graph_store: GraphStore) -> None:
    with pytest.raises(NotFoundError):
        graph_store.update_node("node-missing", NodePatch(label="X"))


def test_update_nodes_rejects_the_whole_batch(graph_store: GraphStore, make_system) -> None:
    payments = make_system("Payments")
    ledger = make_system("Ledger")

    with pytest.raises(DuplicateNameError):
        graph_store.update_nodes(
            {
                payments.id: NodePatch(technology="Python"),
                ledger.id: NodePatch(label="Payments"),
            }
        )

    assert graph_store.get_node(payments.id).technology is None
    assert graph_store.get_node(ledger.id).label == "Ledger"


def test_restore_nodes_undoes_a_batch(graph_store: GraphStore, make_system) -> None:
    payments = make_system("Payments")

    previous = graph_store.update_nodes({payments.id: NodePatch(label="Billing")})
    assert graph_store.get_node(payments.id).label == "Billing"

    graph_store.restore_nodes(previous)
    assert graph_store.get_node(payments.id).label == "Payments"


def test_create_edge_requires_both_endpoints(graph_store: GraphStore, make_system) -> None:
    payments = make_system("Payments")

    with pytest.raises(DanglingReferenceError) as excinfo:
        graph_store.create_edge(EdgeDraft(source=payments.id, target="node-missing"))

    assert excinfo.value.details["missing"] == ["node-missing"]
    assert graph_store.get_all_edges() == []


def test_edge_lookup_and_update(graph_store: GraphStore, make_system) -> None:
    a = make_system("A")
    b = make_system("B")
    c = make_system("C")
    edge = graph_store.create_edge(EdgeDraft(source=a.id, target=b.id, type="uses", label="calls"))

    assert graph_store.find_edge(a.id, b.id).id == edge.id
    assert graph_store.get_edges_for_nodes([a.id, b.id]) == [graph_store.get_edge(edge.id)]
    assert graph_store.get_edges_for_nodes([a.id, c.id]) == []

    updated = graph_store.update_edge(edge.id, EdgePatch(label="queries"))
    assert updated.label == "queries"
    assert updated.type == "uses"

    with pytest.raises(DanglingReferenceError):
        graph_store.update_edge(edge.id, EdgePatch(target="node-missing"))


def test_delete_node_cascades_edges_and_links(graph_store: GraphStore, make_system) -> None:
    a = make_system("A")
    b = make_system("B")
    c = make_system("C")
    graph_store.create_edge(EdgeDraft(source=a.id, target=b.id))
    kept = graph_store.create_edge(EdgeDraft(source=b.id, target=c.id))
    graph_store.set_child_diagram(a.id, "A.bac4")

    info = graph_store.delete_node(a.id)

    assert info.edge_count == 1
    assert graph_store.get_node(a.id) is None
    assert [edge.id for edge in graph_store.get_all_edges()] == [kept.id]
    assert graph_store.get_hierarchy() == []


def test_delete_node_reports_diagrams_using_it(
    graph_store: GraphStore, diagrams, make_system
) -> None:
    node = make_system("Payments")
    diagrams.create_diagram("Context.bac4")
    diagrams.add_node_to_diagram("Context.bac4", node.id)

    info = graph_store.get_node_deletion_info(node.id)

    assert info.diagram_count == 1
    assert info.diagrams == ["Context.bac4"]
    assert graph_store.get_node_usage(node.id).diagrams == ["Context.bac4"]
    assert graph_store.check_name_uniqueness("Payments").usage_count == 1


def test_orphaned_edges_round_trip(graph_store: GraphStore, make_system) -> None:
    a = make_system("A")
    b = make_system("B")
    edge = graph_store.create_edge(EdgeDraft(source=a.id, target=b.id))

    graph_store.delete_node(b.id, cascade=False)

    assert [orphan.id for orphan in graph_store.get_orphaned_edges()] == [edge.id]
    assert graph_store.cleanup_orphaned_edges() == 1
    assert graph_store.get_orphaned_edges() == []
    assert graph_store.get_all_edges() == []
    assert graph_store.cleanup_orphaned_edges() == 0


def test_orphaned_nodes_are_those_no_view_shows(
    graph_store: GraphStore, diagrams, make_system
) -> None:
    shown = make_system("Shown")
    hidden = make_system("Hidden")
    diagrams.create_diagram("Context.bac4")
    diagrams.add_node_to_diagram("Context.bac4", shown.id)

    assert [node.id for node in graph_store.get_orphaned_nodes()] == [hidden.id]


def test_search_and_filter_nodes(graph_store: GraphStore) -> None:
    graph_store.create_node(NodeDraft(type="system", label="Payments", technology="Kafka"))
    graph_store.create_node(NodeDraft(type="person", label="Customer"))

    assert [n.label for n in graph_store.search_nodes("kafka")] == ["Payments"]
    assert graph_store.search_nodes("  ") == []
    assert [n.label for n in graph_store.get_nodes_by_type("person")] == ["Customer"]
    assert sorted(graph_store.get_all_labels()) == ["Customer", "Payments"]


def test_hierarchy_links(graph_store: GraphStore, make_system) -> None:
    node = make_system("Payments")

    graph_store.set_child_diagram(node.id, "Payments.bac4")
    graph_store.set_child_diagram(node.id, "Payments v2.bac4")

    assert len(graph_store.get_hierarchy()) == 1
    assert graph_store.get_child_diagram(node.id) == "Payments v2.bac4"
    assert graph_store.replace_child_path("Payments v2.bac4", "Billing.bac4") == 1
    assert graph_store.find_parents_of("Billing.bac4") == [node.id]
    assert graph_store.remove_child_link(node.id)
    assert not graph_store.remove_child_link(node.id)

    with pytest.raises(NotFoundError):
        graph_store.set_child_diagram("node-missing", "X.bac4")


def test_failed_mutation_writes_nothing(graph_store: GraphStore, store, make_system) -> None:
    make_system("Payments")
    before = store.read_bytes("BAC4/__graph__.json")

    with pytest.raises(DuplicateNameError):
        make_system("Payments")

    assert store.read_bytes("BAC4/__graph__.json") == before


def test_cached_reads_see_own_writes(store, config) -> None:
    cached = GraphStore(store, config.model_copy(update={"graph_cache_ttl_seconds": 60}))

    cached.read_graph()
    node = cached.create_node(NodeDraft(type="system", label="Fresh"))

    assert cached.get_node(node.id) is not None


def test_wrong_document_at_graph_path(graph_store: GraphStore, store) -> None:
    store.write("BAC4/__graph__.json", json.dumps({"version": "3.0.0", "view": {}}))

    with pytest.raises(FormatError):
        graph_store.read_graph()
