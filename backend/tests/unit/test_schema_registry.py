import pytest

from backend.src.models.legacy import ComponentNode, GenericNode, SystemNode
from backend.src.services.errors import FormatError
from backend.src.services.file_store import write_json
from backend.src.services.schema_registry import (
    DocumentVersion,
    decode_document,
    detect_version,
    is_at_least,
    load_document,
)


def timeline_document(version: str = "1.0.0") -> dict:
    return {
        "version": version,
        "metadata": {"diagramType": "context"},
        "timeline": {
            "snapshots": [{"id": "s1", "label": "Current", "nodes": [], "edges": []}],
            "currentSnapshotId": "s1",
            "snapshotOrder": ["s1"],
        },
    }


def test_detect_legacy_and_self_contained(legacy_doc) -> None:
    assert detect_version(legacy_doc) == DocumentVersion.LEGACY
    assert detect_version({**legacy_doc, "version": "0.6.0"}) == DocumentVersion.SELF_CONTAINED


@pytest.mark.parametrize("version", ["1.0.0", "2.0.0", "2.2.0"])
def test_detect_timeline_versions(version: str) -> None:
    assert detect_version(timeline_document(version)) == DocumentVersion.TIMELINE


def test_detect_split_pair() -> None:
    node_file = {"version": "2.5.1", "metadata": {}, "nodes": {}}
    graph_file = {"version": "2.5.0", "metadata": {"nodeFile": "A.bac4"}, "timeline": {}}

    assert detect_version(node_file) == DocumentVersion.SPLIT
    assert detect_version(graph_file) == DocumentVersion.SPLIT_GRAPH


def test_detect_global_diagram_and_graph() -> None:
    assert detect_version({"version": "3.0.0", "view": {}}) == DocumentVersion.GLOBAL
    graph = {"version": "3.0.0", "nodes": {}, "relationships": {}}
    assert detect_version(graph) == DocumentVersion.GRAPH


@pytest.mark.parametrize(
    "raw",
    [
        [],
        {"version": "9.9.9", "nodes": [], "edges": []},
        {"version": "3.0.0"},
        {"version": "1.0.0", "nodes": []},
        {"nodes": []},
    ],
)
def test_unrecognized_documents_are_rejected(raw) -> None:
    with pytest.raises(FormatError):
        detect_version(raw, "Odd.bac4")


def test_decode_canvas_nodes_by_type(legacy_doc) -> None:
    legacy_doc["nodes"].append({"id": "node-3", "type": "c4", "data": {"label": "Ledger"}})
    legacy_doc["nodes"].append({"id": "node-4", "type": "market", "data": {"label": "EU"}})

    loaded = decode_document(legacy_doc, "Context.bac4")
    kinds = [type(node) for node in loaded.document.nodes]

    assert kinds[0] is SystemNode
    assert kinds[2] is ComponentNode
    assert kinds[3] is GenericNode
    assert loaded.document.nodes[3].type == "market"


def test_decode_reports_malformed_document() -> None:
    raw = timeline_document()
    del raw["timeline"]["currentSnapshotId"]

    with pytest.raises(FormatError) as excinfo:
        decode_document(raw, "Broken.bac4")

    assert "Broken.bac4" in excinfo.value.message
    assert excinfo.value.details["errors"]


def test_load_document_reads_from_store(store, legacy_doc) -> None:
    write_json(store, "Context.bac4", legacy_doc)

    loaded = load_document(store, "Context.bac4")

    assert loaded.version == DocumentVersion.LEGACY
    assert loaded.raw == legacy_doc


def test_is_at_least_follows_upgrade_path() -> None:
    assert is_at_least(DocumentVersion.GLOBAL, DocumentVersion.SPLIT)
    assert not is_at_least(DocumentVersion.TIMELINE, DocumentVersion.SPLIT)
    with pytest.raises(ValueError):
        is_at_least(DocumentVersion.GRAPH, DocumentVersion.GLOBAL)
