from pathlib import Path

import pytest

from backend.src.models.graph import NodeDraft
from backend.src.services import config as config_module
from backend.src.services.config import AppConfig
from backend.src.services.diagram_store import DiagramStore
from backend.src.services.file_store import VaultFileStore, write_json
from backend.src.services.graph_store import GraphStore
from backend.src.services.migration import MigrationService
from backend.src.services.navigation import NavigationService
from backend.src.services.snapshots import SnapshotService


@pytest.fixture(autouse=True)
def restore_config_cache(monkeypatch, tmp_path: Path):
    """
    Point the cached configuration at a throwaway vault for every test.
    """
    monkeypatch.setenv("VAULT_PATH", str(tmp_path / "env-vault"))
    config_module.reload_config()
    yield
    config_module.get_config.cache_clear()


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        vault_path=tmp_path / "vault",
        graph_cache_ttl_seconds=0,
        autosave_delay_seconds=0.05,
    )


@pytest.fixture
def store(config: AppConfig) -> VaultFileStore:
    return VaultFileStore(config.vault_path)


@pytest.fixture
def graph_store(store: VaultFileStore, config: AppConfig) -> GraphStore:
    return GraphStore(store, config)


@pytest.fixture
def diagrams(store: VaultFileStore, graph_store: GraphStore, config: AppConfig) -> DiagramStore:
    return DiagramStore(store, graph_store, config)


@pytest.fixture
def snapshots(diagrams: DiagramStore) -> SnapshotService:
    return SnapshotService(diagrams)


@pytest.fixture
def navigation(store: VaultFileStore, diagrams: DiagramStore, config: AppConfig) -> NavigationService:
    return NavigationService(store, diagrams, config)


@pytest.fixture
def migration(store: VaultFileStore, graph_store: GraphStore, config: AppConfig) -> MigrationService:
    return MigrationService(store, config, graph_store)


@pytest.fixture
def make_system(graph_store: GraphStore):
    """Create a global system node by label."""

    def _make(label: str, node_id: str | None = None):
        return graph_store.create_node(NodeDraft(id=node_id, type="system", label=label))

    return _make


def legacy_document() -> dict:
    """A pre-1.0 document: flat canvas nodes and edges, no version."""
    return {
        "nodes": [
            {
                "id": "node-1",
                "type": "system",
                "position": {"x": 10, "y": 20},
                "data": {"label": "Payments", "description": "Takes money"},
            },
            {
                "id": "node-2",
                "type": "person",
                "position": {"x": 300, "y": 20},
                "data": {"label": "Customer"},
            },
        ],
        "edges": [
            {
                "id": "edge-1",
                "source": "node-2",
                "target": "node-1",
                "data": {"label": "pays with"},
            }
        ],
    }


@pytest.fixture
def legacy_doc() -> dict:
    return legacy_document()


@pytest.fixture
def write_legacy(store: VaultFileStore):
    """Write the legacy fixture document and return its exact bytes."""

    def _write(path: str) -> bytes:
        write_json(store, path, legacy_document())
        return store.read_bytes(path)

    return _write


def split_documents() -> tuple[dict, dict]:
    """A v2.5.1 node file and its ``.bac4-graph`` sibling for ``Split.bac4``."""
    node_file = {
        "version": "2.5.1",
        "metadata": {
            "id": "context-1",
            "title": "Split",
            "layer": "context",
            "diagramType": "context",
            "created": "2025-01-01T00:00:00.000+00:00",
            "updated": "2025-01-01T00:00:00.000+00:00",
        },
        "nodes": {
            "node-1": {"id": "node-1", "type": "system", "properties": {"label": "Ledger"}},
            "node-2": {
                "id": "node-2",
                "type": "external-system",
                "properties": {"label": "Bank"},
                "links": {"linkedDiagrams": [{"path": "Bank.bac4"}]},
            },
        },
    }
    graph_file = {
        "version": "2.5.1",
        "metadata": {
            "nodeFile": "Split.bac4",
            "graphId": "c4-context-1",
            "title": "Split - Default Layout",
            "viewType": "c4-context",
            "created": "2025-01-01T00:00:00.000+00:00",
            "updated": "2025-01-01T00:00:00.000+00:00",
        },
        "timeline": {
            "snapshots": [
                {
                    "id": "s1",
                    "label": "Current",
                    "created": "2025-01-01T00:00:00.000+00:00",
                    "layout": {"node-1": {"x": 10, "y": 10}, "node-2": {"x": 400, "y": 10}},
                    "edges": [
                        {
                            "id": "edge-1",
                            "source": "node-1",
                            "target": "node-2",
                            "properties": {"label": "settles with"},
                        }
                    ],
                }
            ],
            "currentSnapshotId": "s1",
            "snapshotOrder": ["s1"],
        },
    }
    return node_file, graph_file


@pytest.fixture
def split_pair() -> tuple[dict, dict]:
    return split_documents()
