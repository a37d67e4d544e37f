from concurrent.futures import ThreadPoolExecutor
import threading

from backend.src.models.diagram import CURRENT_SNAPSHOT_ID, LocalNodeDraft
from backend.src.models.graph import NodeDraft
from backend.src.services.diagram_store import DiagramStore
from backend.src.services.errors import DuplicateNameError
from backend.src.services.file_store import VaultFileStore
from backend.src.services.graph_store import GraphStore
from backend.src.services.snapshots import SnapshotService

WORKERS = 8


def fresh_graph_store(config) -> GraphStore:
    """A store with its own cache, sharing only the vault and the lock registry."""
    return GraphStore(VaultFileStore(config.vault_path), config)


def test_racing_creates_with_one_label_keep_a_single_node(config) -> None:
    stores = [fresh_graph_store(config) for _ in range(WORKERS)]
    barrier = threading.Barrier(WORKERS)

    def create(graph_store: GraphStore):
        barrier.wait()
        try:
            return graph_store.create_node(NodeDraft(type="system", label="Payments"))
        except DuplicateNameError:
            return None

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        results = list(pool.map(create, stores))

    assert len([node for node in results if node is not None]) == 1
    assert [node.label for node in fresh_graph_store(config).get_all_nodes()] == ["Payments"]


def test_racing_creates_with_distinct_labels_are_all_kept(config) -> None:
    stores = [fresh_graph_store(config) for _ in range(WORKERS)]
    barrier = threading.Barrier(WORKERS)

    def create(args):
        index, graph_store = args
        barrier.wait()
        return graph_store.create_node(NodeDraft(type="system", label=f"Service {index}"))

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        list(pool.map(create, enumerate(stores)))

    labels = sorted(node.label for node in fresh_graph_store(config).get_all_nodes())
    assert labels == sorted(f"Service {index}" for index in range(WORKERS))


def test_racing_local_node_adds_do_not_lose_updates(config) -> None:
    DiagramStore(
        VaultFileStore(config.vault_path), fresh_graph_store(config), config
    ).create_diagram("Context.bac4")
    services = []
    for _ in range(WORKERS):
        graph_store = fresh_graph_store(config)
        services.append(
            SnapshotService(DiagramStore(graph_store.store, graph_store, config))
        )
    barrier = threading.Barrier(WORKERS)

    def add(args):
        index, snapshots = args
        barrier.wait()
        return snapshots.add_local_node(
            "Context.bac4",
            CURRENT_SNAPSHOT_ID,
            LocalNodeDraft(type="system", label=f"Idea {index}"),
        )

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        added = list(pool.map(add, enumerate(services)))

    snapshot = services[0].get_snapshot("Context.bac4")
    assert sorted(node.label for node in snapshot.local_nodes.values()) == sorted(
        node.label for node in added
    )
    assert len(snapshot.local_nodes) == WORKERS
    assert set(snapshot.local_nodes) <= set(snapshot.layout)
