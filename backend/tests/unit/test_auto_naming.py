from backend.src.services.auto_naming import (
    auto_name,
    base_name_for,
    counter_from,
    generate_unique_name,
)


def test_counter_from_continues_after_highest_id() -> None:
    assert counter_from(["node-3", "node-10", "edge-2"]) == 11
    assert counter_from([]) == 1


def test_counter_from_reads_trailing_numbers() -> None:
    assert counter_from(["system-7"]) == 8


def test_base_name_for_known_and_unknown_types() -> None:
    assert base_name_for("cloudComponent") == "Cloud Component"
    assert base_name_for("c4") == "Component"
    assert base_name_for("market") == "Node"


def test_auto_name_counts_nodes_of_same_type() -> None:
    nodes = [{"type": "system"}, {"type": "person"}]

    assert auto_name("system", nodes) == "System 2"
    assert auto_name("person", nodes) == "Person 2"
    assert auto_name("container", nodes) == "Container 1"


def test_auto_name_skips_labels_taken_elsewhere() -> None:
    name = auto_name("system", [{"type": "system"}], taken_labels=["System 2", "System 3"])

    assert name == "System 4"


def test_generate_unique_name_numbers_plain_labels() -> None:
    taken = {"Payments", "Payments 2"}

    assert generate_unique_name("Payments", taken.__contains__) == "Payments 3"
    assert generate_unique_name("Ledger", taken.__contains__) == "Ledger"
