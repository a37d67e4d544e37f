from pathlib import Path

import pytest

from backend.src.services.errors import FormatError, NotFoundError, StorageError
from backend.src.services.file_store import (
    VaultFileStore,
    list_diagram_files,
    normalize_vault_path,
    read_json,
    write_json,
)


@pytest.fixture
def vault(tmp_path: Path) -> VaultFileStore:
    return VaultFileStore(tmp_path / "vault")


def test_write_and_read_round_trip_creates_folders(vault: VaultFileStore) -> None:
    vault.write("folder/Context.bac4", "{}")

    assert vault.read("folder/Context.bac4") == "{}"
    assert (vault.root / "folder" / "Context.bac4").is_file()


def test_write_leaves_no_temp_files(vault: VaultFileStore) -> None:
    vault.write("Context.bac4", "one")
    vault.write("Context.bac4", "two")

    assert vault.list_files() == ["Context.bac4"]
    assert vault.read("Context.bac4") == "two"


def test_read_missing_file_is_not_found(vault: VaultFileStore) -> None:
    with pytest.raises(NotFoundError):
        vault.read("missing.bac4")


def test_create_refuses_existing_file(vault: VaultFileStore) -> None:
    vault.create("Context.bac4", "{}")

    with pytest.raises(StorageError):
        vault.create("Context.bac4", "{}")


def test_rename_moves_file_and_refuses_overwrite(vault: VaultFileStore) -> None:
    vault.write("A.bac4", "a")
    vault.write("B.bac4", "b")

    with pytest.raises(StorageError):
        vault.rename("A.bac4", "B.bac4")

    vault.rename("A.bac4", "C.bac4")
    assert not vault.exists("A.bac4")
    assert vault.read("C.bac4") == "a"

    with pytest.raises(NotFoundError):
        vault.rename("A.bac4", "D.bac4")


def test_delete_missing_file_is_not_found(vault: VaultFileStore) -> None:
    with pytest.raises(NotFoundError):
        vault.delete("missing.bac4")


@pytest.mark.parametrize("path", ["../outside.bac4", "/etc/passwd", ""])
def test_paths_outside_vault_are_rejected(vault: VaultFileStore, path: str) -> None:
    with pytest.raises(ValueError):
        vault.resolve(path)


def test_normalize_vault_path_uses_forward_slashes() -> None:
    assert normalize_vault_path("./systems\\Payments.bac4") == "systems/Payments.bac4"


def test_read_json_names_file_on_parse_error(vault: VaultFileStore) -> None:
    vault.write("Broken.bac4", "{not json")

    with pytest.raises(FormatError) as excinfo:
        read_json(vault, "Broken.bac4")

    assert excinfo.value.message == "Invalid JSON in Broken.bac4"


def test_list_diagram_files_skips_graph_siblings(vault: VaultFileStore) -> None:
    write_json(vault, "b/Two.bac4", {})
    write_json(vault, "One.bac4", {})
    write_json(vault, "One.bac4-graph", {})
    vault.write("notes.md", "# notes")

    assert list_diagram_files(vault) == ["One.bac4", "b/Two.bac4"]
