"""Vault file store: the read/write/rename surface every store builds on."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, List, Protocol
import uuid

from .errors import FormatError, NotFoundError, StorageError


class FileStore(Protocol):
    """Vault-relative file access with distinct not-found and I/O failures."""

    @property
    def identity(self) -> str: ...

    def read(self, path: str) -> str: ...

    def read_bytes(self, path: str) -> bytes: ...

    def write(self, path: str, text: str) -> None: ...

    def write_bytes(self, path: str, data: bytes) -> None: ...

    def exists(self, path: str) -> bool: ...

    def create(self, path: str, text: str) -> None: ...

    def rename(self, old_path: str, new_path: str) -> None: ...

    def delete(self, path: str) -> None: ...

    def list_files(self) -> List[str]: ...


def normalize_vault_path(path: str) -> str:
    """Validate a vault-relative path and normalize it to ``/`` separators."""
    cleaned = (path or "").strip().replace("\\", "/")
    while cleaned.startswith("./"):
        cleaned = cleaned[2:]
    if not cleaned:
        raise ValueError("Path must not be empty")
    if cleaned.startswith("/"):
        raise ValueError(f"Path must be relative (no leading /): {path}")
    if ".." in cleaned.split("/"):
        raise ValueError(f"Path must not contain '..': {path}")
    return cleaned


class VaultFileStore:
    """Local filesystem implementation rooted at the vault directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    @property
    def identity(self) -> str:
        return str(self.root)

    def resolve(self, path: str) -> Path:
        """Resolve a vault-relative path, refusing anything outside the root."""
        relative = normalize_vault_path(path)
        full_path = (self.root / relative).resolve()
        if full_path != self.root and self.root not in full_path.parents:
            raise ValueError(f"Path escapes vault root: {path}")
        return full_path

    def read(self, path: str) -> str:
        full_path = self.resolve(path)
        try:
            return full_path.read_bytes().decode("utf-8")
        except FileNotFoundError as exc:
            raise NotFoundError(f"File not found: {path}", {"path": path}) from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Failed to read {path}: {exc}", {"path": path}) from exc

    def read_bytes(self, path: str) -> bytes:
        full_path = self.resolve(path)
        try:
            return full_path.read_bytes()
        except FileNotFoundError as exc:
            raise NotFoundError(f"File not found: {path}", {"path": path}) from exc
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}", {"path": path}) from exc

    def write(self, path: str, text: str) -> None:
        self.write_bytes(path, text.encode("utf-8"))

    def write_bytes(self, path: str, data: bytes) -> None:
        """Write through a temp sibling and ``os.replace`` so readers never see half a file."""
        full_path = self.resolve(path)
        temp_path = full_path.with_name(f".{full_path.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_bytes(data)
            os.replace(temp_path, full_path)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to write {path}: {exc}", {"path": path}) from exc

    def exists(self, path: str) -> bool:
        return self.resolve(path).is_file()

    def create(self, path: str, text: str) -> None:
        full_path = self.resolve(path)
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            with full_path.open("x", encoding="utf-8") as handle:
                handle.write(text)
        except FileExistsError as exc:
            raise StorageError(f"File already exists: {path}", {"path": path}) from exc
        except OSError as exc:
            raise StorageError(f"Failed to create {path}: {exc}", {"path": path}) from exc

    def rename(self, old_path: str, new_path: str) -> None:
        source = self.resolve(old_path)
        destination = self.resolve(new_path)
        if not source.is_file():
            raise NotFoundError(f"File not found: {old_path}", {"path": old_path})
        if destination.exists():
            raise StorageError(
                f"Cannot rename {old_path}: {new_path} already exists",
                {"path": old_path, "target": new_path},
            )
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            source.rename(destination)
        except OSError as exc:
            raise StorageError(
                f"Failed to rename {old_path} to {new_path}: {exc}", {"path": old_path}
            ) from exc

    def delete(self, path: str) -> None:
        full_path = self.resolve(path)
        try:
            full_path.unlink()
        except FileNotFoundError as exc:
            raise NotFoundError(f"File not found: {path}", {"path": path}) from exc
        except OSError as exc:
            raise StorageError(f"Failed to delete {path}: {exc}", {"path": path}) from exc

    def list_files(self) -> List[str]:
        files: List[str] = []
        for file_path in self.root.rglob("*"):
            if not file_path.is_file() or file_path.name.endswith(".tmp"):
                continue
            files.append(file_path.relative_to(self.root).as_posix())
        return sorted(files)


def read_json(store: FileStore, path: str) -> Any:
    """Read and parse a JSON document, naming the file on parse errors."""
    content = store.read(path)
    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        raise FormatError(f"Invalid JSON in {path}", {"path": path, "reason": str(exc)}) from exc


def dump_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def write_json(store: FileStore, path: str, data: Any) -> None:
    store.write(path, dump_json(data))


def list_diagram_files(store: FileStore) -> List[str]:
    """All ``.bac4`` documents in the vault (split ``.bac4-graph`` siblings excluded)."""
    return [path for path in store.list_files() if path.endswith(".bac4")]


__all__ = [
    "FileStore",
    "VaultFileStore",
    "normalize_vault_path",
    "read_json",
    "dump_json",
    "write_json",
    "list_diagram_files",
]
