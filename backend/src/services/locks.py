"""Per-document locks for read-modify-write critical sections."""

from __future__ import annotations

import threading
from typing import Dict


class PathLockRegistry:
    """Hands out one re-entrant lock per document key.

    Operations on the same document serialize; different documents never
    contend. Locks are re-entrant so a store method may call another method
    that locks the same document.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_REGISTRY = PathLockRegistry()


def get_lock_registry() -> PathLockRegistry:
    """Process-wide registry shared by every store instance."""
    return _REGISTRY


def document_key(store_identity: str, path: str) -> str:
    return f"{store_identity}::{path}"


__all__ = ["PathLockRegistry", "get_lock_registry", "document_key"]
