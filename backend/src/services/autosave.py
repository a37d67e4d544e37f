"""Debounced auto-save: the last scheduled write for a key always wins."""

from __future__ import annotations

from dataclasses import dataclass
import itertools
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

PayloadFactory = Callable[[], Any]
WriteFn = Callable[[str, Any], None]


@dataclass
class _PendingWrite:
    token: int
    factory: PayloadFactory
    timer: Optional[threading.Timer]


class DebouncedWriter:
    """Coalesce bursts of edits into one write per key after an idle delay.

    ``schedule`` cancels any pending write for the key and re-arms the timer.
    When the timer fires the most recent payload factory is called, so the
    write reflects the latest in-memory state. A write carrying an older
    token than one already written for the key is dropped.
    """

    def __init__(self, write_fn: WriteFn, delay: float = 0.5) -> None:
        if delay < 0:
            raise ValueError("delay must be non-negative")
        self._write_fn = write_fn
        self.delay = delay
        self._lock = threading.Lock()
        self._pending: Dict[str, _PendingWrite] = {}
        self._written: Dict[str, int] = {}
        self._key_locks: Dict[str, threading.Lock] = {}
        self._tokens = itertools.count(1)

    def schedule(self, key: str, payload_factory: PayloadFactory) -> int:
        """Schedule (or reschedule) the write for ``key``; returns its token."""
        with self._lock:
            existing = self._pending.pop(key, None)
            if existing is not None and existing.timer is not None:
                existing.timer.cancel()
            token = next(self._tokens)
            timer = threading.Timer(self.delay, self._fire, args=(key, token))
            timer.daemon = True
            self._pending[key] = _PendingWrite(token=token, factory=payload_factory, timer=timer)
            timer.start()
        logger.debug(f"Scheduled save for {key} (token {token})")
        return token

    def pending(self) -> List[str]:
        with self._lock:
            return sorted(self._pending)

    def cancel(self, key: Optional[str] = None) -> None:
        """Drop pending writes without performing them."""
        with self._lock:
            keys = [key] if key is not None else list(self._pending)
            for pending_key in keys:
                entry = self._pending.pop(pending_key, None)
                if entry is not None and entry.timer is not None:
                    entry.timer.cancel()

    def flush(self, key: Optional[str] = None) -> None:
        """Perform pending writes now; the first failure is re-raised after all ran."""
        with self._lock:
            keys = [key] if key is not None else list(self._pending)
            entries = []
            for pending_key in keys:
                entry = self._pending.pop(pending_key, None)
                if entry is None:
                    continue
                if entry.timer is not None:
                    entry.timer.cancel()
                entries.append((pending_key, entry))

        first_error: Optional[Exception] = None
        for pending_key, entry in entries:
            try:
                self._run(pending_key, entry)
            except Exception as exc:
                logger.error(f"Flush failed for {pending_key}: {exc}")
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error

    def _fire(self, key: str, token: int) -> None:
        with self._lock:
            entry = self._pending.get(key)
            if entry is None or entry.token != token:
                return
            del self._pending[key]
        try:
            self._run(key, entry)
        except Exception:
            logger.exception(f"Auto-save failed for {key}")

    def _key_lock(self, key: str) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def _run(self, key: str, entry: _PendingWrite) -> None:
        with self._key_lock(key):
            if entry.token < self._written.get(key, 0):
                logger.debug(f"Dropping stale save for {key} (token {entry.token})")
                return
            payload = entry.factory()
            self._write_fn(key, payload)
            self._written[key] = entry.token


__all__ = ["DebouncedWriter"]
