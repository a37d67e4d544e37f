"""Identifier and timestamp helpers shared by the stores."""

from __future__ import annotations

from datetime import datetime, timezone
import time
import uuid


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def generate_id(prefix: str) -> str:
    """``{prefix}-{epoch ms}-{9 random chars}``, e.g. ``node-1717171717171-a1b2c3d4e``."""
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


__all__ = ["utcnow_iso", "generate_id"]
