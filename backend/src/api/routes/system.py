"""Recent log records of the running API.

Vault-wide scans (orphan detection, parent search, migration batches) skip
malformed files and only log them; this buffer keeps those warnings visible
to an operator without shell access.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

router = APIRouter()

LOG_BUFFER_SIZE = 100

LOG_BUFFER: Deque[Dict[str, Any]] = deque(maxlen=LOG_BUFFER_SIZE)

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class LogEntry(BaseModel):
    timestamp: str
    level: str
    logger: str
    message: str
    extra: Dict[str, Any]


class MemoryLogHandler(logging.Handler):
    """Keeps the newest records in ``LOG_BUFFER``."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            LOG_BUFFER.append(
                {
                    "timestamp": datetime.fromtimestamp(record.created).isoformat(),
                    "level": record.levelname,
                    "logger": record.name,
                    "message": self.format(record),
                    "extra": {
                        key: repr(value)
                        for key, value in vars(record).items()
                        if key not in _RECORD_ATTRS
                    },
                }
            )
        except Exception:
            self.handleError(record)


memory_handler = MemoryLogHandler()
memory_handler.setFormatter(logging.Formatter("%(message)s"))


def install_log_buffer() -> None:
    """Attach the buffer handler to the root logger once."""
    root = logging.getLogger()
    if memory_handler not in root.handlers:
        root.addHandler(memory_handler)


@router.get("/api/system/logs", response_model=List[LogEntry])
async def get_logs(
    level: Optional[str] = Query(None, description="Minimum level, e.g. WARNING"),
    limit: int = Query(LOG_BUFFER_SIZE, ge=1, le=LOG_BUFFER_SIZE),
):
    """Buffered records in arrival order, optionally filtered by minimum level."""
    entries = list(LOG_BUFFER)
    if level:
        threshold = logging.getLevelName(level.upper())
        if not isinstance(threshold, int):
            raise ValueError(f"Unknown log level: {level}")
        entries = [
            entry for entry in entries if logging.getLevelName(entry["level"]) >= threshold
        ]
    return entries[-limit:]


__all__ = ["router", "install_log_buffer", "LOG_BUFFER", "LogEntry"]
