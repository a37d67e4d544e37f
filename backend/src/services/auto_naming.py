"""Default labels and id counters for newly placed nodes.

The counter is derived from the ids already on a diagram every time the
diagram is loaded; it is never persisted.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Iterable, Optional

BASE_NAMES = {
    "system": "System",
    "container": "Container",
    "person": "Person",
    "c4": "Component",
    "component": "Component",
    "cloudComponent": "Cloud Component",
    "capability": "Capability",
}
DEFAULT_BASE_NAME = "Node"

_NODE_NUMBER = re.compile(r"node-(\d+)")
_TRAILING_NUMBER = re.compile(r"(\d+)$")
_NUMBERED_NAME = re.compile(r"^(.*?)(\d+)$")


def counter_from(identifiers: Iterable[str]) -> int:
    """Next free number for ``node-N`` style ids; 1 on an empty diagram."""
    highest = 0
    for identifier in identifiers:
        match = _NODE_NUMBER.search(identifier) or _TRAILING_NUMBER.search(identifier)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1


def base_name_for(node_type: Optional[str]) -> str:
    return BASE_NAMES.get(node_type or "", DEFAULT_BASE_NAME)


def generate_unique_name(candidate: str, name_exists: Callable[[str], bool]) -> str:
    """``candidate`` if free, otherwise the next free ``"{prefix} {n}"``."""
    if not name_exists(candidate):
        return candidate
    match = _NUMBERED_NAME.match(candidate)
    if match:
        prefix, number = match.group(1).strip(), int(match.group(2))
    else:
        prefix, number = candidate, 1
    while True:
        number += 1
        name = f"{prefix} {number}"
        if not name_exists(name):
            return name


def _node_type(node: Any) -> Optional[str]:
    if isinstance(node, dict):
        return node.get("type")
    return getattr(node, "type", None)


def auto_name(
    node_type: str,
    existing_nodes: Iterable[Any],
    taken_labels: Optional[Iterable[str]] = None,
) -> str:
    """``"System 3"`` when two system nodes are already on the diagram.

    ``taken_labels`` is usually every label in the global graph so the
    suggestion never collides with a node in another diagram.
    """
    same_type = sum(1 for node in existing_nodes if _node_type(node) == node_type)
    candidate = f"{base_name_for(node_type)} {same_type + 1}"
    taken = set(taken_labels or ())
    return generate_unique_name(candidate, taken.__contains__)


__all__ = [
    "BASE_NAMES",
    "DEFAULT_BASE_NAME",
    "counter_from",
    "base_name_for",
    "generate_unique_name",
    "auto_name",
]
