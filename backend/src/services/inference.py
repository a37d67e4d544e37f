"""Best-effort type inference for fields older diagram files leave implicit.

These are heuristics. Each returns an :class:`Inference` whose ``confident``
flag is False whenever the value came from a fallback, so the migration
report can list it for manual review.
"""

from __future__ import annotations

from typing import Optional, Tuple

from ..models.graph import NODE_TYPES
from ..models.migration import Inference

FALLBACK_LAYER = "context"
FALLBACK_DIAGRAM_TYPE = "context"
FALLBACK_NODE_TYPE = "system"

# Numbered vault folders used by the layered project structure.
LAYER_FOLDERS: Tuple[Tuple[str, str], ...] = (
    ("/1-Market/", "market"),
    ("/2-Organisation/", "organisation"),
    ("/3-Capability/", "capability"),
    ("/4-Context/", "context"),
    ("/5-Container/", "container"),
    ("/6-Component/", "component"),
    ("/7-Code/", "code"),
)

# Checked in order; the first keyword found wins.
DIAGRAM_TYPE_KEYWORDS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("market",), "market"),
    (("organisation", "organization"), "organisation"),
    (("capability",), "capability"),
    (("context",), "context"),
    (("container",), "container"),
    (("component",), "component"),
    (("code",), "code"),
    (("wardley",), "wardley"),
)

VIEW_TYPES = {
    "wardley": "wardley",
    "context": "c4-context",
    "container": "c4-container",
    "component": "c4-component",
}

# Split-era node types that survive as-is; everything else becomes ``system``.
SPLIT_NODE_TYPES = NODE_TYPES + ("external-system",)


def infer_layer(path: str) -> Inference:
    """Layer from the numbered folder in the path (``/5-Container/`` -> container)."""
    probe = "/" + path.lstrip("/")
    for folder, layer in LAYER_FOLDERS:
        if folder in probe:
            return Inference(value=layer, confident=True, reason=f"path contains {folder}")
    return Inference(
        value=FALLBACK_LAYER,
        confident=False,
        reason="no numbered layer folder in path; defaulted to context",
    )


def infer_diagram_type(value: Optional[str]) -> Inference:
    """Diagram type by keyword substring of a free-text type field."""
    normalized = (value or "").lower()
    for keywords, diagram_type in DIAGRAM_TYPE_KEYWORDS:
        for keyword in keywords:
            if keyword in normalized:
                return Inference(
                    value=diagram_type,
                    confident=normalized == diagram_type,
                    reason=f'"{value}" contains "{keyword}"',
                )
    return Inference(
        value=FALLBACK_DIAGRAM_TYPE,
        confident=False,
        reason=f"unrecognized diagram type {value!r}; defaulted to context",
    )


def infer_view_type(diagram_type: str) -> str:
    return VIEW_TYPES.get(diagram_type, "custom")


def infer_node_type(value: Optional[str], allowed: Tuple[str, ...] = SPLIT_NODE_TYPES) -> Inference:
    """Exact (case-insensitive) node type, else ``system``."""
    normalized = (value or "").lower()
    if normalized in allowed:
        return Inference(value=normalized, confident=True, reason="known node type")
    if normalized == "c4":
        return Inference(value="component", confident=True, reason="c4 is the old component tag")
    return Inference(
        value=FALLBACK_NODE_TYPE,
        confident=False,
        reason=f"unknown node type {value!r}; defaulted to system",
    )


__all__ = [
    "FALLBACK_LAYER",
    "FALLBACK_DIAGRAM_TYPE",
    "FALLBACK_NODE_TYPE",
    "infer_layer",
    "infer_diagram_type",
    "infer_view_type",
    "infer_node_type",
]
