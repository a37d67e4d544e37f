"""Version detection and decoding for every diagram file generation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Dict, Type

from pydantic import ValidationError

from ..models.base import DocumentModel
from ..models.diagram import DiagramFile
from ..models.graph import GraphFile
from ..models.legacy import CanvasDiagramFile, TimelineDiagramFile
from ..models.split import SPLIT_VERSIONS, GraphFileV2, NodeFileV2
from .errors import FormatError
from .file_store import FileStore, read_json

logger = logging.getLogger(__name__)

# Lossy reverse conversions of older tools wrote timeline files with these tags.
TIMELINE_VERSIONS = ("1.0.0", "2.0.0", "2.1.0", "2.2.0")


class DocumentVersion(str, Enum):
    """Schema generation of a vault document."""

    LEGACY = "legacy"
    SELF_CONTAINED = "0.6.0"
    TIMELINE = "1.0.0"
    SPLIT = "2.5"
    SPLIT_GRAPH = "2.5-graph"
    GLOBAL = "3.0.0"
    GRAPH = "3.0.0-graph"


# Position of each diagram generation along the upgrade path.
VERSION_RANK: Dict[DocumentVersion, int] = {
    DocumentVersion.LEGACY: 0,
    DocumentVersion.SELF_CONTAINED: 1,
    DocumentVersion.TIMELINE: 2,
    DocumentVersion.SPLIT: 3,
    DocumentVersion.GLOBAL: 4,
}

EXPECTED_SHAPES = (
    "v3.0.0 {version, metadata, view, snapshots}, "
    "v2.5.x {version, metadata, nodes{}} with a .bac4-graph sibling, "
    "v1.0.0 {version, metadata, timeline{snapshots[]}}, "
    "or v0.6.0/legacy {nodes[], edges[]}"
)

_DECODERS: Dict[DocumentVersion, Type[DocumentModel]] = {
    DocumentVersion.LEGACY: CanvasDiagramFile,
    DocumentVersion.SELF_CONTAINED: CanvasDiagramFile,
    DocumentVersion.TIMELINE: TimelineDiagramFile,
    DocumentVersion.SPLIT: NodeFileV2,
    DocumentVersion.SPLIT_GRAPH: GraphFileV2,
    DocumentVersion.GLOBAL: DiagramFile,
    DocumentVersion.GRAPH: GraphFile,
}


@dataclass(frozen=True)
class LoadedDocument:
    path: str
    version: DocumentVersion
    raw: Dict[str, Any]
    document: DocumentModel


def register_decoder(version: DocumentVersion, model: Type[DocumentModel]) -> None:
    """Replace the decoder used for ``version`` (tests and extensions)."""
    _DECODERS[version] = model


def _is_pre_timeline(version: Any) -> bool:
    if not isinstance(version, str):
        return False
    head = version.split(".", 1)[0]
    return head.isdigit() and int(head) == 0


def detect_version(raw: Any, path: str = "<memory>") -> DocumentVersion:
    """Inspect ``version`` and document shape; never guesses on ambiguity."""
    if not isinstance(raw, dict):
        raise FormatError(
            f"Unrecognized document in {path}: expected a JSON object ({EXPECTED_SHAPES})",
            {"path": path},
        )
    version = raw.get("version")

    if version == "3.0.0":
        if "view" in raw:
            return DocumentVersion.GLOBAL
        if "relationships" in raw and isinstance(raw.get("nodes"), dict):
            return DocumentVersion.GRAPH
    elif version in SPLIT_VERSIONS:
        metadata = raw.get("metadata") or {}
        if "timeline" in raw and isinstance(metadata, dict) and "nodeFile" in metadata:
            return DocumentVersion.SPLIT_GRAPH
        if isinstance(raw.get("nodes"), dict):
            return DocumentVersion.SPLIT
    elif "timeline" in raw:
        if version in TIMELINE_VERSIONS:
            return DocumentVersion.TIMELINE
    elif isinstance(raw.get("nodes"), list) and isinstance(raw.get("edges"), list):
        if version is None:
            return DocumentVersion.LEGACY
        if _is_pre_timeline(version):
            return DocumentVersion.SELF_CONTAINED

    raise FormatError(
        f"Unrecognized document format in {path} (version: {version!r}); "
        f"expected {EXPECTED_SHAPES}",
        {"path": path, "version": version},
    )


def _describe_errors(exc: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]


def decode_document(raw: Any, path: str = "<memory>") -> LoadedDocument:
    """Detect the generation and decode ``raw`` with the registered model."""
    version = detect_version(raw, path)
    model = _DECODERS[version]
    try:
        document = model.model_validate(raw)
    except ValidationError as exc:
        raise FormatError(
            f"Malformed {version.value} document in {path}: expected {model.__name__} "
            f"({exc.error_count()} error(s))",
            {"path": path, "version": version.value, "errors": _describe_errors(exc)},
        ) from exc
    logger.debug(f"Decoded {path} as {version.value}")
    return LoadedDocument(path=path, version=version, raw=raw, document=document)


def load_document(store: FileStore, path: str) -> LoadedDocument:
    """Read ``path`` from the store and decode it."""
    raw = read_json(store, path)
    return decode_document(raw, path)


def is_at_least(version: DocumentVersion, target: DocumentVersion) -> bool:
    """True when ``version`` is the ``target`` generation or newer."""
    if version not in VERSION_RANK or target not in VERSION_RANK:
        raise ValueError(f"Not a diagram generation: {version} / {target}")
    return VERSION_RANK[version] >= VERSION_RANK[target]


__all__ = [
    "DocumentVersion",
    "VERSION_RANK",
    "TIMELINE_VERSIONS",
    "LoadedDocument",
    "register_decoder",
    "detect_version",
    "decode_document",
    "load_document",
    "is_at_least",
]
