"""Vault-wide migration of diagram files to the configured schema version."""

from __future__ import annotations

import logging
import threading
from typing import List, Set, Tuple

from ..models.diagram import DiagramFile
from ..models.graph import GraphFile
from ..models.migration import (
    FileMigrationResult,
    MigrationErrorEntry,
    MigrationReport,
    MigrationStatusInfo,
    ReviewItem,
    RollbackReport,
)
from ..models.split import GraphFileV2, NodeFileV2, graph_path_for
from .config import AppConfig, get_config
from .converter import (
    convert_split_to_global,
    migrate as convert_to_split,
    validate_global_format,
    validate_split_format,
)
from .errors import (
    DiagramStoreError,
    FormatError,
    NotFoundError,
    OperationRejectedError,
    SchemaValidationError,
)
from .file_store import FileStore, dump_json, list_diagram_files, read_json
from .graph_store import GraphStore
from .ids import utcnow_iso
from .schema_registry import (
    VERSION_RANK,
    DocumentVersion,
    LoadedDocument,
    decode_document,
    is_at_least,
    load_document,
)

logger = logging.getLogger(__name__)

ROLLBACK_REPORT_FILE = "BAC4-Rollback-Report.md"

TARGET_VERSIONS = {
    "2.5.1": DocumentVersion.SPLIT,
    "3.0.0": DocumentVersion.GLOBAL,
}

# Vaults (by store identity) with a migration or rollback in progress.
_ACTIVE_VAULTS: Set[str] = set()
_ACTIVE_GUARD = threading.Lock()


class MigrationService:
    """Detects, converts, validates and writes diagram files in place."""

    def __init__(
        self,
        store: FileStore,
        config: AppConfig | None = None,
        graph_store: GraphStore | None = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store
        self.graph_store = graph_store or GraphStore(store, self.config)
        self.target = TARGET_VERSIONS[self.config.migration_target]
        self._stop_requested = threading.Event()

    # ========================================
    # Single file
    # ========================================

    def _backup_path(self, path: str) -> str:
        return path + self.config.backup_suffix

    def _write_backup(self, path: str, data: bytes) -> None:
        backup_path = self._backup_path(path)
        if self.store.exists(backup_path):
            # An earlier partial run already saved the true original.
            logger.info(f"Keeping existing backup {backup_path}")
            return
        self.store.write_bytes(backup_path, data)
        logger.info(f"Created backup: {backup_path}")

    def _load_graph_sibling(self, path: str) -> GraphFileV2:
        graph_path = graph_path_for(path)
        if not self.store.exists(graph_path):
            raise FormatError(
                f"Split document {path} has no {graph_path} sibling",
                {"path": path, "graph_path": graph_path},
            )
        loaded = load_document(self.store, graph_path)
        if loaded.version != DocumentVersion.SPLIT_GRAPH:
            raise FormatError(
                f"{graph_path} is not a split graph file (found {loaded.version.value})",
                {"path": graph_path},
            )
        return loaded.document  # type: ignore[return-value]

    def _to_split(
        self, loaded: LoadedDocument, path: str
    ) -> Tuple[NodeFileV2, GraphFileV2, List[ReviewItem]]:
        if loaded.version == DocumentVersion.SPLIT:
            node_file = loaded.document
            graph_file = self._load_graph_sibling(path)
            review: List[ReviewItem] = []
        else:
            node_file, graph_file, review = convert_to_split(loaded.document, path)
        validation = validate_split_format(node_file, graph_file)
        if not validation.valid:
            raise SchemaValidationError(
                f"Validation failed for {path}: {', '.join(validation.errors)}",
                validation.errors,
                {"path": path},
            )
        return node_file, graph_file, review  # type: ignore[return-value]

    def migrate_file(
        self, path: str, dry_run: bool = False, backup: bool = True
    ) -> FileMigrationResult:
        """Migrate one ``.bac4`` file to the target version.

        Raises on failure; a failed conversion or validation leaves every
        file untouched. Files already at the target are skipped without
        being rewritten.
        """
        raw = read_json(self.store, path)
        loaded = decode_document(raw, path)
        version_before = str(raw.get("version") or loaded.version.value)

        if loaded.version not in VERSION_RANK:
            raise FormatError(f"{path} is not a diagram document ({version_before})", {"path": path})

        if is_at_least(loaded.version, self.target):
            return FileMigrationResult(
                path=path,
                status="skipped",
                version_before=version_before,
                version_after=version_before,
                message=f"Already at version {version_before}",
            )

        node_file, graph_file, review = self._to_split(loaded, path)
        original = self.store.read_bytes(path)

        if self.target == DocumentVersion.GLOBAL:
            return self._migrate_to_global(
                path, version_before, node_file, graph_file, review, original, dry_run, backup
            )

        graph_path = graph_path_for(path)
        if dry_run:
            return self._result(path, version_before, review, [], dry_run=True)
        if backup:
            self._write_backup(path, original)
        # Node file first so the graph sibling never names a missing node file.
        self.store.write(path, dump_json(node_file.to_document()))
        self.store.write(graph_path, dump_json(graph_file.to_document()))
        logger.info(f"Migrated {path} -> {path} + {graph_path}")
        return self._result(path, version_before, review, [path, graph_path])

    def _migrate_to_global(
        self,
        path: str,
        version_before: str,
        node_file: NodeFileV2,
        graph_file: GraphFileV2,
        review: List[ReviewItem],
        original: bytes,
        dry_run: bool,
        backup: bool,
    ) -> FileMigrationResult:
        graph_path = graph_path_for(path)
        had_sibling = self.store.exists(graph_path)

        def merge(graph: GraphFile) -> DiagramFile:
            conversion = convert_split_to_global(node_file, graph_file, graph, path)
            validation = validate_global_format(conversion.diagram, conversion.graph)
            if not validation.valid:
                raise SchemaValidationError(
                    f"Validation failed for {path}: {', '.join(validation.errors)}",
                    validation.errors,
                    {"path": path},
                )
            review.extend(conversion.needs_review)
            graph.nodes = conversion.graph.nodes
            graph.relationships = conversion.graph.relationships
            return conversion.diagram

        if dry_run:
            merge(self.graph_store.read_graph())
            return self._result(path, version_before, review, [], dry_run=True)

        if backup:
            # With a node file backup in place the sibling came from an earlier
            # 2.5.1-target run; rollback deletes it rather than restoring it.
            sibling_is_original = had_sibling and not self.store.exists(self._backup_path(path))
            self._write_backup(path, original)
            if sibling_is_original:
                self._write_backup(graph_path, self.store.read_bytes(graph_path))
        # Graph first: the view must never reference nodes that are not stored yet.
        diagram = self.graph_store.apply(merge)
        self.store.write(path, dump_json(diagram.to_document()))
        if had_sibling:
            self.store.delete(graph_path)
        logger.info(f"Migrated {path} to the global graph ({len(diagram.view.nodes)} node(s))")
        return self._result(path, version_before, review, [self.config.graph_file, path])

    def _result(
        self,
        path: str,
        version_before: str,
        review: List[ReviewItem],
        written: List[str],
        dry_run: bool = False,
    ) -> FileMigrationResult:
        if dry_run:
            logger.info(f"[DRY RUN] Would migrate {path}")
        return FileMigrationResult(
            path=path,
            status="migrated",
            version_before=version_before,
            version_after=self.config.migration_target,
            message="Dry run: nothing written" if dry_run else None,
            needs_review=review,
            written=written,
        )

    # ========================================
    # Vault
    # ========================================

    def request_stop(self) -> None:
        """Stop issuing new files after the one currently being migrated."""
        self._stop_requested.set()

    def is_running(self) -> bool:
        with _ACTIVE_GUARD:
            return self.store.identity in _ACTIVE_VAULTS

    def _acquire(self) -> None:
        with _ACTIVE_GUARD:
            if self.store.identity in _ACTIVE_VAULTS:
                raise OperationRejectedError(
                    "A migration is already running for this vault",
                    {"vault": self.store.identity},
                )
            _ACTIVE_VAULTS.add(self.store.identity)

    def _release(self) -> None:
        with _ACTIVE_GUARD:
            _ACTIVE_VAULTS.discard(self.store.identity)

    def migrate_vault(
        self, dry_run: bool = False, backup: bool = True, write_report: bool = True
    ) -> MigrationReport:
        """Migrate every ``.bac4`` file; one file's failure never aborts the batch."""
        self._acquire()
        self._stop_requested.clear()
        try:
            candidates = list_diagram_files(self.store)
            report = MigrationReport(
                total=len(candidates),
                dry_run=dry_run,
                target_version=self.config.migration_target,
                started=utcnow_iso(),
            )
            logger.info(
                f"{'[DRY RUN] ' if dry_run else ''}Migrating {len(candidates)} diagram(s) "
                f"to {self.config.migration_target}"
            )
            for path in candidates:
                if self._stop_requested.is_set():
                    report.stopped_early = True
                    logger.warning("Migration stopped on request")
                    break
                try:
                    result = self.migrate_file(path, dry_run=dry_run, backup=backup)
                except (DiagramStoreError, ValueError) as exc:
                    message = exc.message if isinstance(exc, DiagramStoreError) else str(exc)
                    logger.error(f"Failed: {path}: {message}")
                    report.failed += 1
                    report.errors.append(MigrationErrorEntry(file=path, error=message))
                    report.results.append(
                        FileMigrationResult(path=path, status="failed", message=message)
                    )
                    continue
                report.results.append(result)
                report.needs_review.extend(result.needs_review)
                if result.status == "migrated":
                    report.migrated += 1
                else:
                    report.skipped += 1
            report.finished = utcnow_iso()
            if write_report and not dry_run:
                self.store.write(
                    self.config.migration_report_file,
                    render_report(report, self.config.backup_suffix),
                )
            logger.info(
                f"Migration finished: migrated={report.migrated} skipped={report.skipped} "
                f"failed={report.failed}"
            )
            return report
        finally:
            self._release()

    def rollback_vault(self, write_report: bool = True) -> RollbackReport:
        """Restore every ``*.bac4`` backup byte-for-byte and remove derived files.

        Global nodes lifted into the graph by a v3 migration stay in the graph
        and show up as orphaned nodes afterwards.
        """
        self._acquire()
        try:
            suffix = self.config.backup_suffix
            backups = [
                path for path in self.store.list_files() if path.endswith(".bac4" + suffix)
            ]
            report = RollbackReport()
            if not backups:
                logger.info("No backup files found. Nothing to rollback.")
                return report
            for backup_path in backups:
                original_path = backup_path[: -len(suffix)]
                try:
                    self._restore(original_path, backup_path)
                except DiagramStoreError as exc:
                    logger.error(f"Failed to restore {backup_path}: {exc.message}")
                    report.failed += 1
                    report.errors.append(MigrationErrorEntry(file=backup_path, error=exc.message))
                    continue
                report.restored += 1
                report.restored_files.append(original_path)
                logger.info(f"Restored: {original_path}")
            if write_report:
                self.store.write(ROLLBACK_REPORT_FILE, render_rollback_report(report))
            return report
        finally:
            self._release()

    def _restore(self, original_path: str, backup_path: str) -> None:
        self.store.write_bytes(original_path, self.store.read_bytes(backup_path))
        graph_path = graph_path_for(original_path)
        graph_backup = self._backup_path(graph_path)
        if self.store.exists(graph_backup):
            self.store.write_bytes(graph_path, self.store.read_bytes(graph_backup))
            self.store.delete(graph_backup)
        elif self.store.exists(graph_path):
            self.store.delete(graph_path)
        self.store.delete(backup_path)

    def get_migration_status(self, path: str) -> MigrationStatusInfo:
        if not self.store.exists(path):
            raise NotFoundError(f"File not found: {path}", {"path": path})
        loaded = load_document(self.store, path)
        version = str(loaded.raw.get("version") or "unknown")
        needs_migration = loaded.version in VERSION_RANK and not is_at_least(
            loaded.version, self.target
        )
        return MigrationStatusInfo(
            path=path,
            version=version,
            needs_migration=needs_migration,
            has_backup=self.store.exists(self._backup_path(path)),
            has_graph_file=self.store.exists(graph_path_for(path)),
        )


# ========================================
# Reports
# ========================================


def render_report(report: MigrationReport, backup_suffix: str = ".v1.backup") -> str:
    lines: List[str] = [
        f"# BAC4 v{report.target_version} Migration Report",
        "",
        f"**Date:** {report.finished or report.started}",
        "",
        "## Summary",
        "",
        f"- **Total Files:** {report.total}",
        f"- **Migrated:** {report.migrated} diagrams",
        f"- **Skipped:** {report.skipped} diagrams (already v{report.target_version})",
        f"- **Failed:** {report.failed} diagrams",
    ]
    if report.stopped_early:
        lines += ["", "Migration was stopped before every file was processed."]
    if report.errors:
        lines += ["", "## Errors", "", "The following files failed to migrate:", ""]
        lines += [f"- **{entry.file}**: {entry.error}" for entry in report.errors]
        lines += ["", "**Action Required:** Please review these files manually."]
    if report.needs_review:
        lines += [
            "",
            "## Needs Review",
            "",
            "These values were guessed by keyword matching. Confirm them by hand:",
            "",
        ]
        lines += [
            f"- **{item.file}** `{item.field}` = `{item.value}`: {item.reason}"
            for item in report.needs_review
        ]
    lines += [
        "",
        "## Rollback",
        "",
        f"Original files were saved as `*.bac4{backup_suffix}`. "
        "Run `bac4 rollback` to restore them and delete the derived files.",
        "",
    ]
    return "\n".join(lines)


def render_rollback_report(report: RollbackReport) -> str:
    lines = [
        "# BAC4 Migration Rollback Report",
        "",
        f"**Date:** {utcnow_iso()}",
        "",
        "## Summary",
        "",
        f"- **Restored:** {report.restored} files",
        f"- **Failed:** {report.failed} files",
    ]
    if report.errors:
        lines += ["", "## Errors", ""]
        lines += [f"- **{entry.file}**: {entry.error}" for entry in report.errors]
    lines.append("")
    return "\n".join(lines)


__all__ = [
    "ROLLBACK_REPORT_FILE",
    "TARGET_VERSIONS",
    "MigrationService",
    "render_report",
    "render_rollback_report",
]
