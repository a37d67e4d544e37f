import os
import logging
from pathlib import Path

import typer
from rich import print
from rich.table import Table
from rich.panel import Panel

from ..services.config import configure_logging, reload_config
from ..services.errors import DiagramStoreError
from ..services.file_store import VaultFileStore
from ..services.graph_store import GraphStore
from ..services.diagram_store import DiagramStore
from ..services.migration import MigrationService
from ..services.navigation import NavigationService

logger = logging.getLogger(__name__)

APP_HELP = """
bac4: Maintenance tools for C4 diagram vaults.

Every command works on the vault given by --vault (or VAULT_PATH).

COMMON TASKS:
1. INSPECT:  Run `bac4 status <file>` to see a diagram's schema version.
2. MIGRATE:  Run `bac4 migrate --dry-run` first, then `bac4 migrate`.
3. UNDO:     Run `bac4 rollback` to restore every backup.
4. CLEAN:    Run `bac4 orphans --cleanup` to drop dangling edges.
"""

app = typer.Typer(name="bac4", help=APP_HELP, no_args_is_help=True)


@app.callback()
def main(
    vault: Path = typer.Option(None, "--vault", "-v", help="Vault root directory (overrides VAULT_PATH)"),
    log_level: str = typer.Option(None, "--log-level", help="Root log level"),
):
    if vault is not None:
        os.environ["VAULT_PATH"] = str(vault)
    config = reload_config()
    configure_logging(log_level or config.log_level)


def _services():
    config = reload_config()
    store = VaultFileStore(config.vault_path)
    graph_store = GraphStore(store, config)
    return config, store, graph_store


@app.command("migrate")
def migrate(
    dry_run: bool = typer.Option(False, "--dry-run", help="Report what would change without writing"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Do not keep copies of the original files"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Migrate every diagram in the vault to the configured schema version.

    Files already at the target version are skipped untouched. A failure in one
    file is recorded in the report and the batch carries on.
    """
    config, store, graph_store = _services()
    service = MigrationService(store, config, graph_store)
    try:
        report = service.migrate_vault(dry_run=dry_run, backup=not no_backup)
    except DiagramStoreError as exc:
        print(f"[red]Error: {exc.message}[/red]")
        raise typer.Exit(code=1)

    if json_output:
        typer.echo(report.model_dump_json(by_alias=True, indent=2))
        return

    title = "Migration (dry run)" if dry_run else "Migration"
    print(Panel(
        f"Target: {report.target_version}\n"
        f"Total: {report.total}  Migrated: {report.migrated}  "
        f"Skipped: {report.skipped}  Failed: {report.failed}",
        title=title,
        border_style="blue",
    ))

    if report.errors:
        table = Table(title="Errors")
        table.add_column("File", style="cyan")
        table.add_column("Error", style="red")
        for entry in report.errors:
            table.add_row(entry.file, entry.error)
        print(table)

    if report.needs_review:
        table = Table(title="Needs Review")
        table.add_column("File", style="cyan")
        table.add_column("Field", style="magenta")
        table.add_column("Value")
        table.add_column("Reason", style="dim")
        for item in report.needs_review:
            table.add_row(item.file, item.field, item.value, item.reason)
        print(table)

    if report.failed:
        raise typer.Exit(code=1)


@app.command("rollback")
def rollback():
    """Restore every diagram from its migration backup."""
    config, store, graph_store = _services()
    service = MigrationService(store, config, graph_store)
    report = service.rollback_vault()

    print(f"[green]Restored {report.restored} file(s)[/green]")
    for entry in report.errors:
        print(f"[red]{entry.file}: {entry.error}[/red]")
    if report.failed:
        raise typer.Exit(code=1)


@app.command("status")
def status(path: str = typer.Argument(..., help="Vault-relative .bac4 path")):
    """Show the schema version and migration state of one diagram."""
    config, store, graph_store = _services()
    service = MigrationService(store, config, graph_store)
    try:
        info = service.get_migration_status(path)
    except DiagramStoreError as exc:
        print(f"[red]Error: {exc.message}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=path)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Version", info.version)
    table.add_row("Needs migration", "yes" if info.needs_migration else "no")
    table.add_row("Backup", "yes" if info.has_backup else "no")
    table.add_row("Graph sibling", "yes" if info.has_graph_file else "no")
    print(table)


@app.command("orphans")
def orphans(
    cleanup: bool = typer.Option(False, "--cleanup", help="Delete edges whose endpoints are gone"),
):
    """List nodes shown by no diagram and edges with missing endpoints."""
    _, _, graph_store = _services()

    nodes = graph_store.get_orphaned_nodes()
    edges = graph_store.get_orphaned_edges()

    table = Table(title="Orphaned Nodes")
    table.add_column("ID", style="cyan")
    table.add_column("Label", style="magenta")
    table.add_column("Type")
    for node in nodes:
        table.add_row(node.id, node.label, node.type)
    print(table)

    table = Table(title="Orphaned Edges")
    table.add_column("ID", style="cyan")
    table.add_column("Source")
    table.add_column("Target")
    for edge in edges:
        table.add_row(edge.id, edge.source, edge.target)
    print(table)

    if cleanup:
        removed = graph_store.cleanup_orphaned_edges()
        print(f"[green]Removed {removed} orphaned edge(s)[/green]")


@app.command("breadcrumbs")
def breadcrumbs(path: str = typer.Argument(..., help="Vault-relative .bac4 path")):
    """Print the parent chain of a diagram, root first."""
    config, store, graph_store = _services()
    diagrams = DiagramStore(store, graph_store, config)
    navigation = NavigationService(store, diagrams, config)
    try:
        items = navigation.build_breadcrumbs(path)
    except DiagramStoreError as exc:
        print(f"[red]Error: {exc.message}[/red]")
        raise typer.Exit(code=1)

    print(" > ".join(f"{item.label} [dim]({item.path})[/dim]" for item in items))


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(None, "--port", "-p", help="Port (defaults to PORT or 8000)"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    port = port or int(os.getenv("PORT", "8000"))
    uvicorn.run("backend.src.api.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
