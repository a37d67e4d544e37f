"""HTTP API routes for schema migration."""

from __future__ import annotations

from fastapi import APIRouter, Query

from ...models.migration import MigrationReport, MigrationStatusInfo, RollbackReport
from ..dependencies import MigrationServiceDep

router = APIRouter()


@router.get("/api/migration/status", response_model=MigrationStatusInfo)
async def migration_status(migration: MigrationServiceDep, path: str = Query(...)):
    return migration.get_migration_status(path)


@router.post("/api/migration/run", response_model=MigrationReport)
async def run_migration(
    migration: MigrationServiceDep,
    dry_run: bool = Query(False, description="Report what would change without writing"),
    backup: bool = Query(True, description="Keep a copy of each original file"),
):
    """Migrate every diagram in the vault to the configured version."""
    return migration.migrate_vault(dry_run=dry_run, backup=backup)


@router.post("/api/migration/rollback", response_model=RollbackReport)
async def rollback_migration(migration: MigrationServiceDep):
    return migration.rollback_vault()
