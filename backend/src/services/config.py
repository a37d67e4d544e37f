"""Application configuration helpers."""

from __future__ import annotations

from functools import lru_cache
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_VAULT_PATH = PROJECT_ROOT / "data" / "vault"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MIGRATION_TARGETS = ("2.5.1", "3.0.0")


class AppConfig(BaseModel):
    """Runtime configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    vault_path: Path = Field(..., description="Root directory of the diagram vault")
    graph_file: str = Field(
        default="BAC4/__graph__.json",
        description="Vault-relative path of the global graph document",
    )
    relationship_index_file: str = Field(
        default="diagram-relationships.json",
        description="Vault-relative path of the legacy relationship index (read-only)",
    )
    autosave_delay_seconds: float = Field(
        default=0.5, ge=0, description="Idle delay before a debounced save is written"
    )
    graph_cache_ttl_seconds: float = Field(
        default=5.0, ge=0, description="How long a loaded graph document may be reused"
    )
    backup_suffix: str = Field(
        default=".v1.backup", description="Suffix appended to migration backups"
    )
    migration_report_file: str = Field(
        default="BAC4-Migration-Report.md",
        description="Vault-relative path of the migration report",
    )
    migration_target: str = Field(
        default="3.0.0", description="Schema version produced by the migration engine"
    )
    log_level: str = Field(default="INFO", description="Root log level")

    @field_validator("vault_path", mode="before")
    @classmethod
    def _normalize_vault_path(cls, value: str | Path | None) -> Path:
        if value is None or value == "":
            raise ValueError("VAULT_PATH is required")
        path = value if isinstance(value, Path) else Path(value)
        return path.expanduser().resolve()

    @field_validator("graph_file", "relationship_index_file", "migration_report_file")
    @classmethod
    def _ensure_relative(cls, value: str) -> str:
        cleaned = value.strip().replace("\\", "/")
        if not cleaned:
            raise ValueError("File path cannot be empty")
        if cleaned.startswith("/") or ".." in cleaned.split("/"):
            raise ValueError(f"Path must be relative to the vault: {value}")
        return cleaned

    @field_validator("backup_suffix")
    @classmethod
    def _ensure_suffix(cls, value: str) -> str:
        if not value.startswith(".") or "/" in value:
            raise ValueError("Backup suffix must start with '.' and contain no '/'")
        return value

    @field_validator("migration_target")
    @classmethod
    def _ensure_target(cls, value: str) -> str:
        if value not in MIGRATION_TARGETS:
            raise ValueError(f"Migration target must be one of {', '.join(MIGRATION_TARGETS)}")
        return value

    @field_validator("log_level")
    @classmethod
    def _ensure_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"Unknown log level: {value}")
        return level


def _read_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load and cache application configuration."""
    config = AppConfig(
        vault_path=_read_env("VAULT_PATH", str(DEFAULT_VAULT_PATH)),
        graph_file=_read_env("BAC4_GRAPH_FILE", "BAC4/__graph__.json"),
        relationship_index_file=_read_env(
            "BAC4_RELATIONSHIP_INDEX", "diagram-relationships.json"
        ),
        autosave_delay_seconds=float(_read_env("BAC4_AUTOSAVE_DELAY", "0.5")),
        graph_cache_ttl_seconds=float(_read_env("BAC4_GRAPH_CACHE_TTL", "5")),
        backup_suffix=_read_env("BAC4_BACKUP_SUFFIX", ".v1.backup"),
        migration_report_file=_read_env("BAC4_MIGRATION_REPORT", "BAC4-Migration-Report.md"),
        migration_target=_read_env("BAC4_MIGRATION_TARGET", "3.0.0"),
        log_level=_read_env("LOG_LEVEL", "INFO"),
    )
    # Ensure the vault directory exists for downstream services.
    config.vault_path.mkdir(parents=True, exist_ok=True)
    return config


def reload_config() -> AppConfig:
    """Clear cached config (useful for tests) and reload."""
    get_config.cache_clear()
    return get_config()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the API process or the CLI."""
    logging.basicConfig(level=(level or "INFO").upper(), format=LOG_FORMAT)


__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "configure_logging",
    "PROJECT_ROOT",
    "DEFAULT_VAULT_PATH",
    "MIGRATION_TARGETS",
]
