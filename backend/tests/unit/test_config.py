from pathlib import Path

import pytest

from backend.src.services import config as config_module
from backend.src.services.config import AppConfig


def test_get_config_reads_vault_path_from_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("VAULT_PATH", str(tmp_path / "vault"))

    cfg = config_module.reload_config()

    assert cfg.vault_path == (tmp_path / "vault").resolve()
    assert cfg.vault_path.is_dir()
    assert cfg.graph_file == "BAC4/__graph__.json"
    assert cfg.migration_target == "3.0.0"


def test_get_config_is_cached_until_reload(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("VAULT_PATH", str(tmp_path / "first"))
    first = config_module.reload_config()

    monkeypatch.setenv("VAULT_PATH", str(tmp_path / "second"))

    assert config_module.get_config() is first
    assert config_module.reload_config().vault_path == (tmp_path / "second").resolve()


def test_get_config_reads_tuning_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("VAULT_PATH", str(tmp_path))
    monkeypatch.setenv("BAC4_AUTOSAVE_DELAY", "1.5")
    monkeypatch.setenv("BAC4_MIGRATION_TARGET", "2.5.1")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    cfg = config_module.reload_config()

    assert cfg.autosave_delay_seconds == 1.5
    assert cfg.migration_target == "2.5.1"
    assert cfg.log_level == "DEBUG"


def test_get_config_rejects_unknown_migration_target(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("VAULT_PATH", str(tmp_path))
    monkeypatch.setenv("BAC4_MIGRATION_TARGET", "4.0.0")

    with pytest.raises(ValueError):
        config_module.reload_config()


@pytest.mark.parametrize("graph_file", ["/etc/graph.json", "../graph.json", "  "])
def test_config_rejects_paths_outside_vault(tmp_path: Path, graph_file: str) -> None:
    with pytest.raises(ValueError):
        AppConfig(vault_path=tmp_path, graph_file=graph_file)


def test_config_rejects_bad_backup_suffix(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        AppConfig(vault_path=tmp_path, backup_suffix="backup")


def test_config_rejects_unknown_log_level(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        AppConfig(vault_path=tmp_path, log_level="chatty")
