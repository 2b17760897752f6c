"""
Unit tests for FixpointConfig.
"""

from pathlib import Path

import pytest

from fixpoints.column_filter import IgnoredColumns
from fixpoints.config import FixpointConfig
from fixpoints.config.config_loader import DEFAULT_TABLES_TO_SKIP
from fixpoints.manager import FixpointManager


CONFIG_YAML = """
fixpoints_path: fixpoints
max_parent_depth: 10
tables_to_skip: [schema_migrations]
diff_ignore_columns: [updated_at, synced_at]
compare_ignored_columns:
  global: [updated_at]
  tables:
    users: [password_hash]
gateway:
  backend: sqlite
  db_path: var/test.sqlite3
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("FIXPOINTS_PATH", raising=False)
    monkeypatch.delenv("FIXPOINTS_MAX_PARENT_DEPTH", raising=False)


class TestDefaults:
    """Tests for the default configuration."""

    def test_defaults(self):
        config = FixpointConfig()

        assert config.fixpoints_path is None
        assert config.max_parent_depth == 64
        assert "alembic_version" in config.tables_to_skip
        assert config.diff_ignore_columns == {"updated_at"}
        assert config.compare_ignored_columns.columns_for("books") == {"created_at", "updated_at"}
        assert config.gateway == {}

    def test_from_empty_dict(self):
        config = FixpointConfig.from_dict({})

        assert config.tables_to_skip == DEFAULT_TABLES_TO_SKIP
        assert config.max_parent_depth == 64


class TestLoad:
    """Tests for loading YAML files."""

    def test_load(self, tmp_path):
        config_path = tmp_path / "fixpoints.yml"
        config_path.write_text(CONFIG_YAML, encoding="utf-8")

        config = FixpointConfig.load(config_path)

        assert config.fixpoints_path == tmp_path / "fixpoints"
        assert config.max_parent_depth == 10
        assert config.tables_to_skip == {"schema_migrations"}
        assert config.diff_ignore_columns == {"updated_at", "synced_at"}
        assert config.compare_ignored_columns == IgnoredColumns.build(
            ["updated_at"], {"users": ["password_hash"]}
        )
        assert config.gateway == {"backend": "sqlite", "db_path": str(tmp_path / "var/test.sqlite3")}

    def test_absolute_paths_are_kept(self, tmp_path):
        absolute = tmp_path / "elsewhere"
        config = FixpointConfig.from_dict({"fixpoints_path": str(absolute)}, base_dir=Path("/ignored"))

        assert config.fixpoints_path == absolute

    def test_memory_database_is_kept(self, tmp_path):
        config = FixpointConfig.from_dict({"gateway": {"backend": "sqlite", "db_path": ":memory:"}}, tmp_path)

        assert config.gateway["db_path"] == ":memory:"

    def test_empty_file(self, tmp_path):
        config_path = tmp_path / "fixpoints.yml"
        config_path.write_text("", encoding="utf-8")

        assert FixpointConfig.load(config_path).max_parent_depth == 64

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FixpointConfig.load(tmp_path / "missing.yml")

    def test_legacy_ignored_columns_list(self):
        config = FixpointConfig.from_dict({"compare_ignored_columns": ["updated_at", {"users": ["token"]}]})

        assert config.compare_ignored_columns.columns_for("users") == {"updated_at", "token"}


class TestEnvOverrides:
    """Tests for environment variable overrides."""

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FIXPOINTS_PATH", str(tmp_path / "from_env"))
        monkeypatch.setenv("FIXPOINTS_MAX_PARENT_DEPTH", "5")

        config = FixpointConfig().apply_env_overrides()

        assert config.fixpoints_path == tmp_path / "from_env"
        assert config.max_parent_depth == 5

    def test_load_applies_env(self, tmp_path, monkeypatch):
        config_path = tmp_path / "fixpoints.yml"
        config_path.write_text(CONFIG_YAML, encoding="utf-8")
        monkeypatch.setenv("FIXPOINTS_MAX_PARENT_DEPTH", "3")

        assert FixpointConfig.load(config_path).max_parent_depth == 3
        assert FixpointConfig.load(config_path, apply_env=False).max_parent_depth == 10


class TestRoundTrip:
    """Tests for to_dict and wiring into the manager."""

    def test_to_dict_from_dict(self, tmp_path):
        config = FixpointConfig(
            fixpoints_path=tmp_path,
            max_parent_depth=8,
            compare_ignored_columns=IgnoredColumns.build(["updated_at"], {"users": ["token"]}),
        )

        restored = FixpointConfig.from_dict(config.to_dict())

        assert restored == config

    def test_manager_from_config(self, fixpoints_dir, sqlite_gateway):
        config = FixpointConfig(fixpoints_path=fixpoints_dir, max_parent_depth=3)

        manager = FixpointManager.from_config(config, sqlite_gateway)

        assert manager.store.fixpoints_path == fixpoints_dir
        assert manager.store.max_parent_depth == 3
        assert manager.config is config
