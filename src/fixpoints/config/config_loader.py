"""
Configuration loader for fixpoints.

Example fixpoints.yml:

    fixpoints_path: tests/fixpoints
    max_parent_depth: 64
    tables_to_skip: [alembic_version, django_migrations]
    diff_ignore_columns: [updated_at]
    compare_ignored_columns:
      global: [created_at, updated_at]
      tables:
        users: [password_hash]
    gateway:
      backend: sqlite
      db_path: var/test.sqlite3
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Union

import yaml

from ..column_filter import IgnoredColumns
from ..diff import IGNORE_ATTRIBUTES
from ..store import DEFAULT_MAX_PARENT_DEPTH

logger = logging.getLogger(__name__)

# Bookkeeping tables of migration tools and job queues
DEFAULT_TABLES_TO_SKIP = frozenset({
    "alembic_version",
    "django_migrations",
    "schema_migrations",
    "ar_internal_metadata",
    "schema_info",
    "delayed_jobs",
})

DEFAULT_COMPARE_IGNORED_COLUMNS = IgnoredColumns.build(["created_at", "updated_at"])


@dataclass
class FixpointConfig:
    """
    Configuration for fixpoint storage and comparison.

    Attributes:
        fixpoints_path: Directory holding the fixpoint files
        max_parent_depth: Longest parent chain followed when loading
        tables_to_skip: Tables never captured nor restored
        diff_ignore_columns: Columns never written into incremental change entries
        compare_ignored_columns: Columns stripped before comparing
        gateway: Options for fixpoints.gateway.create_gateway()
    """
    fixpoints_path: Optional[Path] = None
    max_parent_depth: int = DEFAULT_MAX_PARENT_DEPTH
    tables_to_skip: FrozenSet[str] = DEFAULT_TABLES_TO_SKIP
    diff_ignore_columns: FrozenSet[str] = IGNORE_ATTRIBUTES
    compare_ignored_columns: IgnoredColumns = DEFAULT_COMPARE_IGNORED_COLUMNS
    gateway: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def load(cls, config_path: Union[str, Path], apply_env: bool = True) -> "FixpointConfig":
        """
        Load configuration from a YAML file.

        Relative paths in the file are resolved against the file's directory.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        logger.info(f"Loading config from: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        config = cls.from_dict(data or {}, base_dir=config_path.parent)
        if apply_env:
            config.apply_env_overrides()
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "FixpointConfig":
        """Create from a dictionary, falling back to defaults for missing keys."""
        fixpoints_path = data.get("fixpoints_path")
        if fixpoints_path is not None:
            fixpoints_path = Path(fixpoints_path)
            if base_dir is not None and not fixpoints_path.is_absolute():
                fixpoints_path = base_dir / fixpoints_path

        gateway = dict(data.get("gateway") or {})
        db_path = gateway.get("db_path")
        if db_path and db_path != ":memory:" and base_dir is not None and not Path(db_path).is_absolute():
            gateway["db_path"] = str(base_dir / db_path)

        return cls(
            fixpoints_path=fixpoints_path,
            max_parent_depth=int(data.get("max_parent_depth", DEFAULT_MAX_PARENT_DEPTH)),
            tables_to_skip=frozenset(data.get("tables_to_skip", DEFAULT_TABLES_TO_SKIP)),
            diff_ignore_columns=frozenset(data.get("diff_ignore_columns", IGNORE_ATTRIBUTES)),
            compare_ignored_columns=(
                IgnoredColumns.coerce(data["compare_ignored_columns"])
                if "compare_ignored_columns" in data
                else DEFAULT_COMPARE_IGNORED_COLUMNS
            ),
            gateway=gateway,
        )

    def apply_env_overrides(self) -> "FixpointConfig":
        """Apply environment variable overrides."""
        fixpoints_path = os.environ.get("FIXPOINTS_PATH")
        if fixpoints_path:
            self.fixpoints_path = Path(fixpoints_path)

        max_depth = os.environ.get("FIXPOINTS_MAX_PARENT_DEPTH")
        if max_depth:
            self.max_parent_depth = int(max_depth)

        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary (the config file shape)."""
        return {
            "fixpoints_path": str(self.fixpoints_path) if self.fixpoints_path else None,
            "max_parent_depth": self.max_parent_depth,
            "tables_to_skip": sorted(self.tables_to_skip),
            "diff_ignore_columns": sorted(self.diff_ignore_columns),
            "compare_ignored_columns": self.compare_ignored_columns.to_dict(),
            "gateway": dict(self.gateway),
        }
