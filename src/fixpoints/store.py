"""
File-based fixpoint storage.

Each fixpoint is one YAML file in the fixpoints directory:

    {fixpoints_path}/
        .gitkeep
        books_created.yml
        books_updated.yml

A full fixpoint maps table names to their records. An incremental fixpoint
additionally holds the reserved '++parent_fixpoint++' key and maps table
names to positional change entries (see fixpoints.diff).

Fixpoints are meant to live in version control: rows are written in block
style with their column order preserved, so diffs between revisions stay
readable.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

import yaml

from .core.exceptions import ArtifactNotFound, ParentChainError, StorageLocationInvalid
from .core.models import PARENT_KEY, Fixpoint, RecordsInTables, strip_empty_tables
from .diff import IGNORE_ATTRIBUTES, apply_changes, extract_changes

logger = logging.getLogger(__name__)

FIXPOINT_EXTENSION = ".yml"
DEFAULT_MAX_PARENT_DEPTH = 64


class FixpointStore:
    """
    Reads, writes and resolves fixpoint files in a single directory.
    """

    def __init__(
        self,
        fixpoints_path: Optional[Union[str, Path]],
        max_parent_depth: int = DEFAULT_MAX_PARENT_DEPTH,
        diff_ignore_columns=IGNORE_ATTRIBUTES,
    ):
        """
        Initialize the store.

        Args:
            fixpoints_path: Directory holding the fixpoint files. It must exist;
                the store does not create it.
            max_parent_depth: Longest parent chain load() will follow
            diff_ignore_columns: Columns never written into change entries
        """
        self.fixpoints_path = Path(fixpoints_path) if fixpoints_path else None
        self.max_parent_depth = max_parent_depth
        self.diff_ignore_columns = frozenset(diff_ignore_columns)

    def directory(self) -> Path:
        """
        Get the fixpoints directory.

        Raises:
            StorageLocationInvalid: If the fixpoints directory is unset or missing
        """
        if self.fixpoints_path is None:
            raise StorageLocationInvalid(
                "Can not infer the fixpoints directory, please set `fixpoints_path` explicitly"
            )
        if not self.fixpoints_path.is_dir():
            raise StorageLocationInvalid(
                f"Please create the fixpoints folder (and maybe add a .gitkeep): {self.fixpoints_path}"
            )
        return self.fixpoints_path

    def path_for(self, name: str) -> Path:
        """
        Get the file path of a fixpoint.

        Names may contain '/' to group fixpoints in sub-directories
        ("users/created"). Absolute names, empty or hidden parts and '..'
        are rejected, so every path stays inside the fixpoints directory.
        """
        directory = self.directory()
        name = str(name)
        parts = name.split("/")
        if not name or "\\" in name or any(not part or part.startswith(".") for part in parts):
            raise ValueError(f"Invalid fixpoint name: {name!r}")
        return directory.joinpath(*parts[:-1], f"{parts[-1]}{FIXPOINT_EXTENSION}")

    def exists(self, name: str) -> bool:
        """Check whether a fixpoint file exists."""
        return self.path_for(name).exists()

    def names(self) -> List[str]:
        """List the names of all stored fixpoints, including nested ones, sorted."""
        directory = self.directory()
        return sorted(
            path.relative_to(directory).with_suffix("").as_posix()
            for path in directory.rglob(f"*{FIXPOINT_EXTENSION}")
        )

    def read_document(self, name: str) -> Dict[str, Any]:
        """
        Read the raw contents of a fixpoint file.

        Raises:
            ArtifactNotFound: If the file does not exist
        """
        path = self.path_for(name)
        if not path.exists():
            raise ArtifactNotFound(str(name), str(path))

        with open(path, "r", encoding="utf-8") as f:
            document = yaml.safe_load(f)

        if document is None:
            return {}
        if not isinstance(document, dict):
            raise ValueError(f"Fixpoint file {path} does not contain a mapping of tables")
        return document

    def load(self, name: str) -> Fixpoint:
        """
        Load a fixpoint and resolve its parent chain.

        Returns:
            Fixpoint with records_in_tables holding the complete records
        """
        return self._load(str(name), [])

    def _load(self, name: str, chain: List[str]) -> Fixpoint:
        if name in chain:
            raise ParentChainError(
                f"Fixpoint parent chain contains a cycle: {' -> '.join(chain + [name])}",
                chain + [name],
            )
        if len(chain) > self.max_parent_depth:
            raise ParentChainError(
                f"Fixpoint parent chain of \"{chain[0]}\" is deeper than {self.max_parent_depth}",
                chain + [name],
            )

        document = self.read_document(name)
        parent_name = document.pop(PARENT_KEY, None)
        changes_in_tables = strip_empty_tables(document)

        if parent_name is None:
            return Fixpoint(records_in_tables=changes_in_tables, name=name)

        parent_name = str(parent_name)
        logger.debug(f"Resolving parent \"{parent_name}\" of fixpoint \"{name}\"")
        parent = self._load(parent_name, chain + [name])
        return Fixpoint(
            records_in_tables=apply_changes(parent.records_in_tables, changes_in_tables),
            changes_in_tables=changes_in_tables,
            parent_name=parent_name,
            name=name,
        )

    def build(self, records_in_tables: RecordsInTables, parent_name: Optional[str] = None) -> Fixpoint:
        """
        Build a fixpoint from complete records, diffed against a parent if given.

        The result is not written; see save().
        """
        records_in_tables = strip_empty_tables(records_in_tables)
        if parent_name is None:
            return Fixpoint(records_in_tables=records_in_tables)

        parent = self.load(parent_name)
        changes_in_tables = extract_changes(
            parent.records_in_tables,
            records_in_tables,
            self.diff_ignore_columns,
        )
        return Fixpoint(
            records_in_tables=records_in_tables,
            changes_in_tables=strip_empty_tables(changes_in_tables),
            parent_name=str(parent_name),
        )

    def write(self, name: str, fixpoint: Fixpoint) -> Path:
        """Write a fixpoint to its file, replacing any existing one."""
        path = self.path_for(name)
        if path.exists():
            logger.warning(f"Overwriting existing fixpoint \"{name}\" ({path})")

        contents = yaml.safe_dump(
            fixpoint.to_document(),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(contents)

        fixpoint.name = str(name)
        kind = f"incremental (parent \"{fixpoint.parent_name}\")" if fixpoint.is_incremental else "full"
        logger.info(f"Stored {kind} fixpoint \"{name}\" with {len(fixpoint.table_names)} table(s)")
        return path

    def save(
        self,
        name: str,
        records_in_tables: RecordsInTables,
        parent_name: Optional[str] = None,
    ) -> Fixpoint:
        """
        Store complete records as a fixpoint.

        Args:
            name: Fixpoint name
            records_in_tables: Complete records per table
            parent_name: If given, only the changes against this fixpoint are stored

        Returns:
            The stored Fixpoint
        """
        fixpoint = self.build(records_in_tables, parent_name)
        self.write(name, fixpoint)
        return fixpoint

    def remove(self, name: str) -> None:
        """Delete a fixpoint file; does nothing if it does not exist."""
        path = self.path_for(name)
        if path.exists():
            path.unlink()
            logger.info(f"Removed fixpoint \"{name}\"")

    def parent_chain(self, name: str) -> List[str]:
        """
        Get the names from a fixpoint up to its full root fixpoint.

        Only parent keys are read, no changes are applied.
        """
        chain: List[str] = []
        seen: Set[str] = set()
        current: Optional[str] = str(name)
        while current is not None:
            if current in seen or len(chain) > self.max_parent_depth:
                raise ParentChainError(
                    f"Cannot resolve parent chain of \"{name}\": {' -> '.join(chain + [current])}",
                    chain + [current],
                )
            seen.add(current)
            chain.append(current)
            parent = self.read_document(current).get(PARENT_KEY)
            current = str(parent) if parent is not None else None
        return chain
