"""
Fixpoint manager - capture, store, restore and compare database contents.

Typical test flow:

    manager.restore("books_created")
    ...  # run the behaviour under test
    manager.store_fixpoint_unless_present("books_updated", parent_name="books_created")
    manager.compare("books_updated")

Tests must run in a defined order: a fixpoint has to be stored before a later
test restores it or uses it as parent. If a fixpoint changed on purpose,
delete its file and re-run the test producing it, then the tests based on it.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .column_filter import IgnoredColumns
from .config.config_loader import FixpointConfig
from .core.exceptions import ArtifactNotFound, ComparisonMismatch, FixpointCreated
from .core.models import Fixpoint, RecordsInTables, TableRecords, normalize_record
from .gateway.base import DatabaseGateway
from .store import FixpointStore

logger = logging.getLogger(__name__)


class _LastRestored:
    """Sentinel: use the fixpoint most recently restored by the manager."""

    def __repr__(self) -> str:
        return "LAST_RESTORED"


LAST_RESTORED = _LastRestored()

# Marker default: use the ignored columns from the configuration
DEFAULT = object()


@dataclass
class TableMismatch:
    """A table whose database records differ from the fixpoint."""
    table: str
    missing_in: Optional[str] = None  # 'fixpoint', 'database' or None
    database_count: int = 0
    fixpoint_count: int = 0
    differences: List[str] = field(default_factory=list)

    def describe(self) -> str:
        if self.missing_in == "fixpoint":
            return f"{self.table}: not in fixpoint, but in database ({self.database_count} rows)"
        if self.missing_in == "database":
            return f"{self.table}: not in database, but in fixpoint ({self.fixpoint_count} rows)"
        hint = "; ".join(self.differences)
        return (
            f"{self.table}: database has {self.database_count} rows, fixpoint has "
            f"{self.fixpoint_count} rows. {hint}"
        )


@dataclass
class ComparisonReport:
    """Result of comparing the database against a fixpoint."""
    fixpoint_name: str
    compared_tables: List[str] = field(default_factory=list)
    mismatches: List[TableMismatch] = field(default_factory=list)

    @property
    def matches(self) -> bool:
        return not self.mismatches

    def summary(self) -> str:
        lines = [
            f"Comparison with fixpoint \"{self.fixpoint_name}\"",
            f"  Tables compared: {len(self.compared_tables)}",
            f"  Mismatches: {len(self.mismatches)}",
        ]
        lines.extend(f"    {m.describe()}" for m in self.mismatches)
        return "\n".join(lines)


def describe_differences(
    database_records: TableRecords,
    fixpoint_records: TableRecords,
    limit: int = 3,
) -> List[str]:
    """
    Describe the first positions at which two record lists differ.

    Returns:
        Human-readable hints such as "position 2: title 'A' != 'B'"
    """
    hints: List[str] = []
    for position in range(max(len(database_records), len(fixpoint_records))):
        if len(hints) >= limit:
            hints.append("...")
            break
        if position >= len(fixpoint_records):
            hints.append(f"position {position}: extra database record {database_records[position]!r}")
            continue
        if position >= len(database_records):
            hints.append(f"position {position}: missing database record {fixpoint_records[position]!r}")
            continue

        db_record = database_records[position]
        fp_record = fixpoint_records[position]
        if db_record == fp_record:
            continue
        columns = list(fp_record) + [c for c in db_record if c not in fp_record]
        details = [
            f"{column} {db_record.get(column)!r} != {fp_record.get(column)!r}"
            for column in columns
            if column not in db_record or column not in fp_record or db_record[column] != fp_record[column]
        ]
        hints.append(f"position {position}: " + ", ".join(details) + " (database != fixpoint)")
    return hints


class FixpointManager:
    """
    Captures, stores, restores and compares fixpoints of one database.
    """

    def __init__(
        self,
        store: FixpointStore,
        gateway: DatabaseGateway,
        config: Optional[FixpointConfig] = None,
    ):
        """
        Initialize the fixpoint manager.

        Args:
            store: Fixpoint file store
            gateway: Database gateway (connection chosen by the caller)
            config: Configuration (defaults if not provided)
        """
        self.store = store
        self.gateway = gateway
        self.config = config or FixpointConfig()
        self.last_restored: Optional[str] = None

    @classmethod
    def from_config(cls, config: FixpointConfig, gateway: DatabaseGateway) -> "FixpointManager":
        """Create a manager with a store built from the configuration."""
        store = FixpointStore(
            config.fixpoints_path,
            max_parent_depth=config.max_parent_depth,
            diff_ignore_columns=config.diff_ignore_columns,
        )
        return cls(store, gateway, config)

    def _tables(self, exclude_tables: Iterable[str] = ()) -> List[str]:
        skipped = set(self.config.tables_to_skip) | set(exclude_tables)
        return [table for table in self.gateway.list_tables() if table not in skipped]

    def read_database_records(self, exclude_tables: Iterable[str] = ()) -> RecordsInTables:
        """
        Read the records of all tables. Empty tables are skipped.

        Records keep the gateway's order: by primary key where the table has
        one (the database collation decides), otherwise the database's
        natural order, which may not be stable.
        """
        records_in_tables: RecordsInTables = {}
        for table in self._tables(exclude_tables):
            rows = self.gateway.select_all_rows(table)
            if not rows:
                continue
            records_in_tables[table] = [normalize_record(row) for row in rows]

        logger.debug(f"Read {len(records_in_tables)} non-empty table(s) from database")
        return records_in_tables

    def _resolve_parent(self, parent_name: Any) -> Optional[str]:
        if parent_name is LAST_RESTORED:
            if self.last_restored is None:
                raise ValueError("No fixpoint has been restored yet, cannot use LAST_RESTORED as parent")
            return self.last_restored
        return str(parent_name) if parent_name is not None else None

    def capture(self, parent_name: Any = None, exclude_tables: Iterable[str] = ()) -> Fixpoint:
        """
        Create a fixpoint from the database contents without storing it.

        Args:
            parent_name: If given, the fixpoint holds the changes against this parent
            exclude_tables: Tables to leave out

        Returns:
            Unsaved Fixpoint
        """
        return self.store.build(
            self.read_database_records(exclude_tables),
            self._resolve_parent(parent_name),
        )

    def store_fixpoint(
        self,
        name: str,
        parent_name: Any = None,
        exclude_tables: Iterable[str] = (),
    ) -> Fixpoint:
        """
        Store the database contents as a fixpoint.

        Prefer store_fixpoint_unless_present(): rewriting a fixpoint on every
        run produces timestamp churn in version control.

        Args:
            name: Fixpoint name
            parent_name: If given, only the changes against this fixpoint are
                stored; LAST_RESTORED uses the last restored fixpoint
            exclude_tables: Tables to leave out
        """
        fixpoint = self.capture(parent_name, exclude_tables)
        self.store.write(name, fixpoint)
        return fixpoint

    def store_fixpoint_unless_present(
        self,
        name: str,
        parent_name: Any = None,
        exclude_tables: Iterable[str] = (),
    ) -> Optional[Fixpoint]:
        """Store the fixpoint only if no file exists for it yet."""
        if self.store.exists(name):
            logger.debug(f"Fixpoint \"{name}\" already present, not storing")
            return None
        return self.store_fixpoint(name, parent_name, exclude_tables)

    def restore(self, name: str) -> Fixpoint:
        """
        Replace the database contents with a fixpoint.

        Every table known to the database (except skipped ones) is cleared;
        tables missing from the fixpoint stay empty.
        """
        fixpoint = self.store.load(name)
        self.last_restored = str(name)

        records_in_tables: Dict[str, TableRecords] = {
            table: fixpoint.records_in_tables.get(table, []) for table in self._tables()
        }
        unknown = [t for t in fixpoint.table_names if t not in records_in_tables]
        if unknown:
            logger.warning(f"Fixpoint \"{name}\" has tables not in the database: {', '.join(unknown)}")

        inserted = self.gateway.replace_tables(records_in_tables)
        logger.info(f"Restored fixpoint \"{name}\" ({sum(inserted.values())} rows in {len(inserted)} tables)")
        return fixpoint

    def compare(
        self,
        name: str,
        ignored_columns: Any = DEFAULT,
        tables_to_compare: Optional[Sequence[str]] = None,
        store_fixpoint_and_fail: bool = False,
        parent_name: Any = None,
        raise_on_mismatch: bool = True,
    ) -> ComparisonReport:
        """
        Compare the database contents with a stored fixpoint.

        Args:
            name: Fixpoint name
            ignored_columns: Columns to strip before comparing (anything
                IgnoredColumns.coerce() accepts; config default if omitted)
            tables_to_compare: Tables to compare (default: all tables of both sides)
            store_fixpoint_and_fail: If the fixpoint is missing, store it and
                raise FixpointCreated instead of ArtifactNotFound
            parent_name: Parent used when storing a missing fixpoint
            raise_on_mismatch: Raise ComparisonMismatch instead of only reporting

        Returns:
            ComparisonReport

        Raises:
            ArtifactNotFound: If the fixpoint is missing
            FixpointCreated: If the fixpoint was missing and has been stored
            ComparisonMismatch: If any compared table differs
        """
        if not self.store.exists(name):
            if store_fixpoint_and_fail:
                self.store_fixpoint(name, parent_name)
                raise FixpointCreated(str(name))
            raise ArtifactNotFound(str(name), str(self.store.path_for(name)))

        if ignored_columns is DEFAULT:
            ignored = self.config.compare_ignored_columns
        else:
            ignored = IgnoredColumns.coerce(ignored_columns)

        database_fp = Fixpoint(records_in_tables=self.read_database_records())
        fixpoint_fp = self.store.load(name)

        if tables_to_compare is None:
            tables = list(fixpoint_fp.table_names)
            tables += [t for t in database_fp.table_names if t not in tables]
        else:
            tables = [str(t) for t in tables_to_compare]

        report = ComparisonReport(fixpoint_name=str(name), compared_tables=tables)
        for table in tables:
            db_records = database_fp.records_for_table(table, ignored) or []
            fp_records = fixpoint_fp.records_for_table(table, ignored) or []
            if db_records == fp_records:
                continue

            mismatch = TableMismatch(
                table=table,
                database_count=len(db_records),
                fixpoint_count=len(fp_records),
            )
            if not fp_records:
                mismatch.missing_in = "fixpoint"
            elif not db_records:
                mismatch.missing_in = "database"
            else:
                mismatch.differences = describe_differences(db_records, fp_records)
            report.mismatches.append(mismatch)

        if report.mismatches:
            logger.info(report.summary())
            if raise_on_mismatch:
                raise ComparisonMismatch(str(name), report.mismatches)
        else:
            logger.debug(f"Database matches fixpoint \"{name}\" ({len(tables)} tables)")
        return report
