"""
Core data models for fixpoints.

A record is an ordered mapping of column name to scalar value. A fixpoint
maps table names to the ordered list of their records; the list order is the
positional identity used by the diff and merge engines.
"""

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

Record = Dict[str, Any]
TableRecords = List[Record]
RecordsInTables = Dict[str, TableRecords]

# Reserved top-level key holding the parent fixpoint name in incremental files
PARENT_KEY = "++parent_fixpoint++"


def normalize_value(value: Any) -> Any:
    """
    Normalize a database value to a scalar the fixpoint file can hold.

    Booleans, numbers, strings, None, dates, datetimes and bytes pass
    through. Decimals, UUIDs, times and anything else become strings so a
    value read back from the file compares equal to the live value.
    """
    if value is None or isinstance(value, (bool, int, float, str, bytes)):
        return value
    if isinstance(value, (dt.datetime, dt.date)):
        return value
    if isinstance(value, memoryview):
        return value.tobytes()
    if isinstance(value, bytearray):
        return bytes(value)
    return str(value)


def normalize_record(record: Record) -> Record:
    """Return a new record with every value normalized."""
    return {column: normalize_value(value) for column, value in record.items()}


def strip_empty_tables(records_in_tables: Dict[str, Optional[list]]) -> Dict[str, list]:
    """Drop tables without entries; absence of a table means 'no rows'."""
    return {table: rows for table, rows in records_in_tables.items() if rows}


@dataclass
class Fixpoint:
    """
    A snapshot of database contents, full or incremental.

    Attributes:
        records_in_tables: Complete records per table (parent chain resolved)
        changes_in_tables: What is persisted; equals records_in_tables for a
            full fixpoint, the positional change-set for an incremental one
        parent_name: Name of the parent fixpoint, None for a full fixpoint
        name: Name the fixpoint was loaded from or saved as, if any
    """
    records_in_tables: RecordsInTables = field(default_factory=dict)
    changes_in_tables: Optional[Dict[str, list]] = None
    parent_name: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self):
        if self.changes_in_tables is None:
            self.changes_in_tables = self.records_in_tables

    @property
    def is_incremental(self) -> bool:
        return self.parent_name is not None

    @property
    def table_names(self) -> List[str]:
        return list(self.records_in_tables.keys())

    def records_for_table(self, table_name: str, ignored_columns: Any = None) -> Optional[TableRecords]:
        """
        Get the records of a table with ignored columns stripped.

        Args:
            table_name: Table to read
            ignored_columns: Anything IgnoredColumns.coerce() accepts

        Returns:
            New list of new records, or None if the table has no rows
        """
        from ..column_filter import IgnoredColumns, filter_records

        return filter_records(
            self.records_in_tables.get(table_name),
            table_name,
            IgnoredColumns.coerce(ignored_columns),
        )

    def to_document(self) -> Dict[str, Any]:
        """Build the mapping written to the fixpoint file."""
        document: Dict[str, Any] = {}
        if self.parent_name is not None:
            document[PARENT_KEY] = self.parent_name
        document.update(strip_empty_tables(self.changes_in_tables))
        return document

    def summary(self) -> Dict[str, int]:
        """Get row counts per table."""
        return {table: len(rows) for table, rows in self.records_in_tables.items()}
