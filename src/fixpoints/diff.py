"""
Positional diff and merge of fixpoint records.

extract_changes() turns a parent and a current snapshot into a change-set;
apply_changes() replays a change-set onto its parent. Per table, records are
aligned by position, not by primary key:

- parent and current record present: only the differing columns
  (an empty mapping when nothing changed)
- only the current record present: the full record (new at the tail)
- only the parent record present: the deletion marker

LIMITATIONS
Removing a record that is not the last one shifts every following position.
Removing the first of [{id: 1}, {id: 2}] and adding {id: 3} is stored as two
changed records ({id: 2}, {id: 3}) instead of one removal and one addition.
Existing fixpoint files depend on this layout; do not switch to key-based
matching.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .core.models import Record, RecordsInTables, TableRecords, strip_empty_tables

logger = logging.getLogger(__name__)

DELETED_KEY = "++DELETED++"
DELETION_MARKER: Dict[str, bool] = {DELETED_KEY: True}

# Never written into a change entry, even when the value differs
IGNORE_ATTRIBUTES = frozenset({"updated_at"})


def deletion_marker() -> Dict[str, bool]:
    """Return a fresh deletion marker."""
    return dict(DELETION_MARKER)


def is_deletion_marker(change: Any) -> bool:
    """Check whether a change entry marks a removed record."""
    return isinstance(change, dict) and bool(change.get(DELETED_KEY))


def _table_union(*snapshots: Optional[Dict[str, Any]]) -> List[str]:
    """Table names of all snapshots, in first-seen order."""
    tables: List[str] = []
    for snapshot in snapshots:
        for table in (snapshot or {}):
            if table not in tables:
                tables.append(table)
    return tables


def _values_differ(old: Any, new: Any) -> bool:
    # 1 == True and 1 == 1.0 in Python, but not once written to the file
    return type(old) is not type(new) or old != new


def extract_records_changes(
    parent_records: Optional[TableRecords],
    records: Optional[TableRecords],
    ignore_attributes: Iterable[str] = IGNORE_ATTRIBUTES,
) -> List[Dict[str, Any]]:
    """
    Compute the positional change entries of one table.

    Args:
        parent_records: Records of the table in the parent (None if absent)
        records: Records of the table now (None if absent)
        ignore_attributes: Columns never recorded as changed

    Returns:
        One entry per position: changed columns, a new record, or a
        deletion marker
    """
    if not parent_records:
        # table was not part of the parent fixpoint
        return [dict(record) for record in (records or [])]
    records = records or []
    ignored = frozenset(ignore_attributes)

    changes: List[Dict[str, Any]] = []
    for position in range(max(len(parent_records), len(records))):
        if position >= len(records):
            changes.append(deletion_marker())
            continue
        record = records[position]
        if position >= len(parent_records):
            changes.append(dict(record))
            continue

        parent = parent_records[position]
        change: Dict[str, Any] = {}
        # a column only the parent has is recorded as None
        for column in list(record) + [c for c in parent if c not in record]:
            if column in ignored:
                continue
            value = record.get(column)
            if column not in parent or _values_differ(parent[column], value):
                change[column] = value
        changes.append(change)
    return changes


def apply_records_changes(
    parent_records: Optional[TableRecords],
    changes: Optional[List[Dict[str, Any]]],
) -> TableRecords:
    """
    Replay the change entries of one table onto the parent records.

    Args:
        parent_records: Records of the table in the parent (None if absent)
        changes: Positional change entries (None if the table did not change)

    Returns:
        New list with deleted positions dropped
    """
    parent_records = parent_records or []
    if not changes:
        return [dict(record) for record in parent_records]

    records: TableRecords = []
    for position, change in enumerate(changes):
        if is_deletion_marker(change):
            continue
        if change is None:
            raise ValueError(f"Change entry at position {position} is empty (None)")
        if position >= len(parent_records):
            records.append(dict(change))  # new record
            continue
        merged = dict(parent_records[position])
        merged.update(change)
        records.append(merged)
    return records


def extract_changes(
    parent_records_in_tables: Optional[RecordsInTables],
    records_in_tables: RecordsInTables,
    ignore_attributes: Iterable[str] = IGNORE_ATTRIBUTES,
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Compute the change-set turning the parent snapshot into the current one.

    Args:
        parent_records_in_tables: Full parent snapshot (None or {} if none)
        records_in_tables: Full current snapshot
        ignore_attributes: Columns never recorded as changed

    Returns:
        Mapping of table name to positional change entries
    """
    ignored = frozenset(ignore_attributes)
    changes_in_tables = {
        table: extract_records_changes(
            (parent_records_in_tables or {}).get(table),
            records_in_tables.get(table),
            ignored,
        )
        for table in _table_union(parent_records_in_tables, records_in_tables)
    }
    logger.debug(f"Extracted changes for {len(changes_in_tables)} table(s)")
    return changes_in_tables


def apply_changes(
    parent_records_in_tables: Optional[RecordsInTables],
    changes_in_tables: Dict[str, List[Dict[str, Any]]],
) -> RecordsInTables:
    """
    Rebuild a full snapshot from its parent and a change-set.

    Tables left without records are omitted from the result.
    """
    records_in_tables = {
        table: apply_records_changes(
            (parent_records_in_tables or {}).get(table),
            changes_in_tables.get(table),
        )
        for table in _table_union(parent_records_in_tables, changes_in_tables)
    }
    return strip_empty_tables(records_in_tables)
