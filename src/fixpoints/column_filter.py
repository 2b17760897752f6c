"""
Column filtering for fixpoint comparison.

Strips configured columns (timestamps, password hashes, ...) from records
before they are compared. Stored fixpoints are never modified.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from .core.models import TableRecords


@dataclass(frozen=True)
class IgnoredColumns:
    """
    Columns to strip from records.

    Attributes:
        global_columns: Columns removed from every table
        per_table: Extra columns removed only from the named table
    """
    global_columns: FrozenSet[str] = frozenset()
    per_table: Mapping[str, FrozenSet[str]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        global_columns: Iterable[Any] = (),
        per_table: Optional[Mapping[str, Iterable[Any]]] = None,
    ) -> "IgnoredColumns":
        """Create from plain iterables; column names are converted to str."""
        return cls(
            global_columns=frozenset(str(c) for c in global_columns),
            per_table={
                str(table): frozenset(str(c) for c in columns)
                for table, columns in (per_table or {}).items()
            },
        )

    @classmethod
    def coerce(cls, value: Any) -> "IgnoredColumns":
        """
        Accept the shapes callers pass around.

        - None: nothing ignored
        - IgnoredColumns: returned as is
        - a mapping with 'global' and/or 'tables' keys (config file shape)
        - a table mapping: {'users': ['password_hash']}
        - a flat list: ['created_at', 'updated_at']
        - a flat list ending in a table mapping:
          ['created_at', 'updated_at', {'users': ['password_hash']}]
        """
        if value is None:
            return cls()
        if isinstance(value, IgnoredColumns):
            return value
        if isinstance(value, Mapping):
            config_keys = {"global", "tables"} & set(value)
            if not config_keys:
                return cls.build((), value)
            if len(config_keys) != len(value):
                raise ValueError(
                    f"Ignored columns mapping mixes 'global'/'tables' with table names: {sorted(map(str, value))}"
                )
            return cls.build(value.get("global", ()), value.get("tables"))
        if isinstance(value, str):
            return cls.build([value])

        columns = list(value)
        per_table = None
        if columns and isinstance(columns[-1], Mapping):
            per_table = columns.pop()
        return cls.build(columns, per_table)

    def columns_for(self, table_name: str) -> FrozenSet[str]:
        """Union of global and table-scoped columns for a table."""
        return self.global_columns | self.per_table.get(table_name, frozenset())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "global": sorted(self.global_columns),
            "tables": {table: sorted(cols) for table, cols in self.per_table.items()},
        }


def filter_records(
    records: Optional[TableRecords],
    table_name: str,
    ignored: IgnoredColumns,
) -> Optional[List[Dict[str, Any]]]:
    """
    Remove ignored columns from each record.

    Args:
        records: Records of the table (None if the table has no rows)
        table_name: Name of the table, selects table-scoped columns
        ignored: Columns to strip

    Returns:
        New list of new records, or None when records is None
    """
    if records is None:
        return None

    columns = ignored.columns_for(table_name)
    return [
        {column: value for column, value in record.items() if column not in columns}
        for record in records
    ]
