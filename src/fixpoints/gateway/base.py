"""
Database gateway interface for reading and replacing table contents.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Mapping

from ..core.models import Record


class DatabaseGateway(ABC):
    """
    Abstract base class for database gateways.

    A gateway wraps a caller-supplied connection and exposes the few
    operations fixpoints need: listing tables, reading all rows of a table,
    and replacing all rows of a table.
    """

    @abstractmethod
    def list_tables(self) -> List[str]:
        """
        Get the names of all user tables.

        Returns:
            Table names
        """
        pass

    @abstractmethod
    def primary_key_columns(self, table: str) -> List[str]:
        """
        Get the primary key columns of a table, in key order.

        Returns:
            Column names (empty if the table has no primary key)
        """
        pass

    @abstractmethod
    def select_all_rows(self, table: str) -> List[Record]:
        """
        Read every row of a table.

        Rows are ordered by primary key when the table has one, otherwise
        in the database's natural order.

        Returns:
            List of column name to value mappings
        """
        pass

    @abstractmethod
    def replace_all_rows(self, table: str, rows: List[Record]) -> int:
        """
        Delete all rows of a table, then insert the given rows.

        Does not commit; see replace_tables().

        Returns:
            Number of rows inserted
        """
        pass

    def replace_tables(self, records_in_tables: Mapping[str, List[Record]]) -> Dict[str, int]:
        """
        Replace the contents of several tables in one transaction.

        Args:
            records_in_tables: Rows per table; an empty list clears the table

        Returns:
            Number of rows inserted per table
        """
        inserted = {}
        try:
            for table, rows in records_in_tables.items():
                inserted[table] = self.replace_all_rows(table, list(rows))
            self.commit()
        except Exception:
            self.rollback()
            raise
        return inserted

    def commit(self) -> None:
        """Commit the current transaction."""
        pass

    def rollback(self) -> None:
        """Roll back the current transaction."""
        pass

    def close(self) -> None:
        """Close the gateway and release resources."""
        pass
