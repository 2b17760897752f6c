"""
SQLite database gateway.

Suitable for local test suites that run against a SQLite file or an
in-memory database.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Dict, List, Mapping, Union

from ..core.exceptions import GatewayError
from ..core.models import Record
from .base import DatabaseGateway

logger = logging.getLogger(__name__)


def quote_identifier(name: str) -> str:
    """Quote a table or column name for SQLite."""
    return '"' + str(name).replace('"', '""') + '"'


class SqliteGateway(DatabaseGateway):
    """
    Gateway over a sqlite3 connection.

    The connection is owned by the caller unless created via connect().
    """

    def __init__(self, conn: sqlite3.Connection, owns_connection: bool = False):
        """
        Initialize the gateway.

        Args:
            conn: Open sqlite3 connection
            owns_connection: Whether close() should close the connection
        """
        self.conn = conn
        self._owns_connection = owns_connection

    @classmethod
    def connect(cls, db_path: Union[str, Path]) -> "SqliteGateway":
        """Open a connection to a database file (or ':memory:')."""
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(db_path))
        logger.debug(f"Connected to SQLite database: {db_path}")
        return cls(conn, owns_connection=True)

    def list_tables(self) -> List[str]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        tables = [row[0] for row in cursor.fetchall()]
        cursor.close()
        return tables

    def primary_key_columns(self, table: str) -> List[str]:
        cursor = self.conn.cursor()
        cursor.execute(f"PRAGMA table_info({quote_identifier(table)})")
        # (cid, name, type, notnull, dflt_value, pk); pk is the 1-based key position
        key_columns = sorted((row[5], row[1]) for row in cursor.fetchall() if row[5])
        cursor.close()
        return [name for _, name in key_columns]

    def select_all_rows(self, table: str) -> List[Record]:
        sql = f"SELECT * FROM {quote_identifier(table)}"
        key_columns = self.primary_key_columns(table)
        if key_columns:
            sql += " ORDER BY " + ", ".join(quote_identifier(c) for c in key_columns)

        cursor = self.conn.cursor()
        try:
            cursor.execute(sql)
            columns = [description[0] for description in cursor.description]
            rows = [dict(zip(columns, row)) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise GatewayError(f"Failed to read from {table}: {e}", table=table)
        finally:
            cursor.close()

        logger.debug(f"Read {len(rows)} rows from {table}")
        return rows

    def replace_all_rows(self, table: str, rows: List[Record]) -> int:
        cursor = self.conn.cursor()
        try:
            cursor.execute(f"DELETE FROM {quote_identifier(table)}")
            for row in rows:
                columns = list(row.keys())
                columns_str = ", ".join(quote_identifier(c) for c in columns)
                placeholders = ", ".join("?" for _ in columns)
                cursor.execute(
                    f"INSERT INTO {quote_identifier(table)} ({columns_str}) VALUES ({placeholders})",
                    [row[c] for c in columns],
                )
        except sqlite3.Error as e:
            logger.error(f"Failed to replace rows of {table}: {e}")
            raise GatewayError(f"Failed to replace rows of {table}: {e}", table=table)
        finally:
            cursor.close()

        logger.debug(f"Replaced contents of {table} with {len(rows)} rows")
        return len(rows)

    def replace_tables(self, records_in_tables: Mapping[str, List[Record]]) -> Dict[str, int]:
        # PRAGMA foreign_keys is a no-op inside a transaction
        self.conn.commit()
        foreign_keys = self.conn.execute("PRAGMA foreign_keys").fetchone()[0]
        if foreign_keys:
            self.conn.execute("PRAGMA foreign_keys = OFF")
        try:
            return super().replace_tables(records_in_tables)
        finally:
            if foreign_keys:
                self.conn.execute("PRAGMA foreign_keys = ON")

    def commit(self) -> None:
        self.conn.commit()

    def rollback(self) -> None:
        self.conn.rollback()

    def close(self) -> None:
        if self._owns_connection and self.conn:
            self.conn.close()
            self.conn = None
