"""
SQL Server database gateway.

Reads and replaces table contents of one schema through pyodbc.
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

try:
    import pyodbc
except ImportError:
    pyodbc = None

from ..core.exceptions import GatewayError
from ..core.models import Record
from .base import DatabaseGateway

logger = logging.getLogger(__name__)

_IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def quote_identifier(name: str) -> str:
    """Quote a schema, table or column name for T-SQL."""
    return "[" + str(name).replace("]", "]]") + "]"


def build_connection_string(
    host: str = "localhost",
    port: int = 1433,
    database: str = "master",
    username: str = "sa",
    password: Optional[str] = None,
    driver: str = "ODBC Driver 18 for SQL Server",
    trust_server_certificate: bool = True,
) -> str:
    """Build an ODBC connection string from discrete values."""
    trust_cert = "yes" if trust_server_certificate else "no"
    return (
        f"Driver={{{driver}}};"
        f"Server={host},{port};"
        f"Database={database};"
        f"UID={username};"
        f"PWD={password or ''};"
        f"TrustServerCertificate={trust_cert}"
    )


class SqlServerGateway(DatabaseGateway):
    """
    Gateway over a pyodbc connection to SQL Server.

    Restores disable foreign key checks for the restored tables and enable
    IDENTITY_INSERT where the rows carry identity values, so fixpoint rows are
    written back with their original keys.
    """

    def __init__(
        self,
        conn: Any = None,
        connection_string: Optional[str] = None,
        host: str = "localhost",
        port: int = 1433,
        database: str = "master",
        username: str = "sa",
        password: Optional[str] = None,
        driver: str = "ODBC Driver 18 for SQL Server",
        schema: str = "dbo",
        trust_server_certificate: bool = True,
    ):
        """
        Initialize the SQL Server gateway.

        Args:
            conn: Open pyodbc connection (if provided, connection params are ignored)
            connection_string: Full ODBC connection string
            host: SQL Server host
            port: SQL Server port
            database: Database name
            username: Database username
            password: Database password
            driver: ODBC driver name
            schema: Schema whose tables are captured and restored
            trust_server_certificate: Whether to trust self-signed certificates
        """
        if pyodbc is None:
            raise ImportError(
                "pyodbc is required for SqlServerGateway. "
                "Install with: pip install pyodbc"
            )
        if not _IDENTIFIER_PATTERN.match(schema or "") or len(schema) > 128:
            raise ValueError(f"Invalid schema name: {schema}")

        self.schema = schema
        self._owns_connection = conn is None
        if conn is not None:
            self.conn = conn
        else:
            self.connection_string = connection_string or build_connection_string(
                host=host,
                port=port,
                database=database,
                username=username,
                password=password,
                driver=driver,
                trust_server_certificate=trust_server_certificate,
            )
            self.conn = pyodbc.connect(self.connection_string, autocommit=False)
            logger.debug(f"Connected to SQL Server: {host},{port}/{database}")

    def _full_name(self, table: str) -> str:
        return f"{quote_identifier(self.schema)}.{quote_identifier(table)}"

    def _fetch_column(self, sql: str, params: tuple) -> List[Any]:
        cursor = self.conn.cursor()
        try:
            cursor.execute(sql, params)
            return [row[0] for row in cursor.fetchall()]
        finally:
            cursor.close()

    def list_tables(self) -> List[str]:
        return self._fetch_column(
            """
            SELECT TABLE_NAME
            FROM INFORMATION_SCHEMA.TABLES
            WHERE TABLE_SCHEMA = ? AND TABLE_TYPE = 'BASE TABLE'
            ORDER BY TABLE_NAME
            """,
            (self.schema,),
        )

    def primary_key_columns(self, table: str) -> List[str]:
        return self._fetch_column(
            """
            SELECT kcu.COLUMN_NAME
            FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
            JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu
              ON kcu.CONSTRAINT_NAME = tc.CONSTRAINT_NAME
             AND kcu.TABLE_SCHEMA = tc.TABLE_SCHEMA
             AND kcu.TABLE_NAME = tc.TABLE_NAME
            WHERE tc.CONSTRAINT_TYPE = 'PRIMARY KEY'
              AND tc.TABLE_SCHEMA = ?
              AND tc.TABLE_NAME = ?
            ORDER BY kcu.ORDINAL_POSITION
            """,
            (self.schema, table),
        )

    def identity_column(self, table: str) -> Optional[str]:
        """Get the identity column of a table, if any."""
        columns = self._fetch_column(
            """
            SELECT c.COLUMN_NAME
            FROM INFORMATION_SCHEMA.COLUMNS c
            WHERE c.TABLE_SCHEMA = ?
              AND c.TABLE_NAME = ?
              AND COLUMNPROPERTY(OBJECT_ID(QUOTENAME(c.TABLE_SCHEMA) + '.' + QUOTENAME(c.TABLE_NAME)),
                                 c.COLUMN_NAME, 'IsIdentity') = 1
            """,
            (self.schema, table),
        )
        return columns[0] if columns else None

    def select_all_rows(self, table: str) -> List[Record]:
        sql = f"SELECT * FROM {self._full_name(table)}"
        key_columns = self.primary_key_columns(table)
        if key_columns:
            sql += " ORDER BY " + ", ".join(quote_identifier(c) for c in key_columns)

        cursor = self.conn.cursor()
        try:
            cursor.execute(sql)
            columns = [description[0] for description in cursor.description]
            rows = [dict(zip(columns, row)) for row in cursor.fetchall()]
        except pyodbc.Error as e:
            raise GatewayError(f"Failed to read from {self._full_name(table)}: {e}", table=table)
        finally:
            cursor.close()

        logger.debug(f"Read {len(rows)} rows from {self.schema}.{table}")
        return rows

    def replace_all_rows(self, table: str, rows: List[Record]) -> int:
        full_name = self._full_name(table)
        identity_col = self.identity_column(table) if rows else None
        identity_insert = identity_col is not None and any(identity_col in row for row in rows)

        cursor = self.conn.cursor()
        try:
            cursor.execute(f"DELETE FROM {full_name}")

            if identity_insert:
                cursor.execute(f"SET IDENTITY_INSERT {full_name} ON")

            for row in rows:
                columns = list(row.keys())
                columns_str = ", ".join(quote_identifier(c) for c in columns)
                placeholders = ", ".join("?" for _ in columns)
                cursor.execute(
                    f"INSERT INTO {full_name} ({columns_str}) VALUES ({placeholders})",
                    [row[c] for c in columns],
                )

            if identity_insert:
                cursor.execute(f"SET IDENTITY_INSERT {full_name} OFF")

        except pyodbc.Error as e:
            logger.error(f"Failed to replace rows of {full_name}: {e}")
            raise GatewayError(f"Failed to replace rows of {full_name}: {e}", table=table)
        finally:
            cursor.close()

        logger.debug(f"Replaced contents of {self.schema}.{table} with {len(rows)} rows")
        return len(rows)

    def _set_constraints(self, tables: List[str], enabled: bool) -> None:
        cursor = self.conn.cursor()
        try:
            for table in tables:
                if enabled:
                    cursor.execute(f"ALTER TABLE {self._full_name(table)} WITH CHECK CHECK CONSTRAINT ALL")
                else:
                    cursor.execute(f"ALTER TABLE {self._full_name(table)} NOCHECK CONSTRAINT ALL")
        finally:
            cursor.close()

    def replace_tables(self, records_in_tables: Mapping[str, List[Record]]) -> Dict[str, int]:
        tables = list(records_in_tables.keys())
        inserted = {}
        try:
            self._set_constraints(tables, enabled=False)
            for table in tables:
                inserted[table] = self.replace_all_rows(table, list(records_in_tables[table]))
            self._set_constraints(tables, enabled=True)
            self.commit()
        except pyodbc.Error as e:
            self.rollback()
            raise GatewayError(f"Failed to restore tables in schema {self.schema}: {e}")
        except Exception:
            self.rollback()
            raise
        return inserted

    def commit(self) -> None:
        self.conn.commit()

    def rollback(self) -> None:
        self.conn.rollback()

    def close(self) -> None:
        if self._owns_connection and self.conn:
            self.conn.close()
            self.conn = None
