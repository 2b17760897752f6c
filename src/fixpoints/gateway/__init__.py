"""
Database gateways for capturing and restoring fixpoints.

Available backends:
    - sqlite: SqliteGateway (sqlite3, standard library)
    - sqlserver: SqlServerGateway (requires pyodbc)
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

from .base import DatabaseGateway

logger = logging.getLogger(__name__)


# Lazy imports to avoid import errors when drivers are missing
def _get_sqlite_gateway():
    from .sqlite_gateway import SqliteGateway
    return SqliteGateway


def _get_sqlserver_gateway():
    from .sqlserver_gateway import SqlServerGateway
    return SqlServerGateway


def create_gateway(
    backend: str,
    conn: Any = None,
    # SQLite options
    db_path: Optional[Union[str, Path]] = None,
    # SQL Server options
    connection_string: Optional[str] = None,
    host: str = "localhost",
    port: int = 1433,
    database: str = "master",
    username: str = "sa",
    password: Optional[str] = None,
    driver: str = "ODBC Driver 18 for SQL Server",
    schema: str = "dbo",
) -> DatabaseGateway:
    """
    Factory function to create a gateway for a backend.

    Args:
        backend: Backend type ('sqlite' or 'sqlserver')
        conn: Existing connection to wrap (takes precedence over other options)

        SQLite options:
            db_path: Path to SQLite database file

        SQL Server options:
            connection_string: Full ODBC connection string
            host, port, database, username, password, driver: Discrete settings
            schema: Schema to capture and restore

    Returns:
        DatabaseGateway instance

    Raises:
        ValueError: If backend is not recognized or required options are missing
    """
    backend = (backend or "").lower()
    logger.debug(f"Creating {backend} gateway")

    if backend == "sqlite":
        SqliteGateway = _get_sqlite_gateway()
        if conn is not None:
            return SqliteGateway(conn)
        if db_path is None:
            raise ValueError("db_path is required for the sqlite gateway")
        return SqliteGateway.connect(db_path)

    if backend == "sqlserver":
        SqlServerGateway = _get_sqlserver_gateway()
        return SqlServerGateway(
            conn=conn,
            connection_string=connection_string,
            host=host,
            port=port,
            database=database,
            username=username,
            password=password,
            driver=driver,
            schema=schema,
        )

    raise ValueError(f"Unknown gateway backend: {backend!r}. Use 'sqlite' or 'sqlserver'.")


__all__ = [
    "DatabaseGateway",
    "create_gateway",
]
