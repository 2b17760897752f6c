"""
Shared test fixtures and configuration for pytest.
"""

import logging
import os
import sqlite3
import sys
from pathlib import Path

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

pytest_plugins = ["fixpoints.pytest_plugin", "pytester"]


logger = logging.getLogger(__name__)


# ============================================================================
# Environment detection
# ============================================================================

def sqlserver_connection_string() -> str:
    """Build the SQL Server connection string from the environment."""
    from fixpoints.gateway.sqlserver_gateway import build_connection_string

    return os.environ.get("FIXPOINTS_SQLSERVER_CONN_STR") or build_connection_string(
        host=os.environ.get("FIXPOINTS_SQLSERVER_HOST", "localhost"),
        port=int(os.environ.get("FIXPOINTS_SQLSERVER_PORT", "1433")),
        database=os.environ.get("FIXPOINTS_SQLSERVER_DATABASE", "master"),
        username=os.environ.get("FIXPOINTS_SQLSERVER_USER", "sa"),
        password=os.environ.get("FIXPOINTS_SQLSERVER_PASSWORD") or os.environ.get("MSSQL_SA_PASSWORD"),
        driver=os.environ.get("FIXPOINTS_SQLSERVER_DRIVER", "ODBC Driver 18 for SQL Server"),
    )


def is_sqlserver_available() -> bool:
    """Check if SQL Server is available for testing."""
    password = os.environ.get("FIXPOINTS_SQLSERVER_PASSWORD") or os.environ.get("MSSQL_SA_PASSWORD")
    if not password and not os.environ.get("FIXPOINTS_SQLSERVER_CONN_STR"):
        return False

    try:
        import pyodbc

        conn = pyodbc.connect(sqlserver_connection_string(), timeout=5)
        conn.close()
        return True

    except Exception as e:
        logger.debug(f"SQL Server not available: {e}")
        return False


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (requires SQL Server)")


def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests if SQL Server is not available."""
    if not any("integration" in item.keywords for item in items):
        return
    if is_sqlserver_available():
        return

    skip_sqlserver = pytest.mark.skip(
        reason="SQL Server not available (set FIXPOINTS_SQLSERVER_PASSWORD and ensure SQL Server is running)"
    )

    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_sqlserver)


# ============================================================================
# Fixtures
# ============================================================================

LIBRARY_SCHEMA = """
CREATE TABLE authors (
    id INTEGER PRIMARY KEY,
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL,
    created_at TEXT,
    updated_at TEXT
);
CREATE TABLE books (
    id INTEGER PRIMARY KEY,
    title TEXT NOT NULL,
    summary TEXT,
    author_id INTEGER REFERENCES authors (id),
    created_at TEXT,
    updated_at TEXT
);
CREATE TABLE tags (
    name TEXT NOT NULL,
    book_id INTEGER
);
CREATE TABLE alembic_version (
    version_num TEXT PRIMARY KEY
);
"""


@pytest.fixture
def sqlite_conn():
    """In-memory SQLite database with a small library schema."""
    conn = sqlite3.connect(":memory:")
    conn.executescript(LIBRARY_SCHEMA)
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("INSERT INTO alembic_version (version_num) VALUES ('abc123')")
    conn.commit()
    yield conn
    conn.close()


@pytest.fixture
def sqlite_gateway(sqlite_conn):
    """Gateway over the in-memory library database."""
    from fixpoints.gateway.sqlite_gateway import SqliteGateway

    return SqliteGateway(sqlite_conn)


@pytest.fixture
def fixpoints_dir(tmp_path) -> Path:
    """Existing, empty fixpoints directory."""
    path = tmp_path / "fixpoints"
    path.mkdir()
    (path / ".gitkeep").touch()
    return path


@pytest.fixture
def store(fixpoints_dir):
    """Fixpoint store on the temporary fixpoints directory."""
    from fixpoints.store import FixpointStore

    return FixpointStore(fixpoints_dir)


@pytest.fixture
def manager(store, sqlite_gateway):
    """Fixpoint manager over the in-memory library database."""
    from fixpoints.manager import FixpointManager

    return FixpointManager(store, sqlite_gateway)


def insert_book(conn, title, summary=None, author_id=None, updated_at="2024-01-01 10:00:00"):
    """Insert a book and return its id."""
    cursor = conn.execute(
        "INSERT INTO books (title, summary, author_id, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
        (title, summary, author_id, "2024-01-01 10:00:00", updated_at),
    )
    conn.commit()
    return cursor.lastrowid


def count_rows(conn, table):
    return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
