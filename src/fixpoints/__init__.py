"""
Database fixpoints for behaviour-driven tests.

A fixpoint is a named snapshot of database contents stored as a YAML file.
Tests restore a fixpoint, run behaviour, and then store a new fixpoint or
compare the database against an existing one.

This package provides:
- Fixpoint: Records per table, full or incremental (changes to a parent)
- Diff engine: Positional change extraction and replay
- FixpointStore: File storage with recursive parent resolution
- FixpointManager: Capture, restore and compare against a database gateway
- Gateways: SQLite and SQL Server
"""

__version__ = "0.1.0"

from .core.models import Fixpoint
from .core.exceptions import (
    FixpointError,
    ArtifactNotFound,
    StorageLocationInvalid,
    ParentChainError,
    FixpointCreated,
    GatewayError,
    ComparisonMismatch,
)
from .diff import extract_changes, apply_changes, DELETED_KEY
from .column_filter import IgnoredColumns, filter_records
from .store import FixpointStore
from .config import FixpointConfig
from .gateway import DatabaseGateway, create_gateway
from .manager import FixpointManager, ComparisonReport, TableMismatch, LAST_RESTORED

__all__ = [
    "Fixpoint",
    "FixpointError",
    "ArtifactNotFound",
    "StorageLocationInvalid",
    "ParentChainError",
    "FixpointCreated",
    "GatewayError",
    "ComparisonMismatch",
    "extract_changes",
    "apply_changes",
    "DELETED_KEY",
    "IgnoredColumns",
    "filter_records",
    "FixpointStore",
    "FixpointConfig",
    "DatabaseGateway",
    "create_gateway",
    "FixpointManager",
    "ComparisonReport",
    "TableMismatch",
    "LAST_RESTORED",
]
