"""
Core models and exceptions for fixpoints.
"""

from .models import (
    Record, TableRecords, RecordsInTables, Fixpoint, PARENT_KEY,
    normalize_value, normalize_record, strip_empty_tables,
)
from .exceptions import (
    FixpointError,
    ArtifactNotFound,
    StorageLocationInvalid,
    ParentChainError,
    FixpointCreated,
    GatewayError,
    ComparisonMismatch,
)

__all__ = [
    "Record",
    "TableRecords",
    "RecordsInTables",
    "Fixpoint",
    "PARENT_KEY",
    "normalize_value",
    "normalize_record",
    "strip_empty_tables",
    "FixpointError",
    "ArtifactNotFound",
    "StorageLocationInvalid",
    "ParentChainError",
    "FixpointCreated",
    "GatewayError",
    "ComparisonMismatch",
]
