"""
Custom exceptions for the fixpoints package.
"""

from typing import List, Optional


class FixpointError(Exception):
    """Base exception for all fixpoint errors."""
    pass


class ArtifactNotFound(FixpointError):
    """
    A named fixpoint does not exist in the store.

    Usually means the test producing the fixpoint has not run yet
    (or ran in a different order).
    """

    def __init__(self, name: str, path: Optional[str] = None):
        super().__init__(
            f'The requested fixpoint ("{name}") could not be found. '
            f"Re-run the test which stores the fixpoint."
        )
        self.name = name
        self.path = path


class StorageLocationInvalid(FixpointError):
    """
    The fixpoints directory is not configured or does not exist.

    Raised when:
    - No fixpoints path was configured
    - The configured directory is missing on disk
    """
    pass


class ParentChainError(FixpointError):
    """
    The parent chain of an incremental fixpoint cannot be resolved.

    Raised when:
    - A fixpoint (transitively) names itself as parent
    - The chain is deeper than the configured maximum
    """

    def __init__(self, message: str, chain: Optional[List[str]] = None):
        super().__init__(message)
        self.chain = chain or []


class FixpointCreated(FixpointError):
    """
    A missing fixpoint was captured from the database instead of compared.

    The caller must end the current test in a non-passing state so the
    operator re-runs it against the freshly written fixpoint.
    """

    def __init__(self, name: str):
        super().__init__(
            f'Fixpoint "{name}" did not exist yet. Skipping comparison, but '
            f"created fixpoint from database. Try re-running the test."
        )
        self.name = name


class GatewayError(FixpointError):
    """
    Error reading from or writing to the database.

    Wraps driver errors with the table being processed.
    """

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.table = table


class ComparisonMismatch(FixpointError, AssertionError):
    """
    Database contents differ from the stored fixpoint.

    Subclasses AssertionError so test runners report it as a failed
    expectation rather than an error.
    """

    def __init__(self, name: str, mismatches: list):
        self.name = name
        self.mismatches = mismatches
        lines = [
            f'Database records did not match fixpoint "{name}" '
            f"({len(mismatches)} table(s)). Consider removing the fixpoint and "
            f"re-running the test if the change is intended."
        ]
        for mismatch in mismatches:
            lines.append(f"  - {mismatch.describe()}")
        super().__init__("\n".join(lines))
