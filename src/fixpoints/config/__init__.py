"""
Configuration for fixpoints.
"""

from .config_loader import FixpointConfig, DEFAULT_TABLES_TO_SKIP, DEFAULT_COMPARE_IGNORED_COLUMNS

__all__ = [
    "FixpointConfig",
    "DEFAULT_TABLES_TO_SKIP",
    "DEFAULT_COMPARE_IGNORED_COLUMNS",
]
