"""
pytest integration for fixpoints.

Enable it in your conftest.py and provide a gateway for the database under
test (or configure one in the fixpoints config file):

    pytest_plugins = ["fixpoints.pytest_plugin"]

    @pytest.fixture
    def fixpoint_gateway(db_connection):
        return SqliteGateway(db_connection)

Settings (pytest.ini / pyproject.toml [tool.pytest.ini_options]):
    fixpoints_path    directory holding the fixpoint files
    fixpoints_config  YAML config file (see fixpoints.config)

Tests using fixpoints depend on each other, so keep them in file order and do
not shuffle or parallelize them.
"""

import logging
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

import pytest

from .config.config_loader import FixpointConfig
from .core.exceptions import FixpointCreated
from .core.models import Fixpoint
from .gateway import create_gateway
from .manager import DEFAULT, ComparisonReport, FixpointManager
from .store import FixpointStore

logger = logging.getLogger(__name__)


def pytest_addoption(parser):
    parser.addini("fixpoints_path", "Directory holding the fixpoint files")
    parser.addini("fixpoints_config", "YAML configuration file for fixpoints")


def build_config(pytest_config) -> FixpointConfig:
    """Build a FixpointConfig from the pytest ini settings."""
    rootpath = Path(pytest_config.rootpath)

    config_file = pytest_config.getini("fixpoints_config")
    if config_file:
        config = FixpointConfig.load(rootpath / config_file, apply_env=False)
    else:
        config = FixpointConfig()

    fixpoints_path = pytest_config.getini("fixpoints_path")
    if fixpoints_path:
        config.fixpoints_path = rootpath / fixpoints_path

    return config.apply_env_overrides()


class FixpointTestHelper:
    """
    Fixpoint operations for use inside tests.

    A missing fixpoint in compare_fixpoint(..., store_fixpoint_and_fail=True)
    is stored and the test is marked xfail, so the run never passes silently.
    """

    def __init__(self, manager: FixpointManager):
        self.manager = manager

    @property
    def last_restored(self) -> Optional[str]:
        return self.manager.last_restored

    def restore_fixpoint(self, name: str) -> Fixpoint:
        return self.manager.restore(name)

    def store_fixpoint(self, name: str, parent_name: Any = None, exclude_tables: Iterable[str] = ()) -> Fixpoint:
        return self.manager.store_fixpoint(name, parent_name, exclude_tables)

    def store_fixpoint_unless_present(
        self,
        name: str,
        parent_name: Any = None,
        exclude_tables: Iterable[str] = (),
    ) -> Optional[Fixpoint]:
        return self.manager.store_fixpoint_unless_present(name, parent_name, exclude_tables)

    def compare_fixpoint(
        self,
        name: str,
        ignored_columns: Any = DEFAULT,
        tables_to_compare: Optional[Sequence[str]] = None,
        store_fixpoint_and_fail: bool = False,
        parent_name: Any = None,
    ) -> ComparisonReport:
        try:
            return self.manager.compare(
                name,
                ignored_columns=ignored_columns,
                tables_to_compare=tables_to_compare,
                store_fixpoint_and_fail=store_fixpoint_and_fail,
                parent_name=parent_name,
            )
        except FixpointCreated as e:
            pytest.xfail(str(e))

    def fixpoint_exists(self, name: str) -> bool:
        return self.manager.store.exists(name)

    def remove_fixpoint(self, name: str) -> None:
        self.manager.store.remove(name)


@pytest.fixture(scope="session")
def fixpoint_config(pytestconfig) -> FixpointConfig:
    """Session-scoped fixpoints configuration from the pytest ini settings."""
    return build_config(pytestconfig)


@pytest.fixture(scope="session")
def fixpoint_store(fixpoint_config) -> FixpointStore:
    """Session-scoped fixpoint file store."""
    return FixpointStore(
        fixpoint_config.fixpoints_path,
        max_parent_depth=fixpoint_config.max_parent_depth,
        diff_ignore_columns=fixpoint_config.diff_ignore_columns,
    )


@pytest.fixture(scope="session")
def fixpoint_gateway(fixpoint_config):
    """
    Gateway of the database under test.

    Built from the 'gateway' section of the fixpoints config; override this
    fixture to hand in your own connection.
    """
    if not fixpoint_config.gateway.get("backend"):
        pytest.fail(
            "No database gateway configured for fixpoints. Override the "
            "`fixpoint_gateway` fixture or add a `gateway` section to the fixpoints config.",
            pytrace=False,
        )
    gateway = create_gateway(**fixpoint_config.gateway)
    yield gateway
    gateway.close()


@pytest.fixture
def fixpoints(fixpoint_store, fixpoint_gateway, fixpoint_config) -> FixpointTestHelper:
    """Function-scoped fixpoint helper for the current test."""
    return FixpointTestHelper(FixpointManager(fixpoint_store, fixpoint_gateway, fixpoint_config))
