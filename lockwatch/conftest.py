"""Shared fixtures for lockwatch tests."""

import pytest

from .config import LockwatchConfig
from .engine.service import ReconciliationService
from .state.volatile import VolatileStore
from .testing import FakeTool


@pytest.fixture
def project_dir(tmp_path):
    """An empty project with a Packrat folder and library."""
    (tmp_path / "packrat" / "lib").mkdir(parents=True)
    return tmp_path


@pytest.fixture
def config(project_dir, tmp_path_factory):
    db_dir = tmp_path_factory.mktemp("db")
    return LockwatchConfig(project_dir=str(project_dir), db_path=str(db_dir / "state.sqlite"))


@pytest.fixture
def store():
    return VolatileStore()


@pytest.fixture
def fake_tool():
    return FakeTool()


@pytest.fixture
def held_tool():
    """A FakeTool whose captures wait for tool.runner.release()."""
    return FakeTool(hold_captures=True)


@pytest.fixture
def service(config, store, fake_tool):
    svc = ReconciliationService(config, store, fake_tool)
    yield svc
    svc.close()


@pytest.fixture
def held_service(config, store, held_tool):
    svc = ReconciliationService(config, store, held_tool)
    yield svc
    svc.close()
