"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import pytest
from PySide6.QtCore import QCoreApplication

from repoverse.core.config import ConfigManager
from repoverse.core.scheduler import Scheduler
from repoverse.graph.model import Commit, GraphModel, RepoTree
from repoverse.layout.store import PositionStore
from tests import factories

_qt_app = QCoreApplication.instance() or QCoreApplication([])


@pytest.fixture(scope="session")
def qt_app():
    """Provide a shared QCoreApplication for QObject based components."""

    return _qt_app


@pytest.fixture
def config(tmp_path) -> ConfigManager:
    """Packaged defaults only, never the developer's own settings file."""

    return ConfigManager(user_settings_path=tmp_path / "settings.yaml")


@pytest.fixture
def scheduler() -> Scheduler:
    return Scheduler()


@pytest.fixture
def store(qt_app) -> PositionStore:
    return PositionStore()


@pytest.fixture
def sample_tree() -> RepoTree:
    return factories.sample_tree()


@pytest.fixture
def sample_model(sample_tree: RepoTree) -> GraphModel:
    return GraphModel.from_tree(sample_tree)


@pytest.fixture
def sample_commits() -> list[Commit]:
    return factories.sample_commits()
