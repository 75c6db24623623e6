"""Shared fixtures: every test gets its own config file and data file."""

import pytest

from backlog_helper.config import CONFIG_ENV
from backlog_helper.store import SpreadsheetStore


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config file at a temp path so ~/.backlog_helper.yaml is never read."""
    path = tmp_path / "config" / "backlog_helper.yaml"
    monkeypatch.setenv(CONFIG_ENV, str(path))
    return path


@pytest.fixture
def data_path(tmp_path):
    return tmp_path / "project_data.xlsx"


@pytest.fixture
def store(data_path):
    return SpreadsheetStore(data_path)
