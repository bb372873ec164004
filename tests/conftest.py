"""Shared test fixtures for the claude-sesh test suite.

Every test runs against a throwaway Claude directory: ``CLAUDESESH_CONFIG``
points at a generated TOML file whose ``claude_dir`` lives under ``tmp_path``,
and tmux/fzf/gum are switched off so nothing interactive is launched.
"""

from pathlib import Path

import pytest

from claudesesh.config.settings import reload_config
from tests.helpers import make_config, write_test_config


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point configuration at ``tmp_path`` and clear terminal environment."""
    monkeypatch.setenv("CLAUDESESH_CONFIG", str(write_test_config(tmp_path)))
    monkeypatch.delenv("CLAUDE_MANAGER_SIMPLE", raising=False)
    monkeypatch.delenv("TMUX", raising=False)
    config = reload_config()
    yield config
    monkeypatch.undo()
    reload_config()


@pytest.fixture
def projects_dir(tmp_path) -> Path:
    """The Claude projects directory used by the isolated config."""
    path = tmp_path / "claude" / "projects"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def tmp_config(tmp_path):
    """Config object rooted at ``tmp_path`` without touching the loader."""
    return make_config(tmp_path)
