"""Repository root discovery for project-level config and sesh naming."""

from __future__ import annotations

from pathlib import Path


def git_root_for(path: Path | None = None) -> Path | None:
    """Return the nearest directory that contains ``.git`` starting from ``path``."""
    try:
        start = (path or Path.cwd()).resolve()
    except OSError:
        return None
    current = start
    while True:
        if (current / ".git").exists():
            return current
        if current.parent == current:
            return None
        current = current.parent


def project_config_path(dir_name: str, repo_path: Path | None = None) -> Path | None:
    """Return ``<git root>/<dir_name>/config.toml`` when inside a repository."""
    root = git_root_for(repo_path)
    if root is None:
        return None
    return root / dir_name / "config.toml"


if __name__ == "__main__":
    """Run a real-path smoke test for repository root lookup."""
    found = git_root_for(Path.cwd())
    assert found is None or (found / ".git").exists()
    assert project_config_path(".claude-sesh", Path("/")) in (None, Path("/.claude-sesh/config.toml"))
