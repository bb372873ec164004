"""Settings for claude-sesh, merged from TOML layers.

Later layers win, key by key:

1. ``claudesesh/config/default.toml`` shipped with the package
2. ``~/.claude-sesh/config.toml``
3. ``<git root>/.claude-sesh/config.toml`` for the current repository
4. the file named by ``$CLAUDESESH_CONFIG``

``CLAUDE_MANAGER_SIMPLE=true`` forces the plain numbered picker regardless of
the ``[ui] simple`` setting.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import asdict, dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from claudesesh.config.project_scope import project_config_path

DEFAULT_CONFIG_PATH = Path(__file__).with_name("default.toml")
USER_CONFIG_DIR_NAME = ".claude-sesh"
USER_CONFIG_PATH = Path.home() / USER_CONFIG_DIR_NAME / "config.toml"

_USER_SCAFFOLD = """\
# claude-sesh user settings; uncomment what you want to change.

# [paths]
# claude_dir = "~/.claude"
# export_dir = "~/claude-exports"

# [ui]
# use_tmux = false
# sort_by_zoxide = true
"""

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_sources: list[dict[str, str]] = []


def load_toml_file(path: Path | None) -> dict[str, Any]:
    """Read one TOML layer; unreadable or malformed files count as empty."""
    if path is None or not path.is_file():
        return {}
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``, recursing into shared tables."""
    result = dict(base)
    for key, incoming in override.items():
        existing = result.get(key)
        if isinstance(existing, dict) and isinstance(incoming, dict):
            result[key] = _deep_merge(existing, incoming)
        else:
            result[key] = incoming
    return result


def _expand(value: Any, default: Path) -> Path:
    """``~``-expand a configured path, or return ``default`` when unset."""
    if value is None or value == "":
        return default
    try:
        return Path(str(value)).expanduser()
    except (RuntimeError, ValueError):
        return default


def _to_non_empty_string(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _to_int(value: Any, default: int, minimum: int = 1) -> int:
    """Integer setting clamped to ``minimum``; junk falls back to ``default``."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = default
    return number if number >= minimum else minimum


def _to_bool(value: Any, default: bool) -> bool:
    """TOML booleans pass through; strings are matched against truthy words."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return default


def _section(payload: dict[str, Any], name: str) -> dict[str, Any]:
    table = payload.get(name)
    return table if isinstance(table, dict) else {}


def get_user_config_path() -> Path:
    """Location of the per-user settings file."""
    return USER_CONFIG_PATH


def ensure_user_config_exists() -> Path:
    """Write a commented user settings file on first run (never under pytest)."""
    path = USER_CONFIG_PATH
    if os.getenv("PYTEST_CURRENT_TEST") or path.exists():
        return path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(_USER_SCAFFOLD, encoding="utf-8")
    except OSError:
        # Read-only homes still get the packaged defaults.
        pass
    return path


def _layer_paths() -> list[tuple[str, Path]]:
    """Candidate settings files, lowest priority first."""
    candidates = [("package_default", DEFAULT_CONFIG_PATH), ("user", USER_CONFIG_PATH)]
    project = project_config_path(USER_CONFIG_DIR_NAME, Path.cwd())
    if project is not None and project != USER_CONFIG_PATH:
        candidates.append(("project", project))
    explicit = os.getenv("CLAUDESESH_CONFIG")
    if explicit:
        candidates.append(("explicit", Path(explicit).expanduser()))
    return candidates


def _load_layers() -> tuple[dict[str, Any], list[dict[str, str]]]:
    """Merge every existing layer and record which files contributed."""
    merged: dict[str, Any] = {}
    used: list[dict[str, str]] = []
    for name, path in _layer_paths():
        data = load_toml_file(path)
        if not data:
            continue
        merged = _deep_merge(merged, data)
        used.append({"source": name, "path": str(path)})
    return merged, used


def get_config_sources() -> list[dict[str, str]]:
    """Files that fed the most recent ``load_config`` call, lowest first."""
    return [dict(entry) for entry in _sources]


@dataclass(frozen=True)
class Config:
    """Resolved settings for one process."""

    claude_dir: Path
    projects_dir: Path
    export_dir: Path

    claude_command: str
    list_workers: int

    use_tmux: bool
    use_fzf: bool
    use_gum: bool
    simple_mode: bool
    preview_length: int
    sort_by_zoxide: bool
    fzf_popup: str

    def public_dict(self) -> dict[str, Any]:
        """Plain-JSON view of the settings, paths as strings."""
        return {
            key: str(value) if isinstance(value, Path) else value
            for key, value in asdict(self).items()
        }


@lru_cache(maxsize=1)
def load_config() -> Config:
    """Build ``Config`` from the TOML layers, ``.env`` and environment flags."""
    global _sources
    load_dotenv()
    ensure_user_config_exists()
    data, _sources = _load_layers()

    paths = _section(data, "paths")
    session = _section(data, "session")
    ui = _section(data, "ui")

    claude_dir = _expand(paths.get("claude_dir"), Path.home() / ".claude")
    forced_simple = os.getenv("CLAUDE_MANAGER_SIMPLE", "").strip().lower() in _TRUTHY

    return Config(
        claude_dir=claude_dir,
        projects_dir=claude_dir / "projects",
        export_dir=_expand(paths.get("export_dir"), Path(".")),
        claude_command=_to_non_empty_string(session.get("claude_command")) or "claude",
        list_workers=_to_int(session.get("list_workers"), 8, minimum=1),
        use_tmux=_to_bool(ui.get("use_tmux"), True),
        use_fzf=_to_bool(ui.get("use_fzf"), True),
        use_gum=_to_bool(ui.get("use_gum"), True),
        simple_mode=forced_simple or _to_bool(ui.get("simple"), False),
        preview_length=_to_int(ui.get("preview_length"), 50, minimum=10),
        sort_by_zoxide=_to_bool(ui.get("sort_by_zoxide"), False),
        fzf_popup=_to_non_empty_string(ui.get("fzf_popup")) or "85%,75%",
    )


def get_config() -> Config:
    """Cached settings for this process."""
    return load_config()


def reload_config() -> Config:
    """Drop the cached settings and load them again."""
    load_config.cache_clear()
    return load_config()


if __name__ == "__main__":
    """Load the real settings and print where they came from."""
    cfg = load_config()
    assert cfg.projects_dir == cfg.claude_dir / "projects"
    assert cfg.list_workers >= 1
    for entry in get_config_sources():
        print(f"{entry['source']}: {entry['path']}")
