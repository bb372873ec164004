"""Shared test utilities for configuration, transcripts, and CLI runs."""

from __future__ import annotations

import io
import json
from contextlib import redirect_stdout
from pathlib import Path
from typing import Any

from claudesesh.config.settings import Config


def make_config(base: Path) -> Config:
    """Build a deterministic Config object rooted at ``base`` for tests."""
    return Config(
        claude_dir=base / "claude",
        projects_dir=base / "claude" / "projects",
        export_dir=base / "exports",
        claude_command="claude",
        list_workers=2,
        use_tmux=False,
        use_fzf=False,
        use_gum=False,
        simple_mode=False,
        preview_length=50,
        sort_by_zoxide=False,
        fzf_popup="85%,75%",
    )


def write_test_config(tmp_path: Path, **sections: dict[str, Any]) -> Path:
    """Write a test config.toml pointing the Claude dir at ``tmp_path/claude``.

    Usage::

        write_test_config(tmp_path, ui={"simple": True})
    """
    all_sections: dict[str, dict[str, Any]] = {
        "paths": {
            "claude_dir": str(tmp_path / "claude"),
            "export_dir": str(tmp_path / "exports"),
        },
        "session": {"list_workers": 2},
        "ui": {"use_tmux": False, "use_fzf": False, "use_gum": False},
    }
    for name, payload in sections.items():
        if isinstance(payload, dict):
            all_sections.setdefault(name, {}).update(payload)

    lines: list[str] = []
    for section_name, fields in all_sections.items():
        lines.append(f"[{section_name}]")
        for key, value in fields.items():
            if isinstance(value, bool):
                lines.append(f"{key} = {'true' if value else 'false'}")
            elif isinstance(value, (int, float)):
                lines.append(f"{key} = {value}")
            else:
                lines.append(f'{key} = "{value}"')
        lines.append("")

    config_path = tmp_path / "test_config.toml"
    config_path.write_text("\n".join(lines), encoding="utf-8")
    return config_path


def write_transcript(path: Path, entries: list[Any]) -> Path:
    """Write JSONL transcript lines; strings are written verbatim."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        for entry in entries:
            fh.write((entry if isinstance(entry, str) else json.dumps(entry)) + "\n")
    return path


def basic_session(cwd: str, *, timestamp: str = "2024-01-01T00:00:00Z", text: str = "fix bug") -> list[dict]:
    """Return a small metadata + user + assistant + summary transcript."""
    return [
        {"type": "metadata", "timestamp": timestamp, "cwd": cwd, "gitBranch": "main"},
        {"type": "user", "message": {"role": "user", "content": text}, "timestamp": timestamp},
        {
            "type": "assistant",
            "message": {"role": "assistant", "content": [{"type": "text", "text": "Fixed."}]},
            "timestamp": timestamp,
        },
        {"type": "summary", "summary": "Bug fix session"},
    ]


def run_cli(args: list[str]) -> tuple[int, str]:
    """Run CLI command and return ``(exit_code, stdout_text)``."""
    from claudesesh.app import cli

    out = io.StringIO()
    with redirect_stdout(out):
        code = cli.main(args)
    return code, out.getvalue()


def run_cli_json(args: list[str]) -> tuple[int, Any]:
    """Run CLI command and parse stdout JSON payload."""
    code, output = run_cli(args)
    return code, json.loads(output)
