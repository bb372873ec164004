"""Small argument parsing helpers shared by CLI commands."""

from __future__ import annotations

import argparse
from pathlib import Path


def parse_positive_int(raw: str) -> int:
    """argparse ``type=`` for counts that must be at least 1."""
    value = (raw or "").strip()
    if not value.isdigit() or int(value) <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {raw!r}")
    return int(value)


def parse_session_query(raw: str) -> str:
    """Accept a session id, a partial id, or a transcript path and return the id part."""
    value = (raw or "").strip()
    if value.endswith(".jsonl"):
        return Path(value).stem
    return value


if __name__ == "__main__":
    """Run a real-path smoke test for argument parsing helpers."""
    assert parse_positive_int("20") == 20
    assert parse_session_query(" abc123 ") == "abc123"
    assert parse_session_query("~/.claude/projects/-tmp/abc123.jsonl") == "abc123"
    try:
        parse_positive_int("0")
    except argparse.ArgumentTypeError:
        pass
    else:
        raise AssertionError("zero must be rejected")
