"""Timestamp parsing and raw JSONL reading shared by the transcript modules."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# Epoch values above this are milliseconds.
_MS_THRESHOLD = 1e10


def parse_timestamp(value: Any) -> datetime | None:
    """Return an aware UTC datetime for ISO strings or epoch numbers, else ``None``.

    Naive values are assumed to be UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, (int, float)):
        seconds = value / 1000.0 if abs(value) > _MS_THRESHOLD else float(value)
        try:
            moment = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        try:
            moment = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


def format_iso(moment: datetime) -> str:
    """Render an aware datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    return format_iso(datetime.now(timezone.utc))


def file_mtime_iso(path: Path) -> str:
    """Modification time of ``path`` in the same ISO shape."""
    return format_iso(datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc))


def load_jsonl_dict_lines(path: Path) -> list[dict[str, Any]]:
    """Return the JSON-object lines of a JSONL file in order.

    Blank lines, broken JSON and non-object values are dropped. Opening the file
    is not guarded, so a missing path raises ``FileNotFoundError``.
    """
    rows: list[dict[str, Any]] = []
    with path.open("r", encoding="utf-8", errors="replace") as handle:
        for raw in handle:
            text = raw.strip()
            if not text:
                continue
            try:
                row = json.loads(text)
            except (ValueError, RecursionError):
                continue
            if isinstance(row, dict):
                rows.append(row)
    return rows


if __name__ == "__main__":
    """Parse a few timestamps as a smoke test."""
    assert parse_timestamp("2026-02-19T10:00:00Z") is not None
    assert parse_timestamp(1_706_000_000) == parse_timestamp(1_706_000_000_000)
    assert parse_timestamp("yesterday") is None
    assert utc_now_iso().endswith("Z")
