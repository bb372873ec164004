"""Tests for listing and picker formatting helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from claudesesh.app.display import (
    directory_icon,
    format_directory,
    format_preview,
    format_relative_time,
    parse_session_line,
    render_table,
    sesh_name,
    session_line,
    session_preview,
    status_icon,
)
from claudesesh.transcripts.normalize import SessionSummary

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def _ago(**delta) -> str:
    return (NOW - timedelta(**delta)).isoformat().replace("+00:00", "Z")


def test_sesh_name_plain_directory_replaces_dots(tmp_path):
    """Outside a repository the basename is used with dots replaced."""
    work = tmp_path / "my.project"
    work.mkdir()
    assert sesh_name(str(work)) == "my_project"
    assert sesh_name("/does/not/exist/v1.2:3") == "v1_2_3"


def test_sesh_name_inside_repository_includes_subpath(tmp_path):
    """Inside a repository the name is repo root plus relative path."""
    repo = tmp_path / "repo"
    (repo / ".git").mkdir(parents=True)
    sub = repo / "pkg" / "sub.dir"
    sub.mkdir(parents=True)
    assert sesh_name(str(repo)) == "repo"
    assert sesh_name(str(sub)) == "repo/pkg/sub_dir"


def test_directory_icons(tmp_path):
    """Icons distinguish repositories, nix, config dirs, and home."""
    repo = tmp_path / "repo"
    (repo / ".git").mkdir(parents=True)
    assert directory_icon(str(repo)) == "🔸"
    assert directory_icon("/nix/store/abc") == "❄️"
    assert directory_icon("/nonexistent/.config/nvim") == "⚙️"
    home = tmp_path / "home"
    home.mkdir()
    assert directory_icon(str(home), home=home) == "🏠"
    assert directory_icon("/nonexistent/elsewhere", home=home) == "📁"


def test_status_icon_by_age_and_count():
    """Recent sessions burn, older ones are notes, empty ones are folders."""
    recent = SessionSummary(id="a", timestamp=_ago(minutes=5), cwd="/", message_count=3)
    old = SessionSummary(id="b", timestamp=_ago(days=2), cwd="/", message_count=3)
    empty = SessionSummary(id="c", timestamp=_ago(minutes=5), cwd="/", message_count=0)
    assert status_icon(recent, NOW) == "🔥"
    assert status_icon(old, NOW) == "📝"
    assert status_icon(empty, NOW) == "📁"


def test_format_relative_time_buckets():
    """Minutes, hours, days, then a calendar date."""
    assert format_relative_time(_ago(minutes=5), NOW) == "5m ago"
    assert format_relative_time(_ago(hours=3), NOW) == "3h ago"
    assert format_relative_time(_ago(days=2), NOW) == "2d ago"
    assert format_relative_time(_ago(days=30), NOW).count("-") == 2
    assert format_relative_time("not a time", NOW) == "not a time"


def test_format_directory_shortens_paths():
    """Home becomes ~, only the last two parts remain, long tails are cut."""
    assert format_directory("/home/u/code/proj", home="/home/u") == "code/proj"
    assert format_directory("/home/u", home="/home/u") == "~"
    assert format_directory("/srv/app", home="/home/u") == "srv/app"
    long_dir = "/x/" + "a" * 20 + "/" + "b" * 20
    shortened = format_directory(long_dir, home="/home/u")
    assert shortened.startswith("...")
    assert len(shortened) == 30


def test_format_preview_collapses_and_truncates():
    """Whitespace collapses; long text gets an ellipsis."""
    assert format_preview("a  b\n\tc") == "a b c"
    assert format_preview("") == "(no messages)"
    assert format_preview(None) == "(no messages)"
    assert format_preview("x" * 60, max_length=20) == "x" * 17 + "..."


def test_session_preview_prefers_summary():
    """The summary is shown when present, else the last message."""
    assert session_preview(SessionSummary(id="a", timestamp="", cwd="/", summary="S", last_message="L")) == "S"
    assert session_preview(SessionSummary(id="a", timestamp="", cwd="/", last_message="L")) == "L"


def test_session_line_round_trips_id_with_tabs_in_preview():
    """Picker lines keep six fields even when the preview had tabs."""
    summary = SessionSummary(
        id="abcdef0123",
        timestamp="2024-01-01T00:00:00Z",
        cwd="/nonexistent/x.y",
        last_message="tab\there",
    )
    line = session_line(summary)
    assert len(line.split("\t")) == 6
    assert line.endswith("\tabcdef0123\t/nonexistent/x.y")
    assert parse_session_line(line) == "abcdef0123"
    assert parse_session_line(line + "\n") == "abcdef0123"
    assert parse_session_line("too\tfew") is None


def test_render_table_has_header_and_short_ids():
    """The table carries a header row and 8-character ids."""
    sessions = [
        SessionSummary(
            id="0123456789abcdef",
            timestamp=_ago(hours=2),
            cwd="/srv/app",
            git_branch="main",
            message_count=4,
            summary="Refactor",
        ),
        SessionSummary(id="fedcba9876543210", timestamp=_ago(days=1), cwd="/srv/other"),
    ]
    table = render_table(sessions, now=NOW).splitlines()
    assert "Time" in table[0] and "Branch" in table[0] and "ID" in table[0]
    assert len(table) == 3
    assert "01234567" in table[1]
    assert "0123456789" not in table[1]
    assert "2h ago" in table[1]
    assert "Refactor" in table[1]
    assert "(no messages)" in table[2]
    assert " - " in table[2]
