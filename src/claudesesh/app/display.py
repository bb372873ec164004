"""Human-facing formatting for session listings and picker lines."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from claudesesh.config.project_scope import git_root_for
from claudesesh.transcripts.common import parse_timestamp
from claudesesh.transcripts.normalize import SessionSummary

_FIELD_SEP = "\t"


def sesh_name(cwd: str) -> str:
    """Return the tmux session name for a working directory.

    Inside a git repository this is the repository name plus the path below its
    root; elsewhere it is the directory basename. tmux rejects ``.`` and ``:``.
    """
    path = Path(cwd).expanduser()
    root = git_root_for(path) if path.exists() else None
    if root is not None:
        try:
            relative = path.resolve().relative_to(root)
        except ValueError:
            relative = Path()
        name = root.name
        if relative.parts:
            name = f"{name}/{relative.as_posix()}"
    else:
        name = path.name or "home"
    return name.replace(".", "_").replace(":", "_")


def directory_icon(cwd: str, home: Path | None = None) -> str:
    """Pick an icon describing the kind of directory a session ran in."""
    path = Path(cwd).expanduser()
    if path.exists() and git_root_for(path) is not None:
        return "🔸"
    if "/nix" in cwd:
        return "❄️"
    if "/.config" in cwd:
        return "⚙️"
    if path == (home or Path.home()):
        return "🏠"
    return "📁"


def _age_seconds(timestamp: str, now: datetime | None) -> float | None:
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return None
    current = now or datetime.now(timezone.utc)
    return max((current - parsed).total_seconds(), 0.0)


def status_icon(summary: SessionSummary, now: datetime | None = None) -> str:
    """🔥 for sessions with messages in the last hour, 📝 with messages, 📁 empty."""
    if summary.message_count <= 0:
        return "📁"
    age = _age_seconds(summary.timestamp, now)
    if age is not None and age < 3600:
        return "🔥"
    return "📝"


def format_relative_time(timestamp: str, now: datetime | None = None) -> str:
    """Render ``Nm ago`` / ``Nh ago`` / ``Nd ago`` or a calendar date."""
    age = _age_seconds(timestamp, now)
    if age is None:
        return timestamp
    minutes = int(age // 60)
    hours = int(age // 3600)
    days = int(age // 86400)
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    parsed = parse_timestamp(timestamp)
    return parsed.astimezone().strftime("%Y-%m-%d") if parsed else timestamp


def format_directory(cwd: str, home: str | None = None) -> str:
    """Shorten a path to its last two components, ``~`` for home."""
    home_text = home if home is not None else str(Path.home())
    shortened = cwd
    if home_text and cwd.startswith(home_text):
        shortened = "~" + cwd[len(home_text) :]
    last_two = "/".join(shortened.split("/")[-2:])
    if len(last_two) > 30:
        return "..." + last_two[-27:]
    return last_two


def format_preview(text: str | None, max_length: int = 50) -> str:
    """Collapse whitespace and truncate with an ellipsis."""
    if not text:
        return "(no messages)"
    cleaned = " ".join(text.split())
    if len(cleaned) <= max_length:
        return cleaned
    return cleaned[: max_length - 3] + "..."


def session_preview(summary: SessionSummary) -> str:
    """Return the text shown next to a session: its summary, else last message."""
    return summary.summary or summary.last_message


def session_line(summary: SessionSummary, preview_length: int = 50) -> str:
    """Build one tab-separated picker line ending in ``id`` and ``cwd``."""
    parsed = parse_timestamp(summary.timestamp)
    date = parsed.astimezone().strftime("%Y-%m-%d %H:%M") if parsed else summary.timestamp
    fields = [
        directory_icon(summary.cwd),
        date,
        sesh_name(summary.cwd),
        format_preview(session_preview(summary), preview_length).replace(_FIELD_SEP, " "),
        summary.id,
        summary.cwd,
    ]
    return _FIELD_SEP.join(fields)


def parse_session_line(line: str) -> str | None:
    """Recover the session id from a line built by ``session_line``."""
    fields = line.rstrip("\n").split(_FIELD_SEP)
    if len(fields) < 6:
        return None
    session_id = fields[-2].strip()
    return session_id or None


def render_table(
    sessions: list[SessionSummary],
    now: datetime | None = None,
    preview_length: int = 50,
) -> str:
    """Render sessions as an aligned plain-text table."""
    header = ["", "Time", "Directory", "Branch", "Msgs", "Preview", "ID"]
    rows = [header]
    for item in sessions:
        rows.append(
            [
                status_icon(item, now),
                format_relative_time(item.timestamp, now),
                format_directory(item.cwd),
                item.git_branch or "-",
                str(item.message_count),
                format_preview(session_preview(item), preview_length),
                item.id[:8],
            ]
        )
    widths = [max(len(row[col]) for row in rows) for col in range(len(header))]
    lines = []
    for row in rows:
        cells = [cell.ljust(widths[col]) for col, cell in enumerate(row)]
        lines.append("  ".join(cells).rstrip())
    return "\n".join(lines)


if __name__ == "__main__":
    """Run formatting smoke checks."""
    assert format_preview("a  b\nc") == "a b c"
    assert format_preview("") == "(no messages)"
    assert format_directory("/home/u/code/proj", home="/home/u") == "code/proj"
    demo = SessionSummary(id="abcdef0123", timestamp="2024-01-01T00:00:00Z", cwd="/tmp/x.y")
    assert parse_session_line(session_line(demo)) == "abcdef0123"
    assert "abcdef01" in render_table([demo])
