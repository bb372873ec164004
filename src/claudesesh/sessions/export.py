"""Markdown and JSON rendering of one session transcript."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import frontmatter

from claudesesh.sessions.catalog import SessionNotFoundError, find_session_path
from claudesesh.transcripts.common import parse_timestamp
from claudesesh.transcripts.normalize import NormalizedMessage, SessionSummary, expand_file
from claudesesh.transcripts.records import read_raw_entries

ExportFormat = Literal["markdown", "json"]
EXPORT_FORMATS: tuple[str, ...] = ("markdown", "json")
_EXTENSIONS = {"markdown": "md", "json": "json"}


@dataclass(frozen=True)
class ExportOptions:
    """Knobs for markdown export."""

    include_metadata: bool = True
    include_timestamps: bool = True
    max_messages: int | None = None


def format_local_time(timestamp: str) -> str:
    """Render an ISO timestamp in local time, or return it unchanged if unparseable."""
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return timestamp
    return parsed.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _tool_result_text(content: Any) -> str:
    """Flatten tool_result content (string or text blocks) to plain text."""
    if isinstance(content, list):
        return "\n".join(
            str(item.get("text") or "") for item in content if isinstance(item, dict)
        )
    if content is None:
        return ""
    return str(content)


def _render_content(content: Any) -> str:
    """Render message content, tool calls and results included."""
    if isinstance(content, str):
        return f"{content}\n\n"
    if not isinstance(content, list):
        return ""
    parts: list[str] = []
    for block in content:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "text":
            parts.append(f"{block.get('text') or ''}\n\n")
        elif block_type == "tool_use":
            parts.append(f"🔧 **Tool:** {block.get('name') or 'unknown'}\n")
            tool_input = block.get("input")
            if tool_input:
                rendered = json.dumps(tool_input, indent=2, ensure_ascii=False, default=str)
                parts.append(f"```json\n{rendered}\n```\n\n")
            else:
                parts.append("\n")
        elif block_type == "tool_result":
            output = _tool_result_text(block.get("content")) or "No output"
            parts.append(f"📤 **Tool Result:**\n```\n{output}\n```\n\n")
    return "".join(parts)


def _render_message(message: NormalizedMessage, include_timestamps: bool) -> str:
    icon = "👤" if message.role == "user" else "🤖"
    heading = f"### {icon} {message.role.capitalize()}"
    if include_timestamps and message.timestamp:
        heading += f" ({format_local_time(message.timestamp)})"
    return f"{heading}\n\n{_render_content(message.content)}---\n\n"


def render_markdown(
    summary: SessionSummary,
    messages: list[NormalizedMessage],
    options: ExportOptions | None = None,
) -> str:
    """Render a session as markdown, with YAML frontmatter when metadata is on."""
    opts = options or ExportOptions()
    visible = [message for message in messages if not message.is_meta]
    if opts.max_messages is not None and opts.max_messages >= 0:
        visible = visible[-opts.max_messages :] if opts.max_messages else []

    lines: list[str] = [f"# Claude Session {summary.id}\n\n"]
    if opts.include_metadata:
        lines.append("## Session Info\n\n")
        lines.append(f"- **Directory:** {summary.cwd}\n")
        if summary.git_branch:
            lines.append(f"- **Git Branch:** {summary.git_branch}\n")
        if opts.include_timestamps and summary.timestamp:
            lines.append(f"- **Started:** {format_local_time(summary.timestamp)}\n")
        lines.append("\n")
    if summary.summary:
        lines.append(f"## Summary\n\n{summary.summary}\n\n")

    lines.append("## Conversation\n\n")
    if visible:
        for message in visible:
            lines.append(_render_message(message, opts.include_timestamps))
    else:
        lines.append("*No messages in this session*\n\n")
    body = "".join(lines)

    if not opts.include_metadata:
        return body
    post = frontmatter.Post(
        body,
        session_id=summary.id,
        cwd=summary.cwd,
        git_branch=summary.git_branch or "",
        started=summary.timestamp,
        message_count=summary.message_count,
    )
    return frontmatter.dumps(post) + "\n"


def render_json(entries: list[dict[str, Any]]) -> str:
    """Render raw transcript entries as an indented JSON array."""
    return json.dumps(entries, indent=2, ensure_ascii=False)


def _transcript_path(summary: SessionSummary) -> Path:
    if summary.path:
        return Path(summary.path)
    path = find_session_path(summary.id)
    if path is None:
        raise SessionNotFoundError(summary.id)
    return path


def export_session(
    summary: SessionSummary,
    fmt: str = "markdown",
    options: ExportOptions | None = None,
) -> str:
    """Read a session transcript and render it in ``fmt``."""
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"export format must be one of: {', '.join(EXPORT_FORMATS)}")
    path = _transcript_path(summary)
    if fmt == "json":
        return render_json(read_raw_entries(path))
    return render_markdown(summary, expand_file(path), options)


def export_filename(session_id: str, fmt: str, now: float | None = None) -> str:
    """Build ``claude-session-<id8>-<epoch-ms>.<ext>``."""
    stamp = int((time.time() if now is None else now) * 1000)
    return f"claude-session-{session_id[:8]}-{stamp}.{_EXTENSIONS.get(fmt, fmt)}"


def write_export(
    summary: SessionSummary,
    fmt: str = "markdown",
    out_dir: Path | None = None,
    options: ExportOptions | None = None,
) -> Path:
    """Export a session into ``out_dir`` and return the written file path."""
    content = export_session(summary, fmt, options)
    target_dir = out_dir or Path(".")
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / export_filename(summary.id, fmt)
    target.write_text(content, encoding="utf-8")
    return target


if __name__ == "__main__":
    """Render a tiny in-memory session as a smoke test."""
    demo = SessionSummary(id="demo1234", timestamp="2024-01-01T00:00:00Z", cwd="/tmp/proj")
    md = render_markdown(
        demo,
        [NormalizedMessage(role="user", content="hello", timestamp="2024-01-01T00:00:01Z")],
    )
    assert md.startswith("---")
    assert "### 👤 User" in md
    assert export_filename("demo1234abcdef", "markdown", now=1.0) == "claude-session-demo1234-1000.md"
