"""Fold typed transcript records into session summaries and normalized messages."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from claudesesh.transcripts.common import file_mtime_iso, utc_now_iso
from claudesesh.transcripts.records import (
    MESSAGE_RECORD_TYPES,
    AnyRecord,
    AssistantRecord,
    MetadataRecord,
    SummaryRecord,
    UnclassifiedRecord,
    UserRecord,
    read_records,
)

# Text containing these markers is a slash-command invocation or its captured
# output, not something the user typed.
COMMAND_MARKERS = ("<command-name>", "<local-command-stdout>")
LAST_MESSAGE_LIMIT = 100
ROLES = frozenset({"user", "assistant", "system"})


@dataclass(frozen=True)
class NormalizedMessage:
    """One conversational entry, independent of the on-disk record shape."""

    role: str
    content: Any
    timestamp: str
    is_meta: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase mapping used by JSON consumers."""
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
            "isMeta": self.is_meta,
        }


@dataclass(frozen=True)
class SessionSummary:
    """Listing row for one transcript file."""

    id: str
    timestamp: str
    cwd: str
    git_branch: str | None = None
    status: str = "completed"
    message_count: int = 0
    last_message: str = ""
    summary: str = ""
    path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase mapping used by listing consumers."""
        payload: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "cwd": self.cwd,
        }
        if self.git_branch:
            payload["gitBranch"] = self.git_branch
        payload.update(
            {
                "status": self.status,
                "messageCount": self.message_count,
                "lastMessage": self.last_message,
                "summary": self.summary,
            }
        )
        if self.path:
            payload["path"] = self.path
        return payload


def extract_text(content: Any) -> str:
    """Return plain text from a string or a list of content blocks.

    Only ``text`` blocks contribute; tool_use and tool_result payloads never
    appear in previews. Any other shape yields an empty string.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [
            block["text"]
            for block in content
            if isinstance(block, dict)
            and block.get("type") == "text"
            and isinstance(block.get("text"), str)
            and block["text"]
        ]
        return "\n".join(texts)
    return ""


def is_command_text(text: str) -> bool:
    """Return whether ``text`` carries a slash-command marker."""
    return any(marker in text for marker in COMMAND_MARKERS)


def effective_role(record: AnyRecord) -> str | None:
    """Return the conversational role of a message-bearing record."""
    if isinstance(record, UserRecord):
        return "user"
    if isinstance(record, AssistantRecord):
        return "assistant"
    if isinstance(record, MESSAGE_RECORD_TYPES):
        role = record.message.role
        return role if role in ROLES else "system"
    return None


def normalize_record(record: AnyRecord) -> NormalizedMessage | None:
    """Map any message-bearing record onto ``NormalizedMessage``."""
    if not isinstance(record, MESSAGE_RECORD_TYPES):
        return None
    if record.is_meta:
        return NormalizedMessage(
            role="system", content="", timestamp=record.timestamp, is_meta=True
        )
    return NormalizedMessage(
        role=effective_role(record) or "system",
        content=record.message.content,
        timestamp=record.timestamp,
    )


def _session_fields(record: AnyRecord) -> tuple[str, str | None, str | None]:
    """Return ``(timestamp, cwd, git_branch)`` carried by one record."""
    if isinstance(record, UnclassifiedRecord):
        payload = record.payload
        values = [payload.get("timestamp"), payload.get("cwd"), payload.get("gitBranch")]
        timestamp, cwd, branch = (
            str(value) if isinstance(value, (str, int, float)) and value != "" else None
            for value in values
        )
        return timestamp or "", cwd, branch
    return record.timestamp, record.cwd, record.git_branch


def summarize(
    records: Iterable[AnyRecord],
    session_id: str,
    *,
    path: str | None = None,
    default_timestamp: str | None = None,
) -> SessionSummary:
    """Fold records (in file order) into a ``SessionSummary``.

    Session-level fields come from the first metadata record, or from the very
    first record when the file has none. A missing timestamp becomes
    ``default_timestamp`` (the current time when not given); a missing cwd
    becomes the process working directory.
    """
    first: AnyRecord | None = None
    metadata: MetadataRecord | None = None
    message_count = 0
    last_message = ""
    summary = ""

    for record in records:
        if first is None:
            first = record
        if metadata is None and isinstance(record, MetadataRecord):
            metadata = record

        if isinstance(record, SummaryRecord):
            summary = record.summary
            continue

        message = normalize_record(record)
        if message is None or message.is_meta:
            continue
        message_count += 1
        if message.role != "user":
            continue
        text = extract_text(message.content)
        if text and not is_command_text(text):
            last_message = text

    if metadata is not None:
        timestamp, cwd, branch = _session_fields(metadata)
    elif first is not None:
        timestamp, cwd, branch = _session_fields(first)
    else:
        timestamp, cwd, branch = "", None, None

    return SessionSummary(
        id=session_id,
        timestamp=timestamp or default_timestamp or utc_now_iso(),
        cwd=cwd or os.getcwd(),
        git_branch=branch or None,
        message_count=message_count,
        last_message=last_message[:LAST_MESSAGE_LIMIT],
        summary=summary,
        path=path,
    )


def expand(records: Iterable[AnyRecord]) -> list[NormalizedMessage]:
    """Return the ordered normalized messages, meta placeholders included."""
    messages: list[NormalizedMessage] = []
    for record in records:
        message = normalize_record(record)
        if message is not None:
            messages.append(message)
    return messages


def summarize_file(path: Path) -> SessionSummary:
    """Read one transcript and summarize it; the id is the filename stem.

    A transcript without any timestamp is dated by its modification time.
    """
    records = read_records(path)
    return summarize(records, path.stem, path=str(path), default_timestamp=file_mtime_iso(path))


def expand_file(path: Path) -> list[NormalizedMessage]:
    """Read one transcript and return its normalized messages."""
    return expand(read_records(path))


if __name__ == "__main__":
    """Run the reference scenario as a smoke test."""
    from claudesesh.transcripts.records import iter_records

    lines = [
        '{"type":"metadata","timestamp":"2024-01-01T00:00:00Z","cwd":"/tmp/proj"}',
        '{"type":"user","message":{"role":"user","content":"fix bug"}}',
        "garbage",
        '{"type":"assistant","message":{"role":"assistant","content":[{"type":"text","text":"Fixed."}]}}',
        '{"type":"summary","summary":"Bug fix session"}',
    ]
    result = summarize(iter_records(lines), "demo")
    assert result.cwd == "/tmp/proj"
    assert result.message_count == 2
    assert result.last_message == "fix bug"
    assert result.summary == "Bug fix session"
    print("normalize: self-test passed")
