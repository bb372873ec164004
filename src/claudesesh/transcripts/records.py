"""Typed transcript records and the lenient line parser.

Each transcript line is one JSON object tagged by ``type``. Five tags are
understood and validated into the ``SessionRecord`` discriminated union:

- ``metadata``: session initialisation (timestamp, cwd, git branch, version).
- ``summary``: a human-readable synopsis of the session.
- ``message``: wrapped form, ``message.role`` plus ``message.content``.
- ``user``: legacy direct user form, content is a string or text/tool_result blocks.
- ``assistant``: legacy direct assistant form with model, stop reason and usage.

Lines with any other tag are kept as ``UnclassifiedRecord`` so raw exports still
see them. Blank lines, invalid JSON and non-object JSON produce no record at all.
Nothing in here raises for bad input: a truncated final write must never make a
whole session unreadable.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any, Iterable, Iterator, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from claudesesh.config.logging import logger
from claudesesh.transcripts.common import load_jsonl_dict_lines

_TRUE_STRINGS = {"1", "true", "yes"}


def _optional_text(value: Any) -> str | None:
    """Coerce scalar values to text, mapping containers and ``None`` to ``None``."""
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


class MessageBody(BaseModel):
    """Inner ``message`` object shared by the three message-bearing records."""

    model_config = ConfigDict(extra="allow", frozen=True)

    role: str | None = None
    content: Any = ""

    @field_validator("role", mode="before")
    @classmethod
    def _role_text(cls, value: Any) -> str | None:
        return _optional_text(value)


class AssistantMessageBody(MessageBody):
    """Assistant ``message`` object with model and token accounting."""

    id: str | None = None
    model: str | None = None
    stop_reason: str | None = None
    stop_sequence: str | None = None
    usage: dict[str, Any] | None = None

    @field_validator("id", "model", "stop_reason", "stop_sequence", mode="before")
    @classmethod
    def _text_fields(cls, value: Any) -> str | None:
        return _optional_text(value)

    @field_validator("usage", mode="before")
    @classmethod
    def _usage_mapping(cls, value: Any) -> dict[str, Any] | None:
        return value if isinstance(value, dict) else None


class _RecordBase(BaseModel):
    """Fields every transcript line may carry."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    timestamp: str = ""
    cwd: str | None = None
    git_branch: str | None = Field(default=None, alias="gitBranch")
    version: str | None = None
    request_id: str | None = Field(default=None, alias="requestId")
    session_id: str | None = Field(default=None, alias="sessionId")
    uuid: str | None = None
    parent_uuid: str | None = Field(default=None, alias="parentUuid")
    user_type: str | None = Field(default=None, alias="userType")
    is_meta: bool = Field(default=False, alias="isMeta")
    is_sidechain: bool = Field(default=False, alias="isSidechain")

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp_text(cls, value: Any) -> str:
        return _optional_text(value) or ""

    @field_validator(
        "cwd",
        "git_branch",
        "version",
        "request_id",
        "session_id",
        "uuid",
        "parent_uuid",
        "user_type",
        mode="before",
    )
    @classmethod
    def _text_fields(cls, value: Any) -> str | None:
        return _optional_text(value)

    @field_validator("is_meta", "is_sidechain", mode="before")
    @classmethod
    def _flag(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_STRINGS
        return bool(value)


class MetadataRecord(_RecordBase):
    """Session initialisation line."""

    type: Literal["metadata"] = "metadata"


class SummaryRecord(_RecordBase):
    """Synopsis line; later summaries supersede earlier ones."""

    type: Literal["summary"] = "summary"
    summary: str = ""
    leaf_uuid: str | None = Field(default=None, alias="leafUuid")

    @field_validator("summary", mode="before")
    @classmethod
    def _summary_text(cls, value: Any) -> str:
        return _optional_text(value) or ""

    @field_validator("leaf_uuid", mode="before")
    @classmethod
    def _leaf_text(cls, value: Any) -> str | None:
        return _optional_text(value)


class _MessageRecordBase(_RecordBase):
    message: MessageBody = Field(default_factory=MessageBody)

    @field_validator("message", mode="before")
    @classmethod
    def _message_mapping(cls, value: Any) -> Any:
        # An unusable nested message degrades to an empty body.
        return value if isinstance(value, dict) else {}


class WrappedMessageRecord(_MessageRecordBase):
    """Wrapped form: role lives inside ``message``."""

    type: Literal["message"] = "message"


class UserRecord(_MessageRecordBase):
    """Legacy direct user line."""

    type: Literal["user"] = "user"
    tool_use_result: Any = Field(default=None, alias="toolUseResult")


class AssistantRecord(_MessageRecordBase):
    """Legacy direct assistant line."""

    type: Literal["assistant"] = "assistant"
    message: AssistantMessageBody = Field(default_factory=AssistantMessageBody)
    tool_use_result: Any = Field(default=None, alias="toolUseResult")


SessionRecord = Annotated[
    MetadataRecord | SummaryRecord | WrappedMessageRecord | UserRecord | AssistantRecord,
    Field(discriminator="type"),
]

MESSAGE_RECORD_TYPES = (WrappedMessageRecord, UserRecord, AssistantRecord)
RECORD_TYPES = frozenset({"metadata", "summary", "message", "user", "assistant"})

_RECORD_ADAPTER: TypeAdapter[SessionRecord] = TypeAdapter(SessionRecord)


@dataclass(frozen=True)
class UnclassifiedRecord:
    """A JSON object line whose ``type`` is missing or not understood."""

    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> str | None:
        """Return the raw ``type`` tag when it is a string."""
        value = self.payload.get("type")
        return value if isinstance(value, str) else None


AnyRecord = (
    MetadataRecord
    | SummaryRecord
    | WrappedMessageRecord
    | UserRecord
    | AssistantRecord
    | UnclassifiedRecord
)


def is_message_record(record: Any) -> bool:
    """Return whether ``record`` is one of the message-bearing variants."""
    return isinstance(record, MESSAGE_RECORD_TYPES)


def parse_entry(payload: dict[str, Any]) -> AnyRecord:
    """Classify one decoded JSON object into a typed record."""
    kind = payload.get("type")
    if not isinstance(kind, str) or kind not in RECORD_TYPES:
        return UnclassifiedRecord(payload)
    try:
        return _RECORD_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        logger.debug(
            "Transcript {} record failed validation ({} errors); keeping it unclassified",
            kind,
            exc.error_count(),
        )
        return UnclassifiedRecord(payload)


def parse_line(line: str) -> AnyRecord | None:
    """Parse one transcript line, returning ``None`` for lines that carry no record."""
    text = line.strip()
    if not text:
        return None
    try:
        payload = json.loads(text)
    except (ValueError, RecursionError):
        logger.debug("Skipping malformed transcript line: {}", text[:80])
        return None
    if not isinstance(payload, dict):
        return None
    return parse_entry(payload)


def iter_records(lines: Iterable[str]) -> Iterator[AnyRecord]:
    """Yield records for every line that parses, in line order."""
    for line in lines:
        record = parse_line(line)
        if record is not None:
            yield record


def read_records(path: Path) -> list[AnyRecord]:
    """Read every record of one transcript file.

    A missing or unreadable file raises ``OSError`` (``FileNotFoundError`` for a
    missing path); malformed content never does.
    """
    with path.open("r", encoding="utf-8", errors="replace") as handle:
        return list(iter_records(handle))


def read_raw_entries(path: Path) -> list[dict[str, Any]]:
    """Return every JSON object line of a transcript as-is, for raw export."""
    return load_jsonl_dict_lines(path)


if __name__ == "__main__":
    """Run a small classification smoke test."""
    assert parse_line("") is None
    assert parse_line("{not json") is None
    assert isinstance(parse_line('{"type":"metadata","cwd":"/tmp"}'), MetadataRecord)
    assert isinstance(parse_line('{"type":"file-history-snapshot"}'), UnclassifiedRecord)
    wrapped = parse_line('{"type":"message","message":"oops"}')
    assert isinstance(wrapped, WrappedMessageRecord)
    assert wrapped.message.content == ""
    print("records: self-test passed")
