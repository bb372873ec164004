"""Transcript parsing and normalization."""

from claudesesh.transcripts.normalize import (
    NormalizedMessage,
    SessionSummary,
    expand,
    expand_file,
    extract_text,
    summarize,
    summarize_file,
)
from claudesesh.transcripts.records import (
    SessionRecord,
    UnclassifiedRecord,
    iter_records,
    parse_line,
    read_raw_entries,
    read_records,
)

__all__ = [
    "NormalizedMessage",
    "SessionSummary",
    "SessionRecord",
    "UnclassifiedRecord",
    "expand",
    "expand_file",
    "extract_text",
    "summarize",
    "summarize_file",
    "iter_records",
    "parse_line",
    "read_raw_entries",
    "read_records",
]
