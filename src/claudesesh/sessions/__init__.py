"""Session catalog and export."""

from claudesesh.sessions.catalog import (
    AmbiguousSessionError,
    SessionError,
    SessionNotFoundError,
    delete_session,
    filter_sessions,
    find_session_path,
    list_sessions,
    resolve_session,
    sort_by_ranking,
)
from claudesesh.sessions.export import ExportOptions, export_session, write_export

__all__ = [
    "AmbiguousSessionError",
    "SessionError",
    "SessionNotFoundError",
    "ExportOptions",
    "delete_session",
    "export_session",
    "filter_sessions",
    "find_session_path",
    "list_sessions",
    "resolve_session",
    "sort_by_ranking",
    "write_export",
]
