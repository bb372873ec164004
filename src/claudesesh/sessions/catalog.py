"""Session discovery, listing, lookup, and deletion over the Claude projects dir.

Transcripts live at ``<claude_dir>/projects/<encoded-project>/<session-id>.jsonl``.
Listing summarizes every file independently, so the work is fanned out over a
thread pool and the results are sorted newest first afterwards.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Iterable

from claudesesh.config.logging import logger
from claudesesh.config.settings import get_config
from claudesesh.transcripts.common import parse_timestamp
from claudesesh.transcripts.normalize import SessionSummary, summarize_file


class SessionError(Exception):
    """Base error for session lookup and management failures."""


class SessionNotFoundError(SessionError, LookupError):
    """No transcript matches the requested session id."""

    def __init__(self, query: str) -> None:
        super().__init__(f"Session {query} not found")
        self.query = query


class AmbiguousSessionError(SessionError):
    """More than one transcript matches a partial session id."""

    def __init__(self, query: str, candidates: list[SessionSummary]) -> None:
        ids = ", ".join(item.id for item in candidates[:5])
        super().__init__(f"Session id {query!r} matches {len(candidates)} sessions: {ids}")
        self.query = query
        self.candidates = candidates


def default_projects_dir() -> Path:
    """Return the configured Claude projects directory."""
    return get_config().projects_dir


def iter_session_files(projects_dir: Path | None = None) -> list[Path]:
    """Return non-empty ``*.jsonl`` transcripts directly under each project dir."""
    base = projects_dir or default_projects_dir()
    if not base.is_dir():
        return []
    files: list[Path] = []
    for pattern in ("*.jsonl", "*/*.jsonl"):
        for path in base.glob(pattern):
            try:
                if path.is_file() and path.stat().st_size > 0:
                    files.append(path)
            except OSError:
                continue
    return sorted(files)


def count_sessions(projects_dir: Path | None = None) -> int:
    """Count readable non-empty transcripts."""
    return len(iter_session_files(projects_dir))


def _sort_key(summary: SessionSummary) -> float:
    parsed = parse_timestamp(summary.timestamp)
    return parsed.timestamp() if parsed else 0.0


def list_sessions(
    projects_dir: Path | None = None, *, max_workers: int | None = None
) -> list[SessionSummary]:
    """Summarize every transcript concurrently, newest first.

    Files that cannot be read are logged and left out of the listing.
    """
    files = iter_session_files(projects_dir)
    if not files:
        return []
    workers = max_workers or get_config().list_workers
    workers = min(max(workers, 1), len(files))
    summaries: list[SessionSummary] = []
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {pool.submit(summarize_file, path): path for path in files}
        for future in as_completed(futures):
            path = futures[future]
            try:
                summaries.append(future.result())
            except OSError as exc:
                logger.warning("Skipping unreadable session file {}: {}", path, exc)
    summaries.sort(key=_sort_key, reverse=True)
    logger.debug("Listed {} sessions from {} files", len(summaries), len(files))
    return summaries


def filter_sessions(
    sessions: Iterable[SessionSummary], term: str | None
) -> list[SessionSummary]:
    """Keep sessions whose id, cwd, branch, summary, or last message contain ``term``."""
    items = list(sessions)
    needle = (term or "").strip().lower()
    if not needle:
        return items
    matched: list[SessionSummary] = []
    for item in items:
        haystack = " ".join(
            [
                item.id,
                item.cwd,
                item.git_branch or "",
                item.summary,
                item.last_message,
            ]
        ).lower()
        if needle in haystack:
            matched.append(item)
    return matched


def sort_by_ranking(
    sessions: Iterable[SessionSummary], ranking: list[str]
) -> list[SessionSummary]:
    """Order sessions by the position of their cwd in ``ranking``; unranked last."""
    positions = {path: index for index, path in enumerate(ranking)}
    unranked = len(positions)
    return sorted(sessions, key=lambda item: positions.get(item.cwd, unranked))


def find_session_path(session_id: str, projects_dir: Path | None = None) -> Path | None:
    """Find a transcript path by its exact stem-based session id."""
    for path in iter_session_files(projects_dir):
        if path.stem == session_id:
            return path
    return None


def resolve_session(query: str, sessions: Iterable[SessionSummary]) -> SessionSummary:
    """Resolve a full or partial session id against a listing.

    An exact id wins; otherwise the query must be a substring of exactly one id.
    """
    needle = (query or "").strip()
    if not needle:
        raise SessionNotFoundError(query)
    items = list(sessions)
    for item in items:
        if item.id == needle:
            return item
    matches = [item for item in items if needle in item.id]
    if not matches:
        raise SessionNotFoundError(needle)
    if len(matches) > 1:
        raise AmbiguousSessionError(needle, matches)
    return matches[0]


def delete_session(session_id: str, projects_dir: Path | None = None) -> Path:
    """Delete the transcript for ``session_id`` and return the removed path."""
    path = find_session_path(session_id, projects_dir)
    if path is None:
        raise SessionNotFoundError(session_id)
    path.unlink()
    logger.info("Deleted session transcript {}", path)
    return path


if __name__ == "__main__":
    """Run a real-path smoke test against a temporary projects dir."""
    from tempfile import TemporaryDirectory

    with TemporaryDirectory() as tmp_dir:
        project = Path(tmp_dir) / "-tmp-proj"
        project.mkdir()
        (project / "abc123.jsonl").write_text(
            '{"type":"metadata","timestamp":"2024-01-01T00:00:00Z","cwd":"/tmp/proj"}\n',
            encoding="utf-8",
        )
        listed = list_sessions(Path(tmp_dir), max_workers=2)
        assert [item.id for item in listed] == ["abc123"]
        assert resolve_session("abc", listed).id == "abc123"
        assert delete_session("abc123", Path(tmp_dir)).name == "abc123.jsonl"
        assert count_sessions(Path(tmp_dir)) == 0
