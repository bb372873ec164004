"""Command-line interface for browsing, resuming, and exporting Claude sessions.

Read-only commands (list, search, show, view, export) only touch transcript
files. ``resume`` and ``pick`` hand off to tmux, fzf, gum and the ``claude``
binary when they are available and fall back to plain prompts when not.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Callable

from claudesesh import __version__
from claudesesh.app.arg_utils import parse_positive_int, parse_session_query
from claudesesh.app.display import render_table, session_line
from claudesesh.app.terminal import (
    ResumeAbortedError,
    confirm,
    has_tty,
    interactive_select,
    page_text,
    resume_session,
    zoxide_ranking,
)
from claudesesh.config.logging import configure_logging
from claudesesh.config.settings import Config, get_config
from claudesesh.sessions.catalog import (
    AmbiguousSessionError,
    SessionNotFoundError,
    delete_session,
    filter_sessions,
    list_sessions,
    resolve_session,
    sort_by_ranking,
)
from claudesesh.sessions.export import (
    EXPORT_FORMATS,
    ExportOptions,
    export_session,
    write_export,
)
from claudesesh.transcripts.normalize import SessionSummary

_GLOBAL_FLAGS = ("--json", "--no-tmux", "--zoxide")


def _emit(message: object = "", *, file: Any | None = None) -> None:
    """Write one CLI output line to stdout or a provided file-like target."""
    target = file if file is not None else sys.stdout
    target.write(f"{message}\n")


def _emit_structured(*, title: str, payload: dict[str, Any], as_json: bool) -> None:
    """Emit a dict payload either as JSON or as key/value lines."""
    if as_json:
        _emit(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    _emit(title)
    for key, value in payload.items():
        _emit(f"- {key}: {value}")


def _hoist_global_flags(raw: list[str]) -> list[str]:
    """Allow global flags before or after subcommands by normalizing argv order."""
    present = [flag for flag in _GLOBAL_FLAGS if flag in raw]
    if not present:
        return raw
    return present + [item for item in raw if item not in _GLOBAL_FLAGS]


def _load_sessions(args: argparse.Namespace, config: Config) -> list[SessionSummary]:
    """List sessions, reordered by zoxide frecency when requested."""
    sessions = list_sessions(config.projects_dir, max_workers=config.list_workers)
    if getattr(args, "zoxide", False) or config.sort_by_zoxide:
        ranking = zoxide_ranking()
        if ranking:
            sessions = sort_by_ranking(sessions, ranking)
    return sessions


def _resolve(args: argparse.Namespace, config: Config) -> SessionSummary:
    return resolve_session(parse_session_query(args.session_id), _load_sessions(args, config))


def _confirm_fn(config: Config) -> Callable[[str], bool]:
    return lambda prompt: confirm(prompt, use_gum=config.use_gum)


# ── shared actions ───────────────────────────────────────────────────


def _do_resume(summary: SessionSummary, args: argparse.Namespace, config: Config) -> int:
    use_tmux = config.use_tmux and not getattr(args, "no_tmux", False)
    return resume_session(
        summary,
        use_tmux=use_tmux,
        claude_command=config.claude_command,
        confirm_fn=_confirm_fn(config),
    )


def _do_view(summary: SessionSummary, config: Config) -> int:
    page_text(export_session(summary, "markdown"), use_gum=config.use_gum)
    return 0


def _do_export(
    summary: SessionSummary,
    *,
    fmt: str,
    out_dir: Path,
    options: ExportOptions,
    as_json: bool,
) -> int:
    path = write_export(summary, fmt, out_dir, options)
    if as_json:
        _emit(json.dumps({"session_id": summary.id, "format": fmt, "path": str(path)}, indent=2))
    else:
        _emit(f"Exported to {path}")
    return 0


def _do_delete(
    summary: SessionSummary, *, assume_yes: bool, config: Config, as_json: bool = False
) -> int:
    if not assume_yes and not _confirm_fn(config)(f"Delete session {summary.id}?"):
        _emit("Cancelled.")
        return 1
    path = delete_session(summary.id, config.projects_dir)
    if as_json:
        _emit(json.dumps({"deleted": summary.id, "path": str(path)}, indent=2))
    else:
        _emit(f"Deleted session {summary.id}")
    return 0


# ── commands ─────────────────────────────────────────────────────────


def _cmd_list(args: argparse.Namespace) -> int:
    """List sessions as a table, picker lines, or JSON."""
    config = get_config()
    sessions = filter_sessions(_load_sessions(args, config), getattr(args, "search", None))
    limit = getattr(args, "limit", None)
    if limit:
        sessions = sessions[:limit]
    if args.json:
        _emit(json.dumps([item.to_dict() for item in sessions], indent=2, ensure_ascii=False))
        return 0
    if getattr(args, "plain", False):
        for item in sessions:
            _emit(session_line(item, config.preview_length))
        return 0
    if not sessions:
        _emit("No sessions found.")
        return 0
    _emit(render_table(sessions, preview_length=config.preview_length))
    return 0


def _cmd_search(args: argparse.Namespace) -> int:
    """Search sessions by id, directory, branch, summary, or last message."""
    args.search = args.term
    return _cmd_list(args)


def _cmd_show(args: argparse.Namespace) -> int:
    """Print one session summary."""
    summary = _resolve(args, get_config())
    _emit_structured(title=f"Session {summary.id}", payload=summary.to_dict(), as_json=args.json)
    return 0


def _cmd_view(args: argparse.Namespace) -> int:
    """Render a session as markdown and page it."""
    config = get_config()
    return _do_view(_resolve(args, config), config)


def _cmd_export(args: argparse.Namespace) -> int:
    """Export a session to a file or stdout."""
    config = get_config()
    summary = _resolve(args, config)
    options = ExportOptions(
        include_metadata=not args.no_metadata,
        include_timestamps=not args.no_timestamps,
        max_messages=args.max_messages,
    )
    if args.stdout:
        sys.stdout.write(export_session(summary, args.format, options))
        return 0
    out_dir = Path(args.output).expanduser() if args.output else config.export_dir
    return _do_export(summary, fmt=args.format, out_dir=out_dir, options=options, as_json=args.json)


def _cmd_resume(args: argparse.Namespace) -> int:
    """Resume a session in tmux or directly."""
    config = get_config()
    return _do_resume(_resolve(args, config), args, config)


def _cmd_delete(args: argparse.Namespace) -> int:
    """Delete a session transcript after confirmation."""
    config = get_config()
    summary = _resolve(args, config)
    return _do_delete(summary, assume_yes=args.yes, config=config, as_json=args.json)


def _cmd_pick(args: argparse.Namespace) -> int:
    """Pick a session interactively and run the chosen action."""
    config = get_config()
    selection = interactive_select(
        _load_sessions(args, config),
        use_fzf=config.use_fzf,
        use_gum=config.use_gum,
        simple=getattr(args, "simple", False) or config.simple_mode,
        popup=config.fzf_popup,
        preview_length=config.preview_length,
    )
    if selection is None or selection.action == "cancel":
        return 0
    summary = selection.session
    if selection.action == "resume":
        return _do_resume(summary, args, config)
    if selection.action == "view":
        return _do_view(summary, config)
    if selection.action == "export":
        return _do_export(
            summary,
            fmt="markdown",
            out_dir=config.export_dir,
            options=ExportOptions(),
            as_json=args.json,
        )
    if selection.action == "delete":
        return _do_delete(summary, assume_yes=False, config=config, as_json=args.json)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Construct the claude-sesh command-line parser."""
    _F = argparse.RawDescriptionHelpFormatter  # noqa: N806
    parser = argparse.ArgumentParser(
        prog="claude-sesh",
        formatter_class=_F,
        description="claude-sesh -- browse, resume, and export Claude Code sessions.\n"
        "Reads transcripts under ~/.claude/projects and hands off to\n"
        "tmux, fzf and gum when they are installed.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit structured JSON instead of human-readable text (list, search, show, export, delete)",
    )
    parser.add_argument(
        "--no-tmux",
        action="store_true",
        help="Resume sessions directly in the current terminal instead of a tmux window",
    )
    parser.add_argument(
        "--zoxide",
        action="store_true",
        help="Order sessions by zoxide directory frecency instead of recency",
    )
    sub = parser.add_subparsers(dest="command")

    # ── list / search ────────────────────────────────────────────────
    list_cmd = sub.add_parser(
        "list",
        formatter_class=_F,
        help="List sessions, newest first",
        description=(
            "List every session found under the Claude projects directory.\n\n"
            "Examples:\n"
            "  claude-sesh list\n"
            "  claude-sesh list --search auth --limit 10\n"
            "  claude-sesh list --plain | fzf --delimiter='\\t'\n"
            "  claude-sesh list --json"
        ),
    )
    list_cmd.add_argument("--search", help="Only show sessions containing this text")
    list_cmd.add_argument(
        "--plain",
        action="store_true",
        help="Tab-separated picker lines: icon, date, name, preview, id, cwd",
    )
    list_cmd.add_argument(
        "--limit", type=parse_positive_int, help="Show at most this many sessions"
    )
    list_cmd.set_defaults(func=_cmd_list)

    search = sub.add_parser("search", help="Search sessions (alias of list --search)")
    search.add_argument("term", help="Text to look for in id, directory, branch, or messages")
    search.add_argument(
        "--limit", type=parse_positive_int, help="Show at most this many sessions"
    )
    search.set_defaults(func=_cmd_search)

    # ── single-session commands ──────────────────────────────────────
    show = sub.add_parser("show", help="Show one session summary")
    show.add_argument("session_id", help="Full or partial session id, or transcript path")
    show.set_defaults(func=_cmd_show)

    view = sub.add_parser("view", help="Page a session's conversation as markdown")
    view.add_argument("session_id", help="Full or partial session id, or transcript path")
    view.set_defaults(func=_cmd_view)

    export = sub.add_parser(
        "export",
        formatter_class=_F,
        help="Export a session to markdown or JSON",
        description=(
            "Write a session to claude-session-<id>-<timestamp>.<md|json>.\n\n"
            "Examples:\n"
            "  claude-sesh export 1a2b3c\n"
            "  claude-sesh export 1a2b3c --format json --output ~/exports\n"
            "  claude-sesh export 1a2b3c --stdout --no-metadata --max-messages 20"
        ),
    )
    export.add_argument("session_id", help="Full or partial session id, or transcript path")
    export.add_argument("--format", choices=EXPORT_FORMATS, default="markdown")
    export.add_argument("--output", help="Directory to write into (default: [paths] export_dir)")
    export.add_argument("--stdout", action="store_true", help="Print instead of writing a file")
    export.add_argument("--no-metadata", action="store_true", help="Skip frontmatter and session info")
    export.add_argument("--no-timestamps", action="store_true", help="Skip per-message times")
    export.add_argument(
        "--max-messages", type=parse_positive_int, help="Keep only the last N messages"
    )
    export.set_defaults(func=_cmd_export)

    resume = sub.add_parser("resume", help="Resume a session (tmux window or direct)")
    resume.add_argument("session_id", help="Full or partial session id, or transcript path")
    resume.set_defaults(func=_cmd_resume)

    delete = sub.add_parser("delete", help="Delete a session transcript")
    delete.add_argument("session_id", help="Full or partial session id, or transcript path")
    delete.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    delete.set_defaults(func=_cmd_delete)

    # ── pick ─────────────────────────────────────────────────────────
    pick = sub.add_parser(
        "pick",
        formatter_class=_F,
        help="Pick a session interactively (default with a terminal)",
        description=(
            "Interactive picker. With fzf: Enter opens the action menu,\n"
            "ctrl-r resumes, ctrl-v views, ctrl-e exports, ctrl-d deletes.\n"
            "Without fzf or a terminal a numbered prompt is used instead\n"
            "(also forced by --simple or CLAUDE_MANAGER_SIMPLE=true)."
        ),
    )
    pick.add_argument("--simple", action="store_true", help="Use the numbered prompt")
    pick.set_defaults(func=_cmd_pick)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for CLI invocation with global flags and dispatch."""
    configure_logging()
    parser = build_parser()
    raw = list(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(_hoist_global_flags(raw))

    handler = getattr(args, "func", None)
    if handler is None:
        if not has_tty():
            parser.print_help()
            return 0
        handler = _cmd_pick

    try:
        return int(handler(args))
    except SessionNotFoundError as exc:
        _emit(str(exc), file=sys.stderr)
        return 1
    except AmbiguousSessionError as exc:
        _emit(str(exc), file=sys.stderr)
        for item in exc.candidates:
            _emit(f"  {item.id}  {item.cwd}", file=sys.stderr)
        return 2
    except ResumeAbortedError as exc:
        _emit(str(exc), file=sys.stderr)
        return 1
    except OSError as exc:
        _emit(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
