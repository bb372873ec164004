"""External tool integration: tmux, fzf, gum, less, zoxide, and the claude CLI.

Every tool is optional. Missing binaries degrade to simpler behaviour: the
pager falls back to stdout, fzf to a numbered prompt, tmux to running
``claude --resume`` directly in the session's working directory.
"""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, TextIO

from claudesesh.app.display import (
    directory_icon,
    format_preview,
    parse_session_line,
    sesh_name,
    session_line,
    session_preview,
)
from claudesesh.config.logging import logger
from claudesesh.sessions.catalog import SessionError
from claudesesh.transcripts.common import parse_timestamp
from claudesesh.transcripts.normalize import SessionSummary

ACTION_LABELS: dict[str, str] = {
    "resume": "Resume Session",
    "view": "View Conversation",
    "export": "Export to Markdown",
    "delete": "Delete Session",
    "cancel": "Cancel",
}
ACTIONS = tuple(ACTION_LABELS)

# fzf --expect keys; plain Enter opens the action menu instead.
KEY_ACTIONS: dict[str, str] = {
    "ctrl-r": "resume",
    "ctrl-v": "view",
    "ctrl-e": "export",
    "ctrl-d": "delete",
}

_INTERACTIVE_TMUX = {"attach-session", "switch-client"}


class ResumeAbortedError(SessionError):
    """The user declined to create a missing working directory."""


@dataclass(frozen=True)
class SessionSelection:
    """A picked session and what to do with it."""

    session: SessionSummary
    action: str


def command_exists(name: str) -> bool:
    """Return whether ``name`` resolves on ``PATH``."""
    return shutil.which(name) is not None


def in_tmux() -> bool:
    """Return whether this process runs inside a tmux client."""
    return bool(os.environ.get("TMUX"))


def has_tty() -> bool:
    """Return whether stdin and stdout are terminals on a capable TERM."""
    return (
        sys.stdin.isatty()
        and sys.stdout.isatty()
        and os.environ.get("TERM", "") != "dumb"
    )


def run_tool(
    cmd: list[str],
    *,
    input_text: str | None = None,
    capture: str = "all",
    cwd: str | None = None,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[str] | None:
    """Run one external command; ``None`` when it is missing or times out.

    ``capture`` is ``"all"`` (stdout and stderr piped), ``"stdout"`` (for
    pickers that draw their UI on the terminal), or ``"none"``.
    """
    kwargs: dict[str, Any] = {"text": True, "cwd": cwd, "timeout": timeout, "check": False}
    if input_text is not None:
        kwargs["input"] = input_text
    if capture in ("all", "stdout"):
        kwargs["stdout"] = subprocess.PIPE
    if capture == "all":
        kwargs["stderr"] = subprocess.PIPE
    try:
        return subprocess.run(cmd, **kwargs)
    except (FileNotFoundError, subprocess.TimeoutExpired) as exc:
        logger.warning("Could not run {}: {}", cmd[0], exc)
        return None


# ── tmux / resume ────────────────────────────────────────────────────


def tmux_has_session(name: str) -> bool:
    """Return whether a tmux session called ``name`` exists."""
    result = run_tool(["tmux", "has-session", "-t", name], timeout=10)
    return result is not None and result.returncode == 0


def resume_command(session_id: str, claude_command: str = "claude") -> str:
    """Return the shell command line typed into the tmux window."""
    return f"{claude_command} --resume {shlex.quote(session_id)}"


def build_resume_plan(
    summary: SessionSummary,
    *,
    inside_tmux: bool,
    session_exists: bool,
    claude_command: str = "claude",
) -> list[list[str]]:
    """Return the ordered tmux commands that resume ``summary``."""
    name = sesh_name(summary.cwd)
    window = f"claude-{summary.id[:8]}"
    target = f"{name}:{window}"
    send = ["tmux", "send-keys", "-t", target, resume_command(summary.id, claude_command), "C-m"]

    if session_exists:
        plan = [["tmux", "new-window", "-a", "-t", name, "-c", summary.cwd, "-n", window], send]
        if inside_tmux:
            plan.append(["tmux", "switch-client", "-t", name])
            plan.append(["tmux", "select-window", "-t", target])
        else:
            plan.append(["tmux", "attach-session", "-t", target])
        return plan

    plan = [["tmux", "new-session", "-d", "-s", name, "-c", summary.cwd, "-n", window], send]
    if inside_tmux:
        plan.append(["tmux", "switch-client", "-t", target])
    else:
        plan.append(["tmux", "attach-session", "-t", target])
    return plan


def ensure_directory(cwd: str, confirm_fn: Callable[[str], bool]) -> Path:
    """Return ``cwd`` as a path, creating it after confirmation when missing."""
    path = Path(cwd).expanduser()
    if path.is_dir():
        return path
    if not confirm_fn(f"Directory {cwd} does not exist. Create it?"):
        raise ResumeAbortedError(f"Aborted: {cwd} does not exist")
    path.mkdir(parents=True, exist_ok=True)
    logger.info("Created missing working directory {}", path)
    return path


def resume_session(
    summary: SessionSummary,
    *,
    use_tmux: bool = True,
    claude_command: str = "claude",
    confirm_fn: Callable[[str], bool] | None = None,
) -> int:
    """Resume a session in its sesh-named tmux session, or directly without tmux.

    Returns the exit code of the last command run.
    """
    ensure_directory(summary.cwd, confirm_fn or confirm)
    inside = in_tmux()
    if not (use_tmux and command_exists("tmux") and (inside or sys.stdout.isatty())):
        logger.info("Resuming {} directly in {}", summary.id, summary.cwd)
        result = run_tool(
            [claude_command, "--resume", summary.id], capture="none", cwd=summary.cwd
        )
        if result is None:
            return 127
        if result.returncode != 0:
            logger.error("Failed to resume session (exit code: {})", result.returncode)
        return result.returncode

    plan = build_resume_plan(
        summary,
        inside_tmux=inside,
        session_exists=tmux_has_session(sesh_name(summary.cwd)),
        claude_command=claude_command,
    )
    for cmd in plan:
        interactive = cmd[1] in _INTERACTIVE_TMUX
        result = run_tool(cmd, capture="none" if interactive else "all")
        if result is None:
            return 127
        if result.returncode != 0:
            detail = (result.stderr or "").strip() if not interactive else ""
            logger.error("tmux {} failed ({}): {}", cmd[1], result.returncode, detail)
            return result.returncode
    return 0


# ── zoxide / pager ───────────────────────────────────────────────────


def zoxide_ranking() -> list[str]:
    """Return directories ordered by zoxide frecency, or ``[]`` when unavailable."""
    if not command_exists("zoxide"):
        return []
    result = run_tool(["zoxide", "query", "-l"], timeout=10)
    if result is None or result.returncode != 0:
        return []
    return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]


def page_text(text: str, *, use_gum: bool = True, out: TextIO | None = None) -> None:
    """Show text through ``gum pager`` or ``less -R``, else write it to stdout."""
    if has_tty():
        if use_gum and command_exists("gum"):
            result = run_tool(["gum", "pager"], input_text=text, capture="none")
            if result is not None and result.returncode == 0:
                return
        if command_exists("less"):
            result = run_tool(["less", "-R"], input_text=text, capture="none")
            if result is not None:
                return
    target = out if out is not None else sys.stdout
    target.write(text if text.endswith("\n") else f"{text}\n")


# ── pickers ──────────────────────────────────────────────────────────


def fzf_select(
    lines: list[str],
    *,
    header: str,
    prompt: str = "Select Claude session: ",
    expect: Iterable[str] = (),
    popup: str | None = None,
) -> tuple[str, str] | None:
    """Pick one line with fzf; returns ``(pressed_key, line)`` or ``None``.

    ``pressed_key`` is empty for Enter. Inside tmux ``fzf-tmux -p`` is used when
    a popup size is given.
    """
    if popup and in_tmux() and command_exists("fzf-tmux"):
        cmd = ["fzf-tmux", "-p", popup]
    else:
        cmd = ["fzf", "--height=100%"]
    cmd += [
        "--layout=reverse",
        "--info=inline",
        f"--prompt={prompt}",
        f"--header={header}",
        "--delimiter=\t",
        "--with-nth=1,2,3,4",
    ]
    keys = list(expect)
    if keys:
        cmd.append(f"--expect={','.join(keys)}")
    result = run_tool(cmd, input_text="\n".join(lines) + "\n", capture="stdout")
    if result is None or result.returncode != 0:
        return None
    output = (result.stdout or "").splitlines()
    if keys:
        key = output[0].strip() if output else ""
        selected = output[1] if len(output) > 1 else ""
    else:
        key = ""
        selected = output[0] if output else ""
    if not selected.strip():
        return None
    return key, selected


def gum_choose(options: list[str], *, header: str) -> str | None:
    """Pick one option with ``gum choose``."""
    result = run_tool(["gum", "choose", "--header", header, *options], capture="stdout")
    if result is None or result.returncode != 0:
        return None
    chosen = (result.stdout or "").strip()
    return chosen or None


def _ask(input_fn: Callable[[str], str], prompt: str) -> str:
    try:
        return input_fn(prompt).strip()
    except EOFError:
        return ""


def confirm(
    prompt: str,
    *,
    use_gum: bool = True,
    input_fn: Callable[[str], str] = input,
) -> bool:
    """Ask a yes/no question with ``gum confirm`` or a ``[y/N]`` prompt."""
    if use_gum and has_tty() and command_exists("gum"):
        result = run_tool(["gum", "confirm", prompt], capture="none")
        return result is not None and result.returncode == 0
    answer = _ask(input_fn, f"{prompt} [y/N] ")
    return answer.lower() in {"y", "yes"}


def simple_action_menu(
    *,
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
) -> str | None:
    """Numbered action menu; returns an action name or ``None``."""
    output_fn("\nChoose action:")
    for index, label in enumerate(ACTION_LABELS.values(), start=1):
        output_fn(f"{index}. {label}")
    output_fn("")
    raw = _ask(input_fn, "Enter action number: ")
    if not raw:
        return None
    try:
        return ACTIONS[int(raw) - 1] if int(raw) >= 1 else None
    except (ValueError, IndexError):
        output_fn("Invalid action")
        return None


def choose_action(
    summary: SessionSummary,
    *,
    use_gum: bool = True,
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
) -> str | None:
    """Ask what to do with ``summary`` through gum, else the numbered menu."""
    if use_gum and has_tty() and command_exists("gum"):
        header = f"{sesh_name(summary.cwd)} · {summary.id[:8]}"
        label = gum_choose(list(ACTION_LABELS.values()), header=header)
        if label is None:
            return None
        for action, text in ACTION_LABELS.items():
            if text == label:
                return action
        return None
    return simple_action_menu(input_fn=input_fn, output_fn=output_fn)


def simple_select(
    sessions: list[SessionSummary],
    *,
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
    preview_length: int = 50,
) -> SessionSelection | None:
    """Numbered session list followed by the action menu, for non-TTY use."""
    if not sessions:
        output_fn("No sessions found")
        return None
    output_fn("\nAvailable Claude Sessions:\n")
    for index, item in enumerate(sessions, start=1):
        parsed = parse_timestamp(item.timestamp)
        date = parsed.astimezone().strftime("%Y-%m-%d %H:%M") if parsed else item.timestamp
        output_fn(f"{index}. {directory_icon(item.cwd)} [{date}] {sesh_name(item.cwd)}")
        output_fn(f"   {format_preview(session_preview(item), preview_length)}")
        output_fn(f"   ID: {item.id[:8]}...\n")

    raw = _ask(input_fn, "Enter session number (or 'q' to quit): ")
    if not raw or raw.lower() == "q":
        return None
    try:
        index = int(raw) - 1
    except ValueError:
        output_fn("Invalid selection")
        return None
    if index < 0 or index >= len(sessions):
        output_fn("Invalid selection")
        return None

    action = simple_action_menu(input_fn=input_fn, output_fn=output_fn)
    if action is None:
        return None
    return SessionSelection(session=sessions[index], action=action)


def interactive_select(
    sessions: list[SessionSummary],
    *,
    use_fzf: bool = True,
    use_gum: bool = True,
    simple: bool = False,
    popup: str | None = None,
    preview_length: int = 50,
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
) -> SessionSelection | None:
    """Pick a session and an action with fzf, falling back to the numbered prompt."""
    if not sessions:
        output_fn("No sessions found")
        return None
    if simple or not use_fzf or not has_tty() or not command_exists("fzf"):
        return simple_select(
            sessions, input_fn=input_fn, output_fn=output_fn, preview_length=preview_length
        )

    by_id = {item.id: item for item in sessions}
    picked = fzf_select(
        [session_line(item, preview_length) for item in sessions],
        header="Enter: actions  ctrl-r: resume  ctrl-v: view  ctrl-e: export  ctrl-d: delete",
        expect=KEY_ACTIONS.keys(),
        popup=popup,
    )
    if picked is None:
        return None
    key, line = picked
    session = by_id.get(parse_session_line(line) or "")
    if session is None:
        logger.warning("Could not map picker selection back to a session: {}", line)
        return None
    action = KEY_ACTIONS.get(key) or choose_action(
        session, use_gum=use_gum, input_fn=input_fn, output_fn=output_fn
    )
    if action is None:
        return None
    return SessionSelection(session=session, action=action)
