"""CLI parser and command-contract tests."""

from __future__ import annotations

import argparse
import io
from contextlib import redirect_stderr, redirect_stdout

import pytest

from claudesesh.app import cli, terminal
from claudesesh.app.terminal import SessionSelection
from claudesesh.transcripts.normalize import summarize_file
from tests.helpers import basic_session, run_cli, run_cli_json, write_transcript


@pytest.fixture
def sessions(projects_dir, tmp_path):
    """Three transcripts in two projects, with a real working directory."""
    work = tmp_path / "work"
    work.mkdir()
    write_transcript(
        projects_dir / "-work" / "aaaa1111-0000.jsonl",
        basic_session(str(work), timestamp="2024-01-01T00:00:00Z", text="first question"),
    )
    write_transcript(
        projects_dir / "-work" / "aaaa2222-0000.jsonl",
        basic_session(str(work), timestamp="2024-02-01T00:00:00Z", text="second question"),
    )
    write_transcript(
        projects_dir / "-other" / "bbbb3333-0000.jsonl",
        basic_session("/srv/other", timestamp="2024-03-01T00:00:00Z", text="deploy please"),
    )
    return projects_dir


def test_help_lists_commands() -> None:
    parser = cli.build_parser()
    out = io.StringIO()
    with redirect_stdout(out), pytest.raises(SystemExit) as exc:
        parser.parse_args(["--help"])
    assert exc.value.code == 0
    text = out.getvalue()
    for command in ("list", "search", "show", "view", "export", "resume", "delete", "pick"):
        assert command in text


def test_version_flag_exits_zero() -> None:
    out = io.StringIO()
    with redirect_stdout(out), pytest.raises(SystemExit) as exc:
        cli.build_parser().parse_args(["--version"])
    assert exc.value.code == 0
    assert out.getvalue().startswith("claude-sesh ")


def test_export_parser_accepts_all_flags() -> None:
    args = cli.build_parser().parse_args(
        [
            "export",
            "abc",
            "--format",
            "json",
            "--output",
            "/tmp/out",
            "--stdout",
            "--no-metadata",
            "--no-timestamps",
            "--max-messages",
            "5",
        ]
    )
    assert isinstance(args, argparse.Namespace)
    assert args.command == "export"
    assert args.format == "json"
    assert args.output == "/tmp/out"
    assert args.stdout and args.no_metadata and args.no_timestamps
    assert args.max_messages == 5


def test_export_parser_rejects_unknown_format_and_bad_counts() -> None:
    parser = cli.build_parser()
    for argv in (["export", "a", "--format", "html"], ["export", "a", "--max-messages", "0"]):
        with redirect_stderr(io.StringIO()), pytest.raises(SystemExit) as exc:
            parser.parse_args(argv)
        assert exc.value.code == 2


def test_global_flags_are_hoisted() -> None:
    assert cli._hoist_global_flags(["list", "--json", "--zoxide"]) == ["--json", "--zoxide", "list"]
    assert cli._hoist_global_flags(["resume", "abc", "--no-tmux"]) == ["--no-tmux", "resume", "abc"]
    assert cli._hoist_global_flags(["list"]) == ["list"]


def test_list_json_newest_first(sessions) -> None:
    code, payload = run_cli_json(["list", "--json"])
    assert code == 0
    assert [item["id"] for item in payload] == ["bbbb3333-0000", "aaaa2222-0000", "aaaa1111-0000"]
    assert payload[0]["messageCount"] == 2
    assert payload[0]["lastMessage"] == "deploy please"
    assert payload[0]["summary"] == "Bug fix session"
    assert payload[0]["gitBranch"] == "main"


def test_list_limit_and_search(sessions) -> None:
    code, payload = run_cli_json(["--json", "list", "--search", "QUESTION", "--limit", "1"])
    assert code == 0
    assert [item["id"] for item in payload] == ["aaaa2222-0000"]


def test_search_command_filters(sessions) -> None:
    code, payload = run_cli_json(["search", "deploy", "--json"])
    assert code == 0
    assert [item["id"] for item in payload] == ["bbbb3333-0000"]


def test_list_plain_emits_picker_lines(sessions) -> None:
    code, output = run_cli(["list", "--plain"])
    assert code == 0
    lines = output.strip().splitlines()
    assert len(lines) == 3
    assert all(len(line.split("\t")) == 6 for line in lines)
    assert lines[0].split("\t")[4] == "bbbb3333-0000"


def test_list_table_and_empty_listing(projects_dir) -> None:
    code, output = run_cli(["list"])
    assert code == 0
    assert output.strip() == "No sessions found."
    write_transcript(projects_dir / "-p" / "cccc4444.jsonl", basic_session("/srv/p"))
    code, output = run_cli(["list"])
    assert code == 0
    assert "cccc4444" in output
    assert "Directory" in output.splitlines()[0]


def test_show_by_partial_id(sessions) -> None:
    code, payload = run_cli_json(["show", "bbbb", "--json"])
    assert code == 0
    assert payload["id"] == "bbbb3333-0000"
    assert payload["cwd"] == "/srv/other"

    code, output = run_cli(["show", "bbbb3333-0000"])
    assert code == 0
    assert output.startswith("Session bbbb3333-0000")
    assert "- messageCount: 2" in output


def test_show_accepts_transcript_path(sessions) -> None:
    path = sessions / "-other" / "bbbb3333-0000.jsonl"
    code, payload = run_cli_json(["show", str(path), "--json"])
    assert code == 0
    assert payload["id"] == "bbbb3333-0000"


def test_show_not_found_and_ambiguous_exit_codes(sessions) -> None:
    err = io.StringIO()
    with redirect_stderr(err):
        missing_code, _ = run_cli(["show", "zzzz"])
        ambiguous_code, _ = run_cli(["show", "aaaa"])
    assert missing_code == 1
    assert ambiguous_code == 2
    text = err.getvalue()
    assert "Session zzzz not found" in text
    assert "aaaa1111-0000" in text and "aaaa2222-0000" in text


def test_export_to_stdout_without_metadata(sessions) -> None:
    code, output = run_cli(["export", "bbbb", "--stdout", "--no-metadata"])
    assert code == 0
    assert output.startswith("# Claude Session bbbb3333-0000")
    assert "deploy please" in output


def test_export_json_to_stdout(sessions) -> None:
    code, payload = run_cli_json(["export", "bbbb", "--stdout", "--format", "json"])
    assert code == 0
    assert payload[0]["type"] == "metadata"
    assert len(payload) == 4


def test_export_writes_file_to_output_dir(sessions, tmp_path) -> None:
    out_dir = tmp_path / "exported"
    code, payload = run_cli_json(["--json", "export", "aaaa1111", "--output", str(out_dir)])
    assert code == 0
    written = out_dir / payload["path"].split("/")[-1]
    assert written.exists()
    assert written.name.startswith("claude-session-aaaa1111-")
    assert "first question" in written.read_text(encoding="utf-8")


def test_export_defaults_to_configured_export_dir(sessions, tmp_path) -> None:
    code, output = run_cli(["export", "bbbb"])
    assert code == 0
    assert output.startswith("Exported to ")
    assert len(list((tmp_path / "exports").glob("claude-session-bbbb3333-*.md"))) == 1


def test_delete_with_yes_removes_transcript(sessions) -> None:
    code, output = run_cli(["delete", "bbbb", "--yes"])
    assert code == 0
    assert "Deleted session bbbb3333-0000" in output
    assert not (sessions / "-other" / "bbbb3333-0000.jsonl").exists()


def test_delete_declined_keeps_transcript(sessions, monkeypatch) -> None:
    monkeypatch.setattr(cli, "confirm", lambda prompt, **kwargs: False)
    code, output = run_cli(["delete", "bbbb"])
    assert code == 1
    assert "Cancelled." in output
    assert (sessions / "-other" / "bbbb3333-0000.jsonl").exists()


def test_view_pages_markdown(sessions, monkeypatch) -> None:
    shown: list[str] = []
    monkeypatch.setattr(cli, "page_text", lambda text, **kwargs: shown.append(text))
    code, _ = run_cli(["view", "bbbb"])
    assert code == 0
    assert "# Claude Session bbbb3333-0000" in shown[0]


def test_resume_without_tmux_runs_claude_in_cwd(sessions, tmp_path, monkeypatch) -> None:
    calls: list[tuple[list[str], dict]] = []

    def fake_run(cmd, **kwargs):
        calls.append((list(cmd), kwargs))
        return terminal.subprocess.CompletedProcess(cmd, 0)

    monkeypatch.setattr(terminal.subprocess, "run", fake_run)
    code, _ = run_cli(["resume", "aaaa2222", "--no-tmux"])
    assert code == 0
    assert calls[0][0] == ["claude", "--resume", "aaaa2222-0000"]
    assert calls[0][1]["cwd"] == str(tmp_path / "work")


def test_resume_aborts_when_directory_missing_and_declined(projects_dir, monkeypatch) -> None:
    write_transcript(projects_dir / "-gone" / "dddd5555.jsonl", basic_session("/nonexistent/gone"))
    monkeypatch.setattr(cli, "confirm", lambda prompt, **kwargs: False)
    with redirect_stderr(io.StringIO()) as err:
        code, _ = run_cli(["resume", "dddd5555"])
    assert code == 1
    assert "does not exist" in err.getvalue()


def test_pick_runs_selected_action(sessions, tmp_path, monkeypatch) -> None:
    target = summarize_file(sessions / "-other" / "bbbb3333-0000.jsonl")
    seen: dict = {}

    def fake_select(items, **kwargs):
        seen.update(kwargs)
        return SessionSelection(session=target, action="export")

    monkeypatch.setattr(cli, "interactive_select", fake_select)
    code, output = run_cli(["pick", "--simple"])
    assert code == 0
    assert seen["simple"] is True
    assert output.startswith("Exported to ")
    assert list((tmp_path / "exports").glob("claude-session-bbbb3333-*.md"))


def test_pick_cancel_and_nothing_selected(sessions, monkeypatch) -> None:
    monkeypatch.setattr(cli, "interactive_select", lambda items, **kwargs: None)
    assert run_cli(["pick"]) == (0, "")


def test_simple_mode_from_environment(sessions, monkeypatch) -> None:
    from claudesesh.config.settings import reload_config

    monkeypatch.setenv("CLAUDE_MANAGER_SIMPLE", "true")
    reload_config()
    seen: dict = {}

    def fake_select(items, **kwargs):
        seen.update(kwargs)
        return None

    monkeypatch.setattr(cli, "interactive_select", fake_select)
    assert run_cli(["pick"])[0] == 0
    assert seen["simple"] is True


def test_no_command_without_tty_prints_help(monkeypatch) -> None:
    monkeypatch.setattr(cli, "has_tty", lambda: False)
    code, output = run_cli([])
    assert code == 0
    assert "usage: claude-sesh" in output


def test_no_command_with_tty_runs_picker(sessions, monkeypatch) -> None:
    monkeypatch.setattr(cli, "has_tty", lambda: True)
    calls: list[int] = []
    monkeypatch.setattr(cli, "interactive_select", lambda items, **kwargs: calls.append(len(items)))
    code, _ = run_cli([])
    assert code == 0
    assert calls == [3]
