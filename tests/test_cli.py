"""CLI smoke tests — command registration, JSON/human output, exit codes."""

from __future__ import annotations

import json

import click
import pytest
from click.testing import CliRunner

from dots.cli import cli


@pytest.fixture
def run(tmp_path, monkeypatch):
    monkeypatch.delenv("DOTS_DIR", raising=False)
    runner = CliRunner()

    def invoke(*args: str, input: str | None = None):
        return runner.invoke(cli, ["-C", str(tmp_path), *args], input=input)

    return invoke


@pytest.fixture
def plan_tree(run):
    run("plan", "User Auth")
    run("milestone", "p1", "Backend Setup")
    run("task", "m1", "Create Model")
    run("task", "m1", "Add Index")
    return run


def test_cli_is_group():
    assert isinstance(cli, click.Group)


def test_cli_help_exits_zero():
    result = CliRunner().invoke(cli, ["--help"])
    assert result.exit_code == 0


def test_cli_expected_subcommands():
    registered = list(cli.commands.keys())
    for cmd in [
        "add", "ls", "on", "off", "rm", "show", "update", "ready", "tree", "find",
        "resolve", "block", "unblock", "plan", "milestone", "task", "progress",
        "discover", "decide", "backlog", "activate", "init", "archive", "purge",
        "fix", "migrate", "restructure", "hook",
    ]:
        assert cmd in registered, f"Missing command: {cmd}"


def test_cli_aliases():
    # Old names stay registered and point at the same commands
    for alias, target in [
        ("create", "add"), ("list", "ls"), ("it", "on"),
        ("done", "off"), ("close", "off"), ("delete", "rm"),
    ]:
        assert cli.commands[alias] is cli.commands[target]


def test_hook_group_subcommands():
    result = CliRunner().invoke(cli, ["hook", "--help"])
    assert result.exit_code == 0
    for sub in ["session", "sync"]:
        assert sub in result.output


def test_plan_workflow(plan_tree, tmp_path):
    root = tmp_path / ".dots"
    assert (root / "p1-user-auth" / "m1-backend-setup" / "t1-create-model.md").is_file()

    result = plan_tree("off", "t1", "-r", "modelled")
    assert result.exit_code == 0
    assert json.loads(result.output) == {"closed": ["t1-create-model"]}
    assert (root / "p1-user-auth" / "m1-backend-setup" / "done" / "t1-create-model.md").is_file()


def test_error_exits_one(plan_tree):
    result = plan_tree("off", "m1")
    assert result.exit_code == 1
    assert "children_not_closed" in result.output


def test_bare_dot_lists_ready(plan_tree):
    result = plan_tree()
    assert result.exit_code == 0
    ids = [i["id"] for i in json.loads(result.output)["issues"]]
    assert "t1-create-model" in ids
    assert "t2-add-index" in ids


def test_alias_invocation(run, tmp_path):
    assert run("create", "Loose end").exit_code == 0
    assert run("done", "t1").exit_code == 0
    assert (tmp_path / ".dots" / "archive" / "t1-loose-end.md").is_file()


def test_quick_add(run, tmp_path):
    result = run("Fix login bug")
    assert result.exit_code == 0
    assert json.loads(result.output)["created"] == "t1-fix-login-bug"
    assert (tmp_path / ".dots" / "t1-fix-login-bug.md").is_file()


def test_quick_add_with_options(run):
    assert run("Urgent thing", "-p", "0").exit_code == 0
    result = run("show", "t1")
    assert json.loads(result.output)["issue"]["priority"] == 0


def test_unknown_option_is_not_a_title(run):
    assert run("--nope").exit_code == 2


def test_human_list(run):
    run("add", "First")
    run("add", "Second", "--after", "t1")
    result = run("--human", "ls")
    assert result.exit_code == 0
    assert result.output.splitlines() == [
        "[t1-first] o First",
        "[t2-second] o Second (blocked)",
    ]


def test_human_tree(plan_tree):
    plan_tree("on", "t2")
    result = plan_tree("--human", "tree")
    assert result.output.splitlines() == [
        "[p1-user-auth] ○ User Auth",
        "  └─ [m1-backend-setup] ○ Backend Setup",
        "     ├─ [t1-create-model] ○ Create Model",
        "     └─ [t2-add-index] ◐ Add Index",
    ]


def test_human_fix(run):
    result = run("--human", "fix")
    assert result.output.strip() == "Fixed 0 orphan parent(s), moved 0 file(s)"


def test_priority_out_of_range(run):
    assert run("add", "X", "-p", "9").exit_code == 2


def test_invalid_config(run, tmp_path):
    root = tmp_path / ".dots"
    root.mkdir()
    (root / "config.yaml").write_text("id_scheme: nope\n")
    result = run("ls")
    assert result.exit_code == 1
    assert "id_scheme" in result.output


def test_hook_session_text(plan_tree):
    result = plan_tree("hook", "session")
    assert result.exit_code == 0
    assert result.output.splitlines()[0] == "--- DOTS ---"
    assert "  [p1-user-auth] User Auth" in result.output.splitlines()


def test_hook_session_empty_store(run):
    result = run("hook", "session")
    assert result.exit_code == 0
    assert result.output == ""


def test_hook_sync_reads_stdin(run):
    event = {"tool_name": "TodoWrite", "tool_input": {"todos": [{"content": "Ship it", "status": "pending"}]}}
    result = run("hook", "sync", input=json.dumps(event))
    assert result.exit_code == 0
    assert json.loads(result.output)["created"] == ["t1-ship-it"]


def test_hook_sync_empty_stdin_is_noop(run):
    result = run("hook", "sync", input="")
    assert result.exit_code == 0
    assert result.output == ""
