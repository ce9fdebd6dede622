from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner
import yaml

from shell_tasks.cli import app
from shell_tasks.logging_setup import _HANDLER_TAG


runner = CliRunner()


@pytest.fixture(autouse=True)
def _drop_cli_log_handlers():
    root = logging.getLogger()
    level = root.level
    yield
    # The CLI binds a handler to the runner's stderr, which is closed afterwards.
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
    root.setLevel(level)
    logging.captureWarnings(False)


def _init(tmp_path: Path) -> Path:
    root = tmp_path / ".shell-tasks"
    result = runner.invoke(app, ["init", "--project-dir", str(root)])
    assert result.exit_code == 0, result.output
    return root


def _read_manifest(root: Path) -> dict:
    return yaml.safe_load((root / "tasks.yaml").read_text(encoding="utf-8"))


def test_init_idempotent(tmp_path: Path) -> None:
    root = _init(tmp_path)
    again = runner.invoke(app, ["init", "--project-dir", str(root)])
    assert again.exit_code == 0
    assert "Using existing config" in again.output
    assert (root / "config.yaml").exists()
    assert _read_manifest(root) == {"tasks": {}}


def test_init_discovers_repo_root(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    (tmp_path / ".git").mkdir()
    nested = tmp_path / "src"
    nested.mkdir()
    monkeypatch.chdir(nested)
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0
    assert (tmp_path / ".shell-tasks" / "tasks.yaml").exists()


def test_no_command_prints_help() -> None:
    result = runner.invoke(app, [])
    assert result.exit_code == 0
    assert "render" in result.output


def test_add_and_render(tmp_path: Path) -> None:
    root = _init(tmp_path)
    result = runner.invoke(
        app,
        [
            "add",
            "build",
            "--exec",
            "npm run compile",
            "--env",
            "FOO=bar",
            "--category",
            "build",
            "--project-dir",
            str(root),
        ],
    )
    assert result.exit_code == 0
    assert "Created: build" in result.output

    rendered = runner.invoke(app, ["render", "build", "--project-dir", str(root)])
    assert rendered.exit_code == 0
    assert rendered.output.strip() == '( export FOO="bar"; ( npm run compile ) )'


def test_add_rejects_duplicate_name(tmp_path: Path) -> None:
    root = _init(tmp_path)
    r1 = runner.invoke(app, ["add", "build", "--project-dir", str(root)])
    r2 = runner.invoke(app, ["add", "build", "--project-dir", str(root)])
    assert r1.exit_code == 0
    assert r2.exit_code == 1
    assert "already exists" in r2.output


def test_add_rejects_malformed_env_pair(tmp_path: Path) -> None:
    root = _init(tmp_path)
    result = runner.invoke(app, ["add", "build", "--env", "NOVALUE", "--project-dir", str(root)])
    assert result.exit_code == 1
    assert "expected KEY=VALUE" in result.output


def test_exec_spawn_reset_flow(tmp_path: Path) -> None:
    root = _init(tmp_path)
    runner.invoke(app, ["add", "test", "--exec", "pytest", "--project-dir", str(root)])
    runner.invoke(app, ["add", "build", "--exec", "make", "--project-dir", str(root)])

    prepended = runner.invoke(
        app,
        ["exec", "build", "pip install -e .", "--prepend", "--step-name", "Install", "--project-dir", str(root)],
    )
    assert prepended.exit_code == 0
    assert "(2 steps)" in prepended.output

    spawned = runner.invoke(app, ["spawn", "build", "test", "--env", "CI=1", "--project-dir", str(root)])
    assert spawned.exit_code == 0

    steps = _read_manifest(root)["tasks"]["build"]["steps"]
    assert steps == [
        {"name": "Install", "exec": "pip install -e ."},
        {"exec": "make"},
        {"exec_task": "test", "env": {"CI": "1"}},
    ]

    reset = runner.invoke(app, ["reset", "build", "ninja", "--project-dir", str(root)])
    assert reset.exit_code == 0
    assert _read_manifest(root)["tasks"]["build"]["steps"] == [{"exec": "ninja"}]


def test_spawn_unknown_task_fails(tmp_path: Path) -> None:
    root = _init(tmp_path)
    runner.invoke(app, ["add", "build", "--project-dir", str(root)])
    result = runner.invoke(app, ["spawn", "build", "ghost", "--project-dir", str(root)])
    assert result.exit_code == 1
    assert "Task not found: ghost" in result.output


def test_env_global_and_task(tmp_path: Path) -> None:
    root = _init(tmp_path)
    runner.invoke(app, ["add", "build", "--exec", "make", "--project-dir", str(root)])
    runner.invoke(app, ["env", "CI", "true", "--project-dir", str(root)])
    runner.invoke(app, ["env", "CI", "false", "--task", "build", "--project-dir", str(root)])

    manifest = _read_manifest(root)
    assert manifest["env"] == {"CI": "true"}
    assert manifest["tasks"]["build"]["env"] == {"CI": "false"}

    rendered = runner.invoke(app, ["render", "build", "--project-dir", str(root)])
    assert rendered.output.strip() == '( export CI="false"; ( make ) )'


def test_list_plain_and_json(tmp_path: Path) -> None:
    root = _init(tmp_path)
    runner.invoke(app, ["add", "release", "--category", "release", "--project-dir", str(root)])
    runner.invoke(
        app,
        ["add", "compile", "--category", "build", "--description", "Compile sources", "--project-dir", str(root)],
    )

    listed = runner.invoke(app, ["list", "--project-dir", str(root)])
    assert listed.exit_code == 0
    lines = listed.output.splitlines()
    assert lines[0].startswith("name")
    assert lines[2].startswith("compile")
    assert "Compile sources" in lines[2]
    assert lines[3].startswith("release")

    as_json = runner.invoke(app, ["list", "--json", "--project-dir", str(root)])
    payload = json.loads(as_json.output)
    assert [item["name"] for item in payload] == ["compile", "release"]
    assert payload[0]["category"] == "00.build"


def test_view_shows_steps_and_command(tmp_path: Path) -> None:
    root = _init(tmp_path)
    runner.invoke(app, ["add", "build", "--exec", "make", "--condition", "test -f Makefile", "--project-dir", str(root)])

    viewed = runner.invoke(app, ["view", "build", "--project-dir", str(root)])
    assert viewed.exit_code == 0
    assert "condition: test -f Makefile" in viewed.output
    assert "1. exec: make" in viewed.output
    assert "( ! ( test -f Makefile ) || ( ( make ) ) )" in viewed.output

    as_json = runner.invoke(app, ["view", "build", "--json", "--no-command", "--project-dir", str(root)])
    payload = json.loads(as_json.output)
    assert payload["task"]["condition"] == "test -f Makefile"
    assert payload["command"] is None


def test_render_missing_subtask_reports_error(tmp_path: Path) -> None:
    root = _init(tmp_path)
    runner.invoke(app, ["add", "test", "--project-dir", str(root)])
    runner.invoke(app, ["add", "build", "--project-dir", str(root)])
    runner.invoke(app, ["spawn", "build", "test", "--project-dir", str(root)])
    runner.invoke(app, ["remove", "test", "--force", "--project-dir", str(root)])

    result = runner.invoke(app, ["render", "build", "--project-dir", str(root)])
    assert result.exit_code == 1
    assert "Unable to resolve subtask test" in result.output


def test_remove_referenced_task_requires_force(tmp_path: Path) -> None:
    root = _init(tmp_path)
    runner.invoke(app, ["add", "test", "--project-dir", str(root)])
    runner.invoke(app, ["add", "build", "--project-dir", str(root)])
    runner.invoke(app, ["spawn", "build", "test", "--project-dir", str(root)])

    refused = runner.invoke(app, ["remove", "test", "--project-dir", str(root)])
    assert refused.exit_code == 1
    assert "--force" in refused.output
    assert "test" in _read_manifest(root)["tasks"]


def test_missing_task_name_non_interactive_errors(tmp_path: Path) -> None:
    root = _init(tmp_path)
    runner.invoke(app, ["add", "build", "--project-dir", str(root)])
    result = runner.invoke(app, ["render", "--nointeractive", "--project-dir", str(root)])
    assert result.exit_code == 1
    assert "task_name is required in non-interactive mode" in result.output


def test_missing_task_name_uses_picker_when_interactive(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    root = _init(tmp_path)
    runner.invoke(app, ["add", "build", "--exec", "make", "--project-dir", str(root)])
    monkeypatch.setattr("shell_tasks.cli._can_interact", lambda: True)
    monkeypatch.setattr("shell_tasks.cli.choose_task", lambda tasks, title: tasks[0].name)

    result = runner.invoke(app, ["render", "--project-dir", str(root)])
    assert result.exit_code == 0
    assert "( ( make ) )" in result.output


def test_missing_project_dir_reports_init_hint(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["list"])
    assert result.exit_code == 1
    assert "shell-tasks init" in result.output


def test_verbose_logs_rendering(tmp_path: Path) -> None:
    root = _init(tmp_path)
    runner.invoke(app, ["add", "build", "--exec", "make", "--project-dir", str(root)])
    result = runner.invoke(app, ["--verbose", "render", "build", "--project-dir", str(root)])
    assert result.exit_code == 0
    assert "Rendering task build" in result.output


def test_cli_leaves_existing_log_handlers_in_place(tmp_path: Path) -> None:
    root = _init(tmp_path)
    existing = logging.NullHandler()
    logging.getLogger().addHandler(existing)
    try:
        result = runner.invoke(app, ["list", "--project-dir", str(root)])
        assert result.exit_code == 0
        assert existing in logging.getLogger().handlers
    finally:
        logging.getLogger().removeHandler(existing)
