from __future__ import annotations

from pathlib import Path

import pytest

from shell_tasks import storage
from shell_tasks.models import (
    TaskCategory,
    TaskConflictError,
    TaskNotFoundError,
    TaskStep,
    TaskValidationError,
)
from shell_tasks.service import TaskService


@pytest.fixture
def svc(tmp_path: Path) -> TaskService:
    service = TaskService(tmp_path / ".shell-tasks")
    service.ensure_layout()
    return service


def test_create_task_persists_to_manifest(svc: TaskService) -> None:
    svc.create_task(
        "build",
        exec="make",
        description="Build it",
        category="build",
        env={"CC": "gcc"},
    )
    reloaded = TaskService(svc.project_dir).view_task("build")
    assert reloaded.steps == [TaskStep(exec="make")]
    assert reloaded.description == "Build it"
    assert reloaded.category is TaskCategory.BUILD
    assert reloaded.environment == {"CC": "gcc"}


def test_create_task_rejects_duplicate(svc: TaskService) -> None:
    svc.create_task("build")
    with pytest.raises(TaskConflictError):
        svc.create_task("build")


def test_add_command_append_and_prepend(svc: TaskService) -> None:
    svc.create_task("setup", exec="configure")
    svc.add_command("setup", "finish")
    task = svc.add_command("setup", "install", prepend=True, step_name="Install", step_env={"Q": "1"})
    assert [step.exec for step in task.steps] == ["install", "configure", "finish"]
    assert svc.view_task("setup").steps[0] == TaskStep(exec="install", name="Install", env={"Q": "1"})


def test_add_command_requires_text(svc: TaskService) -> None:
    svc.create_task("setup")
    with pytest.raises(TaskValidationError, match="command is required"):
        svc.add_command("setup", "   ")


def test_add_subtask_requires_existing_task(svc: TaskService) -> None:
    svc.create_task("build")
    with pytest.raises(TaskNotFoundError, match="Task not found: test"):
        svc.add_subtask("build", "test")
    with pytest.raises(TaskValidationError, match="cannot spawn itself"):
        svc.add_subtask("build", "build")


def test_add_subtask_and_render(svc: TaskService) -> None:
    svc.create_task("test", exec="pytest")
    svc.create_task("build", exec="make")
    svc.add_subtask("build", "test", step_name="Tests")
    rendered = svc.render_task("build")
    assert rendered == "( ( make ) && ( echo Tests ) && ( ( ( ( pytest ) ) ) ) )"
    assert svc.subtask_rows(svc.view_task("build")) == [("test", "ok")]


def test_render_task_layers_config_env_below_global_env(svc: TaskService) -> None:
    (svc.project_dir / "config.yaml").write_text(
        "settings:\n  env:\n    CI: 'true'\n    LEVEL: config\n",
        encoding="utf-8",
    )
    svc.set_global_env("LEVEL", "global")
    svc.create_task("build", exec="make")
    assert svc.render_task("build") == '( export CI="true"; export LEVEL="global"; ( make ) )'
    assert svc.global_env() == {"LEVEL": "global"}
    assert "CI" not in storage.read_manifest(svc.project_dir).get("env", {})


def test_reset_and_set_env(svc: TaskService) -> None:
    svc.create_task("build", exec="make")
    svc.add_command("build", "make install")
    svc.reset_task("build", "ninja")
    task = svc.set_env("build", "JOBS", "4")
    assert task.steps == [TaskStep(exec="ninja")]
    assert svc.view_task("build").environment == {"JOBS": "4"}


def test_remove_task_refuses_when_referenced(svc: TaskService) -> None:
    svc.create_task("test")
    svc.create_task("build")
    svc.add_subtask("build", "test")
    with pytest.raises(TaskConflictError, match="spawned by: build"):
        svc.remove_task("test")
    svc.remove_task("test", force=True)
    with pytest.raises(TaskNotFoundError, match="test"):
        svc.render_task("build")
    assert svc.subtask_rows(svc.view_task("build")) == [("test", "missing")]


def test_list_tasks_sorted_by_category_then_name(svc: TaskService) -> None:
    svc.create_task("zeta")
    svc.create_task("release", category="release")
    svc.create_task("compile", category="build")
    svc.create_task("bundle", category="build")
    svc.create_task("unit", category="test")
    names = [task.name for task in svc.list_tasks()]
    assert names == ["bundle", "compile", "unit", "release", "zeta"]
    assert [task.name for task in svc.list_tasks(category="build")] == ["bundle", "compile"]
